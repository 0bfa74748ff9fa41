"""
CadKernel - Zentrale Versionsverwaltung
=======================================

Alle Versionsinformationen werden hier zentral gepflegt.
Import: from config.version import VERSION, VERSION_STRING, APP_NAME
"""

# Haupt-Versionsnummer (Semantic Versioning: MAJOR.MINOR.PATCH)
VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0

# Release-Typ: "alpha", "beta", "rc1", "" (leer für stable release)
VERSION_SUFFIX = "alpha"

APP_NAME = "CadKernel"

# Abgeleitete Strings
VERSION = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"
VERSION_STRING = f"{VERSION}-{VERSION_SUFFIX}" if VERSION_SUFFIX else VERSION
VERSION_FULL = f"v{VERSION_STRING}"

# Version des Part/Scene Serialisierungsformats
FORMAT_VERSION = 1


def get_version_info() -> dict:
    """
    Gibt alle Versionsinformationen als Dictionary zurück.
    Nützlich für Debug-Ausgaben und Serialisierungs-Header.
    """
    return {
        "app_name": APP_NAME,
        "version": VERSION,
        "version_string": VERSION_STRING,
        "version_full": VERSION_FULL,
        "major": VERSION_MAJOR,
        "minor": VERSION_MINOR,
        "patch": VERSION_PATCH,
        "suffix": VERSION_SUFFIX,
        "format_version": FORMAT_VERSION,
    }
