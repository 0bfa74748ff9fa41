"""
CadKernel - Feature Flags
=========================

Feature Flags ermöglichen inkrementelle Rollouts und einfaches Rollback.
Neue Features werden mit Flag=False eingeführt und nach Validierung aktiviert.

Diese Datei enthält Debug-Flags und die Auswahl des Solver-Backends.
"""

from typing import Any, Dict

# Feature Flag Registry
# =====================
# Debug-Flags schalten nur zusätzliches Logging frei, nie anderes Verhalten.

FEATURE_FLAGS: Dict[str, Any] = {
    # Debug-Modi
    "solver_debug": False,  # Pro-Iteration Logging im Relaxations-Solver
    "feature_tree_debug": False,  # Recalculation-Walk Logging ([FeatureTree])
    "csg_debug": False,  # BSP-Aufbau und Polygon-Zahlen ([CSG])

    # Geometrie
    "csg_booleans": True,  # Boolean-Ops gegen vorherigen Solid (False = nur neues Mesh)
    "dof_analysis": True,  # DOFAnalyzer nach jedem Scene.solve() für Anzeige

    # Solver Configuration
    "solver_backend": "relaxation",  # "relaxation" (Standard) oder "scipy" (least_squares)
}


def is_enabled(flag: str) -> bool:
    """
    Prüft ob ein Feature-Flag aktiviert ist.

    Args:
        flag: Name des Feature-Flags

    Returns:
        True wenn aktiviert, False wenn nicht aktiviert oder unbekannt
    """
    return bool(FEATURE_FLAGS.get(flag, False))


def get_flag(flag: str, default: Any = None) -> Any:
    """Gibt den Rohwert eines Flags zurück (auch Nicht-Bool Werte wie solver_backend)."""
    return FEATURE_FLAGS.get(flag, default)


def set_flag(flag: str, value: Any) -> None:
    """
    Setzt ein Feature-Flag zur Laufzeit.
    Nützlich für Tests und Debugging.

    Args:
        flag: Name des Feature-Flags
        value: Neuer Wert
    """
    FEATURE_FLAGS[flag] = value


def get_all_flags() -> Dict[str, Any]:
    """Gibt alle Feature-Flags zurück."""
    return FEATURE_FLAGS.copy()
