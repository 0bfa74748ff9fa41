"""
CadKernel - Zentralisierte Toleranz-Konfiguration
=================================================

Alle Toleranzen an einem Ort.

Toleranz-Philosophie:
- Sketch-Merge: 1e-4 - Endpunkte innerhalb dieses Abstands werden geteilt
- Solver: 1e-4 - Residuum unterhalb gilt als erfüllt
- CSG: 1e-5 - Ebenen-Klassifikation der BSP-Bäume

Verwendung:
    from config.tolerances import Tolerances

    # Direkt als Klassenvariablen
    eps = Tolerances.SOLVER_EPSILON

    # Oder via Convenience-Funktionen
    from config.tolerances import solver_tolerance
    eps = solver_tolerance()
"""


class Tolerances:
    """
    Zentrale Toleranz-Konstanten für CadKernel.

    Kategorien:
    - SKETCH_*: 2D-Sketcher Operationen
    - SOLVER_*: Constraint-Solver
    - CSG_*: Boolean-Operationen auf Meshes
    - PROFILE_* / ARC_* / REVOLVE_*: Diskretisierung
    """

    # =========================================================================
    # Sketch/2D Operationen
    # =========================================================================

    # Endpunkte näher als dieser Abstand werden beim Merge zusammengelegt
    SKETCH_MERGE = 1e-4

    # Kreuzprodukt-Grenze für kollineare Segmente (Merge nach Trim)
    COLLINEAR_CROSS = 0.01

    # Trim-Parameter wird auf [TRIM_MIN_T, 1 - TRIM_MIN_T] begrenzt
    TRIM_MIN_T = 0.01

    # =========================================================================
    # Constraint-Solver
    # =========================================================================

    # Residuum-Schwelle (|r| < eps gilt als erfüllt, Konvergenz bei Σr² < eps²)
    SOLVER_EPSILON = 1e-4

    # Standard-Iterationsgrenze
    SOLVER_MAX_ITER = 500

    # Relaxationsfaktor ω, wird auf [SOLVER_MIN_RELAXATION, 1.0] begrenzt
    SOLVER_RELAXATION = 1.0
    SOLVER_MIN_RELAXATION = 0.5

    # =========================================================================
    # Diskretisierung
    # =========================================================================

    # Stützpunkte pro Kreis-Profil
    PROFILE_CIRCLE_SEGMENTS = 32

    # Segmente pro Bogen bei Übernahme aus einer Scene
    ARC_SKETCH_SEGMENTS = 8

    # Standard-Segmente für Revolve
    REVOLVE_SEGMENTS = 32

    # |angle - 2π| oberhalb dieses Werts erzeugt Deckel
    REVOLVE_FULL_TURN = 0.01

    # =========================================================================
    # CSG / Mesh
    # =========================================================================

    # Ebenen-Dicke für die Polygon-Klassifikation
    CSG_EPSILON = 1e-5

    # Toleranz für AABB-Vergleiche in Tests und Validierung
    MESH_COMPARE = 1e-3

    # =========================================================================
    # Mathematische Epsilon-Werte (Numerische Stabilität)
    # =========================================================================

    # Vermeidet Division durch Null
    EPSILON_MATH = 1e-9

    # Normal-Vektor Validierung (Länge darunter = degeneriert)
    EPSILON_NORMAL = 1e-12


# =============================================================================
# Convenience-Funktionen
# =============================================================================

def sketch_tolerance() -> float:
    """Gibt die Standard-Merge-Toleranz des Sketchers zurück."""
    return Tolerances.SKETCH_MERGE


def solver_tolerance() -> float:
    """Gibt die Standard-Solver-Toleranz zurück."""
    return Tolerances.SOLVER_EPSILON


def csg_tolerance() -> float:
    """Gibt die Ebenen-Toleranz der CSG-Booleans zurück."""
    return Tolerances.CSG_EPSILON


# =============================================================================
# Toleranz-Validierung (für Debugging)
# =============================================================================

def validate_tolerances():
    """
    Validiert dass alle Toleranzen sinnvolle Werte haben.
    Nützlich für Tests und Debugging.
    """
    issues = []

    if not (1e-8 <= Tolerances.SOLVER_EPSILON <= 1e-2):
        issues.append(f"SOLVER_EPSILON außerhalb sinnvoller Grenzen: {Tolerances.SOLVER_EPSILON}")

    if not (Tolerances.SOLVER_MIN_RELAXATION <= Tolerances.SOLVER_RELAXATION <= 1.0):
        issues.append(f"SOLVER_RELAXATION nicht in [{Tolerances.SOLVER_MIN_RELAXATION}, 1.0]: "
                      f"{Tolerances.SOLVER_RELAXATION}")

    if Tolerances.CSG_EPSILON > Tolerances.SKETCH_MERGE:
        issues.append(f"CSG_EPSILON ({Tolerances.CSG_EPSILON}) gröber als SKETCH_MERGE ({Tolerances.SKETCH_MERGE})")

    if Tolerances.PROFILE_CIRCLE_SEGMENTS < 3:
        issues.append(f"PROFILE_CIRCLE_SEGMENTS zu klein: {Tolerances.PROFILE_CIRCLE_SEGMENTS}")

    return issues
