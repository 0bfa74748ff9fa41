import pytest

from config.feature_flags import set_flag
from core.variables import reset_variables
from sketcher.geometry import reset_ids
from modeling.features.base import reset_feature_ids


# Global Feature Flag Defaults - Single Source of Truth for Test Isolation
# ========================================================================
# WICHTIG: Jeder Test muss mit sauberen Feature-Flags starten.
# Diese Defaults müssen mit config/feature_flags.py synchron gehalten werden.
FEATURE_FLAG_DEFAULTS = {
    # Debug-Modi
    "solver_debug": False,
    "feature_tree_debug": False,
    "csg_debug": False,

    # Geometrie
    "csg_booleans": True,
    "dof_analysis": True,

    # Solver Configuration
    "solver_backend": "relaxation",
}


@pytest.fixture(autouse=True)
def _global_feature_flag_isolation():
    """
    Globale Feature-Flag-Isolation.

    Stellt sicher, dass jeder Test mit sauberen, deterministischen
    Feature-Flags startet und keine Mutation in den nächsten Test leckt.
    """
    for key, value in FEATURE_FLAG_DEFAULTS.items():
        set_flag(key, value)

    yield

    for key, value in FEATURE_FLAG_DEFAULTS.items():
        set_flag(key, value)


@pytest.fixture(autouse=True)
def _fresh_ids_and_variables():
    """IDs, Feature-IDs und Variablentabelle pro Test zurücksetzen."""
    reset_ids()
    reset_feature_ids()
    reset_variables()
    yield
    reset_variables()
