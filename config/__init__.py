"""
CadKernel - Configuration Module
================================

Zentrale Konfiguration für alle globalen Einstellungen.
"""

from .tolerances import Tolerances, sketch_tolerance, solver_tolerance, csg_tolerance
from .feature_flags import is_enabled, get_flag, set_flag, get_all_flags, FEATURE_FLAGS
