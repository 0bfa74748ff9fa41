"""
CadKernel Sketcher Module
"""

from .geometry import (
    Point2D, Segment2D, Circle2D, Arc2D, Text2D, Shape2D,
    GeometryType, next_id, reset_ids,
)

from .constraints import (
    Constraint, ConstraintType, ConstraintStatus,
    make_fixed, make_coincident, make_horizontal, make_vertical,
    make_parallel, make_perpendicular, make_equal_length,
    make_length, make_distance, make_distance_x, make_distance_y, make_radius,
    make_angle, make_point_on_line, make_point_on_circle, make_midpoint,
    make_tangent,
    calculate_constraint_error, is_constraint_satisfied
)

from .dimension import DimensionPrimitive, DimensionType, DisplayMode, detect_dimension_type

from .solver import ConstraintSolver, SolverResult

from .scene import Scene, SceneError, DanglingReferenceError

from .dof import DOFAnalyzer

from .profiles import Profile, extract_profiles

from .sketch import Sketch
