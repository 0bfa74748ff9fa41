"""
Solver Tests - Relaxations-Solver und SciPy-Backend
"""

import math

import pytest

from config.feature_flags import set_flag
from sketcher import (
    Scene, ConstraintSolver, ConstraintStatus,
    make_fixed, make_coincident, make_horizontal, make_vertical, make_distance,
    make_length, make_perpendicular, make_parallel, make_radius, make_midpoint,
    make_point_on_line, make_equal_length, make_angle, make_distance_x,
)
from sketcher.constraints import Constraint, ConstraintType


class TestRelaxationSolver:

    def test_coincident_pulls_free_point_onto_fixed(self):
        scene = Scene()
        p0 = scene.add_point(0, 0, fixed=True)
        p1 = scene.add_point(10, 5)
        scene.add_constraint(make_coincident(p0, p1))

        result = scene.solve()

        assert result.success
        assert abs(p1.x) < 1e-4
        assert abs(p1.y) < 1e-4
        assert (p0.x, p0.y) == (0.0, 0.0)

    def test_distance_from_fixed_point(self):
        scene = Scene()
        p0 = scene.add_point(0, 0, fixed=True)
        p1 = scene.add_point(50, 0)
        scene.add_constraint(make_distance(p0, p1, 100))

        result = scene.solve()

        assert result.success
        assert math.hypot(p1.x, p1.y) == pytest.approx(100, abs=0.01)

    def test_no_constraints_is_success(self):
        scene = Scene()
        scene.add_point(1, 1)
        result = scene.solve()
        assert result.success
        assert result.iterations == 0
        assert result.status == ConstraintStatus.UNDER_CONSTRAINED

    def test_horizontal_and_vertical(self):
        scene = Scene()
        h = scene.add_segment(0, 0, 10, 2)
        v = scene.add_segment(20, 0, 23, 10)
        scene.add_constraint(make_horizontal(h))
        scene.add_constraint(make_vertical(v))

        assert scene.solve().success
        assert h.p1.y == pytest.approx(h.p2.y, abs=1e-4)
        assert v.p1.x == pytest.approx(v.p2.x, abs=1e-4)

    def test_fixed_points_never_move(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 10, 3)
        scene.add_constraint(make_fixed(seg.p1))
        scene.add_constraint(make_horizontal(seg))
        scene.add_constraint(make_length(seg, 20))

        assert scene.solve().success
        assert (seg.p1.x, seg.p1.y) == (0.0, 0.0)
        assert seg.length == pytest.approx(20, abs=1e-3)
        assert seg.p2.y == pytest.approx(0.0, abs=1e-4)

    def test_perpendicular_and_parallel(self):
        scene = Scene()
        a = scene.add_segment(0, 0, 10, 0)
        b = scene.add_segment(0, 5, 8, 9)
        c = scene.add_segment(20, 0, 25, 3)
        scene.add_constraint(make_fixed(a.p1))
        scene.add_constraint(make_fixed(a.p2))
        scene.add_constraint(make_perpendicular(a, b))
        scene.add_constraint(make_parallel(a, c))

        assert scene.solve().success
        assert a.dx * b.dx + a.dy * b.dy == pytest.approx(0.0, abs=1e-3)
        assert a.dx * c.dy - a.dy * c.dx == pytest.approx(0.0, abs=1e-3)

    def test_angle_between_lines(self):
        scene = Scene()
        a = scene.add_segment(0, 0, 10, 0, merge=False)
        b = scene.add_segment(0, 0, 10, 1, merge=False)
        scene.add_constraint(make_fixed(a.p1))
        scene.add_constraint(make_fixed(a.p2))
        scene.add_constraint(make_angle(a, b, math.pi / 4))

        assert scene.solve().success
        assert b.angle == pytest.approx(math.pi / 4, abs=1e-3)

    def test_midpoint_equal_length_and_on_line(self):
        scene = Scene()
        base = scene.add_segment(0, 0, 10, 0)
        other = scene.add_segment(0, 5, 4, 6)
        mid = scene.add_point(3, 2)
        on_base = scene.add_point(7, 3)
        for p in (base.p1, base.p2):
            scene.add_constraint(make_fixed(p))
        scene.add_constraint(make_midpoint(mid, base))
        scene.add_constraint(make_equal_length(base, other))
        scene.add_constraint(make_point_on_line(on_base, base))

        assert scene.solve().success
        assert (mid.x, mid.y) == (pytest.approx(5.0, abs=1e-4), pytest.approx(0.0, abs=1e-4))
        assert other.length == pytest.approx(10.0, abs=1e-3)
        assert on_base.y == pytest.approx(0.0, abs=1e-4)

    def test_radius(self):
        scene = Scene()
        circle = scene.add_circle(0, 0, 5)
        scene.add_constraint(make_radius(circle, 12.5))
        assert scene.solve().success
        assert circle.radius == pytest.approx(12.5)

    def test_distance_x_keeps_sign(self):
        scene = Scene()
        a = scene.add_point(0, 0, fixed=True)
        b = scene.add_point(-3, 0)
        scene.add_constraint(make_distance_x(a, b, 8))
        assert scene.solve().success
        assert b.x == pytest.approx(-8, abs=1e-4)

    def test_conflicting_constraints_do_not_converge(self):
        scene = Scene()
        a = scene.add_point(0, 0, fixed=True)
        b = scene.add_point(5, 0)
        scene.add_constraint(make_distance(a, b, 10))
        scene.add_constraint(make_distance(a, b, 20))

        result = scene.solve(max_iter=50)

        assert not result.success
        assert result.status == ConstraintStatus.INCONSISTENT
        assert result.iterations == 50

    def test_unresolved_variable_contributes_zero(self):
        scene = Scene()
        a = scene.add_point(0, 0, fixed=True)
        b = scene.add_point(5, 0)
        c = scene.add_constraint(make_distance(a, b, "missing_var"))
        assert c.residuals() == [0.0]
        assert scene.solve().success
        assert b.x == 5.0

    def test_range_clamps_target(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 10, 0)
        scene.add_constraint(make_fixed(seg.p1))
        scene.add_constraint(make_horizontal(seg))
        scene.add_constraint(make_length(seg, 100, min_value=5, max_value=30))
        assert scene.solve().success
        assert seg.length == pytest.approx(30, abs=1e-3)

    def test_relaxation_is_clamped(self):
        assert ConstraintSolver(relaxation=0.1).relaxation == 0.5
        assert ConstraintSolver(relaxation=3.0).relaxation == 1.0

    def test_satisfied_flags_updated(self):
        scene = Scene()
        p0 = scene.add_point(0, 0, fixed=True)
        p1 = scene.add_point(3, 4)
        c = scene.add_constraint(make_coincident(p0, p1))
        scene.solve()
        assert c.satisfied is True

    def test_invalid_constraint_reports_problem(self):
        invalid = Constraint(type=ConstraintType.LENGTH, entities=[])
        assert not invalid.is_valid()
        assert "LENGTH" in invalid.validation_error()


class TestScipyBackend:

    def test_distance_with_scipy(self):
        set_flag("solver_backend", "scipy")
        scene = Scene()
        p0 = scene.add_point(0, 0, fixed=True)
        p1 = scene.add_point(50, 0)
        scene.add_constraint(make_distance(p0, p1, 100))

        result = scene.solve()

        assert result.backend == "scipy"
        assert result.success
        assert math.hypot(p1.x, p1.y) == pytest.approx(100, abs=0.01)
        assert isinstance(p1.x, float)

    def test_radius_with_scipy(self):
        set_flag("solver_backend", "scipy")
        scene = Scene()
        circle = scene.add_circle(0, 0, 5)
        scene.add_constraint(make_fixed(circle.center))
        scene.add_constraint(make_radius(circle, 7))
        assert scene.solve().success
        assert circle.radius == pytest.approx(7, abs=1e-3)
