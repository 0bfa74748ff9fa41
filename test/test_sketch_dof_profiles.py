"""
DOF-Analyse und Profil-Extraktion
"""

import math

import pytest

from config.feature_flags import set_flag
from sketcher import (
    Scene, Sketch, DOFAnalyzer, extract_profiles,
    make_coincident, make_horizontal, make_vertical, make_length, make_distance, make_midpoint,
)
from sketcher.profiles import signed_area, ensure_ccw, triangulate, closed_profiles


class TestDOFAnalyzer:

    def test_fixed_point_is_fully_constrained(self):
        scene = Scene()
        p = scene.add_point(0, 0, fixed=True)
        q = scene.add_point(3, 3)
        result = DOFAnalyzer.compute_fully_constrained(scene)
        assert p.id in result
        assert q.id not in result

    def test_coincident_shares_locks(self):
        scene = Scene()
        p = scene.add_point(0, 0, fixed=True)
        q = scene.add_point(0, 0)
        scene.add_constraint(make_coincident(p, q))
        assert q.id in DOFAnalyzer.compute_fully_constrained(scene)

    def test_horizontal_plus_length_locks_segment(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 10, 0)
        seg.p1.fixed = True
        scene.add_constraint(make_horizontal(seg))
        locks = DOFAnalyzer.compute_locks(scene)
        assert locks[seg.p2.id] == {"y"}

        scene.add_constraint(make_length(seg, 10))
        result = DOFAnalyzer.compute_fully_constrained(scene)
        assert {seg.p1.id, seg.p2.id, seg.id} <= result

    def test_rectangle_chain(self):
        scene = Scene()
        bottom, right, top, left = scene.add_rectangle(0, 0, 10, 5)
        bottom.p1.fixed = True
        scene.add_constraint(make_horizontal(bottom))
        scene.add_constraint(make_vertical(right))
        scene.add_constraint(make_horizontal(top))
        scene.add_constraint(make_vertical(left))
        scene.add_constraint(make_length(bottom, 10))
        scene.add_constraint(make_length(right, 5))

        result = DOFAnalyzer.compute_fully_constrained(scene)
        assert all(s.id in result for s in (bottom, right, top, left))

    def test_midpoint_completes_third_point(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 10, 0)
        mid = scene.add_point(5, 0)
        seg.p1.fixed = True
        mid.fixed = True
        scene.add_constraint(make_midpoint(mid, seg))
        assert seg.p2.id in DOFAnalyzer.compute_fully_constrained(scene)

    def test_distance_needs_one_locked_axis(self):
        scene = Scene()
        a = scene.add_point(0, 0, fixed=True)
        b = scene.add_point(5, 0)
        scene.add_constraint(make_distance(a, b, 5))
        assert b.id not in DOFAnalyzer.compute_fully_constrained(scene)

    def test_solve_publishes_fully_constrained(self):
        scene = Scene()
        p = scene.add_point(0, 0, fixed=True)
        scene.solve()
        assert p.id in scene.fully_constrained

        set_flag("dof_analysis", False)
        other = Scene()
        other.add_point(0, 0, fixed=True)
        other.solve()
        assert other.fully_constrained == set()


class TestProfileHelpers:

    def test_signed_area_and_orientation(self):
        square = [(0, 0), (2, 0), (2, 2), (0, 2)]
        assert signed_area(square) == pytest.approx(4)
        assert signed_area(list(reversed(square))) == pytest.approx(-4)
        assert ensure_ccw(square) == square
        assert signed_area(ensure_ccw(list(reversed(square)))) > 0

    def test_triangulate_concave_polygon(self):
        l_shape = [(0, 0), (4, 0), (4, 1), (1, 1), (1, 3), (0, 3)]
        triangles = triangulate(l_shape)
        assert len(triangles) == len(l_shape) - 2
        total = sum(abs(signed_area([l_shape[i], l_shape[j], l_shape[k]])) for i, j, k in triangles)
        assert total == pytest.approx(signed_area(l_shape))

    def test_triangulate_returns_ccw_triangles_for_cw_input(self):
        cw = [(0, 0), (0, 1), (1, 1), (1, 0)]
        for i, j, k in triangulate(cw):
            assert signed_area([cw[i], cw[j], cw[k]]) > 0

    def test_triangulate_too_few_points(self):
        assert triangulate([(0, 0), (1, 0)]) == []


class TestExtractProfiles:

    def test_rectangle_is_one_closed_profile(self):
        scene = Scene()
        scene.add_rectangle(-50, -50, 100, 100)
        profiles = extract_profiles(scene)
        assert len(profiles) == 1
        profile = profiles[0]
        assert profile.closed
        assert profile.points[0] is profile.points[-1]
        assert len(profile.coords()) == 4
        assert abs(profile.signed_area) == pytest.approx(10000)

    def test_circle_profile_comes_first(self):
        scene = Scene()
        scene.add_rectangle(0, 0, 10, 10)
        circle = scene.add_circle(50, 50, 5)
        profiles = extract_profiles(scene)
        assert profiles[0].source_id == circle.id
        assert len(profiles[0].coords()) == 32
        assert profiles[0].is_ccw

    def test_open_chain(self):
        scene = Scene()
        scene.add_polyline([(0, 0), (5, 0), (5, 5)])
        assert extract_profiles(scene, include_open=False) == []
        profiles = extract_profiles(scene, include_open=True)
        assert len(profiles) == 1
        assert not profiles[0].closed
        assert len(profiles[0].points) == 3

    def test_construction_geometry_ignored(self):
        scene = Scene()
        scene.add_rectangle(0, 0, 10, 10, construction=True)
        scene.add_circle(0, 0, 3, construction=True)
        assert extract_profiles(scene) == []

    def test_segments_with_reversed_direction_still_close(self):
        scene = Scene()
        scene.add_segment(0, 0, 10, 0)
        scene.add_segment(10, 10, 10, 0)
        scene.add_segment(10, 10, 0, 10)
        scene.add_segment(0, 0, 0, 10)
        profiles = closed_profiles(extract_profiles(scene))
        assert len(profiles) == 1
        assert len(profiles[0].coords()) == 4

    def test_sketch_facade(self):
        sketch = Sketch("Profil")
        sketch.add_rectangle(0, 0, 10, 10)
        sketch.add_circle(30, 0, 2)
        assert len(sketch.extract_profiles()) == 2
        assert sketch.solve().success

    def test_profile_to_dict(self):
        scene = Scene()
        scene.add_rectangle(0, 0, 1, 1)
        data = extract_profiles(scene)[0].to_dict()
        assert data["closed"] is True
        assert data["points"][0] == {"x": 0.0, "y": 0.0}
        assert len(data["points"]) == 4


def _slot(scene):
    """Langloch: zwei Strecken, zwei Halbkreisbögen (r=5)"""
    bottom = scene.add_segment(0, 0, 10, 0)
    right = scene.add_arc(10, 5, 5, -math.pi / 2, math.pi / 2)
    top = scene.add_segment(10, 10, 0, 10)
    left = scene.add_arc(0, 5, 5, math.pi / 2, 3 * math.pi / 2)
    return bottom, right, top, left


class TestArcProfiles:

    def test_slot_is_one_closed_profile(self):
        scene = Scene()
        bottom, right, top, left = _slot(scene)

        profiles = extract_profiles(scene)

        assert len(profiles) == 1
        profile = profiles[0]
        assert profile.closed
        assert profile.points[0] is profile.points[-1]
        assert profile.segments == [bottom, top]
        assert profile.arcs == [right, left]
        # 4 Ecken plus je 7 abgetastete Bogenpunkte
        assert len(profile.coords()) == 18
        assert abs(profile.signed_area) == pytest.approx(100 + 200 * math.sin(math.pi / 8), rel=1e-6)

    def test_arc_bulges_outward(self):
        scene = Scene()
        _slot(scene)
        xs = [x for x, _ in extract_profiles(scene)[0].coords()]
        assert max(xs) == pytest.approx(15, abs=1e-6)
        assert min(xs) == pytest.approx(-5, abs=1e-6)

    def test_open_arc_chain(self):
        scene = Scene()
        scene.add_segment(0, 0, 10, 0)
        scene.add_arc(10, 5, 5, -math.pi / 2, math.pi / 2)
        profiles = extract_profiles(scene)
        assert len(profiles) == 1
        assert not profiles[0].closed
        assert extract_profiles(scene, include_open=False) == []

    def test_full_arc_is_circle_profile(self):
        scene = Scene()
        arc = scene.add_arc(0, 0, 4, 1.0, 1.0)
        profiles = extract_profiles(scene)
        assert len(profiles) == 1
        assert profiles[0].source_id == arc.id
        assert len(profiles[0].coords()) == 32

    def test_construction_arc_is_skipped(self):
        scene = Scene()
        scene.add_segment(0, 0, 10, 0)
        scene.add_arc(10, 5, 5, -math.pi / 2, math.pi / 2, construction=True)
        profiles = extract_profiles(scene)
        assert profiles[0].arcs == []

    def test_to_polygon(self):
        scene = Scene()
        _slot(scene)
        polygon = extract_profiles(scene)[0].to_polygon()
        assert polygon.is_valid
        assert polygon.area == pytest.approx(100 + 200 * math.sin(math.pi / 8), rel=1e-6)
        assert polygon.bounds == pytest.approx((-5, 0, 15, 10), abs=1e-6)
