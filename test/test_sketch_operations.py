"""
Sketch-Operationen: Union, Disconnect, Split, Trim, Verschieben
"""

import pytest

from sketcher import Scene, make_coincident, make_horizontal, make_length
from sketcher.constraints import ConstraintType
from sketcher.operations import (
    ResultStatus, UnionOperation, DisconnectOperation,
    union, disconnect, split, split_at, trim, move_point, move_shape,
    merge_collinear_at_point, project_parameter,
)


class TestUnion:

    def test_union_averages_free_points_and_rewires(self):
        scene = Scene()
        s1 = scene.add_segment(0, 0, 10, 0, merge=False)
        s2 = scene.add_segment(12, 0, 20, 5, merge=False)
        a, b = s1.p2, s2.p1

        kept = union(scene, a, b)

        assert kept is a
        assert (a.x, a.y) == (11.0, 0.0)
        assert s2.p1 is a
        assert b not in scene.points

    def test_union_snaps_to_fixed_point(self):
        scene = Scene()
        a = scene.add_point(0, 0)
        b = scene.add_point(5, 5, fixed=True)
        union(scene, a, b)
        assert (a.x, a.y, a.fixed) == (5.0, 5.0, True)

    def test_union_keeps_two_distinct_fixed_points(self):
        scene = Scene()
        a = scene.add_point(0, 0, fixed=True)
        b = scene.add_point(5, 5, fixed=True)

        result = UnionOperation(scene).execute(a, b)

        assert result.is_error
        assert (a.x, a.y) == (0.0, 0.0)
        assert (b.x, b.y) == (5.0, 5.0)
        assert b in scene.points

    def test_union_of_coinciding_fixed_points(self):
        scene = Scene()
        a = scene.add_point(2, 2, fixed=True)
        b = scene.add_point(2, 2, fixed=True)
        assert UnionOperation(scene).execute(a, b).success
        assert scene.points == [a]
        assert a.fixed

    def test_union_drops_self_coincident_constraints(self):
        scene = Scene()
        a = scene.add_point(0, 0)
        b = scene.add_point(1, 0)
        scene.add_constraint(make_coincident(a, b))
        union(scene, a, b)
        assert scene.constraints == []

    def test_union_is_noop_for_same_or_foreign_point(self):
        scene = Scene()
        a = scene.add_point(0, 0)
        assert UnionOperation(scene).execute(a, a).status == ResultStatus.NO_TARGET

        other = Scene().add_point(3, 3)
        result = UnionOperation(scene).execute(a, other)
        assert result.status == ResultStatus.NO_TARGET
        assert (a.x, a.y) == (0.0, 0.0)

    def test_union_removes_collapsed_segment(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 1, 0)
        union(scene, seg.p1, seg.p2)
        assert seg not in scene.segments
        assert len(scene.points) == 1


class TestDisconnect:

    def test_disconnect_clones_for_other_shapes(self):
        scene = Scene()
        first, second, _, _ = scene.add_rectangle(0, 0, 10, 10)
        shared = first.p2
        scene.add_constraint(make_coincident(shared, scene.add_point(10, 0)))

        clones = disconnect(scene, shared)

        assert len(clones) == 1
        assert first.p2 is shared
        assert second.p1 is clones[0]
        assert (clones[0].x, clones[0].y) == (shared.x, shared.y)
        assert not any(c.type == ConstraintType.COINCIDENT for c in scene.constraints)

    def test_disconnect_is_idempotent(self):
        scene = Scene()
        first, _, _, _ = scene.add_rectangle(0, 0, 10, 10)
        disconnect(scene, first.p2)
        points_after_first = len(scene.points)

        assert disconnect(scene, first.p2) == []
        assert len(scene.points) == points_after_first
        assert DisconnectOperation(scene).execute(first.p2).status == ResultStatus.NO_TARGET


class TestSplit:

    def test_split_shares_new_point_and_duplicates_orientation(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 10, 0)
        scene.add_constraint(make_horizontal(seg))
        scene.add_constraint(make_length(seg, 10))

        first, second = split(scene, seg, 4, 3)

        assert seg not in scene.segments
        assert first.p2 is second.p1
        assert (first.p2.x, first.p2.y) == (pytest.approx(4.0), pytest.approx(0.0))
        horizontals = [c for c in scene.constraints if c.type == ConstraintType.HORIZONTAL]
        assert {id(c.entities[0]) for c in horizontals} == {id(first), id(second)}
        # Länge gehört nicht zu den Richtungs-Constraints
        assert not any(c.type == ConstraintType.LENGTH for c in scene.constraints)

    def test_split_parameter_is_clamped(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 100, 0)
        first, _ = split_at(scene, seg, 0.0)
        assert first.length == pytest.approx(1.0)
        assert project_parameter(first, -50, 0) == pytest.approx(0.01)

    def test_split_foreign_segment(self):
        scene = Scene()
        other = Scene().add_segment(0, 0, 1, 0)
        assert split_at(scene, other) is None


class TestMergeAndTrim:

    def test_merge_collinear(self):
        scene = Scene()
        a = scene.add_segment(0, 0, 5, 0)
        b = scene.add_segment(5, 0, 10, 0)
        joint = a.p2

        merged = merge_collinear_at_point(scene, joint)

        assert merged is not None
        assert len(scene.segments) == 1
        assert {(p.x, p.y) for p in merged.points()} == {(0.0, 0.0), (10.0, 0.0)}
        assert joint not in scene.points
        assert b not in scene.segments

    def test_merge_rejects_corner(self):
        scene = Scene()
        a = scene.add_segment(0, 0, 5, 0)
        scene.add_segment(5, 0, 5, 5)
        assert merge_collinear_at_point(scene, a.p2) is None
        assert len(scene.segments) == 2

    def test_trim_moves_far_endpoint(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 10, 0)
        result = trim(scene, seg, 6, 1)

        assert result.success
        assert (seg.p1.x, seg.p1.y) == (0.0, 0.0)
        assert seg.p2.x == pytest.approx(6.0)
        assert result.data["t"] == pytest.approx(0.6)

    def test_trim_keeps_side_near_keep_point(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 10, 0)
        trim(scene, seg, 3, 0, keep_x=9, keep_y=0)
        assert seg.p1.x == pytest.approx(3.0)
        assert seg.p2.x == pytest.approx(10.0)

    def test_trim_refuses_fixed_endpoint(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 10, 0)
        seg.p2.fixed = True
        assert trim(scene, seg, 5, 0).is_error
        assert seg.p2.x == 10.0


class TestMove:

    def test_move_point_resolves_constraints(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 10, 0)
        seg.p1.fixed = True
        scene.add_constraint(make_horizontal(seg))

        result = move_point(scene, seg.p2, 8, 4)

        assert result.success
        assert seg.p2.y == pytest.approx(0.0, abs=1e-4)
        assert seg.p2.x == pytest.approx(8.0)

    def test_move_fixed_point_is_noop(self):
        scene = Scene()
        p = scene.add_point(1, 1, fixed=True)
        assert move_point(scene, p, 5, 5).status == ResultStatus.NO_TARGET
        assert (p.x, p.y) == (1.0, 1.0)

    def test_move_shape_translates_free_points(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 10, 0)
        seg.p1.fixed = True
        move_shape(scene, seg, 2, 3)
        assert (seg.p1.x, seg.p1.y) == (0.0, 0.0)
        assert (seg.p2.x, seg.p2.y) == (12.0, 3.0)


class TestDimensionsAfterTopologyEdits:
    """Bemaßungs-Constraints müssen ausgetauschten Endpunkten folgen"""

    def test_dx_dimension_follows_union(self):
        scene = Scene()
        seg = scene.add_segment(0, 0, 10, 0)
        seg.p1.fixed = True
        scene.add_dimension(seg, dim_type="dx", is_constraint=True, formula=20)
        assert scene.solve().success
        assert seg.p2.x == pytest.approx(20, abs=1e-3)

        q = scene.add_point(10, 3)
        union(scene, q, seg.p2)
        assert seg.p2 is q

        assert scene.solve().success
        assert q.x == pytest.approx(20, abs=1e-3)

    def test_dy_dimension_follows_disconnect(self):
        scene = Scene()
        _, right, _, _ = scene.add_rectangle(0, 0, 10, 10)
        scene.add_dimension(right, dim_type="dy", is_constraint=True, formula=15)
        assert scene.solve().success

        clones = disconnect(scene, right.p1)
        assert right.p1 is clones[0]
        clones[0].move_to(right.p1.x, 4)

        assert scene.solve().success
        assert abs(right.p2.y - right.p1.y) == pytest.approx(15, abs=1e-3)
