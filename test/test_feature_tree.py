"""
FeatureTree Tests - Abhängigkeiten, Recalculation, Reorder, Serialisierung

Sketch → Extrude → Cut-Ketten werden über den Ergebnis-Cache geprüft.
"""

import math
from dataclasses import dataclass, field

import pytest

from config.feature_flags import set_flag
from modeling import (
    FeatureTree, FeatureTreeError, SketchFeature, ExtrudeFeature, RevolveFeature,
    ResultKind, ResultStatus, OperationResult, BooleanResult, FeatureResult,
)
from modeling.feature_tree import DEPENDENCIES_NOT_SATISFIED, RecalcState
from modeling.features import next_feature_id, reset_feature_ids
from modeling.features.revolve import needs_caps
from sketcher import Sketch


def _square_sketch(size=100.0, name="Sketch"):
    sketch = Sketch()
    half = size / 2
    sketch.add_segment(-half, -half, half, -half)
    sketch.add_segment(half, -half, half, half)
    sketch.add_segment(half, half, -half, half)
    sketch.add_segment(-half, half, -half, -half)
    return SketchFeature(name=name, sketch=sketch)


def _circle_sketch(radius=25.0):
    sketch = Sketch()
    sketch.add_circle(0, 0, radius)
    return SketchFeature(name="Kreis", sketch=sketch)


def _polygon_area(radius, segments=32):
    return 0.5 * segments * radius ** 2 * math.sin(2 * math.pi / segments)


@pytest.fixture
def cube_tree():
    """100er Würfel: Quadrat auf XY, 100 extrudiert"""
    tree = FeatureTree()
    sketch = tree.add_feature(_square_sketch())
    extrude = tree.add_feature(ExtrudeFeature(sketch_feature_id=sketch.id, distance=100))
    return tree, sketch, extrude


class TestExtrudeScenarios:

    def test_rectangle_to_cube(self, cube_tree):
        tree, _, _ = cube_tree
        result = tree.get_final_result()

        assert result.is_solid
        assert result.bounding_box.min == (pytest.approx(-50), pytest.approx(-50), pytest.approx(0))
        assert result.bounding_box.max == (pytest.approx(50), pytest.approx(50), pytest.approx(100))
        assert result.volume == pytest.approx(1_000_000, rel=0.01)

    def test_modification_propagates(self, cube_tree):
        tree, _, extrude = cube_tree
        extrude.set_distance(200)
        tree.mark_modified(extrude)

        result = tree.get_final_result()
        assert result.bounding_box.max[2] == pytest.approx(200, abs=1)
        assert result.volume == pytest.approx(2_000_000, rel=0.01)

    def test_circular_cut(self, cube_tree):
        tree, _, _ = cube_tree
        circle = tree.add_feature(_circle_sketch())
        cut = tree.add_feature(ExtrudeFeature(
            sketch_feature_id=circle.id, distance=300, symmetric=True, operation="subtract"))

        result = tree.get_result(cut)
        assert result.is_solid
        expected = 1_000_000 - 100 * _polygon_area(25)
        assert result.volume == pytest.approx(expected, rel=1e-6)
        assert result.tool.volume() == pytest.approx(300 * _polygon_area(25), rel=1e-6)

    def test_symmetric_and_reversed_direction(self):
        tree = FeatureTree()
        sketch = tree.add_feature(_square_sketch(10))
        sym = tree.add_feature(ExtrudeFeature(sketch_feature_id=sketch.id, distance=10, symmetric=True))
        bb = tree.get_result(sym).bounding_box
        assert (bb.min[2], bb.max[2]) == (pytest.approx(-5), pytest.approx(5))

        down = tree.add_feature(ExtrudeFeature(sketch_feature_id=sketch.id, distance=4, direction=-1))
        bb = tree.get_result(down).bounding_box
        assert (bb.min[2], bb.max[2]) == (pytest.approx(-4), pytest.approx(0))

    def test_add_unions_with_previous_solid(self, cube_tree):
        tree, _, _ = cube_tree
        small = _square_sketch(20)
        small.plane.origin[2] = 95.0
        tree.add_feature(small)
        boss = tree.add_feature(ExtrudeFeature(sketch_feature_id=small.id, distance=15, operation="add"))

        result = tree.get_result(boss)
        # 5 mm des Zapfens stecken im Würfel
        assert result.volume == pytest.approx(1_000_000 + 400 * 10, rel=1e-6)
        assert result.bounding_box.max[2] == pytest.approx(110)

    def test_zero_distance_add_keeps_previous_solid(self, cube_tree):
        tree, sketch, _ = cube_tree
        flat = tree.add_feature(ExtrudeFeature(sketch_feature_id=sketch.id, distance=0, operation="add"))
        result = tree.get_result(flat)
        assert result.is_solid
        assert result.volume == pytest.approx(1_000_000, rel=1e-6)

    def test_zero_distance_new_has_no_volume(self):
        tree = FeatureTree()
        sketch = tree.add_feature(_square_sketch(10))
        flat = tree.add_feature(ExtrudeFeature(sketch_feature_id=sketch.id, distance=0))
        assert tree.get_result(flat).volume == pytest.approx(0.0)

    def test_disabled_booleans_fall_back_to_tool(self, cube_tree):
        set_flag("csg_booleans", False)
        tree, _, _ = cube_tree
        circle = tree.add_feature(_circle_sketch())
        cut = tree.add_feature(ExtrudeFeature(sketch_feature_id=circle.id, distance=100, operation="subtract"))

        result = tree.get_result(cut)
        assert result.is_solid
        assert result.warnings
        assert result.geometry is result.tool

    def test_open_sketch_fails_extrude(self):
        tree = FeatureTree()
        sketch = Sketch()
        sketch.scene.add_polyline([(0, 0), (5, 0), (5, 5)])
        sf = tree.add_feature(SketchFeature(sketch=sketch))
        extrude = tree.add_feature(ExtrudeFeature(sketch_feature_id=sf.id))

        assert tree.get_result(extrude).has_error
        assert extrude.error == "No closed profiles found in sketch"
        # Fehlerhafte Features zählen nicht als finales Ergebnis
        assert tree.get_final_result().is_sketch

    def test_unknown_operation_rejected(self):
        with pytest.raises(ValueError):
            ExtrudeFeature(operation="xor")


class TestRevolve:

    def test_full_turn_has_no_caps(self):
        assert not needs_caps(2 * math.pi)
        assert needs_caps(math.pi)

    @pytest.mark.parametrize("angle", [2 * math.pi, math.pi])
    def test_ring_volume(self, angle):
        tree = FeatureTree()
        sketch = Sketch()
        sketch.add_rectangle(10, 0, 10, 10)
        sf = tree.add_feature(SketchFeature(sketch=sketch))
        revolve = tree.add_feature(RevolveFeature(sketch_feature_id=sf.id, angle=angle))

        result = tree.get_result(revolve)
        assert result.is_solid
        segments = revolve.segments
        expected = 0.5 * segments * math.sin(angle / segments) * (20 ** 2 - 10 ** 2) * 10
        assert result.volume == pytest.approx(expected, rel=1e-6)
        assert result.geometry.signed_volume() > 0

    def test_axis_round_trip(self):
        revolve = RevolveFeature(angle=1.0, segments=8)
        revolve.set_axis((1, 2), {"x": 1, "y": 0})
        loaded = RevolveFeature.from_dict(revolve.to_dict())
        assert loaded.axis == {"origin": {"x": 1.0, "y": 2.0}, "direction": {"x": 1.0, "y": 0.0}}
        assert loaded.segments == 8


class TestDependencies:

    def test_missing_dependency_rejected(self):
        tree = FeatureTree()
        with pytest.raises(FeatureTreeError):
            tree.add_feature(ExtrudeFeature(sketch_feature_id="feature_999"))
        assert len(tree) == 0

    def test_insert_before_dependency_rejected(self):
        tree = FeatureTree()
        sketch = tree.add_feature(_square_sketch())

        with pytest.raises(FeatureTreeError):
            tree.add_feature(ExtrudeFeature(sketch_feature_id=sketch.id, distance=10), index=0)

        assert tree.features == [sketch]

    def test_insert_between_features(self):
        tree = FeatureTree()
        first = tree.add_feature(_square_sketch())
        second = tree.add_feature(_circle_sketch())

        extrude = tree.add_feature(ExtrudeFeature(sketch_feature_id=first.id, distance=10), index=1)

        assert tree.features == [first, extrude, second]
        assert tree.get_index(extrude) > tree.get_index(first)
        assert tree.get_result(extrude).is_solid

    def test_remove_with_dependents_rejected(self, cube_tree):
        tree, sketch, extrude = cube_tree
        with pytest.raises(FeatureTreeError):
            tree.remove_feature(sketch)
        assert tree.remove_feature(extrude)
        assert tree.remove_feature(sketch)
        assert tree.remove_feature("nope") is False

    def test_failed_dependency_propagates(self):
        tree = FeatureTree()
        good = tree.add_feature(_square_sketch(10))
        empty = tree.add_feature(SketchFeature(name="Leer"))
        broken = tree.add_feature(ExtrudeFeature(sketch_feature_id=empty.id))
        follower = ExtrudeFeature(sketch_feature_id=good.id)
        follower.add_dependency(broken.id)
        tree.add_feature(follower)

        assert tree.get_result(broken).has_error
        assert follower.error == DEPENDENCIES_NOT_SATISFIED

    def test_transitive_queries(self, cube_tree):
        tree, sketch, extrude = cube_tree
        assert tree.get_all_dependencies(extrude) == [sketch]
        assert tree.get_all_dependents(sketch) == [extrude]
        assert tree.get_dependents(extrude) == []


class TestSuppression:

    def test_suppressed_feature_is_skipped(self, cube_tree):
        tree, _, extrude = cube_tree
        extrude.suppress()
        tree.mark_modified(extrude)

        assert tree.get_result(extrude).kind == ResultKind.SUPPRESSED
        assert tree.get_final_result().is_sketch

        extrude.unsuppress()
        tree.mark_modified(extrude)
        assert tree.get_final_result().is_solid


class TestReorder:

    @pytest.fixture
    def two_chains(self):
        tree = FeatureTree()
        s1 = tree.add_feature(_square_sketch(10, "S1"))
        e1 = tree.add_feature(ExtrudeFeature(sketch_feature_id=s1.id, distance=5))
        s2 = tree.add_feature(_square_sketch(20, "S2"))
        e2 = tree.add_feature(ExtrudeFeature(sketch_feature_id=s2.id, distance=5))
        return tree, s1, e1, s2, e2

    def test_reorder_before_next_sketch_succeeds(self, two_chains):
        tree, s1, e1, s2, _ = two_chains
        assert tree.reorder_feature(e1, tree.get_index(s2) - 1)
        assert tree.get_index(e1) == 1

    def test_sketch_after_its_extrude_fails(self, two_chains):
        tree, s1, e1, _, _ = two_chains
        with pytest.raises(FeatureTreeError):
            tree.reorder_feature(s1, tree.get_index(e1))
        assert tree.get_index(s1) == 0

    def test_extrude_ahead_of_sketch_fails(self, two_chains):
        tree, _, _, s2, e2 = two_chains
        assert not tree.can_reorder(e2, tree.get_index(s2))
        with pytest.raises(FeatureTreeError):
            tree.reorder_feature(e2, 0)

    def test_free_sketch_moves_to_front(self, two_chains):
        tree, _, _, s2, e2 = two_chains
        assert tree.reorder_feature(s2, 0)
        assert [f.name for f in tree.features][:2] == ["S2", "S1"]
        assert tree.get_result(e2).is_solid

    def test_out_of_range_is_false(self, two_chains):
        tree, s1, _, _, _ = two_chains
        assert tree.reorder_feature(s1, 10) is False
        assert tree.reorder_feature("feature_999", 0) is False


@dataclass(eq=False)
class _ReentrantSketch(SketchFeature):
    seen_states: list = field(default_factory=list)

    def execute(self, ctx):
        self.seen_states.append(ctx.tree.state)
        if len(self.seen_states) == 1:
            ctx.tree.recalculate_from(self)
        return super().execute(ctx)


class TestReentrancy:

    def test_nested_recalculation_is_deferred(self):
        tree = FeatureTree()
        feature = tree.add_feature(_ReentrantSketch())

        assert feature.seen_states == [RecalcState.RECALCULATING, RecalcState.RECALCULATING]
        assert tree.state == RecalcState.IDLE
        assert not tree.is_recalculating


class TestSerialization:

    def test_round_trip_recomputes(self, cube_tree):
        tree, sketch, extrude = cube_tree
        data = tree.to_dict()

        loaded = FeatureTree.from_dict(data)

        assert [f.id for f in loaded.features] == [sketch.id, extrude.id]
        assert loaded.get_feature(extrude.id).distance == 100
        assert loaded.get_final_result().volume == pytest.approx(1_000_000, rel=1e-6)

    def test_ids_continue_above_loaded(self, cube_tree):
        tree, _, extrude = cube_tree
        data = tree.to_dict()
        reset_feature_ids()
        FeatureTree.from_dict(data)
        number = int(next_feature_id().rsplit("_", 1)[-1])
        assert number > int(extrude.id.rsplit("_", 1)[-1])

    def test_unknown_type_raises(self):
        with pytest.raises(FeatureTreeError):
            FeatureTree.from_dict({"features": [{"id": "feature_1", "type": "loft"}]})

    def test_forward_reference_raises(self, cube_tree):
        tree, _, _ = cube_tree
        data = tree.to_dict()
        data["features"].reverse()
        with pytest.raises(FeatureTreeError):
            FeatureTree.from_dict(data)

    def test_empty(self):
        assert len(FeatureTree.from_dict(None)) == 0

    def test_result_dict(self, cube_tree):
        tree, sketch, _ = cube_tree
        solid = tree.get_final_result().to_dict()
        assert solid["type"] == "solid"
        assert solid["boundingBox"]["max"]["z"] == pytest.approx(100)
        sketch_data = tree.get_result(sketch).to_dict()
        assert sketch_data["type"] == "sketch"
        assert len(sketch_data["profiles"]) == 1


class TestBooleanFallback:

    def test_failing_boolean_keeps_tool_mesh(self, cube_tree, monkeypatch):
        def broken(*args):
            raise RuntimeError("BSP kaputt")

        monkeypatch.setattr("modeling.features.base.boolean_op", broken)
        tree, _, _ = cube_tree
        circle = tree.add_feature(_circle_sketch())
        cut = tree.add_feature(ExtrudeFeature(sketch_feature_id=circle.id, distance=100, operation="subtract"))

        result = tree.get_result(cut)
        assert result.is_solid
        assert result.geometry is result.tool
        assert "BSP kaputt" in result.warnings[0]


class TestResultTypes:

    def test_operation_result_states(self):
        assert OperationResult.success(1).is_success
        assert OperationResult.warning(1, "Fallback", fallback_used="mesh").details == {"fallback_used": "mesh"}
        assert not OperationResult.warning(None, "nichts").is_success
        assert OperationResult.empty().is_empty

        failed = OperationResult.error("kaputt", ValueError("x"))
        assert failed.is_error
        assert failed.details["exception_type"] == "ValueError"
        assert failed.log("Test") is failed

    def test_boolean_result(self):
        result = BooleanResult.from_operation("subtract", None)
        assert result.status == ResultStatus.SUCCESS
        assert result.message == "Boolean subtract ausgeführt"
        assert not result.fallback

    def test_failed_and_suppressed_results(self):
        failed = FeatureResult.failed("kaputt")
        assert failed.has_error and not failed.is_solid
        assert failed.to_dict() == {"type": "error", "error": "kaputt"}
        assert FeatureResult.suppressed_result().suppressed
