"""
CSG Tests - BSP-Booleans auf Face-Listen-Meshes
"""

import pytest

from modeling import (
    Plane3D, Mesh3D, BooleanOperationError, boolean_op,
    calculate_mesh_volume, calculate_bounding_box,
)
from modeling.csg import CSGSolid, classify_face_type
from modeling.features import extrude_profiles
from sketcher import Scene, extract_profiles


def _box(x, y, z, size):
    scene = Scene()
    scene.add_rectangle(x, y, size, size)
    return extrude_profiles(extract_profiles(scene), Plane3D.xy(z), size).orient_outward()


@pytest.fixture
def cubes():
    """Zwei 10er-Würfel, um (5, 5, 5) versetzt: Überlappung 5³"""
    return _box(0, 0, 0, 10), _box(5, 5, 5, 10)


class TestBooleanVolumes:

    def test_union(self, cubes):
        a, b = cubes
        result = boolean_op(a, b, "union")
        assert result.volume() == pytest.approx(1875, rel=1e-6)
        bb = result.bounding_box()
        assert bb.min == (pytest.approx(0), pytest.approx(0), pytest.approx(0))
        assert bb.max == (pytest.approx(15), pytest.approx(15), pytest.approx(15))

    def test_add_is_union(self, cubes):
        a, b = cubes
        assert boolean_op(a, b, "add").volume() == pytest.approx(1875, rel=1e-6)

    def test_subtract(self, cubes):
        a, b = cubes
        result = boolean_op(a, b, "subtract")
        assert result.volume() == pytest.approx(875, rel=1e-6)
        assert result.bounding_box().max == (pytest.approx(10), pytest.approx(10), pytest.approx(10))

    def test_intersect(self, cubes):
        a, b = cubes
        result = boolean_op(a, b, "intersect")
        assert result.volume() == pytest.approx(125, rel=1e-6)
        assert calculate_bounding_box(result)["min"] == {"x": pytest.approx(5), "y": pytest.approx(5),
                                                         "z": pytest.approx(5)}

    def test_disjoint_intersect_is_empty(self):
        a = _box(0, 0, 0, 1)
        b = _box(10, 10, 10, 1)
        assert boolean_op(a, b, "intersect").is_empty

    def test_result_is_outward_and_has_edges(self, cubes):
        a, b = cubes
        result = boolean_op(a, b, "subtract")
        assert result.signed_volume() > 0
        assert result.edges

    def test_operands_unchanged(self, cubes):
        a, b = cubes
        boolean_op(a, b, "union")
        assert a.volume() == pytest.approx(1000)
        assert a.face_count == 6


class TestEmptyOperands:

    def test_empty_tool(self):
        a = _box(0, 0, 0, 2)
        empty = Mesh3D()
        assert boolean_op(a, empty, "union").volume() == pytest.approx(8)
        assert boolean_op(a, empty, "subtract").volume() == pytest.approx(8)
        assert boolean_op(a, empty, "intersect").is_empty

    def test_empty_base(self):
        b = _box(0, 0, 0, 2)
        empty = Mesh3D()
        assert boolean_op(empty, b, "add").volume() == pytest.approx(8)
        assert boolean_op(empty, b, "subtract").is_empty
        assert boolean_op(empty, b, "intersect").is_empty

    def test_result_is_a_copy(self):
        a = _box(0, 0, 0, 2)
        result = boolean_op(a, Mesh3D(), "union")
        assert result is not a
        result.flip()
        assert a.signed_volume() > 0


class TestHelpers:

    def test_unknown_operation(self):
        with pytest.raises(BooleanOperationError):
            boolean_op(_box(0, 0, 0, 1), _box(0, 0, 0, 1), "xor")

    def test_volume_helper(self):
        assert calculate_mesh_volume(_box(0, 0, 0, 3)) == pytest.approx(27)

    def test_csg_round_trip_keeps_volume(self):
        cube = _box(0, 0, 0, 4)
        assert CSGSolid.from_mesh(cube).to_mesh().volume() == pytest.approx(64)

    def test_non_convex_face_is_split(self):
        scene = Scene()
        scene.add_polyline([(0, 0), (4, 0), (4, 1), (1, 1), (1, 3), (0, 3)], closed=True)
        l_prism = extrude_profiles(extract_profiles(scene), Plane3D.xy(), 2).orient_outward()
        solid = CSGSolid.from_mesh(l_prism)
        # Boden und Deckel je 4 Dreiecke, dazu 6 Seitenflächen
        assert len(solid.polygons) == 14
        assert solid.to_mesh().volume() == pytest.approx(12)

    def test_classify_face_type(self):
        square = [(0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0)]
        assert classify_face_type((0, 0, 1), square) == "planar-horizontal"
        wall = [(0, 0, 0), (0, 1, 0), (0, 1, 1), (0, 0, 1)]
        assert classify_face_type((1, 0, 0), wall) == "planar-vertical"
        slanted = [(0, 0, 0), (0, 1, 0), (4, 1, -3)]
        assert classify_face_type((0.6, 0, 0.8), slanted) == "planar"
        bent = [(0, 0, 0), (1, 0, 0), (1, 1, 1), (0, 1, 0)]
        assert classify_face_type((0, 0, 1), bent) == "cylindrical"
        assert classify_face_type((0, 0, 1), bent + [(0.5, 2, 3)]) == "freeform"
