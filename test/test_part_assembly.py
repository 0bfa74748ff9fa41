"""
Part- und Assembly-Tests

Part als Fassade über dem FeatureTree, Assembly als Instanz-Container.
"""

import math

import numpy as np
import pytest

from modeling import (
    Part, Material, MATERIALS, Assembly, ComponentTransform, FeatureTreeError,
)
from sketcher import Sketch, Scene


def _square(size=100.0):
    sketch = Sketch()
    sketch.add_rectangle(-size / 2, -size / 2, size, size)
    return sketch


def _circle(radius=25.0):
    sketch = Sketch()
    sketch.add_circle(0, 0, radius)
    return sketch


@pytest.fixture
def cube_part():
    part = Part("Block")
    sketch = part.add_sketch(_square())
    extrude = part.extrude(sketch.id, 100)
    return part, sketch, extrude


class TestPartModeling:

    def test_extrude_links_and_hides_sketch(self, cube_part):
        part, sketch, extrude = cube_part
        assert sketch.id in extrude.children
        assert sketch.visible is False
        assert part.volume == pytest.approx(1_000_000, rel=0.01)
        assert part.center_of_mass == (pytest.approx(0), pytest.approx(0), pytest.approx(50))

    def test_modify_feature_recomputes(self, cube_part):
        part, _, extrude = cube_part
        assert part.modify_feature(extrude.id, lambda f: f.set_distance(200))

        solid = part.get_final_solid()
        assert solid.bounding_box.max[2] == pytest.approx(200, abs=1)
        assert part.volume == pytest.approx(2_000_000, rel=0.01)
        assert part.modify_feature("feature_999", lambda f: None) is False

    def test_circular_cut_and_suppression(self, cube_part):
        part, _, _ = cube_part
        circle = part.add_sketch(_circle())
        cut = part.extrude(circle.id, 100, operation="subtract")

        final = part.get_final_solid()
        assert final.is_solid
        assert final.volume < 1_000_000

        part.suppress_feature(cut.id)
        assert part.get_final_solid().volume == pytest.approx(1_000_000, rel=1e-6)

        part.unsuppress_feature(cut.id)
        assert part.volume < 1_000_000

    def test_remove_feature_shows_sketch_again(self, cube_part):
        part, sketch, extrude = cube_part
        with pytest.raises(FeatureTreeError):
            part.remove_feature(sketch.id)

        assert part.remove_feature(extrude.id)
        assert sketch.visible is True
        assert part.volume == 0.0
        assert part.get_final_solid() is None

    def test_extrude_requires_sketch_feature(self, cube_part):
        part, _, extrude = cube_part
        with pytest.raises(FeatureTreeError):
            part.extrude(extrude.id, 10)
        with pytest.raises(FeatureTreeError):
            part.extrude("feature_999", 10)

    def test_sketch_on_xz_plane(self):
        part = Part()
        sketch = Sketch()
        sketch.add_rectangle(0, 0, 10, 10)
        sf = part.add_sketch(sketch, plane="XZ")
        part.extrude(sf.id, 5)

        bb = part.get_final_solid().bounding_box
        assert bb.min == (pytest.approx(0), pytest.approx(0), pytest.approx(0))
        assert bb.max == (pytest.approx(10), pytest.approx(5), pytest.approx(10))

    def test_revolve(self):
        part = Part()
        sketch = Sketch()
        sketch.add_rectangle(10, 0, 10, 10)
        sf = part.add_sketch(sketch)
        revolve = part.revolve(sf.id, math.pi / 2, segments=16)

        assert revolve.segments == 16
        expected = 0.5 * 16 * math.sin(math.pi / 32) * (20 ** 2 - 10 ** 2) * 10
        assert part.volume == pytest.approx(expected, rel=1e-6)

    def test_reorder(self, cube_part):
        part, sketch, extrude = cube_part
        with pytest.raises(FeatureTreeError):
            part.reorder_feature(sketch.id, 1)
        other = part.add_sketch(_circle(5))
        assert part.reorder_feature(other.id, 0)
        assert part.get_features()[0] is other
        assert part.get_final_geometry().is_solid

    def test_fillet_is_not_implemented(self, cube_part):
        part, _, _ = cube_part
        assert part.fillet(edge=0, radius=1.0) is None


class TestPartSketches:

    def test_sketch_names_and_lookup(self):
        part = Part()
        first = part.add_sketch()
        second = part.add_sketch(name="Deckel")
        assert first.name == "Sketch1"
        assert part.get_sketch_by_name("Deckel") is second
        assert part.get_sketch_by_name("Fehlt") is None
        assert len(part.get_sketches()) == 2

    def test_active_sketch(self, cube_part):
        part, sketch, extrude = cube_part
        part.set_active_sketch(sketch.id)
        assert part.get_active_sketch() is sketch
        with pytest.raises(ValueError):
            part.set_active_sketch(extrude.id)
        part.set_active_sketch(None)
        assert part.get_active_sketch_id() is None

    def test_add_sketch_from_scene(self):
        scene = Scene()
        scene.add_rectangle(0, 0, 10, 10)
        scene.add_circle(50, 50, 3)
        scene.add_arc(100, 0, 5, 0.0, math.pi)
        scene.add_segment(-20, -20, -10, -20, construction=True)

        part = Part()
        sf = part.add_sketch_from_scene(scene)

        sketch_scene = sf.sketch.scene
        assert len(sketch_scene.segments) == 4 + 8
        assert len(sketch_scene.circles) == 1
        assert sketch_scene.arcs == []

    def test_unknown_origin_plane(self):
        part = Part()
        with pytest.raises(ValueError):
            part.add_sketch(plane="AB")
        with pytest.raises(ValueError):
            part.set_origin_plane_visible("AB", False)

    def test_origin_planes(self):
        part = Part()
        planes = part.get_origin_planes()
        assert set(planes) == {"XY", "XZ", "YZ"}
        assert np.allclose(planes["YZ"].normal, (1, 0, 0))
        part.set_origin_plane_visible("XZ", False)
        assert planes["XZ"].visible is False


class TestPartProperties:

    def test_material_mass(self, cube_part):
        part, _, _ = cube_part
        part.set_material("Steel")
        assert part.material is MATERIALS["Steel"]
        assert part.mass == pytest.approx(part.volume * 0.00785)

        part.set_material(Material("Holz", 0.0006))
        assert part.mass == pytest.approx(part.volume * 0.0006)

        with pytest.raises(ValueError):
            part.set_material("Unobtainium")

    def test_round_trip(self, cube_part):
        part, sketch, extrude = cube_part
        part.set_material("PLA")
        part.set_active_sketch(sketch.id)
        part.set_origin_plane_visible("YZ", False)

        data = part.to_dict()
        loaded = Part.from_dict(data)

        assert data["type"] == "Part"
        assert loaded.name == "Block"
        assert loaded.material.name == "PLA"
        assert loaded.get_active_sketch_id() == sketch.id
        assert loaded.origin_planes["YZ"].visible is False
        assert loaded.volume == pytest.approx(part.volume)
        assert [f.id for f in loaded.get_features()] == [sketch.id, extrude.id]

    def test_from_empty_dict(self):
        part = Part.from_dict(None)
        assert part.name == "Part1"
        assert part.get_features() == []


class TestAssembly:

    def test_add_and_remove_components(self, cube_part):
        part, _, _ = cube_part
        asm = Assembly("Baugruppe")

        first = asm.add_component(part)
        second = asm.add_component(part, {"position": {"x": 10, "y": 0, "z": 5}})

        assert (first.id, second.id) == ("component_1", "component_2")
        assert first.transform.is_identity()
        assert second.transform.position == (10.0, 0.0, 5.0)
        assert asm.get_component("component_2") is second

        assert asm.remove_component("component_1")
        assert not asm.remove_component("component_1")
        assert asm.get_component_by_id("component_1") is None

    def test_transform_object_is_kept(self, cube_part):
        part, _, _ = cube_part
        placement = ComponentTransform(rotation=(0.0, 0.0, 90.0))
        inst = Assembly().add_component(part, placement)
        assert inst.transform is placement

    def test_unimplemented_operations(self):
        asm = Assembly()
        assert asm.add_mate("component_1", "component_2") is None
        assert asm.create_exploded_view() == {}
        assert asm.generate_bom() == []
        assert asm.detect_interferences() == []

    def test_round_trip_skips_unknown_components(self, cube_part):
        part, _, _ = cube_part
        asm = Assembly("Baugruppe")
        asm.add_component(part, ComponentTransform(position=(1.0, 2.0, 3.0)))
        data = asm.to_dict()
        data["components"].append({"id": "component_9", "component": {"type": "Mesh"}})

        loaded = Assembly.from_dict(data)

        assert loaded.name == "Baugruppe"
        assert len(loaded.components) == 1
        inst = loaded.components[0]
        assert inst.transform.position == (1.0, 2.0, 3.0)
        assert inst.component.volume == pytest.approx(part.volume)
        assert loaded.to_dict()["components"][0]["transform"] == data["components"][0]["transform"]
