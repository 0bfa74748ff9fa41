"""
CadKernel Modeling - Part
=========================

High-Level-Fassade über einem FeatureTree: Sketches auf Ebenen anlegen,
extrudieren/rotieren, Features unterdrücken/umsortieren/ändern und
Masseneigenschaften aus dem finalen Solid ableiten.

Usage:
    part = Part("Block")
    sf = part.add_sketch(sketch)
    part.extrude(sf.id, 100)
    mesh = part.get_final_geometry().geometry
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from loguru import logger

from config.tolerances import Tolerances
from config.version import FORMAT_VERSION
from sketcher import Sketch, Scene
from .features import Feature, SketchFeature, ExtrudeFeature, RevolveFeature
from .feature_tree import FeatureTree, FeatureTreeError
from .geometry3d import Plane3D
from .result_types import FeatureResult


@dataclass
class Material:
    """Werkstoff mit Dichte in g/mm³"""
    name: str = "Generic"
    density: float = 0.001
    color: str = "#b0b0b0"

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "density": self.density, "color": self.color}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['Material']:
        if not data:
            return None
        return cls(
            name=data.get("name", "Generic"),
            density=float(data.get("density", 0.001)),
            color=data.get("color", "#b0b0b0"),
        )


MATERIALS: Dict[str, Material] = {
    "Steel": Material("Steel", 0.00785, "#8a8d91"),
    "Aluminum": Material("Aluminum", 0.0027, "#c8ccd0"),
    "PLA": Material("PLA", 0.00124, "#f0f0f0"),
    "ABS": Material("ABS", 0.00104, "#e8e8e8"),
}


def _origin_planes() -> Dict[str, Plane3D]:
    return {"XY": Plane3D.xy(), "XZ": Plane3D.xz(), "YZ": Plane3D.yz()}


class Part:
    """
    3D-Bauteil aus einem parametrischen Feature-Baum.
    """

    def __init__(self, name: str = "Part1"):
        self.name = name
        self.description = ""
        self.created = datetime.now()
        self.modified = datetime.now()
        self.feature_tree = FeatureTree()
        self.material: Optional[Material] = None
        self.mass = 0.0
        self.volume = 0.0
        self.center_of_mass = (0.0, 0.0, 0.0)
        self.origin_planes: Dict[str, Plane3D] = _origin_planes()
        self.active_sketch_id: Optional[str] = None

    def _touch(self):
        self.modified = datetime.now()

    # === Sketches ===

    def add_sketch(self, sketch: Optional[Sketch] = None,
                   plane: Union[Plane3D, Dict[str, Any], str, None] = None,
                   name: Optional[str] = None) -> SketchFeature:
        """
        Legt ein Sketch-Feature an.

        Args:
            sketch: Vorhandener Sketch (sonst leerer Sketch)
            plane: Plane3D, Ebenen-Dict oder Name einer Ursprungsebene; Standard XY
            name: Feature-Name (Standard "Sketch<N>")
        """
        count = len(self.get_sketches()) + 1
        feature_name = name or (sketch.name if sketch is not None and sketch.name != "Sketch1" else f"Sketch{count}")
        feature = SketchFeature(name=feature_name, sketch=sketch, plane=self._resolve_plane(plane))
        self.feature_tree.add_feature(feature)
        self._touch()
        self.update_properties()
        logger.info(f"[Part] {self.name}: {feature.name} auf {feature.plane.name}")
        return feature

    def add_sketch_from_scene(self, scene: Scene, plane=None, name: Optional[str] = None) -> SketchFeature:
        """
        Übernimmt eine Zeichen-Scene als Sketch. Bögen werden in Segmente
        zerlegt, Kreise bleiben Kreise.
        """
        sketch = Sketch(name=name or f"Sketch{len(self.get_sketches()) + 1}")
        for seg in scene.segments:
            if seg.construction:
                continue
            sketch.add_segment(seg.p1.x, seg.p1.y, seg.p2.x, seg.p2.y)
        for circle in scene.circles:
            if circle.construction:
                continue
            sketch.add_circle(circle.center.x, circle.center.y, circle.radius)
        for arc in scene.arcs:
            if arc.construction:
                continue
            self._tessellate_arc(sketch, arc)
        return self.add_sketch(sketch, plane, name=sketch.name)

    @staticmethod
    def _tessellate_arc(sketch: Sketch, arc, segments: int = None):
        n = segments or Tolerances.ARC_SKETCH_SEGMENTS
        sweep = arc.effective_sweep
        cx, cy = arc.center.x, arc.center.y
        for i in range(n):
            a1 = arc.start_angle + sweep * i / n
            a2 = arc.start_angle + sweep * (i + 1) / n
            sketch.add_segment(
                cx + math.cos(a1) * arc.radius, cy + math.sin(a1) * arc.radius,
                cx + math.cos(a2) * arc.radius, cy + math.sin(a2) * arc.radius,
            )

    def _resolve_plane(self, plane) -> Plane3D:
        if plane is None:
            return Plane3D.xy()
        if isinstance(plane, Plane3D):
            return plane.copy()
        if isinstance(plane, str):
            if plane not in self.origin_planes:
                raise ValueError(f"Unbekannte Ursprungsebene: {plane}")
            return self.origin_planes[plane].copy()
        return Plane3D.from_dict(plane)

    def get_sketches(self) -> List[SketchFeature]:
        return [f for f in self.feature_tree.features if isinstance(f, SketchFeature)]

    def get_sketch_by_name(self, name: str) -> Optional[SketchFeature]:
        for f in self.get_sketches():
            if f.name == name:
                return f
        return None

    def set_active_sketch(self, sketch_feature_id: Optional[str]):
        if sketch_feature_id is not None:
            feature = self.feature_tree.get_feature(sketch_feature_id)
            if not isinstance(feature, SketchFeature):
                raise ValueError(f"{sketch_feature_id} ist kein Sketch-Feature")
        self.active_sketch_id = sketch_feature_id

    def get_active_sketch_id(self) -> Optional[str]:
        return self.active_sketch_id

    def get_active_sketch(self) -> Optional[SketchFeature]:
        if self.active_sketch_id is None:
            return None
        return self.feature_tree.get_feature(self.active_sketch_id)

    # === Ursprungsebenen ===

    def get_origin_planes(self) -> Dict[str, Plane3D]:
        return self.origin_planes

    def set_origin_plane_visible(self, name: str, visible: bool):
        if name not in self.origin_planes:
            raise ValueError(f"Unbekannte Ursprungsebene: {name}")
        self.origin_planes[name].visible = bool(visible)
        self._touch()

    # === 3D-Operationen ===

    def _sketch_feature(self, sketch_feature_id: str) -> SketchFeature:
        feature = self.feature_tree.get_feature(sketch_feature_id)
        if feature is None:
            raise FeatureTreeError(f"Sketch-Feature {sketch_feature_id} nicht gefunden")
        if not isinstance(feature, SketchFeature):
            raise FeatureTreeError(f"{feature.name} ist kein Sketch-Feature")
        return feature

    def _add_solid_feature(self, feature: Feature, sketch_feature: SketchFeature) -> Feature:
        self.feature_tree.add_feature(feature)
        result = self.feature_tree.get_result(feature)
        if result is not None and not result.has_error:
            feature.add_child(sketch_feature.id)
            sketch_feature.set_visible(False)
        else:
            logger.warning(f"[Part] {feature.name} fehlgeschlagen: {feature.error}")
        self._touch()
        self.update_properties()
        return feature

    def extrude(self, sketch_feature_id: str, distance: float, **opts) -> ExtrudeFeature:
        """
        Extrudiert die geschlossenen Profile eines Sketch-Features.

        Args:
            opts: name, direction, symmetric, operation ("new"/"add"/"subtract"/"intersect")
        """
        sketch_feature = self._sketch_feature(sketch_feature_id)
        feature = ExtrudeFeature(
            name=opts.get("name") or f"Extrude{self._count(ExtrudeFeature) + 1}",
            sketch_feature_id=sketch_feature_id,
            distance=float(distance),
            direction=opts.get("direction", 1),
            symmetric=bool(opts.get("symmetric", False)),
            operation=opts.get("operation", "new"),
        )
        return self._add_solid_feature(feature, sketch_feature)

    def revolve(self, sketch_feature_id: str, angle: float = 2 * math.pi, **opts) -> RevolveFeature:
        """
        Rotiert die geschlossenen Profile eines Sketch-Features.

        Args:
            opts: name, segments, axis ({origin, direction}), operation
        """
        sketch_feature = self._sketch_feature(sketch_feature_id)
        feature = RevolveFeature(
            name=opts.get("name") or f"Revolve{self._count(RevolveFeature) + 1}",
            sketch_feature_id=sketch_feature_id,
            angle=float(angle),
            segments=opts.get("segments", Tolerances.REVOLVE_SEGMENTS),
            operation=opts.get("operation", "new"),
        )
        if opts.get("axis"):
            feature.set_axis(opts["axis"]["origin"], opts["axis"]["direction"])
        return self._add_solid_feature(feature, sketch_feature)

    def fillet(self, edge: Any, radius: float) -> None:
        logger.warning(f"[Part] fillet() ist nicht implementiert (edge={edge!r}, radius={radius})")
        return None

    def _count(self, cls) -> int:
        return sum(1 for f in self.feature_tree.features if isinstance(f, cls))

    # === Feature-Verwaltung ===

    def get_features(self) -> List[Feature]:
        return list(self.feature_tree.features)

    def get_feature(self, feature_id: str) -> Optional[Feature]:
        return self.feature_tree.get_feature(feature_id)

    def modify_feature(self, feature_id: str, mutator: Callable[[Feature], Any]) -> bool:
        """Wendet mutator(feature) an und rechnet abhängige Features neu."""
        feature = self.feature_tree.get_feature(feature_id)
        if feature is None:
            return False
        mutator(feature)
        self.feature_tree.mark_modified(feature_id)
        self._touch()
        self.update_properties()
        return True

    def suppress_feature(self, feature_id: str) -> bool:
        return self.modify_feature(feature_id, lambda f: f.suppress())

    def unsuppress_feature(self, feature_id: str) -> bool:
        return self.modify_feature(feature_id, lambda f: f.unsuppress())

    def remove_feature(self, feature_id: str) -> bool:
        feature = self.feature_tree.get_feature(feature_id)
        if feature is None:
            return False
        index = self.feature_tree.get_index(feature)
        removed = self.feature_tree.remove_feature(feature_id)
        if removed:
            if self.active_sketch_id == feature_id:
                self.active_sketch_id = None
            # Gelinkte Sketches wieder anzeigen
            for child_id in feature.children:
                child = self.feature_tree.get_feature(child_id)
                if child is not None and not any(child_id in f.children for f in self.feature_tree.features):
                    child.set_visible(True)
            if index < len(self.feature_tree.features):
                self.feature_tree.recalculate_from(self.feature_tree.features[index])
            self._touch()
            self.update_properties()
        return removed

    def reorder_feature(self, feature_id: str, new_index: int) -> bool:
        moved = self.feature_tree.reorder_feature(feature_id, new_index)
        if moved:
            self._touch()
            self.update_properties()
        return moved

    def get_final_geometry(self) -> Optional[FeatureResult]:
        return self.feature_tree.get_final_result()

    def get_final_solid(self) -> Optional[FeatureResult]:
        """Letztes Solid-Ergebnis (Sketches danach werden übersprungen)."""
        for feature in reversed(self.feature_tree.features):
            res = self.feature_tree.get_result(feature)
            if not feature.suppressed and res is not None and res.is_solid:
                return res
        return None

    # === Eigenschaften ===

    def set_material(self, material: Union[Material, str, None]):
        if isinstance(material, str):
            if material not in MATERIALS:
                raise ValueError(f"Unbekanntes Material: {material}")
            material = MATERIALS[material]
        self.material = material
        self._touch()
        self.update_properties()

    def update_properties(self):
        """Volumen, Masse und Schwerpunkt aus dem finalen Solid."""
        solid = self.get_final_solid()
        if solid is None:
            self.volume = 0.0
            self.center_of_mass = (0.0, 0.0, 0.0)
        else:
            self.volume = solid.volume
            self.center_of_mass = solid.geometry.center_of_mass()
        self.mass = self.volume * self.material.density if self.material else 0.0

    # === Serialisierung ===

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "Part",
            "format_version": FORMAT_VERSION,
            "name": self.name,
            "description": self.description,
            "created": self.created.isoformat(),
            "modified": self.modified.isoformat(),
            "material": self.material.to_dict() if self.material else None,
            "featureTree": self.feature_tree.to_dict(),
            "originPlanes": {name: {"visible": plane.visible} for name, plane in self.origin_planes.items()},
            "activeSketchId": self.active_sketch_id,
        }

    serialize = to_dict

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Part':
        part = cls()
        if not data:
            return part
        part.name = data.get("name") or "Part1"
        part.description = data.get("description") or ""
        if data.get("created"):
            part.created = datetime.fromisoformat(data["created"])
        if data.get("modified"):
            part.modified = datetime.fromisoformat(data["modified"])
        part.material = Material.from_dict(data.get("material"))
        part.feature_tree = FeatureTree.from_dict(data.get("featureTree"))
        for name, state in (data.get("originPlanes") or {}).items():
            if name in part.origin_planes:
                part.origin_planes[name].visible = state.get("visible", True) is not False
        active = data.get("activeSketchId")
        part.active_sketch_id = active if active and part.feature_tree.get_feature(active) else None
        part.update_properties()
        return part

    deserialize = from_dict

    def __repr__(self):
        return f"Part({self.name!r}, {len(self.feature_tree)} features, volume={self.volume:.2f})"
