from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
from loguru import logger

from sketcher.profiles import Profile, ensure_ccw
from modeling.geometry3d import Plane3D
from modeling.mesh import Mesh3D
from modeling.result_types import FeatureResult
from .base import Feature, FeatureType, ExecutionContext, SolidFeature, validate_operation


def extrude_profiles(profiles: List[Profile], plane: Plane3D, distance: float,
                     direction: int = 1, symmetric: bool = False) -> Mesh3D:
    """
    Prismen aus geschlossenen Profilen.

    Pro Profil: Boden (umgekehrte Orientierung, Normale -n), Deckel (+n)
    und ein Viereck pro Kante [b_i, b_next, t_next, t_i].
    """
    mesh = Mesh3D()
    vector = plane.normal * (distance * direction)
    base_offset = -vector / 2.0 if symmetric else np.zeros(3)
    normal = tuple(plane.normal)
    inverse = tuple(-plane.normal)

    for profile in profiles:
        if not profile.closed:
            continue
        coords = ensure_ccw(profile.coords())
        if len(coords) < 3:
            continue
        bottom_arr = plane.to_world_many(coords) + base_offset
        top_arr = bottom_arr + vector
        bottom = [mesh.add_vertex(v) for v in bottom_arr]
        top = [mesh.add_vertex(v) for v in top_arr]

        mesh.add_face(list(reversed(bottom)), inverse)
        mesh.add_face(top, normal)

        count = len(bottom)
        for i in range(count):
            nxt = (i + 1) % count
            mesh.add_face([bottom[i], bottom[nxt], top[nxt], top[i]])

    return mesh


@dataclass(eq=False)
class ExtrudeFeature(SolidFeature, Feature):
    """
    Extrude Feature - Prisma aus den geschlossenen Profilen eines Sketch-Features.

    operation: "new", "add", "subtract" oder "intersect" gegen den letzten
    Solid vor diesem Feature.
    """
    sketch_feature_id: Optional[str] = None
    distance: float = 10.0
    direction: int = 1
    symmetric: bool = False
    operation: str = "new"

    def __post_init__(self):
        self.type = FeatureType.EXTRUDE
        if not self.name or self.name == "Feature":
            self.name = "Extrude"
        validate_operation(self.operation)
        self.direction = -1 if self.direction < 0 else 1
        if self.sketch_feature_id and self.sketch_feature_id not in self.dependencies:
            self.dependencies.append(self.sketch_feature_id)

    def execute(self, ctx: ExecutionContext) -> FeatureResult:
        sketch_res = self.sketch_input(ctx)
        closed = [p for p in sketch_res.profiles if p.closed]
        mesh = extrude_profiles(closed, sketch_res.plane, self.distance, self.direction, self.symmetric)
        logger.debug(f"[{self.name}] {len(closed)} Profile, {mesh.face_count} Flächen, Distanz {self.distance}")
        return self.finish_solid(ctx, mesh)

    # === Parameter ===

    def set_distance(self, distance: float):
        self.distance = float(distance)
        self.touch()

    def set_direction(self, direction: int):
        self.direction = -1 if direction < 0 else 1
        self.touch()

    def set_operation(self, operation: str):
        self.operation = validate_operation(operation)
        self.touch()

    def set_sketch_feature(self, sketch_feature_id: str):
        """Tauscht die Sketch-Abhängigkeit aus."""
        if self.sketch_feature_id:
            self.remove_dependency(self.sketch_feature_id)
        self.sketch_feature_id = sketch_feature_id
        self.add_dependency(sketch_feature_id)

    # === Serialisierung ===

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "sketchFeatureId": self.sketch_feature_id,
            "distance": self.distance,
            "direction": self.direction,
            "symmetric": self.symmetric,
            "operation": self.operation,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExtrudeFeature':
        return cls(
            sketch_feature_id=data.get("sketchFeatureId"),
            distance=float(data.get("distance", 10.0)),
            direction=int(data.get("direction", 1)),
            symmetric=bool(data.get("symmetric", False)),
            operation=data.get("operation", "new"),
            **Feature.base_kwargs(data),
        )
