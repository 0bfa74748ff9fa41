import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from config.tolerances import Tolerances
from sketcher.profiles import Profile, ensure_ccw
from modeling.geometry3d import Plane3D
from modeling.mesh import Mesh3D
from modeling.result_types import FeatureResult
from .base import Feature, FeatureType, ExecutionContext, SolidFeature, validate_operation


def _default_axis() -> Dict[str, Dict[str, float]]:
    return {"origin": {"x": 0.0, "y": 0.0}, "direction": {"x": 0.0, "y": 1.0}}


def _xy(value: Any) -> tuple:
    if isinstance(value, dict):
        return float(value.get("x", 0.0)), float(value.get("y", 0.0))
    return float(value[0]), float(value[1])


def needs_caps(angle: float) -> bool:
    """Nur ein nicht-voller Umlauf bekommt Start- und End-Deckel."""
    return abs(angle - 2 * math.pi) > Tolerances.REVOLVE_FULL_TURN


def revolve_profiles(profiles: List[Profile], plane: Plane3D, angle: float, segments: int,
                     axis_origin=(0.0, 0.0), axis_direction=(0.0, 1.0)) -> Mesh3D:
    """
    Rotationskörper aus geschlossenen Profilen.

    Für jeden Profilpunkt: h = Lage entlang der Achse, rho = vorzeichen-
    behafteter Abstand zur Achse. Ring i liegt bei theta = i * angle / segments:
        A + rho*cos(theta)*R + h*D + rho*sin(theta)*normal
    mit A, D = Achse in Weltkoordinaten und R = Radial-Richtung in der Ebene.
    """
    mesh = Mesh3D()
    segments = max(1, int(segments))
    ox, oy = _xy(axis_origin)
    dx, dy = _xy(axis_direction)
    length = math.hypot(dx, dy)
    if length < Tolerances.EPSILON_MATH:
        raise ValueError("Rotationsachse hat Länge null")
    dx, dy = dx / length, dy / length
    # Rechte Seite der Achse in der Skizze
    px, py = dy, -dx

    anchor = plane.to_world(ox, oy)
    axis_dir = plane.x_dir * dx + plane.y_dir * dy
    radial = plane.x_dir * px + plane.y_dir * py
    normal = plane.normal
    caps = needs_caps(angle)

    for profile in profiles:
        if not profile.closed:
            continue
        coords = ensure_ccw(profile.coords())
        if len(coords) < 3:
            continue
        polar = []
        for x, y in coords:
            rx, ry = x - ox, y - oy
            polar.append((rx * px + ry * py, rx * dx + ry * dy))

        rings = []
        for i in range(segments + 1):
            theta = i * angle / segments
            c, s = math.cos(theta), math.sin(theta)
            ring = [mesh.add_vertex(anchor + rho * c * radial + h * axis_dir + rho * s * normal)
                    for rho, h in polar]
            rings.append(ring)

        count = len(polar)
        for i in range(segments):
            cur, nxt = rings[i], rings[i + 1]
            for k in range(count):
                k2 = (k + 1) % count
                mesh.add_face([cur[k], nxt[k], nxt[k2], cur[k2]])

        if caps:
            mesh.add_face(list(rings[0]))
            mesh.add_face(list(reversed(rings[segments])))

    return mesh


@dataclass(eq=False)
class RevolveFeature(SolidFeature, Feature):
    """
    Revolve Feature - Rotation der geschlossenen Profile eines Sketch-Features.

    angle in Radiant (Standard 2π), axis in Skizzenkoordinaten als
    {origin: {x, y}, direction: {x, y}}.
    """
    sketch_feature_id: Optional[str] = None
    angle: float = 2 * math.pi
    segments: int = Tolerances.REVOLVE_SEGMENTS
    axis: Dict[str, Dict[str, float]] = field(default_factory=_default_axis)
    operation: str = "new"

    def __post_init__(self):
        self.type = FeatureType.REVOLVE
        if not self.name or self.name == "Feature":
            self.name = "Revolve"
        validate_operation(self.operation)
        self.segments = max(1, int(self.segments))
        if self.sketch_feature_id and self.sketch_feature_id not in self.dependencies:
            self.dependencies.append(self.sketch_feature_id)

    def execute(self, ctx: ExecutionContext) -> FeatureResult:
        sketch_res = self.sketch_input(ctx)
        closed = [p for p in sketch_res.profiles if p.closed]
        mesh = revolve_profiles(closed, sketch_res.plane, self.angle, self.segments,
                                self.axis["origin"], self.axis["direction"])
        logger.debug(f"[{self.name}] {len(closed)} Profile, {self.segments} Segmente, "
                     f"Winkel {math.degrees(self.angle):.1f}°, Deckel: {needs_caps(self.angle)}")
        return self.finish_solid(ctx, mesh)

    # === Parameter ===

    def set_angle(self, angle: float):
        self.angle = float(angle)
        self.touch()

    def set_segments(self, segments: int):
        self.segments = max(1, int(segments))
        self.touch()

    def set_axis(self, origin, direction):
        ox, oy = _xy(origin)
        dx, dy = _xy(direction)
        self.axis = {"origin": {"x": ox, "y": oy}, "direction": {"x": dx, "y": dy}}
        self.touch()

    def set_operation(self, operation: str):
        self.operation = validate_operation(operation)
        self.touch()

    def set_sketch_feature(self, sketch_feature_id: str):
        if self.sketch_feature_id:
            self.remove_dependency(self.sketch_feature_id)
        self.sketch_feature_id = sketch_feature_id
        self.add_dependency(sketch_feature_id)

    # === Serialisierung ===

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "sketchFeatureId": self.sketch_feature_id,
            "angle": self.angle,
            "segments": self.segments,
            "axis": {
                "origin": dict(self.axis["origin"]),
                "direction": dict(self.axis["direction"]),
            },
            "operation": self.operation,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RevolveFeature':
        axis = data.get("axis") or _default_axis()
        feature = cls(
            sketch_feature_id=data.get("sketchFeatureId"),
            angle=float(data.get("angle", 2 * math.pi)),
            segments=int(data.get("segments", Tolerances.REVOLVE_SEGMENTS)),
            operation=data.get("operation", "new"),
            **Feature.base_kwargs(data),
        )
        feature.axis = {
            "origin": dict(zip("xy", _xy(axis.get("origin", {"x": 0, "y": 0})))),
            "direction": dict(zip("xy", _xy(axis.get("direction", {"x": 0, "y": 1})))),
        }
        return feature
