from dataclasses import dataclass
from typing import Any, Dict, Union

from loguru import logger

from sketcher import Sketch
from modeling.geometry3d import Plane3D
from modeling.result_types import FeatureResult
from .base import Feature, FeatureType, ExecutionContext


@dataclass(eq=False)
class SketchFeature(Feature):
    """
    2D-Sketch als Feature im parametrischen Baum.

    Ausführen löst die Constraints des Sketches und liefert die Profile
    (geschlossene und offene) zusammen mit der Skizzenebene.
    """
    sketch: Sketch = None
    plane: Plane3D = None

    def __post_init__(self):
        self.type = FeatureType.SKETCH
        if not self.name or self.name == "Feature":
            self.name = "Sketch"
        if self.sketch is None:
            self.sketch = Sketch()
        self.sketch.name = self.name
        if self.plane is None:
            self.plane = Plane3D.xy()
        elif isinstance(self.plane, dict):
            self.plane = Plane3D.from_dict(self.plane)

    def execute(self, ctx: ExecutionContext) -> FeatureResult:
        solve_result = self.sketch.solve()
        if not solve_result.success:
            logger.debug(f"[{self.name}] Solver nicht konvergiert: {solve_result.message}")
        profiles = self.sketch.extract_profiles(include_open=True)
        return FeatureResult.sketch_result(self.sketch, self.plane, profiles)

    def extract_profiles(self):
        return self.sketch.extract_profiles(include_open=True)

    def set_plane(self, plane: Union[Plane3D, Dict[str, Any]]):
        """Setzt die Ebene; ein Dict überschreibt nur die angegebenen Achsen."""
        if isinstance(plane, Plane3D):
            self.plane = plane
        else:
            merged = self.plane.to_dict()
            merged.update(plane or {})
            self.plane = Plane3D.from_dict(merged)
        self.touch()

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["sketch"] = self.sketch.to_dict()
        data["plane"] = self.plane.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SketchFeature':
        sketch = Sketch.from_dict(data.get("sketch")) if data.get("sketch") else None
        feature = cls(
            sketch=sketch,
            plane=Plane3D.from_dict(data.get("plane")),
            **Feature.base_kwargs(data),
        )
        if sketch is not None and data["sketch"].get("name"):
            # Gespeicherter Sketch-Name hat Vorrang vor dem Feature-Namen
            sketch.name = data["sketch"]["name"]
        return feature
