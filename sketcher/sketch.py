"""
CadKernel Sketcher - Sketch Object
Benannte Hülle um eine Scene mit Zeitstempeln
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Dict, Any

from .scene import Scene
from .solver import SolverResult
from .profiles import Profile, extract_profiles


def _now() -> datetime:
    return datetime.now()


def _parse_time(value: Optional[str]) -> datetime:
    if not value:
        return _now()
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _now()


@dataclass
class Sketch:
    """
    2D-Sketch: Zeichenfläche für Geometrie, die später zu Features wird.

    Mutierende Methoden reichen an die Scene durch und aktualisieren
    ``modified``. Direkte Änderungen an ``scene`` sollten ``touch()`` rufen.
    """

    name: str = "Sketch1"
    description: str = ""
    scene: Scene = field(default_factory=Scene)
    created: datetime = field(default_factory=_now)
    modified: datetime = field(default_factory=_now)

    def touch(self):
        self.modified = _now()

    # === Erzeugen ===

    def add_point(self, x: float, y: float, fixed: bool = False):
        self.touch()
        return self.scene.add_point(x, y, fixed)

    def get_or_create_point(self, x: float, y: float, tolerance: float = None):
        before = len(self.scene.points)
        pt = self.scene.get_or_create_point(x, y, tolerance)
        # Nur ein neuer Punkt zählt als Änderung
        if len(self.scene.points) > before:
            self.touch()
        return pt

    def add_segment(self, x1: float, y1: float, x2: float, y2: float, **opts):
        self.touch()
        return self.scene.add_segment(x1, y1, x2, y2, **opts)

    def add_rectangle(self, x: float, y: float, width: float, height: float, **opts):
        self.touch()
        return self.scene.add_rectangle(x, y, width, height, **opts)

    def add_circle(self, cx: float, cy: float, radius: float, **opts):
        self.touch()
        return self.scene.add_circle(cx, cy, radius, **opts)

    def add_arc(self, cx: float, cy: float, radius: float, start_angle: float, end_angle: float, **opts):
        self.touch()
        return self.scene.add_arc(cx, cy, radius, start_angle, end_angle, **opts)

    def add_text(self, x: float, y: float, text: str, **opts):
        self.touch()
        return self.scene.add_text(x, y, text, **opts)

    def add_dimension(self, source_a=None, source_b=None, **opts):
        self.touch()
        return self.scene.add_dimension(source_a, source_b, **opts)

    def add_constraint(self, c):
        self.touch()
        return self.scene.add_constraint(c)

    # === Entfernen ===

    def remove_constraint(self, c) -> bool:
        self.touch()
        return self.scene.remove_constraint(c)

    def remove_point(self, pt) -> bool:
        self.touch()
        return self.scene.remove_point(pt)

    def remove_segment(self, seg) -> bool:
        self.touch()
        return self.scene.remove_segment(seg)

    def remove_circle(self, circle) -> bool:
        self.touch()
        return self.scene.remove_circle(circle)

    def remove_arc(self, arc) -> bool:
        self.touch()
        return self.scene.remove_arc(arc)

    def remove_primitive(self, prim) -> bool:
        self.touch()
        return self.scene.remove_primitive(prim)

    def clear(self):
        self.touch()
        self.scene.clear()

    # === Abfragen ===

    def solve(self, max_iter: Optional[int] = None) -> SolverResult:
        return self.scene.solve(max_iter)

    def extract_profiles(self, include_open: bool = True) -> List[Profile]:
        return extract_profiles(self.scene, include_open=include_open)

    def shapes(self):
        return self.scene.shapes()

    def find_closest_point(self, x: float, y: float, tolerance: float):
        return self.scene.find_closest_point(x, y, tolerance)

    def find_closest_shape(self, x: float, y: float, tolerance: float):
        return self.scene.find_closest_shape(x, y, tolerance)

    def constraints_on(self, prim):
        return self.scene.constraints_on(prim)

    def get_bounds(self):
        return self.scene.get_bounds()

    @property
    def points(self):
        return self.scene.points

    @property
    def segments(self):
        return self.scene.segments

    @property
    def circles(self):
        return self.scene.circles

    @property
    def arcs(self):
        return self.scene.arcs

    @property
    def texts(self):
        return self.scene.texts

    @property
    def dimensions(self):
        return self.scene.dimensions

    @property
    def constraints(self):
        return self.scene.constraints

    # === Serialisierung ===

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "created": self.created.isoformat(),
            "modified": self.modified.isoformat(),
            "scene": self.scene.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Sketch':
        sketch = cls()
        if not data:
            return sketch
        sketch.name = data.get("name") or "Sketch1"
        sketch.description = data.get("description") or ""
        sketch.created = _parse_time(data.get("created"))
        sketch.modified = _parse_time(data.get("modified"))
        if data.get("scene"):
            sketch.scene = Scene.from_dict(data["scene"])
        return sketch

    def __repr__(self):
        return f"Sketch({self.name!r}, {self.scene!r})"
