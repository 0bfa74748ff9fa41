"""
CadKernel Sketcher - Geometrie-Primitives
Punkte, Segmente, Kreise, Bögen und Texte mit geteilten Punkten

Primitive halten direkte Referenzen auf ihre Punkte. Besitzer aller Punkte
ist die Scene; ein Punkt darf von mehreren Primitiven und Constraints
referenziert werden.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Tuple
from enum import Enum
import itertools
import math


class GeometryType(Enum):
    """Geometrie-Typen (Wert = Tag in der Serialisierung)"""
    POINT = "point"
    SEGMENT = "segment"
    CIRCLE = "circle"
    ARC = "arc"
    TEXT = "text"
    DIMENSION = "dimension"


CONSTRUCTION_TYPES = ("finite", "infinite-start", "infinite-end", "infinite-both")

TWO_PI = 2.0 * math.pi


# Prozessweiter Zähler für Primitive-IDs
_id_counter = itertools.count(1)


def next_id() -> int:
    return next(_id_counter)


def reset_ids(start: int = 1):
    """Setzt den ID-Zähler zurück (Tests, neues Dokument)."""
    global _id_counter
    _id_counter = itertools.count(start)


def ensure_ids_above(max_id: int):
    """Stellt sicher, dass neue IDs nicht mit geladenen kollidieren."""
    global _id_counter
    upcoming = next(_id_counter)
    _id_counter = itertools.count(max(upcoming, int(max_id) + 1))


def normalize_angle(angle: float) -> float:
    """Winkel auf [0, 2π)"""
    a = math.fmod(angle, TWO_PI)
    if a < 0:
        a += TWO_PI
    return a


def wrap_angle(angle: float) -> float:
    """Winkel auf (-π, π]"""
    a = math.fmod(angle + math.pi, TWO_PI)
    if a <= 0:
        a += TWO_PI
    return a - math.pi


def point_segment_distance(px: float, py: float, ax: float, ay: float, bx: float, by: float) -> float:
    """Kürzester Abstand Punkt-Strecke"""
    dx = bx - ax
    dy = by - ay
    length_sq = dx * dx + dy * dy
    if length_sq < 1e-18:
        return math.hypot(px - ax, py - ay)
    t = max(0.0, min(1.0, ((px - ax) * dx + (py - ay) * dy) / length_sq))
    return math.hypot(px - (ax + t * dx), py - (ay + t * dy))


@dataclass(eq=False)
class Point2D:
    """2D-Punkt - Grundbaustein aller Geometrie"""
    x: float = 0.0
    y: float = 0.0
    fixed: bool = False
    id: int = field(default_factory=next_id)

    def __post_init__(self):
        # NumPy-Skalare aus dem SciPy-Backend in native Floats wandeln
        self.x = float(self.x)
        self.y = float(self.y)

    @property
    def geometry_type(self) -> GeometryType:
        return GeometryType.POINT

    def distance_to(self, other: 'Point2D') -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def distance_to_xy(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def move_to(self, x: float, y: float):
        self.x = float(x)
        self.y = float(y)

    def to_dict(self) -> dict:
        """Serialisiert zu Dictionary für JSON."""
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "fixed": self.fixed,
        }

    def __repr__(self):
        flag = "!" if self.fixed else ""
        return f"P{self.id}{flag}({self.x:.2f}, {self.y:.2f})"


@dataclass(eq=False)
class Shape2D:
    """Gemeinsame Darstellungs-Attribute aller zeichenbaren Primitive"""
    id: int = field(default_factory=next_id)
    layer: str = "0"
    color: Optional[str] = None
    line_width: float = 1.0
    visible: bool = True
    selected: bool = False
    construction: bool = False
    construction_dash: str = "dashed"
    construction_type: str = "finite"

    def points(self) -> List[Point2D]:
        """Alle referenzierten Punkte"""
        return []

    def uses_point(self, pt: Point2D) -> bool:
        return any(p is pt for p in self.points())

    def replace_point(self, old: Point2D, new: Point2D):
        """Ersetzt eine Punkt-Referenz (Union/Disconnect)."""

    def style_dict(self) -> dict:
        return {
            "layer": self.layer,
            "color": self.color,
            "lineWidth": self.line_width,
            "visible": self.visible,
            "construction": self.construction,
            "constructionDash": self.construction_dash,
            "constructionType": self.construction_type,
        }

    def apply_style(self, data: dict):
        self.layer = data.get("layer", self.layer)
        self.color = data.get("color", self.color)
        self.line_width = data.get("lineWidth", self.line_width)
        self.visible = data.get("visible", self.visible)
        self.construction = data.get("construction", self.construction)
        self.construction_dash = data.get("constructionDash", self.construction_dash)
        self.construction_type = data.get("constructionType", self.construction_type)


@dataclass(eq=False)
class Segment2D(Shape2D):
    """2D-Strecke zwischen zwei geteilten Punkten"""
    p1: Point2D = None
    p2: Point2D = None

    def __post_init__(self):
        if self.p1 is None or self.p2 is None:
            raise ValueError("Segment benötigt zwei Punkte")
        if self.p1 is self.p2:
            raise ValueError(f"Segment {self.id}: p1 und p2 sind derselbe Punkt")
        if self.construction_type not in CONSTRUCTION_TYPES:
            raise ValueError(f"Unbekannter construction_type: {self.construction_type}")

    @property
    def geometry_type(self) -> GeometryType:
        return GeometryType.SEGMENT

    @property
    def dx(self) -> float:
        return self.p2.x - self.p1.x

    @property
    def dy(self) -> float:
        return self.p2.y - self.p1.y

    @property
    def length(self) -> float:
        """Länge der Strecke"""
        return math.hypot(self.dx, self.dy)

    @property
    def midpoint(self) -> Tuple[float, float]:
        return ((self.p1.x + self.p2.x) / 2, (self.p1.y + self.p2.y) / 2)

    @property
    def angle(self) -> float:
        """Richtungswinkel zur X-Achse in Radians"""
        return math.atan2(self.dy, self.dx)

    @property
    def direction(self) -> Tuple[float, float]:
        """Normierter Richtungsvektor"""
        length = self.length
        if length < 1e-12:
            return (1.0, 0.0)
        return (self.dx / length, self.dy / length)

    def points(self) -> List[Point2D]:
        return [self.p1, self.p2]

    def replace_point(self, old: Point2D, new: Point2D):
        if self.p1 is old:
            self.p1 = new
        if self.p2 is old:
            self.p2 = new

    def other_point(self, pt: Point2D) -> Optional[Point2D]:
        if self.p1 is pt:
            return self.p2
        if self.p2 is pt:
            return self.p1
        return None

    def distance_to(self, x: float, y: float) -> float:
        """Kürzester Abstand zur Strecke (nicht zur unendlichen Geraden)"""
        return point_segment_distance(x, y, self.p1.x, self.p1.y, self.p2.x, self.p2.y)

    def get_bounds(self) -> Tuple[float, float, float, float]:
        return (min(self.p1.x, self.p2.x), min(self.p1.y, self.p2.y),
                max(self.p1.x, self.p2.x), max(self.p1.y, self.p2.y))

    def to_dict(self) -> dict:
        data = {"id": self.id, "p1": self.p1.id, "p2": self.p2.id}
        data.update(self.style_dict())
        return data

    def __repr__(self):
        return f"Seg{self.id}({self.p1} -> {self.p2})"


@dataclass(eq=False)
class Circle2D(Shape2D):
    """2D-Kreis um einen geteilten Mittelpunkt"""
    center: Point2D = None
    radius: float = 10.0

    def __post_init__(self):
        if self.center is None:
            raise ValueError("Kreis benötigt einen Mittelpunkt")
        self.radius = float(self.radius)

    @property
    def geometry_type(self) -> GeometryType:
        return GeometryType.CIRCLE

    @property
    def diameter(self) -> float:
        return self.radius * 2

    @property
    def area(self) -> float:
        return math.pi * self.radius ** 2

    def point_at_angle(self, angle: float) -> Tuple[float, float]:
        """Punkt auf dem Kreis bei Winkel (Radians)"""
        return (self.center.x + self.radius * math.cos(angle),
                self.center.y + self.radius * math.sin(angle))

    def points(self) -> List[Point2D]:
        return [self.center]

    def replace_point(self, old: Point2D, new: Point2D):
        if self.center is old:
            self.center = new

    def distance_to(self, x: float, y: float) -> float:
        return abs(self.center.distance_to_xy(x, y) - self.radius)

    def get_bounds(self) -> Tuple[float, float, float, float]:
        cx, cy, r = self.center.x, self.center.y, self.radius
        return (cx - r, cy - r, cx + r, cy + r)

    def to_dict(self) -> dict:
        data = {"id": self.id, "center": self.center.id, "radius": self.radius}
        data.update(self.style_dict())
        return data

    def __repr__(self):
        return f"Circle{self.id}(center={self.center}, r={self.radius:.2f})"


@dataclass(eq=False)
class Arc2D(Circle2D):
    """2D-Kreisbogen, CCW von start_angle nach end_angle (Radians)"""
    start_angle: float = 0.0
    end_angle: float = math.pi / 2

    @property
    def geometry_type(self) -> GeometryType:
        return GeometryType.ARC

    @property
    def sweep_angle(self) -> float:
        """Öffnungswinkel (end - start) mod 2π; 0 steht für den Vollkreis"""
        return normalize_angle(self.end_angle - self.start_angle)

    @property
    def effective_sweep(self) -> float:
        sweep = self.sweep_angle
        return TWO_PI if sweep == 0.0 else sweep

    @property
    def start_point(self) -> Tuple[float, float]:
        return self.point_at_angle(self.start_angle)

    @property
    def end_point(self) -> Tuple[float, float]:
        return self.point_at_angle(self.end_angle)

    @property
    def arc_length(self) -> float:
        return self.radius * self.effective_sweep

    def contains_angle(self, angle: float) -> bool:
        """Liegt der Winkel im Bogenbereich? Sweep 0 zählt als 2π."""
        offset = normalize_angle(angle - self.start_angle)
        return offset <= self.effective_sweep + 1e-12

    def point_at_parameter(self, t: float) -> Tuple[float, float]:
        """Punkt auf dem Bogen bei Parameter t (0=start, 1=end)"""
        return self.point_at_angle(self.start_angle + t * self.effective_sweep)

    def distance_to(self, x: float, y: float) -> float:
        angle = math.atan2(y - self.center.y, x - self.center.x)
        if self.contains_angle(angle):
            return abs(self.center.distance_to_xy(x, y) - self.radius)
        sx, sy = self.start_point
        ex, ey = self.end_point
        return min(math.hypot(x - sx, y - sy), math.hypot(x - ex, y - ey))

    def get_bounds(self) -> Tuple[float, float, float, float]:
        xs = [self.start_point[0], self.end_point[0]]
        ys = [self.start_point[1], self.end_point[1]]
        for k in range(4):
            quad = k * math.pi / 2
            if self.contains_angle(quad):
                px, py = self.point_at_angle(quad)
                xs.append(px)
                ys.append(py)
        return (min(xs), min(ys), max(xs), max(ys))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["startAngle"] = self.start_angle
        data["endAngle"] = self.end_angle
        return data

    def __repr__(self):
        return (f"Arc{self.id}(center={self.center}, r={self.radius:.2f}, "
                f"{math.degrees(self.start_angle):.1f}°-{math.degrees(self.end_angle):.1f}°)")


@dataclass(eq=False)
class Text2D(Shape2D):
    """Positions-Annotation; für Solver und Feature-Baum unsichtbar"""
    x: float = 0.0
    y: float = 0.0
    text: str = ""
    height: float = 5.0
    rotation: float = 0.0

    @property
    def geometry_type(self) -> GeometryType:
        return GeometryType.TEXT

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)

    def get_bounds(self) -> Tuple[float, float, float, float]:
        width = self.height * 0.6 * max(len(self.text), 1)
        return (self.x, self.y, self.x + width, self.y + self.height)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "text": self.text,
            "height": self.height,
            "rotation": self.rotation,
        }
        data.update(self.style_dict())
        return data

    def __repr__(self):
        return f"Text{self.id}({self.text!r} @ {self.x:.2f}, {self.y:.2f})"
