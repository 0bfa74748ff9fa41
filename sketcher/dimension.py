"""
CadKernel Sketcher - Bemaßungen
Annotation und (optional) treibender Constraint in einem Objekt

Eine DimensionPrimitive misst immer die aktuelle Geometrie. Mit
``is_constraint`` steht sie zusätzlich in der Constraint-Liste der Scene;
der Sollwert kommt dann aus ``formula`` (Zahl, Variablenname oder Ausdruck
über die Variablen-Tabelle).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union, Any, List
import math

from loguru import logger

from .geometry import Point2D, Segment2D, Circle2D, Shape2D, GeometryType, point_segment_distance
from .constraints import (
    Constraint, ConstraintType, clamp_to_range,
)


class DimensionType(Enum):
    DISTANCE = "distance"
    DX = "dx"
    DY = "dy"
    ANGLE = "angle"
    RADIUS = "radius"
    LENGTH = "length"


class DisplayMode(Enum):
    VALUE = "value"
    NAME = "name"
    BOTH = "both"


@dataclass
class DimensionPlacement:
    """Ergebnis von detect_dimension_type: Typ und Mess-Koordinaten"""
    dim_type: DimensionType
    x1: float
    y1: float
    x2: float
    y2: float
    angle_start: Optional[float] = None
    angle_sweep: Optional[float] = None


# Zwei Segmente gelten als parallel unterhalb dieses normierten Kreuzprodukts (~0.6°)
_PARALLEL_CROSS = 0.01


def _is_round(prim) -> bool:
    return isinstance(prim, Circle2D)


def _source_points(prim) -> Tuple[Point2D, ...]:
    if isinstance(prim, Point2D):
        return (prim,)
    if isinstance(prim, Segment2D):
        return (prim.p1, prim.p2)
    if isinstance(prim, Circle2D):
        return (prim.center,)
    return ()


def _are_parallel(a: Segment2D, b: Segment2D) -> bool:
    len_a = a.length or 1e-9
    len_b = b.length or 1e-9
    cross = abs(a.dx * b.dy - a.dy * b.dx) / (len_a * len_b)
    return cross < _PARALLEL_CROSS


def _foot_on_line(px, py, seg: Segment2D, clamp: bool) -> Tuple[float, float]:
    ax, ay = seg.p1.x, seg.p1.y
    dx, dy = seg.dx, seg.dy
    len_sq = dx * dx + dy * dy
    if len_sq == 0:
        return (ax, ay)
    t = ((px - ax) * dx + (py - ay) * dy) / len_sq
    if clamp:
        t = max(0.0, min(1.0, t))
    return (ax + t * dx, ay + t * dy)


def _segment_angle_info(a: Segment2D, b: Segment2D) -> Tuple[float, float, float, float]:
    """Scheitel (Schnittpunkt), Startwinkel und vorzeichenbehafteter Sweep"""
    denom = a.dx * b.dy - a.dy * b.dx
    if abs(denom) < 1e-9:
        vx = (a.p1.x + a.p2.x + b.p1.x + b.p2.x) / 4
        vy = (a.p1.y + a.p2.y + b.p1.y + b.p2.y) / 4
    else:
        t = ((b.p1.x - a.p1.x) * b.dy - (b.p1.y - a.p1.y) * b.dx) / denom
        vx = a.p1.x + t * a.dx
        vy = a.p1.y + t * a.dy
    start = a.angle
    sweep = b.angle - start
    while sweep > math.pi:
        sweep -= 2 * math.pi
    while sweep < -math.pi:
        sweep += 2 * math.pi
    return vx, vy, start, sweep


def detect_dimension_type(a, b=None) -> Optional[DimensionPlacement]:
    """Bestimmt Bemaßungs-Typ und Mess-Koordinaten aus ein oder zwei Primitiven."""
    if b is None:
        if isinstance(a, Segment2D):
            return DimensionPlacement(DimensionType.DISTANCE, a.p1.x, a.p1.y, a.p2.x, a.p2.y)
        if _is_round(a):
            cx, cy = a.center.x, a.center.y
            return DimensionPlacement(DimensionType.RADIUS, cx, cy, cx + a.radius, cy)
        return None

    if isinstance(a, Point2D) and isinstance(b, Point2D):
        return DimensionPlacement(DimensionType.DISTANCE, a.x, a.y, b.x, b.y)

    if isinstance(a, Segment2D) and isinstance(b, Segment2D):
        mx, my = a.midpoint
        if _are_parallel(a, b):
            fx, fy = _foot_on_line(mx, my, b, clamp=False)
            return DimensionPlacement(DimensionType.DISTANCE, mx, my, fx, fy)
        vx, vy, start, sweep = _segment_angle_info(a, b)
        return DimensionPlacement(DimensionType.ANGLE, vx, vy, vx, vy, angle_start=start, angle_sweep=sweep)

    if isinstance(a, Point2D) and isinstance(b, Segment2D):
        fx, fy = _foot_on_line(a.x, a.y, b, clamp=True)
        return DimensionPlacement(DimensionType.DISTANCE, a.x, a.y, fx, fy)
    if isinstance(a, Segment2D) and isinstance(b, Point2D):
        fx, fy = _foot_on_line(b.x, b.y, a, clamp=True)
        return DimensionPlacement(DimensionType.DISTANCE, b.x, b.y, fx, fy)

    if _is_round(a) and isinstance(b, Point2D):
        return DimensionPlacement(DimensionType.DISTANCE, a.center.x, a.center.y, b.x, b.y)
    if isinstance(a, Point2D) and _is_round(b):
        return DimensionPlacement(DimensionType.DISTANCE, a.x, a.y, b.center.x, b.center.y)

    if _is_round(a) and _is_round(b):
        return DimensionPlacement(DimensionType.DISTANCE, a.center.x, a.center.y, b.center.x, b.center.y)

    if isinstance(a, Segment2D) and _is_round(b):
        mx, my = a.midpoint
        return DimensionPlacement(DimensionType.DISTANCE, mx, my, b.center.x, b.center.y)
    if _is_round(a) and isinstance(b, Segment2D):
        mx, my = b.midpoint
        return DimensionPlacement(DimensionType.DISTANCE, a.center.x, a.center.y, mx, my)

    return None


@dataclass(eq=False)
class DimensionPrimitive(Shape2D):
    """Bemaßung: sichtbare Annotation, optional treibender Constraint"""
    x1: float = 0.0
    y1: float = 0.0
    x2: float = 0.0
    y2: float = 0.0
    offset: float = 10.0
    dim_type: DimensionType = DimensionType.DISTANCE
    source_a: Any = None
    source_b: Any = None
    is_constraint: bool = False
    display_mode: DisplayMode = DisplayMode.VALUE
    formula: Optional[Union[float, str]] = None  # Zahl oder Variablenname/Ausdruck
    variable_name: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    angle_start: Optional[float] = None
    angle_sweep: Optional[float] = None

    def __post_init__(self):
        if isinstance(self.dim_type, str):
            self.dim_type = DimensionType(self.dim_type)
        if isinstance(self.display_mode, str):
            self.display_mode = DisplayMode(self.display_mode)
        self._constraint: Optional[Constraint] = None
        self._constraint_key = None

    @property
    def geometry_type(self) -> GeometryType:
        return GeometryType.DIMENSION

    # --- Werte ---

    def measured_value(self) -> float:
        """Aus den Mess-Koordinaten abgeleiteter Wert"""
        dx = self.x2 - self.x1
        dy = self.y2 - self.y1
        if self.dim_type == DimensionType.DX:
            return abs(dx)
        if self.dim_type == DimensionType.DY:
            return abs(dy)
        if self.dim_type == DimensionType.ANGLE:
            if self.angle_sweep is not None:
                return self.angle_sweep
            return math.atan2(dy, dx)
        return math.hypot(dx, dy)

    @property
    def is_driven(self) -> bool:
        return self.is_constraint and self.formula is not None

    def driven_value(self) -> Optional[float]:
        """Sollwert aus formula (über Variablen-Tabelle), begrenzt auf min/max"""
        if self.formula is None:
            return None
        from core.variables import get_variables
        resolved = get_variables().resolve_value(self.formula)
        if resolved is None:
            return None
        return clamp_to_range(resolved, self.min_value, self.max_value)

    @property
    def value(self) -> float:
        if self.is_driven:
            driven = self.driven_value()
            if driven is not None:
                return driven
        return self.measured_value()

    def display_label(self) -> str:
        """Anzeigetext je nach display_mode"""
        val = self.value
        if self.dim_type == DimensionType.ANGLE:
            formatted = f"{math.degrees(val):.1f}°"
        else:
            formatted = f"{val:.2f}"
        name = self.variable_name or (self.formula if isinstance(self.formula, str) else None)
        if self.display_mode == DisplayMode.NAME and name:
            return str(name)
        if self.display_mode == DisplayMode.BOTH and name:
            return f"{name} = {formatted}"
        return formatted

    # --- Quellen ---

    def sources(self) -> List[Any]:
        return [s for s in (self.source_a, self.source_b) if s is not None]

    def sync_from_sources(self):
        """Mess-Koordinaten aus den Quell-Primitiven neu ableiten."""
        if self.source_a is None:
            return
        if self.dim_type in (DimensionType.DX, DimensionType.DY):
            ends = self._endpoint_pair()
            if ends is not None:
                (self.x1, self.y1), (self.x2, self.y2) = ends
        else:
            placement = detect_dimension_type(self.source_a, self.source_b)
            if placement is not None:
                self.x1, self.y1 = placement.x1, placement.y1
                self.x2, self.y2 = placement.x2, placement.y2
                if placement.angle_sweep is not None:
                    self.angle_start = placement.angle_start
                    self.angle_sweep = placement.angle_sweep

        if self.variable_name and not self.is_driven:
            from core.variables import get_variables
            get_variables().set(self.variable_name, self.measured_value())

    def _endpoint_pair(self) -> Optional[Tuple[Tuple[float, float], Tuple[float, float]]]:
        a, b = self.source_a, self.source_b
        if isinstance(a, Segment2D) and b is None:
            return a.p1.as_tuple(), a.p2.as_tuple()
        pa = self._anchor(a)
        pb = self._anchor(b)
        if pa is None or pb is None:
            return None
        return pa.as_tuple(), pb.as_tuple()

    @staticmethod
    def _anchor(prim) -> Optional[Point2D]:
        if isinstance(prim, Point2D):
            return prim
        if isinstance(prim, Circle2D):
            return prim.center
        return None

    # --- Constraint-Rolle ---

    def as_constraint(self) -> Optional[Constraint]:
        """Äquivalenter Constraint über die Quellen, None wenn nicht abbildbar.

        Der Sollwert ist immer ``formula``; die Instanz wird wiederverwendet,
        solange sich Typ, Quellen und deren Punkte nicht ändern (Union und
        Disconnect tauschen Segment-Endpunkte aus).
        """
        key = (self.dim_type, id(self.source_a), id(self.source_b),
               tuple(id(p) for p in _source_points(self.source_a) + _source_points(self.source_b)))
        if self._constraint_key != key:
            self._constraint = self._build_constraint()
            self._constraint_key = key
        c = self._constraint
        if c is not None:
            c.value = self.formula
            c.min_value = self.min_value
            c.max_value = self.max_value
        return c

    def _build_constraint(self) -> Optional[Constraint]:
        a, b = self.source_a, self.source_b
        dt = self.dim_type
        if a is None:
            return None

        if dt in (DimensionType.DISTANCE, DimensionType.LENGTH):
            if isinstance(a, Segment2D) and b is None:
                return Constraint(type=ConstraintType.LENGTH, entities=[a], id=self.id)
            pa, pb = self._anchor(a), self._anchor(b)
            if pa is not None and pb is not None:
                return Constraint(type=ConstraintType.DISTANCE, entities=[pa, pb], id=self.id)

        elif dt in (DimensionType.DX, DimensionType.DY):
            ctype = ConstraintType.DISTANCE_X if dt == DimensionType.DX else ConstraintType.DISTANCE_Y
            if isinstance(a, Segment2D) and b is None:
                return Constraint(type=ctype, entities=[a.p1, a.p2], id=self.id)
            pa, pb = self._anchor(a), self._anchor(b)
            if pa is not None and pb is not None:
                return Constraint(type=ctype, entities=[pa, pb], id=self.id)

        elif dt == DimensionType.ANGLE:
            if isinstance(a, Segment2D) and isinstance(b, Segment2D):
                return Constraint(type=ConstraintType.ANGLE, entities=[a, b], id=self.id)

        elif dt == DimensionType.RADIUS:
            if isinstance(a, Circle2D) and b is None:
                return Constraint(type=ConstraintType.RADIUS, entities=[a], id=self.id)

        logger.debug(f"[Dimension] {dt.value} über {a!r}/{b!r} wirkt nicht als Constraint")
        return None

    def error(self) -> float:
        c = self.as_constraint() if self.is_constraint else None
        return c.error() if c is not None else 0.0

    def residuals(self) -> List[float]:
        c = self.as_constraint() if self.is_constraint else None
        return c.residuals() if c is not None else [0.0]

    def involved_points(self) -> List[Point2D]:
        c = self.as_constraint()
        return c.involved_points() if c is not None else []

    def references(self) -> List[Any]:
        return self.sources()

    def apply(self, omega: float = 1.0):
        c = self.as_constraint() if self.is_constraint else None
        if c is not None:
            c.apply(omega)

    def freeze_value(self):
        """Macht die aktuelle Messung zum Sollwert (beim Umschalten auf Constraint)."""
        if self.formula is None:
            self.formula = self.measured_value()

    # --- Geometrie ---

    def distance_to(self, x: float, y: float) -> float:
        if self.dim_type == DimensionType.ANGLE:
            return math.hypot(x - self.x1, y - self.y1)
        dx, dy = self.x2 - self.x1, self.y2 - self.y1
        length = math.hypot(dx, dy) or 1e-9
        ox, oy = -dy / length * self.offset, dx / length * self.offset
        return point_segment_distance(x, y, self.x1 + ox, self.y1 + oy, self.x2 + ox, self.y2 + oy)

    def get_bounds(self) -> Tuple[float, float, float, float]:
        pad = abs(self.offset) + 5
        return (min(self.x1, self.x2) - pad, min(self.y1, self.y2) - pad,
                max(self.x1, self.x2) + pad, max(self.y1, self.y2) + pad)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "x1": self.x1, "y1": self.y1, "x2": self.x2, "y2": self.y2,
            "offset": self.offset,
            "dimType": self.dim_type.value,
            "isConstraint": self.is_constraint,
            "displayMode": self.display_mode.value,
        }
        if self.variable_name:
            data["variableName"] = self.variable_name
        if self.formula is not None:
            data["formula"] = self.formula
        if self.min_value is not None:
            data["min"] = self.min_value
        if self.max_value is not None:
            data["max"] = self.max_value
        if self.source_a is not None:
            data["sourceAId"] = self.source_a.id
        if self.source_b is not None:
            data["sourceBId"] = self.source_b.id
        if self.angle_start is not None:
            data["angleStart"] = self.angle_start
        if self.angle_sweep is not None:
            data["angleSweep"] = self.angle_sweep
        data.update(self.style_dict())
        return data

    def __repr__(self):
        return f"Dim{self.id}({self.dim_type.value}={self.display_label()})"
