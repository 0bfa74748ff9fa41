"""
CadKernel Sketcher - Constraint System
Geometrische Constraints für parametrisches Design

Ein Constraint ist ein getaggter Wert: ``type`` bestimmt, welche Entities
erwartet werden und wie Residuum und Korrektur berechnet werden. Die
Dispatch-Funktionen unten (``constraint_residuals``, ``apply_constraint``)
verzweigen über den Typ.
"""

from dataclasses import dataclass, field
from typing import Union, List, Optional, Any, Tuple
from enum import Enum
import math

from loguru import logger

from .geometry import Point2D, Segment2D, Circle2D, next_id, wrap_angle


class ConstraintType(Enum):
    """Verfügbare Constraint-Typen (Wert = Tag in der Serialisierung)"""
    # Punkt-Constraints
    FIXED = "fixed"                     # Punkt fixiert
    COINCIDENT = "coincident"           # Zwei Punkte zusammen
    POINT_ON_LINE = "on_line"           # Punkt auf (unendlicher) Linie
    POINT_ON_CIRCLE = "on_circle"       # Punkt auf Kreis
    MIDPOINT = "midpoint"               # Punkt auf Mittelpunkt

    # Linien-Constraints
    HORIZONTAL = "horizontal"           # Linie horizontal
    VERTICAL = "vertical"               # Linie vertikal
    PARALLEL = "parallel"               # Zwei Linien parallel
    PERPENDICULAR = "perpendicular"     # Zwei Linien senkrecht
    EQUAL_LENGTH = "equal_length"       # Zwei Linien gleich lang

    # Kreis-Constraints
    TANGENT = "tangent"                 # Linie tangential an Kreis/Bogen

    # Maß-Constraints (Dimensionen)
    DISTANCE = "distance"               # Abstand zweier Punkte
    DISTANCE_X = "distance_x"           # Horizontaler Abstand
    DISTANCE_Y = "distance_y"           # Vertikaler Abstand
    LENGTH = "length"                   # Länge einer Linie
    ANGLE = "angle"                     # Winkel zwischen Linien (Radians)
    RADIUS = "radius"                   # Radius eines Kreises/Bogens


# Erwartete Entity-Typen pro Constraint-Typ
_ENTITY_SIGNATURES = {
    ConstraintType.FIXED: (Point2D,),
    ConstraintType.COINCIDENT: (Point2D, Point2D),
    ConstraintType.POINT_ON_LINE: (Point2D, Segment2D),
    ConstraintType.POINT_ON_CIRCLE: (Point2D, Circle2D),
    ConstraintType.MIDPOINT: (Point2D, Segment2D),
    ConstraintType.HORIZONTAL: (Segment2D,),
    ConstraintType.VERTICAL: (Segment2D,),
    ConstraintType.PARALLEL: (Segment2D, Segment2D),
    ConstraintType.PERPENDICULAR: (Segment2D, Segment2D),
    ConstraintType.EQUAL_LENGTH: (Segment2D, Segment2D),
    ConstraintType.TANGENT: (Segment2D, Circle2D),
    ConstraintType.DISTANCE: (Point2D, Point2D),
    ConstraintType.DISTANCE_X: (Point2D, Point2D),
    ConstraintType.DISTANCE_Y: (Point2D, Point2D),
    ConstraintType.LENGTH: (Segment2D,),
    ConstraintType.ANGLE: (Segment2D, Segment2D),
    ConstraintType.RADIUS: (Circle2D,),
}

# Typen mit numerischem Sollwert
VALUE_TYPES = frozenset({
    ConstraintType.DISTANCE, ConstraintType.DISTANCE_X, ConstraintType.DISTANCE_Y,
    ConstraintType.LENGTH, ConstraintType.ANGLE, ConstraintType.RADIUS,
})

# Typen, die Richtung/Form einer Strecke festlegen (werden beim Split dupliziert)
ORIENTATION_TYPES = frozenset({
    ConstraintType.HORIZONTAL, ConstraintType.VERTICAL, ConstraintType.PARALLEL,
    ConstraintType.PERPENDICULAR, ConstraintType.ANGLE, ConstraintType.EQUAL_LENGTH,
    ConstraintType.TANGENT, ConstraintType.POINT_ON_LINE,
})


@dataclass(eq=False)
class Constraint:
    """Ein Constraint über Punkte/Primitive einer Scene"""
    type: ConstraintType
    entities: List[Any] = field(default_factory=list)  # Betroffene Geometrie
    value: Optional[Union[float, str]] = None  # Zahl oder Variablenname/Ausdruck
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    id: int = field(default_factory=next_id)
    # Schnappschuss für FIXED (bei Erstellung)
    fx: Optional[float] = None
    fy: Optional[float] = None
    satisfied: bool = False
    _unresolved_logged: bool = field(default=False, repr=False)

    def __post_init__(self):
        if self.type == ConstraintType.FIXED and self.entities and self.fx is None:
            pt = self.entities[0]
            self.fx, self.fy = pt.x, pt.y

    def __repr__(self):
        val_str = f"={self.value}" if self.value is not None else ""
        return f"{self.type.name}{val_str}"

    # --- Validierung ---

    def validation_error(self) -> Optional[str]:
        """Fehlermeldung wenn die Entities nicht zum Typ passen, sonst None."""
        signature = _ENTITY_SIGNATURES[self.type]
        if len(self.entities) != len(signature):
            return f"{self.type.name} benötigt {len(signature)} Entities, hat aber {len(self.entities)}"
        for ent, expected in zip(self.entities, signature):
            if not isinstance(ent, expected):
                return f"{self.type.name}: {ent!r} ist kein {expected.__name__}"
        return None

    def is_valid(self) -> bool:
        return self.validation_error() is None

    # --- Solver-Schnittstelle ---

    def error(self) -> float:
        """Skalarer Fehler (vorzeichenbehaftet für 1D-Residuen, Betrag sonst)"""
        return calculate_constraint_error(self)

    def residuals(self) -> List[float]:
        return constraint_residuals(self)

    def involved_points(self) -> List[Point2D]:
        return constraint_points(self)

    def references(self) -> List[Any]:
        """Alle direkt referenzierten Primitive/Punkte"""
        return list(self.entities)

    def apply(self, omega: float = 1.0):
        apply_constraint(self, omega)

    def resolved_value(self) -> Optional[float]:
        return resolve_constraint_value(self)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "type": self.type.value,
            "entities": [e.id for e in self.entities],
            "value": self.value,
        }
        if self.min_value is not None:
            data["min"] = self.min_value
        if self.max_value is not None:
            data["max"] = self.max_value
        if self.type == ConstraintType.FIXED:
            data["fx"] = self.fx
            data["fy"] = self.fy
        return data


# === Constraint-Factories ===

def make_fixed(point: Point2D) -> Constraint:
    """Punkt fixieren (Schnappschuss der aktuellen Position)"""
    c = Constraint(type=ConstraintType.FIXED, entities=[point])
    point.fixed = True
    return c


def make_coincident(p1: Point2D, p2: Point2D) -> Constraint:
    """Zwei Punkte zusammenfallen lassen"""
    return Constraint(type=ConstraintType.COINCIDENT, entities=[p1, p2])


def make_point_on_line(point: Point2D, line: Segment2D) -> Constraint:
    """Punkt auf Linie"""
    return Constraint(type=ConstraintType.POINT_ON_LINE, entities=[point, line])


def make_point_on_circle(point: Point2D, circle: Circle2D) -> Constraint:
    """Punkt auf Kreis oder Bogen"""
    return Constraint(type=ConstraintType.POINT_ON_CIRCLE, entities=[point, circle])


def make_midpoint(point: Point2D, line: Segment2D) -> Constraint:
    """Punkt auf Mittelpunkt einer Linie"""
    return Constraint(type=ConstraintType.MIDPOINT, entities=[point, line])


def make_horizontal(line: Segment2D) -> Constraint:
    """Linie horizontal"""
    return Constraint(type=ConstraintType.HORIZONTAL, entities=[line])


def make_vertical(line: Segment2D) -> Constraint:
    """Linie vertikal"""
    return Constraint(type=ConstraintType.VERTICAL, entities=[line])


def make_parallel(l1: Segment2D, l2: Segment2D) -> Constraint:
    """Zwei Linien parallel"""
    return Constraint(type=ConstraintType.PARALLEL, entities=[l1, l2])


def make_perpendicular(l1: Segment2D, l2: Segment2D) -> Constraint:
    """Zwei Linien senkrecht"""
    return Constraint(type=ConstraintType.PERPENDICULAR, entities=[l1, l2])


def make_equal_length(l1: Segment2D, l2: Segment2D) -> Constraint:
    """Zwei Linien gleich lang"""
    return Constraint(type=ConstraintType.EQUAL_LENGTH, entities=[l1, l2])


def make_tangent(line: Segment2D, circle: Circle2D) -> Constraint:
    """Linie tangential an Kreis/Bogen"""
    return Constraint(type=ConstraintType.TANGENT, entities=[line, circle])


# === Dimension-Constraints ===

def make_length(line: Segment2D, length: Union[float, str], min_value=None, max_value=None) -> Constraint:
    """Länge einer Linie festlegen"""
    return Constraint(type=ConstraintType.LENGTH, entities=[line], value=length,
                      min_value=min_value, max_value=max_value)


def make_distance(p1: Point2D, p2: Point2D, distance: Union[float, str],
                  min_value=None, max_value=None) -> Constraint:
    """Abstand zwischen zwei Punkten"""
    return Constraint(type=ConstraintType.DISTANCE, entities=[p1, p2], value=distance,
                      min_value=min_value, max_value=max_value)


def make_distance_x(p1: Point2D, p2: Point2D, distance: Union[float, str]) -> Constraint:
    """Horizontaler Abstand |p2.x - p1.x|"""
    return Constraint(type=ConstraintType.DISTANCE_X, entities=[p1, p2], value=distance)


def make_distance_y(p1: Point2D, p2: Point2D, distance: Union[float, str]) -> Constraint:
    """Vertikaler Abstand |p2.y - p1.y|"""
    return Constraint(type=ConstraintType.DISTANCE_Y, entities=[p1, p2], value=distance)


def make_angle(l1: Segment2D, l2: Segment2D, angle_rad: Union[float, str]) -> Constraint:
    """Vorzeichenbehafteter Winkel von l1 nach l2 (Radians)"""
    return Constraint(type=ConstraintType.ANGLE, entities=[l1, l2], value=angle_rad)


def make_radius(circle: Circle2D, radius: Union[float, str], min_value=None, max_value=None) -> Constraint:
    """Radius festlegen"""
    return Constraint(type=ConstraintType.RADIUS, entities=[circle], value=radius,
                      min_value=min_value, max_value=max_value)


# === Wert-Auflösung ===

def clamp_to_range(value: float, min_value: Optional[float], max_value: Optional[float]) -> float:
    if min_value is not None and value < min_value:
        return float(min_value)
    if max_value is not None and value > max_value:
        return float(max_value)
    return value


def resolve_constraint_value(constraint: Constraint) -> Optional[float]:
    """Löst den Sollwert auf (Zahl oder über die Variablen-Tabelle).

    Gibt None zurück, wenn ein String-Wert nicht aufgelöst werden kann.
    """
    if constraint.value is None:
        return None
    from core.variables import get_variables
    resolved = get_variables().resolve_value(constraint.value)
    if resolved is None:
        if not constraint._unresolved_logged:
            logger.error(f"[Constraint] {constraint.type.name}: Wert '{constraint.value}' nicht auflösbar, "
                         f"Residuum wird 0 gesetzt")
            constraint._unresolved_logged = True
        return None
    return clamp_to_range(resolved, constraint.min_value, constraint.max_value)


# === Geometrische Hilfsfunktionen ===

def _signed_angle(a: Segment2D, b: Segment2D) -> float:
    """Vorzeichenbehafteter Winkel von a nach b in (-π, π]"""
    cross = a.dx * b.dy - a.dy * b.dx
    dot = a.dx * b.dx + a.dy * b.dy
    return math.atan2(cross, dot)


def _line_normal(seg: Segment2D) -> Tuple[float, float]:
    ux, uy = seg.direction
    return (-uy, ux)


def _signed_line_distance(px: float, py: float, seg: Segment2D) -> float:
    """Vorzeichenbehafteter Abstand zur unendlichen Geraden durch seg"""
    nx, ny = _line_normal(seg)
    return (px - seg.p1.x) * nx + (py - seg.p1.y) * ny


# === Residuen ===

def constraint_residuals(constraint: Constraint) -> List[float]:
    """Residuen eines Constraints (1 oder 2 Komponenten, 0 = erfüllt)"""
    ct = constraint.type
    ents = constraint.entities

    if ct == ConstraintType.COINCIDENT:
        a, b = ents
        return [a.x - b.x, a.y - b.y]

    elif ct == ConstraintType.FIXED:
        p = ents[0]
        return [p.x - constraint.fx, p.y - constraint.fy]

    elif ct == ConstraintType.MIDPOINT:
        p, seg = ents
        mx, my = seg.midpoint
        return [p.x - mx, p.y - my]

    elif ct == ConstraintType.HORIZONTAL:
        seg = ents[0]
        return [seg.p2.y - seg.p1.y]

    elif ct == ConstraintType.VERTICAL:
        seg = ents[0]
        return [seg.p2.x - seg.p1.x]

    elif ct == ConstraintType.PARALLEL:
        a, b = ents
        return [a.dx * b.dy - a.dy * b.dx]

    elif ct == ConstraintType.PERPENDICULAR:
        a, b = ents
        return [a.dx * b.dx + a.dy * b.dy]

    elif ct == ConstraintType.EQUAL_LENGTH:
        a, b = ents
        return [a.length - b.length]

    elif ct == ConstraintType.POINT_ON_LINE:
        p, seg = ents
        return [_signed_line_distance(p.x, p.y, seg)]

    elif ct == ConstraintType.POINT_ON_CIRCLE:
        p, circle = ents
        return [p.distance_to(circle.center) - circle.radius]

    elif ct == ConstraintType.TANGENT:
        seg, circle = ents
        dist = abs(_signed_line_distance(circle.center.x, circle.center.y, seg))
        return [dist - circle.radius]

    # Maß-Constraints: Sollwert über Variablen-Tabelle
    target = resolve_constraint_value(constraint)
    if target is None:
        return [0.0]

    if ct == ConstraintType.DISTANCE:
        a, b = ents
        return [a.distance_to(b) - target]

    elif ct == ConstraintType.DISTANCE_X:
        a, b = ents
        return [abs(b.x - a.x) - target]

    elif ct == ConstraintType.DISTANCE_Y:
        a, b = ents
        return [abs(b.y - a.y) - target]

    elif ct == ConstraintType.LENGTH:
        return [ents[0].length - target]

    elif ct == ConstraintType.ANGLE:
        a, b = ents
        return [wrap_angle(_signed_angle(a, b) - target)]

    elif ct == ConstraintType.RADIUS:
        return [ents[0].radius - target]

    return [0.0]


def calculate_constraint_error(constraint: Constraint) -> float:
    """Skalarer Fehler: 1D-Residuum mit Vorzeichen, 2D als Betrag"""
    res = constraint_residuals(constraint)
    if len(res) == 1:
        return res[0]
    return math.hypot(*res)


def constraint_points(constraint: Constraint) -> List[Point2D]:
    """Alle Punkte, deren Koordinaten in das Residuum eingehen"""
    pts: List[Point2D] = []
    for ent in constraint.entities:
        if isinstance(ent, Point2D):
            cand = [ent]
        else:
            cand = ent.points()
        for p in cand:
            if not any(p is q for q in pts):
                pts.append(p)
    return pts


def is_constraint_satisfied(constraint: Constraint, tolerance: float = 1e-4) -> bool:
    """Prüft ob ein Constraint erfüllt ist"""
    res = constraint_residuals(constraint)
    constraint.satisfied = all(abs(r) < tolerance for r in res)
    return constraint.satisfied


# === Korrekturen (geschlossene Form pro Typ) ===

def _move(pt: Point2D, dx: float, dy: float):
    if not pt.fixed:
        pt.x += dx
        pt.y += dy


def _pull_toward(pt: Point2D, tx: float, ty: float, omega: float):
    _move(pt, omega * (tx - pt.x), omega * (ty - pt.y))


def _place_segment(seg: Segment2D, ux: float, uy: float, length: float, omega: float):
    """Richtet seg entlang (ux, uy) mit gegebener Länge aus.

    Dreht/skaliert um den Mittelpunkt; ist ein Endpunkt fix, um diesen.
    """
    a, b = seg.p1, seg.p2
    if a.fixed and b.fixed:
        return
    if a.fixed:
        _pull_toward(b, a.x + ux * length, a.y + uy * length, omega)
    elif b.fixed:
        _pull_toward(a, b.x - ux * length, b.y - uy * length, omega)
    else:
        mx, my = seg.midpoint
        half = length / 2
        _pull_toward(a, mx - ux * half, my - uy * half, omega)
        _pull_toward(b, mx + ux * half, my + uy * half, omega)


def _scale_to_length(seg: Segment2D, length: float, omega: float):
    ux, uy = seg.direction
    _place_segment(seg, ux, uy, max(length, 0.0), omega)


def _is_pinned(seg: Segment2D) -> bool:
    return seg.p1.fixed and seg.p2.fixed


def _rotate_toward(seg: Segment2D, tx: float, ty: float, omega: float, allow_flip: bool = True):
    """Dreht seg auf die Richtung (tx, ty); mit allow_flip auf die nähere von ±(tx, ty)."""
    ux, uy = seg.direction
    if allow_flip and ux * tx + uy * ty < 0:
        tx, ty = -tx, -ty
    _place_segment(seg, tx, ty, seg.length, omega)


def _align_pair(a: Segment2D, b: Segment2D, rotation: float, omega: float, allow_flip: bool = True):
    """Bringt b auf Richtung(a) gedreht um rotation; ist b fix, wird a gedreht."""
    if _is_pinned(b) and not _is_pinned(a):
        bx, by = b.direction
        c, s = math.cos(-rotation), math.sin(-rotation)
        _rotate_toward(a, bx * c - by * s, bx * s + by * c, omega, allow_flip)
        return
    ax, ay = a.direction
    # Exakte Achsen-Ausrichtung vermeidet Rundungsdrift
    if rotation == 0.0 and (abs(ax) < 1e-12 or abs(ay) < 1e-12):
        ax, ay = round(ax), round(ay)
    c, s = math.cos(rotation), math.sin(rotation)
    _rotate_toward(b, ax * c - ay * s, ax * s + ay * c, omega, allow_flip)


def apply_constraint(constraint: Constraint, omega: float = 1.0):
    """Verschiebt die beteiligten Punkte so, dass das Residuum sinkt.

    Fixe Punkte werden nie verschoben (Ausnahme: FIXED stellt den
    Schnappschuss wieder her).
    """
    ct = constraint.type
    ents = constraint.entities

    if ct == ConstraintType.COINCIDENT:
        a, b = ents
        if a.fixed and b.fixed:
            return
        if a.fixed:
            _pull_toward(b, a.x, a.y, omega)
        elif b.fixed:
            _pull_toward(a, b.x, b.y, omega)
        else:
            mx, my = (a.x + b.x) / 2, (a.y + b.y) / 2
            _pull_toward(a, mx, my, omega)
            _pull_toward(b, mx, my, omega)

    elif ct == ConstraintType.FIXED:
        p = ents[0]
        p.x, p.y = constraint.fx, constraint.fy

    elif ct == ConstraintType.MIDPOINT:
        p, seg = ents
        mx, my = seg.midpoint
        if not p.fixed:
            _pull_toward(p, mx, my, omega)
        else:
            dx, dy = omega * (p.x - mx), omega * (p.y - my)
            free = [q for q in seg.points() if not q.fixed]
            # Einzelner freier Endpunkt muss doppelt so weit wandern
            scale = 2.0 if len(free) == 1 else 1.0
            for q in free:
                _move(q, dx * scale, dy * scale)

    elif ct in (ConstraintType.HORIZONTAL, ConstraintType.VERTICAL):
        seg = ents[0]
        a, b = seg.p1, seg.p2
        attr = "y" if ct == ConstraintType.HORIZONTAL else "x"
        va, vb = getattr(a, attr), getattr(b, attr)
        if a.fixed and b.fixed:
            return
        if a.fixed:
            setattr(b, attr, vb + omega * (va - vb))
        elif b.fixed:
            setattr(a, attr, va + omega * (vb - va))
        else:
            avg = (va + vb) / 2
            setattr(a, attr, va + omega * (avg - va))
            setattr(b, attr, vb + omega * (avg - vb))

    elif ct == ConstraintType.PARALLEL:
        a, b = ents
        _align_pair(a, b, 0.0, omega)

    elif ct == ConstraintType.PERPENDICULAR:
        a, b = ents
        _align_pair(a, b, math.pi / 2, omega)

    elif ct == ConstraintType.EQUAL_LENGTH:
        a, b = ents
        if _is_pinned(a):
            target = a.length
        elif _is_pinned(b):
            target = b.length
        else:
            target = (a.length + b.length) / 2
        _scale_to_length(a, target, omega)
        _scale_to_length(b, target, omega)

    elif ct == ConstraintType.POINT_ON_LINE:
        p, seg = ents
        nx, ny = _line_normal(seg)
        d = _signed_line_distance(p.x, p.y, seg)
        if not p.fixed:
            _move(p, -omega * d * nx, -omega * d * ny)
        else:
            for q in seg.points():
                _move(q, omega * d * nx, omega * d * ny)

    elif ct == ConstraintType.POINT_ON_CIRCLE:
        p, circle = ents
        c = circle.center
        dist = p.distance_to(c)
        ux, uy = ((p.x - c.x) / dist, (p.y - c.y) / dist) if dist > 1e-12 else (1.0, 0.0)
        if not p.fixed:
            _pull_toward(p, c.x + ux * circle.radius, c.y + uy * circle.radius, omega)
        else:
            _pull_toward(c, p.x - ux * circle.radius, p.y - uy * circle.radius, omega)

    elif ct == ConstraintType.TANGENT:
        seg, circle = ents
        c = circle.center
        nx, ny = _line_normal(seg)
        sd = _signed_line_distance(c.x, c.y, seg)
        side = 1.0 if sd >= 0 else -1.0
        shift = sd - side * circle.radius
        if not _is_pinned(seg):
            for q in seg.points():
                _move(q, omega * shift * nx, omega * shift * ny)
        else:
            _move(c, -omega * shift * nx, -omega * shift * ny)

    else:
        target = resolve_constraint_value(constraint)
        if target is None:
            return

        if ct == ConstraintType.DISTANCE:
            _apply_distance(ents[0], ents[1], target, omega)

        elif ct in (ConstraintType.DISTANCE_X, ConstraintType.DISTANCE_Y):
            a, b = ents
            attr = "x" if ct == ConstraintType.DISTANCE_X else "y"
            delta = getattr(b, attr) - getattr(a, attr)
            sign = 1.0 if delta >= 0 else -1.0
            err = abs(delta) - target
            if a.fixed and b.fixed:
                return
            if a.fixed:
                setattr(b, attr, getattr(b, attr) - omega * err * sign)
            elif b.fixed:
                setattr(a, attr, getattr(a, attr) + omega * err * sign)
            else:
                setattr(a, attr, getattr(a, attr) + omega * err * sign / 2)
                setattr(b, attr, getattr(b, attr) - omega * err * sign / 2)

        elif ct == ConstraintType.LENGTH:
            _scale_to_length(ents[0], target, omega)

        elif ct == ConstraintType.ANGLE:
            a, b = ents
            _align_pair(a, b, target, omega, allow_flip=False)

        elif ct == ConstraintType.RADIUS:
            circle = ents[0]
            circle.radius += omega * (target - circle.radius)


def _apply_distance(a: Point2D, b: Point2D, target: float, omega: float):
    if a.fixed and b.fixed:
        return
    dist = a.distance_to(b)
    if dist < 1e-12:
        ux, uy = 1.0, 0.0
    else:
        ux, uy = (b.x - a.x) / dist, (b.y - a.y) / dist
    err = dist - target
    if a.fixed:
        _move(b, -omega * err * ux, -omega * err * uy)
    elif b.fixed:
        _move(a, omega * err * ux, omega * err * uy)
    else:
        half = omega * err / 2
        _move(a, half * ux, half * uy)
        _move(b, -half * ux, -half * uy)


# === Serialisierung ===

def constraint_from_dict(data: dict, lookup) -> Constraint:
    """Baut einen Constraint aus einem Record; lookup(id) liefert die Entity.

    Raises:
        KeyError: wenn eine referenzierte Entity fehlt (lookup entscheidet)
    """
    ct = ConstraintType(data["type"])
    entities = [lookup(eid) for eid in data.get("entities", [])]
    c = Constraint(
        type=ct,
        entities=entities,
        value=data.get("value"),
        min_value=data.get("min"),
        max_value=data.get("max"),
        id=int(data["id"]) if data.get("id") is not None else next_id(),
        fx=data.get("fx"),
        fy=data.get("fy"),
    )
    return c


class ConstraintStatus(Enum):
    """Status des Constraint-Systems"""
    UNDER_CONSTRAINED = "under_constrained"   # Noch Freiheitsgrade übrig
    FULLY_CONSTRAINED = "fully_constrained"   # Vollständig bestimmt
    OVER_CONSTRAINED = "over_constrained"     # Mehr Gleichungen als Variablen
    INCONSISTENT = "inconsistent"             # Nicht konvergiert
