"""
CadKernel Sketcher - Profil-Extraktion
Geschlossene Konturen aus Kreisen und verketteten Segmenten/Bögen

Kreise ergeben je ein 32-Punkt-Profil (CCW). Segmente und Bögen werden über
geteilte Endpunkte verkettet; an Verzweigungen gewinnt die Kante mit der
kleinsten ID. Bögen besitzen keine eigenen Endpunkt-Objekte, ihre Enden
werden innerhalb der Merge-Toleranz an Segment-Endpunkte gebunden.
Konstruktionsgeometrie erzeugt keine Profile.

Fläche, Orientierung und Triangulierung laufen über Shapely.
"""

from dataclasses import dataclass, field
from typing import List, Tuple, Optional, Iterable, Union
import math

import shapely
from shapely.errors import GEOSException
from shapely.geometry import LinearRing, Polygon as ShapelyPolygon
from shapely.geometry.polygon import orient
from loguru import logger

from config.tolerances import Tolerances
from .geometry import Point2D, Segment2D, Circle2D, Arc2D


Coord = Tuple[float, float]


@dataclass(eq=False)
class Profile:
    """
    Geordnete Punktkette einer Kontur.

    Bei ``closed`` ist der letzte Eintrag dasselbe Point-Objekt wie der erste.
    Abgetastete Bogenpunkte sind eigene Point2D-Objekte außerhalb der Scene.
    """
    points: List[Point2D] = field(default_factory=list)
    closed: bool = False
    segments: List[Segment2D] = field(default_factory=list)
    arcs: List[Arc2D] = field(default_factory=list)
    source_id: Optional[int] = None

    def coords(self) -> List[Coord]:
        """Koordinaten ohne die wiederholte Schließung"""
        pts = self.points[:-1] if self.closed and len(self.points) > 1 else self.points
        return [(p.x, p.y) for p in pts]

    @property
    def signed_area(self) -> float:
        return signed_area(self.coords())

    @property
    def is_ccw(self) -> bool:
        return self.signed_area > 0

    def to_polygon(self) -> Optional[ShapelyPolygon]:
        """Shapely-Polygon der Kontur (None bei offenen/zu kurzen Ketten)"""
        coords = self.coords()
        if not self.closed or len(coords) < 3:
            return None
        return ShapelyPolygon(coords)

    def to_dict(self) -> dict:
        return {
            "points": [{"x": x, "y": y} for x, y in self.coords()],
            "closed": self.closed,
        }

    def __repr__(self):
        state = "geschlossen" if self.closed else "offen"
        return f"Profile({len(self.coords())} Punkte, {state})"


def signed_area(coords: List[Coord]) -> float:
    """Polygonfläche; positiv für CCW"""
    if len(coords) < 3:
        return 0.0
    ring = LinearRing(coords)
    area = ShapelyPolygon(ring).area
    return area if ring.is_ccw else -area


def ensure_ccw(coords: List[Coord]) -> List[Coord]:
    """Gibt die Punkte CCW orientiert zurück (Startpunkt bleibt erhalten)."""
    if len(coords) < 3:
        return list(coords)
    oriented = orient(ShapelyPolygon(coords), sign=1.0)
    return [(x, y) for x, y in oriented.exterior.coords[:-1]]


def triangulate(coords: List[Coord]) -> List[Tuple[int, int, int]]:
    """
    Constrained-Delaunay-Triangulierung eines einfachen Polygons.

    Args:
        coords: Polygon-Punkte (beliebige Orientierung, ohne Schließung)

    Returns:
        Index-Tripel in CCW-Orientierung bezogen auf ``coords``
    """
    if len(coords) < 3:
        return []
    lookup = {}
    for i, (x, y) in enumerate(coords):
        lookup.setdefault((float(x), float(y)), i)

    try:
        pieces = shapely.constrained_delaunay_triangles(ShapelyPolygon(coords))
    except GEOSException as e:
        # Selbstüberschneidende Kontur: Fächer um den ersten Punkt
        logger.warning(f"[Profile] Triangulierung fehlgeschlagen ({e}), Fächer-Fallback")
        return _fan(coords)

    triangles: List[Tuple[int, int, int]] = []
    for tri in pieces.geoms:
        if tri.area <= Tolerances.EPSILON_MATH:
            continue
        ring = orient(tri, sign=1.0).exterior.coords[:3]
        idx = tuple(lookup.get((x, y)) for x, y in ring)
        if None in idx or len(set(idx)) < 3:
            logger.debug(f"[Profile] Dreieck ohne Eckpunkt-Zuordnung verworfen: {list(ring)}")
            continue
        triangles.append(idx)
    return triangles


def _fan(coords: List[Coord]) -> List[Tuple[int, int, int]]:
    indices = list(range(len(coords)))
    if signed_area(coords) < 0:
        indices.reverse()
    return [(indices[0], indices[k], indices[k + 1]) for k in range(1, len(indices) - 1)]


def circle_profile(circle: Circle2D, segments: int = None) -> Profile:
    """Kreis als geschlossenes CCW-Polygon mit frisch abgetasteten Punkten"""
    n = segments or Tolerances.PROFILE_CIRCLE_SEGMENTS
    pts = []
    for i in range(n):
        angle = (i / n) * math.pi * 2
        x, y = circle.point_at_angle(angle)
        pts.append(Point2D(x, y))
    if pts:
        pts.append(pts[0])
    return Profile(points=pts, closed=True, source_id=circle.id)


@dataclass(eq=False)
class _ArcEdge:
    """Bogen als Kettenkante zwischen zwei aufgelösten Endpunkten"""
    arc: Arc2D
    p1: Point2D
    p2: Point2D

    @property
    def id(self) -> int:
        return self.arc.id

    def other_point(self, pt: Point2D) -> Optional[Point2D]:
        if self.p1 is pt:
            return self.p2
        if self.p2 is pt:
            return self.p1
        return None

    def interior(self, start: Point2D, segments: int = None) -> List[Point2D]:
        """Abgetastete Zwischenpunkte in Laufrichtung ab ``start``"""
        n = segments or Tolerances.ARC_SKETCH_SEGMENTS
        pts = [Point2D(*self.arc.point_at_parameter(k / n)) for k in range(1, n)]
        if start is self.p2:
            pts.reverse()
        return pts


Edge = Union[Segment2D, _ArcEdge]


def _arc_edges(arcs: List[Arc2D], segments: List[Segment2D]) -> List[_ArcEdge]:
    """Bindet Bogenenden an Segment-Endpunkte oder gemeinsame Knoten."""
    nodes: List[Point2D] = []
    for seg in segments:
        for pt in (seg.p1, seg.p2):
            if not any(pt is n for n in nodes):
                nodes.append(pt)

    def resolve(x: float, y: float) -> Point2D:
        for node in nodes:
            if math.hypot(node.x - x, node.y - y) <= Tolerances.SKETCH_MERGE:
                return node
        node = Point2D(x, y)
        nodes.append(node)
        return node

    edges = []
    for arc in arcs:
        p1 = resolve(*arc.start_point)
        p2 = resolve(*arc.end_point)
        edges.append(_ArcEdge(arc, p1, p2))
    return edges


def _trace_chain(start: Edge, candidates: List[Edge], visited: set) -> Profile:
    """Verkettet Kanten ab ``start``; ``candidates`` ist nach ID sortiert."""
    visited.add(start.id)
    chain = [start]
    start_point = start.p1
    points = [start.p1]
    if isinstance(start, _ArcEdge):
        points.extend(start.interior(start.p1))
    points.append(start.p2)
    current_end = start.p2

    while True:
        if current_end is start_point and len(chain) > 1:
            return _profile(points, True, chain, start.id)
        nxt = next((e for e in candidates
                    if e.id not in visited and (e.p1 is current_end or e.p2 is current_end)), None)
        if nxt is None:
            break
        visited.add(nxt.id)
        chain.append(nxt)
        if isinstance(nxt, _ArcEdge):
            points.extend(nxt.interior(current_end))
        current_end = nxt.other_point(current_end)
        points.append(current_end)

    return _profile(points, False, chain, start.id)


def _profile(points: List[Point2D], closed: bool, chain: List[Edge], source_id: int) -> Profile:
    return Profile(
        points=points,
        closed=closed,
        segments=[e for e in chain if isinstance(e, Segment2D)],
        arcs=[e.arc for e in chain if isinstance(e, _ArcEdge)],
        source_id=source_id,
    )


def extract_profiles(scene, include_open: bool = True) -> List[Profile]:
    """
    Extrahiert Profile aus einer Scene.

    Args:
        scene: Scene oder Objekt mit ``circles``/``segments`` (``arcs`` optional)
        include_open: offene Ketten mit ``closed=False`` mitliefern

    Returns:
        Kreisprofile zuerst (Vollbögen eingeschlossen), danach Ketten
        aus Segmenten und Bögen in ID-Reihenfolge
    """
    profiles: List[Profile] = []

    for circle in scene.circles:
        if circle.construction:
            continue
        profiles.append(circle_profile(circle))

    arcs = [a for a in getattr(scene, "arcs", []) if not a.construction]
    partial_arcs = []
    for arc in arcs:
        if arc.sweep_angle == 0.0:
            profiles.append(circle_profile(arc))
        else:
            partial_arcs.append(arc)

    segments = [s for s in scene.segments if not s.construction]
    candidates: List[Edge] = sorted(segments + _arc_edges(partial_arcs, segments), key=lambda e: e.id)
    visited: set = set()
    for edge in candidates:
        if edge.id in visited:
            continue
        profile = _trace_chain(edge, candidates, visited)
        if profile.closed or include_open:
            profiles.append(profile)

    return profiles


def closed_profiles(profiles: Iterable[Profile]) -> List[Profile]:
    return [p for p in profiles if p.closed]
