"""
CadKernel Modeling - CSG Boolean Operationen
============================================

Union, Subtract und Intersect auf geschlossenen Face-Listen-Meshes über
BSP-Bäume (Laidlaw/Trumbore/Hughes, Variante von csg.js).

Die Baum-Operationen laufen iterativ mit explizitem Stack: Revolve-Meshes
mit vielen Segmenten erzeugen sonst zu tiefe Rekursion.

Verwendung:
    from modeling.csg import boolean_op

    result = boolean_op(prev_mesh, tool_mesh, "subtract")
"""

from typing import Any, Iterator, List, Optional, Sequence, Tuple

from loguru import logger
from shapely.geometry import Polygon as ShapelyPolygon

from config.feature_flags import is_enabled
from config.tolerances import Tolerances
from sketcher.profiles import triangulate
from .geometry_utils import (
    Vec3, _vec_cross, _vec_dot, _vec_lerp, _vec_neg, _vec_normalize, _vec_sub,
    newell_normal,
)
from .mesh import Mesh3D, MeshFace


COPLANAR = 0
FRONT = 1
BACK = 2
SPANNING = 3

BOOLEAN_OPERATIONS = ("union", "add", "subtract", "intersect")


class BooleanOperationError(Exception):
    """Unbekannte Operation oder nicht verarbeitbare Eingabe."""


# ---------------------------------------------------------------------------
# Plane / Polygon
# ---------------------------------------------------------------------------

class Plane:
    """Ebene n·p = w"""

    __slots__ = ("normal", "w")

    def __init__(self, normal: Vec3, w: float):
        self.normal = normal
        self.w = w

    @classmethod
    def from_points(cls, points: Sequence[Vec3]) -> Optional['Plane']:
        """Ebene durch ein Polygon (Newell); None bei degeneriertem Polygon."""
        n = newell_normal(points)
        if n is None:
            return None
        return cls(n, _vec_dot(n, points[0]))

    def clone(self) -> 'Plane':
        return Plane(self.normal, self.w)

    def flip(self):
        self.normal = _vec_neg(self.normal)
        self.w = -self.w

    def split_polygon(self, polygon: 'Polygon', coplanar_front: list, coplanar_back: list,
                      front: list, back: list):
        """
        Sortiert ein Polygon relativ zu dieser Ebene ein.

        Koplanare Polygone landen je nach Normalenrichtung in coplanar_front
        oder coplanar_back, spannende Polygone werden geteilt.
        """
        eps = Tolerances.CSG_EPSILON
        n, w = self.normal, self.w
        polygon_type = 0
        types = []
        for pos in polygon.vertices:
            t = _vec_dot(n, pos) - w
            kind = BACK if t < -eps else (FRONT if t > eps else COPLANAR)
            polygon_type |= kind
            types.append(kind)

        if polygon_type == COPLANAR:
            if _vec_dot(n, polygon.plane.normal) > 0:
                coplanar_front.append(polygon)
            else:
                coplanar_back.append(polygon)
        elif polygon_type == FRONT:
            front.append(polygon)
        elif polygon_type == BACK:
            back.append(polygon)
        else:
            f: List[Vec3] = []
            b: List[Vec3] = []
            verts = polygon.vertices
            count = len(verts)
            for i in range(count):
                j = (i + 1) % count
                ti, tj = types[i], types[j]
                vi, vj = verts[i], verts[j]
                if ti != BACK:
                    f.append(vi)
                if ti != FRONT:
                    b.append(vi)
                if (ti | tj) == SPANNING:
                    t = (w - _vec_dot(n, vi)) / _vec_dot(n, _vec_sub(vj, vi))
                    v = _vec_lerp(vi, vj, t)
                    f.append(v)
                    b.append(v)
            if len(f) >= 3:
                front.append(Polygon(f, polygon.shared, polygon.plane))
            if len(b) >= 3:
                back.append(Polygon(b, polygon.shared, polygon.plane))


class Polygon:
    """Konvexes ebenes Polygon; ``shared`` trägt Flächen-Metadaten (face_type)."""

    __slots__ = ("vertices", "shared", "plane")

    def __init__(self, vertices: List[Vec3], shared: Any = None, plane: Optional[Plane] = None):
        self.vertices = vertices
        self.shared = shared
        self.plane = plane.clone() if plane is not None else Plane.from_points(vertices)

    def clone(self) -> 'Polygon':
        return Polygon(list(self.vertices), self.shared, self.plane)

    def flip(self):
        self.vertices.reverse()
        self.plane.flip()


# ---------------------------------------------------------------------------
# BSP-Knoten
# ---------------------------------------------------------------------------

class Node:
    __slots__ = ("plane", "front", "back", "polygons")

    def __init__(self, polygons: Optional[List[Polygon]] = None):
        self.plane: Optional[Plane] = None
        self.front: Optional[Node] = None
        self.back: Optional[Node] = None
        self.polygons: List[Polygon] = []
        if polygons:
            self.build(polygons)

    def _nodes(self) -> Iterator['Node']:
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.front is not None:
                stack.append(node.front)
            if node.back is not None:
                stack.append(node.back)

    def invert(self):
        """Vertauscht Innen und Außen."""
        for node in self._nodes():
            for p in node.polygons:
                p.flip()
            if node.plane is not None:
                node.plane.flip()
            node.front, node.back = node.back, node.front

    def clip_polygons(self, polygons: List[Polygon]) -> List[Polygon]:
        """Entfernt alle Polygone, die innerhalb dieses Baums liegen."""
        result: List[Polygon] = []
        stack: List[Tuple[Node, List[Polygon]]] = [(self, polygons)]
        while stack:
            node, polys = stack.pop()
            if node.plane is None:
                result.extend(polys)
                continue
            front: List[Polygon] = []
            back: List[Polygon] = []
            for p in polys:
                node.plane.split_polygon(p, front, back, front, back)
            if node.front is not None:
                stack.append((node.front, front))
            else:
                result.extend(front)
            if node.back is not None:
                stack.append((node.back, back))
            # Ohne Back-Kind liegt der Rest im Festkörper und entfällt
        return result

    def clip_to(self, bsp: 'Node'):
        """Entfernt alle Polygone dieses Baums, die innerhalb von bsp liegen."""
        for node in self._nodes():
            node.polygons = bsp.clip_polygons(node.polygons)

    def all_polygons(self) -> List[Polygon]:
        polys: List[Polygon] = []
        for node in self._nodes():
            polys.extend(node.polygons)
        return polys

    def build(self, polygons: List[Polygon]):
        stack: List[Tuple[Node, List[Polygon]]] = [(self, polygons)]
        while stack:
            node, polys = stack.pop()
            if not polys:
                continue
            if node.plane is None:
                node.plane = polys[0].plane.clone()
            front: List[Polygon] = []
            back: List[Polygon] = []
            for p in polys:
                node.plane.split_polygon(p, node.polygons, node.polygons, front, back)
            if front:
                if node.front is None:
                    node.front = Node()
                stack.append((node.front, front))
            if back:
                if node.back is None:
                    node.back = Node()
                stack.append((node.back, back))


# ---------------------------------------------------------------------------
# CSG-Solid
# ---------------------------------------------------------------------------

class CSGSolid:
    def __init__(self, polygons: Optional[List[Polygon]] = None):
        self.polygons: List[Polygon] = polygons or []

    def clone(self) -> 'CSGSolid':
        return CSGSolid([p.clone() for p in self.polygons])

    def union(self, other: 'CSGSolid') -> 'CSGSolid':
        a = Node(self.clone().polygons)
        b = Node(other.clone().polygons)
        a.clip_to(b)
        b.clip_to(a)
        b.invert()
        b.clip_to(a)
        b.invert()
        a.build(b.all_polygons())
        return CSGSolid(a.all_polygons())

    def subtract(self, other: 'CSGSolid') -> 'CSGSolid':
        a = Node(self.clone().polygons)
        b = Node(other.clone().polygons)
        a.invert()
        a.clip_to(b)
        b.clip_to(a)
        b.invert()
        b.clip_to(a)
        b.invert()
        a.build(b.all_polygons())
        a.invert()
        return CSGSolid(a.all_polygons())

    def intersect(self, other: 'CSGSolid') -> 'CSGSolid':
        a = Node(self.clone().polygons)
        b = Node(other.clone().polygons)
        a.invert()
        b.clip_to(a)
        b.invert()
        a.clip_to(b)
        b.clip_to(a)
        a.build(b.all_polygons())
        a.invert()
        return CSGSolid(a.all_polygons())

    # === Konvertierung ===

    @classmethod
    def from_mesh(cls, mesh: Mesh3D) -> 'CSGSolid':
        """
        Mesh → Polygone. Nicht-konvexe Flächen werden trianguliert,
        degenerierte Flächen übersprungen.
        """
        polygons: List[Polygon] = []
        skipped = 0
        for face in mesh.faces:
            if len(face.vertices) < 3:
                continue
            plane = Plane.from_points(face.vertices)
            if plane is None:
                skipped += 1
                continue
            for verts in _convex_pieces(face.vertices, plane.normal):
                poly = Polygon(list(verts), face.face_type, plane)
                polygons.append(poly)
        if skipped:
            logger.debug(f"[CSG] {skipped} degenerierte Flächen übersprungen")
        return cls(polygons)

    def to_mesh(self) -> Mesh3D:
        mesh = Mesh3D()
        for poly in self.polygons:
            if poly.plane is None or len(poly.vertices) < 3:
                continue
            normal = poly.plane.normal
            verts = list(poly.vertices)
            mesh.faces.append(MeshFace(verts, normal, classify_face_type(normal, verts)))
            mesh.vertices.extend(verts)
        mesh.compute_edges()
        return mesh


def _frame_for(normal: Vec3) -> Tuple[Vec3, Vec3]:
    ref = (1.0, 0.0, 0.0) if abs(normal[0]) < 0.9 else (0.0, 1.0, 0.0)
    u = _vec_normalize(_vec_cross(ref, normal))
    v = _vec_cross(normal, u)
    return u, v


def _is_convex(coords: List[Tuple[float, float]]) -> bool:
    """Konvex, wenn die Fläche ihre konvexe Hülle ausfüllt."""
    poly = ShapelyPolygon(coords)
    hull = poly.convex_hull
    return poly.is_valid and hull.area - poly.area <= Tolerances.CSG_EPSILON * max(1.0, hull.area)


def _convex_pieces(vertices: List[Vec3], normal: Vec3) -> List[List[Vec3]]:
    """Konvexe Flächen unverändert, sonst Triangulierung im Flächen-Frame."""
    if len(vertices) == 3:
        return [vertices]
    u, v = _frame_for(normal)
    coords = [(_vec_dot(p, u), _vec_dot(p, v)) for p in vertices]
    if _is_convex(coords):
        return [vertices]
    return [[vertices[i], vertices[j], vertices[k]] for i, j, k in triangulate(coords)]


def classify_face_type(normal: Vec3, vertices: Sequence[Vec3]) -> str:
    """
    Klassifiziert eine Fläche für die Anzeige.

    Returns:
        'planar-horizontal', 'planar-vertical', 'planar', 'cylindrical' oder 'freeform'
    """
    if len(vertices) < 3:
        return "planar"
    d = _vec_dot(normal, vertices[0])
    coplanar = all(abs(_vec_dot(normal, p) - d) <= Tolerances.CSG_EPSILON * 10 for p in vertices)
    if coplanar:
        ax, ay, az = (abs(c) for c in normal)
        if az > 0.99:
            return "planar-horizontal"
        if ax > 0.99 or ay > 0.99:
            return "planar-vertical"
        return "planar"
    if len(vertices) == 4:
        return "cylindrical"
    return "freeform"


# ---------------------------------------------------------------------------
# Öffentliche API
# ---------------------------------------------------------------------------

def boolean_op(mesh_a: Mesh3D, mesh_b: Mesh3D, operation: str) -> Mesh3D:
    """
    Boolean-Operation zweier geschlossener Meshes.

    Args:
        mesh_a: Bestehender Körper
        mesh_b: Werkzeug-Körper
        operation: "union"/"add", "subtract" oder "intersect"

    Raises:
        BooleanOperationError: bei unbekannter Operation
    """
    if operation not in BOOLEAN_OPERATIONS:
        raise BooleanOperationError(f"Unknown boolean operation: {operation}")

    # Leere Operanden ohne BSP-Aufbau
    if mesh_b.is_empty:
        return mesh_a.copy() if operation != "intersect" else Mesh3D()
    if mesh_a.is_empty:
        return mesh_b.copy() if operation in ("union", "add") else Mesh3D()

    a = CSGSolid.from_mesh(mesh_a)
    b = CSGSolid.from_mesh(mesh_b)

    if operation in ("union", "add"):
        result = a.union(b)
    elif operation == "subtract":
        result = a.subtract(b)
    else:
        result = a.intersect(b)

    if is_enabled("csg_debug"):
        logger.debug(f"[CSG] {operation}: {len(a.polygons)} + {len(b.polygons)} → {len(result.polygons)} Polygone")
    return result.to_mesh()


def calculate_mesh_volume(mesh: Mesh3D) -> float:
    return mesh.volume()


def calculate_bounding_box(mesh: Mesh3D) -> dict:
    return mesh.bounding_box().to_dict()
