"""
CadKernel Modeling - Mesh3D
===========================

Face-Listen-Geometrie für erzeugte Solids. Keine Topologie: jede Fläche
trägt ihre eigenen Vertex-Koordinaten, die Reihenfolge bestimmt die
Orientierung (CCW von außen gesehen).

Volumen über den Divergenzsatz (Fächer-Triangulierung jeder Fläche),
Bounding-Box über alle Flächen-Vertices.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from .geometry_utils import (
    Vec3, _as_vec3, _vec_cross, _vec_dot, _vec_neg,
    centroid, face_normal, polygon_area, vec_dict,
)


EDGE_KEY_PRECISION = 6


def _edge_key(a: Vec3, b: Vec3) -> Tuple[Tuple[float, ...], Tuple[float, ...]]:
    ka = tuple(round(c, EDGE_KEY_PRECISION) for c in a)
    kb = tuple(round(c, EDGE_KEY_PRECISION) for c in b)
    return (ka, kb) if ka < kb else (kb, ka)


@dataclass(eq=False)
class MeshFace:
    """Ebenes Polygon mit nach außen zeigender Normale."""
    vertices: List[Vec3]
    normal: Optional[Vec3] = None
    face_type: str = "planar"

    def __post_init__(self):
        self.vertices = [tuple(float(c) for c in v) for v in self.vertices]
        if self.normal is None:
            self.normal = face_normal(self.vertices)
        else:
            self.normal = tuple(float(c) for c in self.normal)

    @property
    def area(self) -> float:
        return polygon_area(self.vertices)

    def flipped(self) -> 'MeshFace':
        return MeshFace(list(reversed(self.vertices)), _vec_neg(self.normal), self.face_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vertices": [vec_dict(v) for v in self.vertices],
            "normal": vec_dict(self.normal),
            "faceType": self.face_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MeshFace':
        verts = [_as_vec3(v) for v in data.get("vertices", [])]
        return cls(
            vertices=[v for v in verts if v is not None],
            normal=_as_vec3(data.get("normal")),
            face_type=data.get("faceType", "planar"),
        )


@dataclass
class BoundingBox:
    min: Vec3 = (0.0, 0.0, 0.0)
    max: Vec3 = (0.0, 0.0, 0.0)

    @classmethod
    def from_points(cls, points: Iterable[Vec3]) -> 'BoundingBox':
        pts = list(points)
        if not pts:
            return cls()
        return cls(
            min=(min(p[0] for p in pts), min(p[1] for p in pts), min(p[2] for p in pts)),
            max=(max(p[0] for p in pts), max(p[1] for p in pts), max(p[2] for p in pts)),
        )

    @property
    def extents(self) -> Vec3:
        return (self.max[0] - self.min[0], self.max[1] - self.min[1], self.max[2] - self.min[2])

    @property
    def center(self) -> Vec3:
        return tuple((a + b) * 0.5 for a, b in zip(self.min, self.max))

    def to_dict(self) -> Dict[str, Any]:
        return {"min": vec_dict(self.min), "max": vec_dict(self.max)}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'BoundingBox':
        if not data:
            return cls()
        return cls(min=_as_vec3(data.get("min")) or (0.0, 0.0, 0.0),
                   max=_as_vec3(data.get("max")) or (0.0, 0.0, 0.0))


@dataclass(eq=False)
class Mesh3D:
    """
    Face-Listen-Mesh.

    ``vertices`` hält die Ring-Vertices der Erzeugung (Extrude/Revolve) bzw.
    alle Flächen-Vertices nach einer Boolean-Op, ``edges`` eindeutige
    ungerichtete Kanten. Nur ``faces`` ist für Volumen und AABB maßgeblich.
    """
    vertices: List[Vec3] = field(default_factory=list)
    faces: List[MeshFace] = field(default_factory=list)
    edges: List[Tuple[Vec3, Vec3]] = field(default_factory=list)

    # === Aufbau ===

    def add_vertex(self, v: Sequence[float]) -> Vec3:
        vt = (float(v[0]), float(v[1]), float(v[2]))
        self.vertices.append(vt)
        return vt

    def add_face(self, vertices: Sequence[Sequence[float]], normal: Optional[Vec3] = None,
                 face_type: str = "planar") -> Optional[MeshFace]:
        """Fügt eine Fläche hinzu; weniger als drei Vertices werden ignoriert."""
        if len(vertices) < 3:
            return None
        face = MeshFace(list(vertices), normal, face_type)
        self.faces.append(face)
        return face

    def compute_edges(self) -> List[Tuple[Vec3, Vec3]]:
        """Eindeutige ungerichtete Kanten aller Flächen (Schlüssel auf 6 Stellen gerundet)."""
        seen = set()
        edges = []
        for face in self.faces:
            count = len(face.vertices)
            for i in range(count):
                a = face.vertices[i]
                b = face.vertices[(i + 1) % count]
                key = _edge_key(a, b)
                if key[0] == key[1] or key in seen:
                    continue
                seen.add(key)
                edges.append((a, b))
        self.edges = edges
        return edges

    # === Abfragen ===

    @property
    def is_empty(self) -> bool:
        return not self.faces

    @property
    def face_count(self) -> int:
        return len(self.faces)

    def signed_volume(self) -> float:
        """Divergenzsatz: Summe der Tetraeder (Ursprung, Fächer-Dreieck)."""
        total = 0.0
        for face in self.faces:
            verts = face.vertices
            if len(verts) < 3:
                continue
            v0 = verts[0]
            for i in range(1, len(verts) - 1):
                total += _vec_dot(v0, _vec_cross(verts[i], verts[i + 1]))
        return total / 6.0

    def volume(self) -> float:
        return abs(self.signed_volume())

    def surface_area(self) -> float:
        return sum(f.area for f in self.faces)

    def bounding_box(self) -> BoundingBox:
        return BoundingBox.from_points(v for f in self.faces for v in f.vertices)

    def center_of_mass(self) -> Vec3:
        """Volumen-gewichteter Schwerpunkt; bei Volumen ~0 der Vertex-Mittelpunkt."""
        total = 0.0
        cx = cy = cz = 0.0
        for face in self.faces:
            verts = face.vertices
            v0 = verts[0]
            for i in range(1, len(verts) - 1):
                v1, v2 = verts[i], verts[i + 1]
                vol = _vec_dot(v0, _vec_cross(v1, v2)) / 6.0
                total += vol
                # Schwerpunkt des Tetraeders (0, v0, v1, v2)
                cx += vol * (v0[0] + v1[0] + v2[0]) / 4.0
                cy += vol * (v0[1] + v1[1] + v2[1]) / 4.0
                cz += vol * (v0[2] + v1[2] + v2[2]) / 4.0
        if abs(total) < 1e-12:
            return centroid(v for f in self.faces for v in f.vertices)
        return (cx / total, cy / total, cz / total)

    # === Orientierung ===

    def flip(self) -> 'Mesh3D':
        self.faces = [f.flipped() for f in self.faces]
        return self

    def orient_outward(self) -> 'Mesh3D':
        """Dreht alle Flächen um, wenn das Mesh innen-orientiert ist (negatives Volumen)."""
        if self.signed_volume() < 0:
            logger.debug(f"[Mesh] Orientierung umgekehrt ({len(self.faces)} Flächen)")
            self.flip()
        return self

    def copy(self) -> 'Mesh3D':
        return Mesh3D(
            vertices=list(self.vertices),
            faces=[MeshFace(list(f.vertices), f.normal, f.face_type) for f in self.faces],
            edges=list(self.edges),
        )

    # === Serialisierung ===

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vertices": [vec_dict(v) for v in self.vertices],
            "faces": [f.to_dict() for f in self.faces],
            "edges": [{"start": vec_dict(a), "end": vec_dict(b)} for a, b in self.edges],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Mesh3D':
        mesh = cls()
        if not data:
            return mesh
        for v in data.get("vertices", []):
            vec = _as_vec3(v)
            if vec is not None:
                mesh.vertices.append(vec)
        for fd in data.get("faces", []):
            face = MeshFace.from_dict(fd)
            if len(face.vertices) >= 3:
                mesh.faces.append(face)
        for ed in data.get("edges", []):
            a = _as_vec3(ed.get("start"))
            b = _as_vec3(ed.get("end"))
            if a is not None and b is not None:
                mesh.edges.append((a, b))
        return mesh

    def __repr__(self):
        return f"Mesh3D({len(self.faces)} faces, {len(self.vertices)} vertices)"


def mesh_bounds_match(mesh: Mesh3D, expected_min: Vec3, expected_max: Vec3, tol: float) -> bool:
    """AABB-Vergleich mit Toleranz (Hilfsfunktion für Validierung)."""
    bb = mesh.bounding_box()
    return all(abs(a - b) <= tol for a, b in zip(bb.min + bb.max, tuple(expected_min) + tuple(expected_max)))
