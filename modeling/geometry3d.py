"""
CadKernel Modeling - Skizzenebenen
Orthonormaler 3D-Rahmen, der 2D-Skizzenkoordinaten in Weltkoordinaten abbildet
"""

from dataclasses import dataclass
from typing import Tuple, Any, Dict, Iterable, Optional

import numpy as np

from config.tolerances import Tolerances


def as_vec3(value: Any) -> np.ndarray:
    """Akzeptiert {x,y,z}-Dict, Sequenz oder ndarray."""
    if isinstance(value, dict):
        return np.array([value.get("x", 0.0), value.get("y", 0.0), value.get("z", 0.0)], dtype=np.float64)
    arr = np.asarray(value, dtype=np.float64).reshape(-1)
    if arr.shape[0] != 3:
        raise ValueError(f"3D-Vektor erwartet, erhalten: {value!r}")
    return arr


def vec_to_dict(v) -> Dict[str, float]:
    return {"x": float(v[0]), "y": float(v[1]), "z": float(v[2])}


def normalize(v: np.ndarray, fallback: Optional[np.ndarray] = None) -> np.ndarray:
    length = float(np.linalg.norm(v))
    if length < Tolerances.EPSILON_NORMAL:
        if fallback is None:
            raise ValueError("Vektor der Länge null kann nicht normiert werden")
        return np.array(fallback, dtype=np.float64)
    return v / length


def _reference_axis(normal: np.ndarray) -> np.ndarray:
    up = np.array([0.0, 0.0, 1.0])
    if abs(float(np.dot(normal, up))) > 0.9:
        up = np.array([1.0, 0.0, 0.0])
    return up


@dataclass(eq=False)
class Plane3D:
    """
    Skizzenebene (origin, normal, x_dir, y_dir).

    Der Konstruktor orthonormalisiert: normal wird normiert, x_dir auf die
    Ebene projiziert, y_dir gegen beide orthogonalisiert. Die Händigkeit
    von y_dir bleibt erhalten (XZ hat y_dir = +Z).
    """
    origin: Any = (0.0, 0.0, 0.0)
    normal: Any = (0.0, 0.0, 1.0)
    x_dir: Any = (1.0, 0.0, 0.0)
    y_dir: Any = None
    name: str = "XY"
    visible: bool = True

    def __post_init__(self):
        self.origin = as_vec3(self.origin)
        n = normalize(as_vec3(self.normal))

        x = as_vec3(self.x_dir) if self.x_dir is not None else _reference_axis(n)
        x = x - np.dot(x, n) * n
        if np.linalg.norm(x) < Tolerances.EPSILON_MATH:
            x = np.cross(_reference_axis(n), n)
        x = normalize(x)

        if self.y_dir is not None:
            y = as_vec3(self.y_dir)
            y = y - np.dot(y, n) * n - np.dot(y, x) * x
            if np.linalg.norm(y) < Tolerances.EPSILON_MATH:
                y = np.cross(n, x)
        else:
            y = np.cross(n, x)
        y = normalize(y)

        self.normal = n
        self.x_dir = x
        self.y_dir = y

    # --- Standard-Ebenen ---

    @classmethod
    def xy(cls, offset: float = 0.0) -> 'Plane3D':
        return cls((0, 0, offset), (0, 0, 1), (1, 0, 0), (0, 1, 0), name="XY")

    @classmethod
    def xz(cls, offset: float = 0.0) -> 'Plane3D':
        return cls((0, offset, 0), (0, 1, 0), (1, 0, 0), (0, 0, 1), name="XZ")

    @classmethod
    def yz(cls, offset: float = 0.0) -> 'Plane3D':
        return cls((offset, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1), name="YZ")

    @classmethod
    def from_offset(cls, base: str, offset: float) -> 'Plane3D':
        """
        Ebene mit Abstand zu einer Standard-Ebene.

        Args:
            base: "XY", "XZ" oder "YZ"
            offset: Abstand entlang der Normalen
        """
        factories = {"XY": cls.xy, "XZ": cls.xz, "YZ": cls.yz}
        if base not in factories:
            raise ValueError(f"Base muss XY, XZ oder YZ sein, nicht {base}")
        plane = factories[base](offset)
        plane.name = f"{base} @ {offset:.1f}"
        return plane

    @classmethod
    def from_face(cls, point, face_normal, offset: float = 0.0) -> 'Plane3D':
        """Ebene auf einer angeklickten Körperfläche (x_dir aus Referenzachse abgeleitet)."""
        n = normalize(as_vec3(face_normal))
        origin = as_vec3(point) + n * offset
        x = np.cross(_reference_axis(n), n)
        return cls(origin, n, x, np.cross(n, normalize(x)), name="Face")

    # --- Abbildung ---

    def to_world(self, u: float, v: float) -> np.ndarray:
        """Skizzenpunkt (u, v) → origin + u·x_dir + v·y_dir"""
        return self.origin + u * self.x_dir + v * self.y_dir

    def to_world_many(self, coords: Iterable[Tuple[float, float]]) -> np.ndarray:
        uv = np.asarray(list(coords), dtype=np.float64).reshape(-1, 2)
        return self.origin + uv[:, :1] * self.x_dir + uv[:, 1:2] * self.y_dir

    def to_local(self, point) -> Tuple[float, float]:
        d = as_vec3(point) - self.origin
        return float(np.dot(d, self.x_dir)), float(np.dot(d, self.y_dir))

    def distance_to(self, point) -> float:
        """Vorzeichenbehafteter Abstand entlang der Normalen"""
        return float(np.dot(as_vec3(point) - self.origin, self.normal))

    def is_orthonormal(self, tol: float = 1e-9) -> bool:
        n, x, y = self.normal, self.x_dir, self.y_dir
        return (abs(np.dot(n, x)) < tol and abs(np.dot(n, y)) < tol and abs(np.dot(x, y)) < tol
                and all(abs(np.linalg.norm(v) - 1.0) < tol for v in (n, x, y)))

    # --- Serialisierung ---

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origin": vec_to_dict(self.origin),
            "normal": vec_to_dict(self.normal),
            "xAxis": vec_to_dict(self.x_dir),
            "yAxis": vec_to_dict(self.y_dir),
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Plane3D':
        if not data:
            return cls.xy()
        return cls(
            origin=data.get("origin", (0, 0, 0)),
            normal=data.get("normal", (0, 0, 1)),
            x_dir=data.get("xAxis", data.get("x_dir")),
            y_dir=data.get("yAxis", data.get("y_dir")),
            name=data.get("name", "Plane"),
        )

    def copy(self) -> 'Plane3D':
        return Plane3D(self.origin.copy(), self.normal.copy(), self.x_dir.copy(), self.y_dir.copy(),
                       name=self.name, visible=self.visible)

    def __repr__(self):
        o = self.origin
        n = self.normal
        return f"Plane3D({self.name}, origin=({o[0]:.2f}, {o[1]:.2f}, {o[2]:.2f}), normal=({n[0]:.2f}, {n[1]:.2f}, {n[2]:.2f}))"
