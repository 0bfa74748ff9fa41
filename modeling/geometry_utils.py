"""
CadKernel Geometry Utilities

Zustandslose Vektor-Helfer auf einfachen (x, y, z)-Tupeln.
Mesh und CSG rechnen mit Tupeln statt numpy-Arrays, weil sie viele
kleine Vektoren erzeugen.
"""

import math
from typing import Any, Iterable, Optional, Sequence, Tuple

from config.tolerances import Tolerances


Vec3 = Tuple[float, float, float]

DEFAULT_NORMAL: Vec3 = (0.0, 0.0, 1.0)


def _vec_len(v: Vec3) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


def _vec_dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def _vec_cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def _vec_add(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def _vec_sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _vec_neg(v: Vec3) -> Vec3:
    return (-v[0], -v[1], -v[2])


def _vec_lerp(a: Vec3, b: Vec3, t: float) -> Vec3:
    return (
        a[0] + (b[0] - a[0]) * t,
        a[1] + (b[1] - a[1]) * t,
        a[2] + (b[2] - a[2]) * t,
    )


def _vec_normalize(v: Vec3, eps: float = 1e-9) -> Optional[Vec3]:
    length = _vec_len(v)
    if length < eps:
        return None
    return (v[0] / length, v[1] / length, v[2] / length)


def _as_vec3(value: Any) -> Optional[Vec3]:
    """{x,y,z}-Dict, Sequenz oder ndarray → Tupel; None bei ungültiger Eingabe."""
    if value is None:
        return None
    if isinstance(value, dict):
        try:
            return (float(value["x"]), float(value["y"]), float(value["z"]))
        except (KeyError, TypeError, ValueError):
            return None
    try:
        if len(value) != 3:
            return None
        return (float(value[0]), float(value[1]), float(value[2]))
    except (TypeError, ValueError):
        return None


def vec_dict(v: Sequence[float]) -> dict:
    return {"x": float(v[0]), "y": float(v[1]), "z": float(v[2])}


def newell_normal(vertices: Sequence[Vec3]) -> Optional[Vec3]:
    """
    Flächennormale nach Newell (robust für nicht-konvexe Polygone).

    Returns:
        Normierte Normale oder None bei degeneriertem Polygon
    """
    nx = ny = nz = 0.0
    count = len(vertices)
    for i in range(count):
        cx, cy, cz = vertices[i]
        nx_, ny_, nz_ = vertices[(i + 1) % count]
        nx += (cy - ny_) * (cz + nz_)
        ny += (cz - nz_) * (cx + nx_)
        nz += (cx - nx_) * (cy + ny_)
    return _vec_normalize((nx, ny, nz), Tolerances.EPSILON_NORMAL)


def face_normal(vertices: Sequence[Vec3]) -> Vec3:
    """Normale einer Fläche; degenerierte Flächen erhalten (0, 0, 1)."""
    if len(vertices) < 3:
        return DEFAULT_NORMAL
    return newell_normal(vertices) or DEFAULT_NORMAL


def polygon_area(vertices: Sequence[Vec3]) -> float:
    """Fläche eines ebenen Polygons (halbe Länge der Newell-Summe)."""
    if len(vertices) < 3:
        return 0.0
    total = (0.0, 0.0, 0.0)
    origin = vertices[0]
    for i in range(1, len(vertices) - 1):
        a = _vec_sub(vertices[i], origin)
        b = _vec_sub(vertices[i + 1], origin)
        total = _vec_add(total, _vec_cross(a, b))
    return 0.5 * _vec_len(total)


def centroid(points: Iterable[Vec3]) -> Vec3:
    sx = sy = sz = 0.0
    n = 0
    for p in points:
        sx += p[0]
        sy += p[1]
        sz += p[2]
        n += 1
    if n == 0:
        return (0.0, 0.0, 0.0)
    return (sx / n, sy / n, sz / n)
