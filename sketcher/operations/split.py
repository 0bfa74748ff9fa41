"""
CadKernel - Split und Collinear-Merge
=====================================

Split teilt ein Segment an einem Parameter in zwei Hälften mit geteiltem
Zwischenpunkt. Merge fasst zwei kollineare Segmente an einem Punkt
wieder zusammen. Richtungs-Constraints wandern jeweils mit.
"""

from typing import List, Optional, Tuple, TYPE_CHECKING

from loguru import logger

from config.tolerances import Tolerances
from sketcher.geometry import Point2D, Segment2D
from sketcher.constraints import Constraint, ConstraintType, ORIENTATION_TYPES
from .base import SketchOperation, OperationResult

if TYPE_CHECKING:
    from sketcher.scene import Scene


def project_parameter(seg: Segment2D, x: float, y: float) -> float:
    """Parameter t der Projektion von (x, y) auf seg, begrenzt auf [0.01, 0.99]"""
    length_sq = seg.dx * seg.dx + seg.dy * seg.dy
    if length_sq < Tolerances.EPSILON_MATH:
        t = 0.5
    else:
        t = ((x - seg.p1.x) * seg.dx + (y - seg.p1.y) * seg.dy) / length_sq
    return clamp_parameter(t)


def clamp_parameter(t: float) -> float:
    return max(Tolerances.TRIM_MIN_T, min(1.0 - Tolerances.TRIM_MIN_T, t))


def _segment_style(seg: Segment2D) -> dict:
    return {
        "layer": seg.layer,
        "color": seg.color,
        "construction": seg.construction,
        "construction_dash": seg.construction_dash,
    }


def _constraints_on_segments(scene: 'Scene', segments: List[Segment2D]) -> List[Constraint]:
    return [c for c in scene.constraints
            if isinstance(c, Constraint) and any(e is s for e in c.entities for s in segments)]


def _retarget(c: Constraint, old: List[Segment2D], new: Segment2D) -> Optional[Constraint]:
    """Kopie von c mit old → new; None, wenn sie sich selbst referenzieren würde."""
    entities = [new if any(e is o for o in old) else e for e in c.entities]
    if sum(1 for e in entities if e is new) > 1:
        return None
    return Constraint(type=c.type, entities=entities, value=c.value,
                      min_value=c.min_value, max_value=c.max_value)


class SplitOperation(SketchOperation):
    """Teilt ein Segment in zwei Hälften."""

    name = "Split"

    def _run(self, seg: Segment2D, t: float = 0.5) -> OperationResult:
        if not self._has_segment(seg):
            return OperationResult.no_target(f"{seg!r} gehört nicht zur Scene")

        t = clamp_parameter(t)
        scene = self.scene
        mx = seg.p1.x + t * seg.dx
        my = seg.p1.y + t * seg.dy

        # Vor dem Entfernen einsammeln, remove_segment verwirft sie
        carried = [c for c in _constraints_on_segments(scene, [seg]) if c.type in ORIENTATION_TYPES]

        mid = scene.add_point(mx, my)
        style = _segment_style(seg)
        first = scene.add_segment_between(seg.p1, mid, **style)
        second = scene.add_segment_between(mid, seg.p2, **style)
        scene.remove_segment(seg)

        for c in carried:
            for half in (first, second):
                dup = _retarget(c, [seg], half)
                if dup is not None:
                    scene.add_constraint(dup)

        logger.debug(f"[Split] {seg!r} bei t={t:.3f}, {len(carried)} Constraints übertragen")
        return OperationResult.ok(f"Segment bei t={t:.3f} geteilt", data=(first, second))


class MergeCollinearOperation(SketchOperation):
    """Fasst zwei kollineare Segmente an einem gemeinsamen Punkt zusammen."""

    name = "MergeCollinear"

    def _run(self, pt: Point2D) -> OperationResult:
        scene = self.scene
        segs = [s for s in scene.segments if s.p1 is pt or s.p2 is pt]
        if len(segs) != 2:
            return OperationResult.no_target("Punkt verbindet nicht genau zwei Segmente")

        sa, sb = segs
        ua, ub = sa.direction, sb.direction
        cross = abs(ua[0] * ub[1] - ua[1] * ub[0])
        if cross > Tolerances.COLLINEAR_CROSS:
            return OperationResult.no_target(f"Nicht kollinear (Kreuzprodukt {cross:.3f})")

        outer_a = sa.other_point(pt)
        outer_b = sb.other_point(pt)
        if outer_a is outer_b:
            return OperationResult.no_target("Segmente bilden eine geschlossene Zweier-Schleife")

        carried = [c for c in _constraints_on_segments(scene, [sa, sb])
                   if c.type in ORIENTATION_TYPES or c.type == ConstraintType.LENGTH]

        merged = scene.add_segment_between(outer_a, outer_b, **_segment_style(sa))
        scene.remove_segment(sa)
        scene.remove_segment(sb)

        seen = set()
        for c in carried:
            if c.id in seen:
                continue
            seen.add(c.id)
            dup = _retarget(c, [sa, sb], merged)
            if dup is not None:
                scene.add_constraint(dup)

        return OperationResult.ok("Kollineare Segmente zusammengefasst", data=merged)


def split_at(scene: 'Scene', seg: Segment2D, t: float = 0.5) -> Optional[Tuple[Segment2D, Segment2D]]:
    """Teilt seg bei Parameter t; liefert die beiden Hälften oder None."""
    return SplitOperation(scene).execute(seg, t).data


def split(scene: 'Scene', seg: Segment2D, x: float, y: float) -> Optional[Tuple[Segment2D, Segment2D]]:
    """Teilt seg an der Projektion von (x, y)."""
    return split_at(scene, seg, project_parameter(seg, x, y))


def merge_collinear_at_point(scene: 'Scene', pt: Point2D) -> Optional[Segment2D]:
    """Liefert das zusammengefasste Segment oder None."""
    return MergeCollinearOperation(scene).execute(pt).data
