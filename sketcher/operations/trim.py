"""
CadKernel - Trim und Verschieben
================================

Trim kürzt ein Segment auf den Projektionspunkt einer Klick-Position und
verschmilzt danach kollineare Nachbarn. Verschieben setzt Punkte/Primitive
um und lässt den Solver die Constraints nachziehen.
"""

from typing import Optional, TYPE_CHECKING

from loguru import logger

from sketcher.geometry import Point2D, Segment2D
from .base import SketchOperation, OperationResult
from .split import project_parameter, merge_collinear_at_point

if TYPE_CHECKING:
    from sketcher.scene import Scene


class TrimOperation(SketchOperation):
    """
    Kürzt ein Segment.

    Die Seite näher an (keep_x, keep_y) bleibt erhalten; ohne Keep-Punkt
    bleibt die p1-Seite. Der wegfallende Endpunkt wird auf den Schnitt
    verschoben, nicht gelöscht.
    """

    name = "Trim"

    def _run(self, seg: Segment2D, x: float, y: float,
             keep_x: Optional[float] = None, keep_y: Optional[float] = None) -> OperationResult:
        if not self._has_segment(seg):
            return OperationResult.no_target(f"{seg!r} gehört nicht zur Scene")

        t = project_parameter(seg, x, y)
        cut_x = seg.p1.x + t * seg.dx
        cut_y = seg.p1.y + t * seg.dy

        if keep_x is None or keep_y is None:
            keep_p1 = True
        else:
            keep_p1 = seg.p1.distance_to_xy(keep_x, keep_y) < seg.p2.distance_to_xy(keep_x, keep_y)

        moved = seg.p2 if keep_p1 else seg.p1
        if moved.fixed:
            return OperationResult.error(f"{moved!r} ist fixiert und kann nicht gekürzt werden")

        moved.move_to(cut_x, cut_y)
        solve_result = self.scene.solve()
        merged = merge_collinear_at_point(self.scene, moved)
        if merged is not None:
            logger.debug(f"[Trim] Kollinearer Nachbar zu {merged!r} zusammengefasst")

        data = {"moved": moved, "merged": merged, "t": t}
        if not solve_result.success:
            return OperationResult.warning("Trim ausgeführt, Solver nicht konvergiert", data=data)
        return OperationResult.ok(f"Segment bei t={t:.3f} gekürzt", data=data)


class MovePointOperation(SketchOperation):
    """Setzt einen freien Punkt und löst neu."""

    name = "MovePoint"

    def _run(self, pt: Point2D, x: float, y: float) -> OperationResult:
        if pt.fixed:
            return OperationResult.no_target(f"{pt!r} ist fixiert", data=pt)
        pt.move_to(x, y)
        result = self.scene.solve()
        if not result.success:
            return OperationResult.warning(result.message, data=pt)
        return OperationResult.ok(data=pt)


class MoveShapeOperation(SketchOperation):
    """Verschiebt alle freien Punkte eines Primitivs um (dx, dy) und löst neu."""

    name = "MoveShape"

    def _run(self, shape, dx: float, dy: float) -> OperationResult:
        moved = 0
        for p in shape.points():
            if not p.fixed:
                p.move_to(p.x + dx, p.y + dy)
                moved += 1
        if moved == 0:
            return OperationResult.no_target("Keine freien Punkte", data=shape)
        result = self.scene.solve()
        if not result.success:
            return OperationResult.warning(result.message, data=shape)
        return OperationResult.ok(data=shape)


def trim(scene: 'Scene', seg: Segment2D, x: float, y: float,
         keep_x: Optional[float] = None, keep_y: Optional[float] = None) -> OperationResult:
    return TrimOperation(scene).execute(seg, x, y, keep_x, keep_y)


def move_point(scene: 'Scene', pt: Point2D, x: float, y: float) -> OperationResult:
    return MovePointOperation(scene).execute(pt, x, y)


def move_shape(scene: 'Scene', shape, dx: float, dy: float) -> OperationResult:
    return MoveShapeOperation(scene).execute(shape, dx, dy)
