"""
CadKernel - Punkt-Topologie
===========================

Union verschmilzt zwei Punkte zu einem, Disconnect gibt jedem weiteren
Primitiv an einem geteilten Punkt eine eigene Kopie.
"""

from typing import List, TYPE_CHECKING

from loguru import logger

from config.tolerances import Tolerances
from sketcher.geometry import Point2D, Segment2D
from sketcher.constraints import Constraint, ConstraintType
from .base import SketchOperation, OperationResult

if TYPE_CHECKING:
    from sketcher.scene import Scene


class UnionOperation(SketchOperation):
    """Verschmilzt Punkt b in Punkt a."""

    name = "Union"

    def can_execute(self, a: Point2D, b: Point2D) -> bool:
        return a is not b and self._has_point(a) and self._has_point(b)

    def _run(self, a: Point2D, b: Point2D) -> OperationResult:
        if a is b:
            return OperationResult.no_target("Punkte sind bereits identisch", data=a)
        if not self._has_point(b):
            return OperationResult.no_target(f"{b!r} gehört nicht zur Scene", data=a)
        if not self._has_point(a):
            return OperationResult.error(f"{a!r} gehört nicht zur Scene")

        if a.fixed and b.fixed and a.distance_to(b) > Tolerances.SKETCH_MERGE:
            return OperationResult.error(f"{a!r} und {b!r} sind beide fixiert und liegen auseinander")

        if not a.fixed and not b.fixed:
            a.move_to((a.x + b.x) / 2, (a.y + b.y) / 2)
        elif not a.fixed:
            a.move_to(b.x, b.y)
            a.fixed = True

        scene = self.scene
        collapsed: List[Segment2D] = []
        for shape in scene.shapes_using_point(b):
            shape.replace_point(b, a)
            if isinstance(shape, Segment2D) and shape.p1 is shape.p2:
                collapsed.append(shape)

        for c in scene.constraints:
            if isinstance(c, Constraint):
                c.entities = [a if e is b else e for e in c.entities]
        scene.constraints = [c for c in scene.constraints if not _is_self_coincident(c)]
        for dim in scene.dimensions:
            if dim.source_a is b:
                dim.source_a = a
            if dim.source_b is b:
                dim.source_b = a

        scene.points = [p for p in scene.points if p is not b]

        # Segment zwischen a und b ist jetzt entartet
        for seg in collapsed:
            scene.segments = [s for s in scene.segments if s is not seg]
            scene.remove_constraints_referencing([seg])
        if collapsed:
            logger.debug(f"[Union] {len(collapsed)} entartete Segmente entfernt")

        return OperationResult.ok(f"{b!r} in {a!r} verschmolzen", data=a)


def _is_self_coincident(c) -> bool:
    return (isinstance(c, Constraint) and c.type == ConstraintType.COINCIDENT
            and c.entities[0] is c.entities[1])


class DisconnectOperation(SketchOperation):
    """Trennt einen geteilten Punkt: das erste Primitiv behält ihn, alle anderen bekommen Klone."""

    name = "Disconnect"

    def _run(self, pt: Point2D) -> OperationResult:
        shapes = self.scene.shapes_using_point(pt)
        if len(shapes) <= 1:
            return OperationResult.no_target("Punkt wird nicht geteilt", data=[])

        clones = []
        for shape in shapes[1:]:
            clone = self.scene.add_point(pt.x, pt.y)
            shape.replace_point(pt, clone)
            clones.append(clone)

        self.scene.constraints = [
            c for c in self.scene.constraints
            if not (isinstance(c, Constraint) and c.type == ConstraintType.COINCIDENT
                    and any(e is pt for e in c.entities))
        ]
        return OperationResult.ok(f"{len(clones)} Klone von {pt!r}", data=clones)


def union(scene: 'Scene', a: Point2D, b: Point2D) -> Point2D:
    """Verschmilzt b in a; liefert den verbleibenden Punkt."""
    UnionOperation(scene).execute(a, b)
    return a


def disconnect(scene: 'Scene', pt: Point2D) -> List[Point2D]:
    """Trennt pt; liefert die neuen Klone (leer, wenn nichts zu trennen war)."""
    result = DisconnectOperation(scene).execute(pt)
    return result.data or []
