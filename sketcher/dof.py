"""
CadKernel Sketcher - DOF-Analyse
Klassifiziert Primitive als vollständig bestimmt (nur für die Anzeige)

Pro Punkt werden die gesperrten Achsen ("x", "y") gesammelt. Fixe Punkte
starten mit beiden Achsen; Constraints reichen Sperren weiter, bis sich
nichts mehr ändert. Tangent und Radius tragen nicht bei.
"""

from typing import Dict, Set, List, Any

from loguru import logger

from config.feature_flags import is_enabled
from .geometry import Point2D, Segment2D
from .constraints import ConstraintType


_BOTH = frozenset({"x", "y"})


class DOFAnalyzer:
    """Lock-Propagation über die Constraints einer Scene"""

    @staticmethod
    def compute_locks(scene) -> Dict[int, Set[str]]:
        """Gesperrte Achsen je Punkt-ID"""
        locks: Dict[int, Set[str]] = {p.id: (set(_BOTH) if p.fixed else set()) for p in scene.points}
        relations = DOFAnalyzer._relations(scene)

        changed = True
        rounds = 0
        while changed:
            changed = False
            rounds += 1
            for c in relations:
                if DOFAnalyzer._propagate(c, locks):
                    changed = True

        if is_enabled("solver_debug"):
            logger.debug(f"[DOF] Propagation nach {rounds} Runden stabil")
        return locks

    @staticmethod
    def compute_fully_constrained(scene) -> Set[int]:
        """IDs aller vollständig bestimmten Punkte, Segmente, Kreise und Bögen"""
        locks = DOFAnalyzer.compute_locks(scene)

        def locked(pt: Point2D) -> bool:
            return locks.get(pt.id, set()) >= _BOTH

        result = {p.id for p in scene.points if locked(p)}
        for seg in scene.segments:
            if locked(seg.p1) and locked(seg.p2):
                result.add(seg.id)
        for circle in list(scene.circles) + list(scene.arcs):
            if locked(circle.center):
                result.add(circle.id)
        return result

    @staticmethod
    def _relations(scene) -> List[Any]:
        """Constraints mit aufgelösten Bemaßungen"""
        out = []
        for c in scene.constraints:
            if hasattr(c, "as_constraint"):
                inner = c.as_constraint() if c.is_constraint else None
                if inner is not None:
                    out.append(inner)
            else:
                out.append(c)
        return out

    @staticmethod
    def _share(a: Point2D, b: Point2D, axes, locks) -> bool:
        la = locks.setdefault(a.id, set())
        lb = locks.setdefault(b.id, set())
        changed = False
        for axis in axes:
            if axis in la and axis not in lb:
                lb.add(axis)
                changed = True
            elif axis in lb and axis not in la:
                la.add(axis)
                changed = True
        return changed

    @staticmethod
    def _lock(pt: Point2D, axes, locks) -> bool:
        current = locks.setdefault(pt.id, set())
        missing = set(axes) - current
        current.update(missing)
        return bool(missing)

    @staticmethod
    def _complete_by_distance(a: Point2D, b: Point2D, locks) -> bool:
        """Fester Abstand: ist a fest und b auf einer Achse, ist b bis auf Spiegelung bestimmt."""
        la = locks.setdefault(a.id, set())
        lb = locks.setdefault(b.id, set())
        if la >= _BOTH and len(lb) == 1:
            return DOFAnalyzer._lock(b, _BOTH, locks)
        if lb >= _BOTH and len(la) == 1:
            return DOFAnalyzer._lock(a, _BOTH, locks)
        return False

    @staticmethod
    def _propagate(c, locks: Dict[int, Set[str]]) -> bool:
        ct = c.type
        ents = c.entities

        if ct == ConstraintType.FIXED:
            return DOFAnalyzer._lock(ents[0], _BOTH, locks)

        elif ct == ConstraintType.COINCIDENT:
            return DOFAnalyzer._share(ents[0], ents[1], _BOTH, locks)

        elif ct == ConstraintType.HORIZONTAL:
            return DOFAnalyzer._share(ents[0].p1, ents[0].p2, ("y",), locks)

        elif ct == ConstraintType.VERTICAL:
            return DOFAnalyzer._share(ents[0].p1, ents[0].p2, ("x",), locks)

        elif ct == ConstraintType.DISTANCE_X:
            return DOFAnalyzer._share(ents[0], ents[1], ("x",), locks)

        elif ct == ConstraintType.DISTANCE_Y:
            return DOFAnalyzer._share(ents[0], ents[1], ("y",), locks)

        elif ct == ConstraintType.DISTANCE:
            return DOFAnalyzer._complete_by_distance(ents[0], ents[1], locks)

        elif ct == ConstraintType.LENGTH:
            seg: Segment2D = ents[0]
            return DOFAnalyzer._complete_by_distance(seg.p1, seg.p2, locks)

        elif ct == ConstraintType.MIDPOINT:
            pt, seg = ents
            changed = False
            for axis in ("x", "y"):
                have = [axis in locks.setdefault(p.id, set()) for p in (pt, seg.p1, seg.p2)]
                if sum(have) == 2:
                    target = (pt, seg.p1, seg.p2)[have.index(False)]
                    changed |= DOFAnalyzer._lock(target, (axis,), locks)
            return changed

        elif ct == ConstraintType.POINT_ON_LINE:
            pt, seg = ents
            if not (locks.get(seg.p1.id, set()) >= _BOTH and locks.get(seg.p2.id, set()) >= _BOTH):
                return False
            lp = locks.setdefault(pt.id, set())
            if lp == {"x"} and abs(seg.dx) > 1e-9:
                return DOFAnalyzer._lock(pt, ("y",), locks)
            if lp == {"y"} and abs(seg.dy) > 1e-9:
                return DOFAnalyzer._lock(pt, ("x",), locks)
            return False

        # PARALLEL, PERPENDICULAR, EQUAL_LENGTH, ANGLE, ON_CIRCLE, TANGENT, RADIUS: keine Sperren
        return False
