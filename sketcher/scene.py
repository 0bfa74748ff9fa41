"""
CadKernel Sketcher - Scene
Besitzt Punkte, Primitive und Constraints; hostet den Solver

Invarianten:
- Jeder Punkt eines Primitivs liegt in ``points``.
- Beim Entfernen eines Primitivs verschwinden seine Punkte genau dann,
  wenn sie von nichts anderem mehr referenziert werden.
- Constraints referenzieren nur Entities, die in der Scene liegen.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Tuple, Iterator, Set, Union
import math

from loguru import logger

from config.feature_flags import get_flag, is_enabled
from config.tolerances import Tolerances
from .geometry import (
    Point2D, Segment2D, Circle2D, Arc2D, Text2D, Shape2D,
    ensure_ids_above,
)
from .constraints import Constraint, ConstraintType, constraint_from_dict
from .dimension import DimensionPrimitive, DimensionType, detect_dimension_type
from .solver import ConstraintSolver, SolverResult


class SceneError(ValueError):
    """Ungültige Mutation einer Scene (fehlendes Primitiv, ungültiger Constraint)."""


class DanglingReferenceError(SceneError):
    """Serialisierter Datensatz verweist auf eine unbekannte ID."""


@dataclass
class Scene:
    """
    2D-Szene mit geteilten Punkten.

    Factories liefern das erzeugte Primitiv und senden keine Events;
    Änderungsbenachrichtigung ist Sache des Aufrufers.
    """
    points: List[Point2D] = field(default_factory=list)
    segments: List[Segment2D] = field(default_factory=list)
    circles: List[Circle2D] = field(default_factory=list)
    arcs: List[Arc2D] = field(default_factory=list)
    texts: List[Text2D] = field(default_factory=list)
    dimensions: List[DimensionPrimitive] = field(default_factory=list)
    constraints: List[Any] = field(default_factory=list)  # Constraint | DimensionPrimitive

    # Letztes Solver-Ergebnis und DOF-Anzeige
    last_result: Optional[SolverResult] = field(default=None, repr=False)
    fully_constrained: Set[int] = field(default_factory=set, repr=False)

    # === Punkte ===

    def add_point(self, x: float, y: float, fixed: bool = False) -> Point2D:
        """Registriert einen freien Punkt"""
        p = Point2D(x, y, fixed=fixed)
        self.points.append(p)
        return p

    def get_or_create_point(self, x: float, y: float, tolerance: float = None) -> Point2D:
        """Existierender Punkt innerhalb der Toleranz oder neuer Punkt"""
        tol = Tolerances.SKETCH_MERGE if tolerance is None else tolerance
        for p in self.points:
            if p.distance_to_xy(x, y) < tol:
                return p
        return self.add_point(x, y)

    def point_by_id(self, pid: int) -> Optional[Point2D]:
        return next((p for p in self.points if p.id == pid), None)

    def primitive_by_id(self, pid: int):
        return next((p for p in self.all_primitives() if p.id == pid), None)

    def _endpoint(self, x: float, y: float, merge: bool) -> Point2D:
        return self.get_or_create_point(x, y) if merge else self.add_point(x, y)

    # === Primitive ===

    def add_segment(self, x1: float, y1: float, x2: float, y2: float, merge: bool = True,
                    layer: str = "0", construction: bool = False, color: Optional[str] = None,
                    construction_dash: str = "dashed", construction_type: str = "finite") -> Segment2D:
        """Fügt eine Strecke hinzu; mit merge werden nahe Endpunkte geteilt."""
        p1 = self._endpoint(x1, y1, merge)
        p2 = self._endpoint(x2, y2, merge)
        if p2 is p1:
            # Degenerierte Eingabe: eigener Endpunkt statt ungültigem Segment
            p2 = self.add_point(x2, y2)
        seg = Segment2D(p1=p1, p2=p2, layer=layer, construction=construction, color=color,
                        construction_dash=construction_dash, construction_type=construction_type)
        self.segments.append(seg)
        return seg

    def add_segment_between(self, p1: Point2D, p2: Point2D, **style) -> Segment2D:
        """Strecke zwischen zwei vorhandenen Punkten"""
        self._require_present([p1, p2], "Segment")
        seg = Segment2D(p1=p1, p2=p2, **style)
        self.segments.append(seg)
        return seg

    def add_polyline(self, coords: List[Tuple[float, float]], closed: bool = False, **opts) -> List[Segment2D]:
        """Kette verbundener Strecken (geschlossen: letzter Punkt zurück zum ersten)"""
        pts = list(coords)
        if closed and len(pts) > 2:
            pts.append(pts[0])
        return [self.add_segment(x1, y1, x2, y2, **opts)
                for (x1, y1), (x2, y2) in zip(pts, pts[1:])]

    def add_rectangle(self, x: float, y: float, width: float, height: float, **opts) -> List[Segment2D]:
        """Achsparalleles Rechteck als vier geteilte Strecken (CCW)"""
        return self.add_polyline([(x, y), (x + width, y), (x + width, y + height), (x, y + height)],
                                 closed=True, **opts)

    def add_circle(self, cx: float, cy: float, radius: float, merge: bool = True, layer: str = "0",
                   construction: bool = False, color: Optional[str] = None,
                   construction_dash: str = "dashed") -> Circle2D:
        center = self._endpoint(cx, cy, merge)
        c = Circle2D(center=center, radius=radius, layer=layer, construction=construction,
                     color=color, construction_dash=construction_dash)
        self.circles.append(c)
        return c

    def add_arc(self, cx: float, cy: float, radius: float, start_angle: float, end_angle: float,
                merge: bool = True, layer: str = "0", construction: bool = False,
                color: Optional[str] = None, construction_dash: str = "dashed") -> Arc2D:
        center = self._endpoint(cx, cy, merge)
        a = Arc2D(center=center, radius=radius, start_angle=start_angle, end_angle=end_angle,
                  layer=layer, construction=construction, color=color, construction_dash=construction_dash)
        self.arcs.append(a)
        return a

    def add_text(self, x: float, y: float, text: str, height: float = 5.0, rotation: float = 0.0,
                 layer: str = "0", color: Optional[str] = None) -> Text2D:
        t = Text2D(x=x, y=y, text=text, height=height, rotation=rotation, layer=layer, color=color)
        self.texts.append(t)
        return t

    def add_dimension(self, source_a=None, source_b=None, dim_type: Union[str, DimensionType, None] = None,
                      is_constraint: bool = False, formula=None, variable_name: Optional[str] = None,
                      display_mode: str = "value", offset: float = 10.0,
                      min_value: Optional[float] = None, max_value: Optional[float] = None,
                      x1: float = 0.0, y1: float = 0.0, x2: float = 0.0, y2: float = 0.0) -> DimensionPrimitive:
        """
        Fügt eine Bemaßung hinzu.

        Mit Quell-Primitiven werden Typ und Mess-Koordinaten erkannt; ohne
        Quellen ist sie eine reine Annotation über (x1, y1)-(x2, y2).
        Mit ``is_constraint`` wird sie zusätzlich an die Constraint-Liste
        gehängt; ohne ``formula`` wird der aktuelle Messwert eingefroren.
        """
        self._require_present([s for s in (source_a, source_b) if s is not None], "Bemaßung")
        dim = DimensionPrimitive(x1=x1, y1=y1, x2=x2, y2=y2, offset=offset,
                                 source_a=source_a, source_b=source_b, formula=formula,
                                 variable_name=variable_name, display_mode=display_mode,
                                 min_value=min_value, max_value=max_value)
        placement = detect_dimension_type(source_a, source_b) if source_a is not None else None
        if placement is not None:
            dim.dim_type = placement.dim_type
            dim.x1, dim.y1, dim.x2, dim.y2 = placement.x1, placement.y1, placement.x2, placement.y2
            dim.angle_start, dim.angle_sweep = placement.angle_start, placement.angle_sweep
        if dim_type is not None:
            dim.dim_type = DimensionType(dim_type) if isinstance(dim_type, str) else dim_type
            dim.sync_from_sources()
        self.dimensions.append(dim)
        if is_constraint:
            self.set_dimension_constraint(dim, True)
        return dim

    def set_dimension_constraint(self, dim: DimensionPrimitive, enabled: bool) -> bool:
        """Schaltet die Constraint-Rolle einer Bemaßung um."""
        if not enabled:
            dim.is_constraint = False
            self.constraints = [c for c in self.constraints if c is not dim]
            return True
        if dim.as_constraint() is None:
            logger.warning(f"[Scene] {dim!r} kann nicht als Constraint wirken")
            return False
        dim.freeze_value()
        dim.is_constraint = True
        if not any(c is dim for c in self.constraints):
            self.constraints.append(dim)
        return True

    # === Iteration ===

    def shapes(self) -> Iterator[Shape2D]:
        """Alle zeichenbaren Primitive (ohne nackte Punkte)"""
        yield from self.segments
        yield from self.circles
        yield from self.arcs
        yield from self.texts
        yield from self.dimensions

    def all_primitives(self) -> Iterator[Any]:
        yield from self.points
        yield from self.shapes()

    def contains(self, prim) -> bool:
        return any(p is prim for p in self.all_primitives())

    def _require_present(self, entities: List[Any], what: str):
        for ent in entities:
            if not self.contains(ent):
                raise SceneError(f"{what}: {ent!r} gehört nicht zur Scene")

    # === Constraints ===

    def add_constraint(self, c: Constraint) -> Constraint:
        """
        Hängt einen Constraint an (ohne zu lösen).

        Raises:
            SceneError: wenn Entities fehlen oder nicht zum Typ passen
        """
        if isinstance(c, DimensionPrimitive):
            if not any(d is c for d in self.dimensions):
                raise SceneError(f"{c!r} gehört nicht zur Scene")
            self.set_dimension_constraint(c, True)
            return c
        problem = c.validation_error()
        if problem:
            raise SceneError(f"Ungültiger Constraint: {problem}")
        self._require_present(c.entities, c.type.name)
        self.constraints.append(c)
        return c

    def remove_constraint(self, c) -> bool:
        before = len(self.constraints)
        self.constraints = [x for x in self.constraints if x is not c]
        if isinstance(c, DimensionPrimitive):
            c.is_constraint = False
        return len(self.constraints) != before

    def constraints_on(self, prim) -> List[Any]:
        """Constraints, die prim direkt oder über einen seiner Punkte betreffen"""
        prim_points = [prim] if isinstance(prim, Point2D) else prim.points()
        result = []
        for c in self.constraints:
            if any(r is prim for r in c.references()):
                result.append(c)
                continue
            pts = c.involved_points()
            if any(p is q for p in prim_points for q in pts):
                result.append(c)
        return result

    def shapes_using_point(self, pt: Point2D) -> List[Shape2D]:
        out: List[Shape2D] = [s for s in self.segments if s.p1 is pt or s.p2 is pt]
        out.extend(c for c in self.circles if c.center is pt)
        out.extend(a for a in self.arcs if a.center is pt)
        return out

    # === Entfernen ===

    def remove_primitive(self, prim) -> bool:
        """Entfernt ein Primitiv beliebigen Typs; idempotent."""
        if isinstance(prim, Point2D):
            return self.remove_point(prim)
        if isinstance(prim, Arc2D):
            return self.remove_arc(prim)
        if isinstance(prim, Segment2D):
            return self.remove_segment(prim)
        if isinstance(prim, Circle2D):
            return self.remove_circle(prim)
        if isinstance(prim, Text2D):
            return self.remove_text(prim)
        if isinstance(prim, DimensionPrimitive):
            return self.remove_dimension(prim)
        return False

    def remove_point(self, pt: Point2D) -> bool:
        """Entfernt einen Punkt samt aller Primitive, die ihn nutzen."""
        if not any(p is pt for p in self.points):
            return False
        users = self.shapes_using_point(pt)
        for shape in users:
            self._detach_shape(shape)
        self.points = [p for p in self.points if p is not pt]
        self.remove_constraints_referencing(users + [pt])
        candidates = [q for s in users for q in s.points() if q is not pt]
        self._clean_orphan_points(candidates)
        return True

    def remove_segment(self, seg: Segment2D) -> bool:
        return self._remove_shape(seg, self.segments)

    def remove_circle(self, circle: Circle2D) -> bool:
        return self._remove_shape(circle, self.circles)

    def remove_arc(self, arc: Arc2D) -> bool:
        return self._remove_shape(arc, self.arcs)

    def remove_text(self, text: Text2D) -> bool:
        before = len(self.texts)
        self.texts = [t for t in self.texts if t is not text]
        return len(self.texts) != before

    def remove_dimension(self, dim: DimensionPrimitive) -> bool:
        before = len(self.dimensions)
        self.dimensions = [d for d in self.dimensions if d is not dim]
        self.constraints = [c for c in self.constraints if c is not dim]
        return len(self.dimensions) != before

    def _remove_shape(self, shape: Shape2D, container: List) -> bool:
        if not any(s is shape for s in container):
            return False
        self._detach_shape(shape)
        self.remove_constraints_referencing([shape])
        self._clean_orphan_points(shape.points())
        return True

    def _detach_shape(self, shape: Shape2D):
        if isinstance(shape, Arc2D):
            self.arcs = [a for a in self.arcs if a is not shape]
        elif isinstance(shape, Segment2D):
            self.segments = [s for s in self.segments if s is not shape]
        elif isinstance(shape, Circle2D):
            self.circles = [c for c in self.circles if c is not shape]

    def remove_constraints_referencing(self, removed: List[Any]):
        """Entfernt Constraints auf entfernte Entities; Bemaßungen verlieren ihre Quellen."""
        removed_ids = {id(r) for r in removed}
        for dim in self.dimensions:
            if any(id(s) in removed_ids for s in dim.sources()):
                if dim.is_constraint:
                    logger.debug(f"[Scene] {dim!r} verliert Quelle, Constraint-Rolle entfällt")
                dim.is_constraint = False
                dim.source_a = None
                dim.source_b = None
        kept = []
        for c in self.constraints:
            if isinstance(c, DimensionPrimitive):
                if c.is_constraint:
                    kept.append(c)
                continue
            if any(id(e) in removed_ids for e in c.entities):
                continue
            kept.append(c)
        self.constraints = kept

    def _referenced_point_ids(self) -> Set[int]:
        used: Set[int] = set()
        for shape in self.shapes():
            used.update(id(p) for p in shape.points())
        for c in self.constraints:
            used.update(id(e) for e in c.references() if isinstance(e, Point2D))
        for dim in self.dimensions:
            used.update(id(s) for s in dim.sources() if isinstance(s, Point2D))
        return used

    def _clean_orphan_points(self, candidates: List[Point2D]):
        """Entfernt Kandidaten-Punkte, die nichts mehr referenziert."""
        used = self._referenced_point_ids()
        orphan_ids = {id(p) for p in candidates if id(p) not in used}
        if orphan_ids:
            self.points = [p for p in self.points if id(p) not in orphan_ids]

    # === Suche ===

    def find_closest_point(self, x: float, y: float, tolerance: float) -> Optional[Point2D]:
        """Nächster Punkt strikt innerhalb tolerance; bei Gleichstand kleinste ID"""
        best, best_key = None, None
        for p in self.points:
            d = p.distance_to_xy(x, y)
            if d < tolerance:
                key = (d, p.id)
                if best_key is None or key < best_key:
                    best, best_key = p, key
        return best

    def find_closest_shape(self, x: float, y: float, tolerance: float) -> Optional[Shape2D]:
        """Nächstes sichtbares Primitiv strikt innerhalb tolerance; bei Gleichstand kleinste ID"""
        best, best_key = None, None
        for s in self.shapes():
            if not s.visible:
                continue
            d = s.distance_to(x, y)
            if d < tolerance:
                key = (d, s.id)
                if best_key is None or key < best_key:
                    best, best_key = s, key
        return best

    def get_bounds(self) -> Tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y) aller Primitive; leer: ±10"""
        min_x = min_y = math.inf
        max_x = max_y = -math.inf
        for s in self.shapes():
            bx0, by0, bx1, by1 = s.get_bounds()
            min_x, min_y = min(min_x, bx0), min(min_y, by0)
            max_x, max_y = max(max_x, bx1), max(max_y, by1)
        for p in self.points:
            min_x, min_y = min(min_x, p.x), min(min_y, p.y)
            max_x, max_y = max(max_x, p.x), max(max_y, p.y)
        if not math.isfinite(min_x):
            return (-10.0, -10.0, 10.0, 10.0)
        return (min_x, min_y, max_x, max_y)

    def clear(self):
        self.points = []
        self.segments = []
        self.circles = []
        self.arcs = []
        self.texts = []
        self.dimensions = []
        self.constraints = []
        self.last_result = None
        self.fully_constrained = set()

    # === Solver ===

    def _make_solver(self):
        backend = get_flag("solver_backend", "relaxation")
        if backend == "scipy":
            from .solver_scipy import ScipyConstraintSolver
            return ScipyConstraintSolver()
        return ConstraintSolver()

    def solve(self, max_iter: Optional[int] = None) -> SolverResult:
        """Löst alle Constraints (synchron); aktualisiert danach die Bemaßungen."""
        _, _, dof = self.calculate_dof()
        result = self._make_solver().solve(self.constraints, max_iter=max_iter, dof=dof)
        for dim in self.dimensions:
            if dim.source_a is not None:
                dim.sync_from_sources()
        self.last_result = result
        if is_enabled("dof_analysis"):
            from .dof import DOFAnalyzer
            self.fully_constrained = DOFAnalyzer.compute_fully_constrained(self)
        return result

    @property
    def is_converged(self) -> bool:
        return self.last_result is not None and self.last_result.success

    def calculate_dof(self) -> Tuple[int, int, int]:
        """
        Freiheitsgrade der Scene.

        Returns:
            (Variablen, Constraint-Gleichungen, DOF) mit 2 Variablen je freiem
            Punkt und 1 je Radius; FIXED zählt nicht als Gleichung
        """
        n_vars = sum(2 for p in self.points if not p.fixed)
        n_vars += len(self.circles) + len(self.arcs)
        n_eq = 0
        for c in self.constraints:
            if isinstance(c, Constraint) and c.type == ConstraintType.FIXED:
                continue
            n_eq += len(c.residuals())
        return n_vars, n_eq, max(0, n_vars - n_eq)

    # === Serialisierung ===

    def to_dict(self, include_variables: bool = True) -> Dict[str, Any]:
        """Record mit ganzzahligen ID-Referenzen"""
        data = {
            "points": [p.to_dict() for p in self.points],
            "segments": [s.to_dict() for s in self.segments],
            "circles": [c.to_dict() for c in self.circles],
            "arcs": [a.to_dict() for a in self.arcs],
            "texts": [t.to_dict() for t in self.texts],
            "dimensions": [d.to_dict() for d in self.dimensions],
            # Bemaßungs-Constraints stecken in dimensions[], die Reihenfolge in constraintOrder
            "constraints": [c.to_dict() for c in self.constraints if not isinstance(c, DimensionPrimitive)],
            "constraintOrder": [c.id for c in self.constraints],
        }
        if include_variables:
            from core.variables import get_variables
            data["variables"] = get_variables().to_dict()
        return data

    serialize = to_dict

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Scene':
        """
        Baut eine Scene in einem Durchgang aus einem Record.

        Raises:
            DanglingReferenceError: wenn ein Datensatz auf eine unbekannte ID verweist
        """
        scene = cls()
        by_id: Dict[int, Any] = {}
        max_id = 0

        def register(obj):
            nonlocal max_id
            by_id[obj.id] = obj
            max_id = max(max_id, obj.id)
            return obj

        def resolve(ref, owner: str):
            if ref not in by_id:
                raise DanglingReferenceError(f"{owner}: Referenz auf unbekannte ID {ref}")
            return by_id[ref]

        def resolve_point(ref, owner: str) -> Point2D:
            obj = resolve(ref, owner)
            if not isinstance(obj, Point2D):
                raise DanglingReferenceError(f"{owner}: ID {ref} ist kein Punkt")
            return obj

        for pd in data.get("points", []):
            scene.points.append(register(Point2D(pd["x"], pd["y"], fixed=pd.get("fixed", False), id=int(pd["id"]))))

        for sd in data.get("segments", []):
            owner = f"Segment {sd.get('id')}"
            seg = Segment2D(id=int(sd["id"]), p1=resolve_point(sd["p1"], owner), p2=resolve_point(sd["p2"], owner))
            seg.apply_style(sd)
            scene.segments.append(register(seg))

        for cd in data.get("circles", []):
            circle = Circle2D(id=int(cd["id"]), center=resolve_point(cd["center"], f"Circle {cd.get('id')}"),
                              radius=cd["radius"])
            circle.apply_style(cd)
            scene.circles.append(register(circle))

        for ad in data.get("arcs", []):
            arc = Arc2D(id=int(ad["id"]), center=resolve_point(ad["center"], f"Arc {ad.get('id')}"),
                        radius=ad["radius"], start_angle=ad.get("startAngle", 0.0),
                        end_angle=ad.get("endAngle", 0.0))
            arc.apply_style(ad)
            scene.arcs.append(register(arc))

        for td in data.get("texts", []):
            text = Text2D(id=int(td["id"]), x=td.get("x", 0.0), y=td.get("y", 0.0), text=td.get("text", ""),
                          height=td.get("height", 5.0), rotation=td.get("rotation", 0.0))
            text.apply_style(td)
            scene.texts.append(register(text))

        for cd in data.get("constraints", []):
            owner = f"Constraint {cd.get('id')} ({cd.get('type')})"
            c = constraint_from_dict(cd, lambda ref, _o=owner: resolve(ref, _o))
            problem = c.validation_error()
            if problem:
                raise DanglingReferenceError(f"{owner}: {problem}")
            max_id = max(max_id, c.id)
            scene.constraints.append(c)

        if "variables" in data:
            from core.variables import get_variables
            get_variables().from_dict(data["variables"])

        for dd in data.get("dimensions", []):
            owner = f"Dimension {dd.get('id')}"
            dim = DimensionPrimitive(
                id=int(dd["id"]),
                x1=dd.get("x1", 0.0), y1=dd.get("y1", 0.0), x2=dd.get("x2", 0.0), y2=dd.get("y2", 0.0),
                offset=dd.get("offset", 10.0),
                dim_type=dd.get("dimType", "distance"),
                is_constraint=bool(dd.get("isConstraint", False)),
                display_mode=dd.get("displayMode", "value"),
                formula=dd.get("formula"),
                variable_name=dd.get("variableName"),
                min_value=dd.get("min"),
                max_value=dd.get("max"),
                angle_start=dd.get("angleStart"),
                angle_sweep=dd.get("angleSweep"),
            )
            dim.apply_style(dd)
            if dd.get("sourceAId") is not None:
                dim.source_a = resolve(dd["sourceAId"], owner)
            if dd.get("sourceBId") is not None:
                dim.source_b = resolve(dd["sourceBId"], owner)
            scene.dimensions.append(register(dim))
            if dim.is_constraint and dim.source_a is not None and dim.as_constraint() is not None:
                scene.constraints.append(dim)
            else:
                dim.is_constraint = False

        # Einfügereihenfolge entscheidet bei Überbestimmung
        order = {cid: i for i, cid in enumerate(data.get("constraintOrder", []))}
        if order:
            scene.constraints.sort(key=lambda c: order.get(c.id, len(order)))

        ensure_ids_above(max_id)
        return scene

    deserialize = from_dict

    def __repr__(self):
        return (f"Scene({len(self.points)} Punkte, {len(self.segments)} Segmente, {len(self.circles)} Kreise, "
                f"{len(self.arcs)} Bögen, {len(self.constraints)} Constraints)")
