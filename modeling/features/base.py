"""
CadKernel Modeling - Feature-Basisklassen

Feature (gemeinsame Felder, Abhängigkeiten, Serialisierung), SolidFeature
(Sketch-Eingabe, vorheriger Solid, Boolean gegen den Baum) und der
prozessweite Zähler für feature_N-IDs.
"""

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from config.feature_flags import is_enabled
from config.tolerances import Tolerances
from modeling.csg import boolean_op
from modeling.mesh import Mesh3D
from modeling.result_types import BooleanResult, FeatureResult, ResultStatus

if TYPE_CHECKING:
    from modeling.feature_tree import FeatureTree


class FeatureType(Enum):
    SKETCH = "sketch"
    EXTRUDE = "extrude"
    REVOLVE = "revolve"


SOLID_OPERATIONS = ("new", "add", "subtract", "intersect")


class FeatureExecutionError(RuntimeError):
    """Fehler beim Ausführen eines Features; der FeatureTree fängt ihn ab."""


# Prozessweiter Zähler für feature_N
_feature_counter = itertools.count(1)


def next_feature_id() -> str:
    return f"feature_{next(_feature_counter)}"


def reset_feature_ids(start: int = 1):
    """Setzt den Feature-ID-Zähler zurück (Tests)."""
    global _feature_counter
    _feature_counter = itertools.count(start)


def ensure_feature_ids_above(feature_id: str):
    """Hebt den Zähler über eine geladene ID, damit neue Features nicht kollidieren."""
    global _feature_counter
    try:
        number = int(str(feature_id).rsplit("_", 1)[-1])
    except ValueError:
        return
    upcoming = next(_feature_counter)
    _feature_counter = itertools.count(max(upcoming, number + 1))


def _parse_time(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now()
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now()


@dataclass
class ExecutionContext:
    """Ergebnis-Cache und Baum, die ein Feature beim Ausführen sieht."""
    results: Dict[str, FeatureResult]
    tree: Optional['FeatureTree'] = None


@dataclass(eq=False)
class Feature:
    type: FeatureType = None
    name: str = "Feature"
    id: str = field(default_factory=next_feature_id)
    visible: bool = True
    suppressed: bool = False
    created: datetime = field(default_factory=datetime.now)
    modified: datetime = field(default_factory=datetime.now)
    dependencies: List[str] = field(default_factory=list)
    children: List[str] = field(default_factory=list)
    result: Optional[FeatureResult] = field(default=None, repr=False)
    error: Optional[str] = None

    def execute(self, ctx: ExecutionContext) -> FeatureResult:
        raise NotImplementedError(f"{type(self).__name__}.execute() fehlt")

    def can_execute(self, ctx: ExecutionContext) -> bool:
        """Alle Abhängigkeiten haben ein Ergebnis ohne Fehler."""
        for dep_id in self.dependencies:
            res = ctx.results.get(dep_id)
            if res is None or res.has_error:
                return False
        return True

    def touch(self):
        self.modified = datetime.now()

    # === Abhängigkeiten / Kinder ===

    def get_dependencies(self) -> List[str]:
        return list(self.dependencies)

    def add_dependency(self, feature_id: str):
        if feature_id not in self.dependencies:
            self.dependencies.append(feature_id)
            self.touch()

    def remove_dependency(self, feature_id: str):
        if feature_id in self.dependencies:
            self.dependencies.remove(feature_id)
            self.touch()

    def add_child(self, feature_id: str):
        if feature_id not in self.children:
            self.children.append(feature_id)

    def remove_child(self, feature_id: str):
        if feature_id in self.children:
            self.children.remove(feature_id)

    # === Zustand ===

    def set_visible(self, visible: bool):
        self.visible = visible
        self.touch()

    def suppress(self):
        self.suppressed = True
        self.touch()

    def unsuppress(self):
        self.suppressed = False
        self.touch()

    # === Serialisierung ===

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value if self.type else "base",
            "suppressed": self.suppressed,
            "visible": self.visible,
            "created": self.created.isoformat(),
            "modified": self.modified.isoformat(),
            "dependencies": list(self.dependencies),
            "children": list(self.children),
        }

    @staticmethod
    def base_kwargs(data: Dict[str, Any]) -> Dict[str, Any]:
        """Gemeinsame Felder aus einem Feature-Record."""
        kwargs: Dict[str, Any] = {
            "suppressed": bool(data.get("suppressed", False)),
            "visible": data.get("visible", True) is not False,
            "created": _parse_time(data.get("created")),
            "modified": _parse_time(data.get("modified")),
            "dependencies": list(data.get("dependencies") or []),
            "children": list(data.get("children") or []),
        }
        if data.get("name"):
            kwargs["name"] = data["name"]
        if data.get("id"):
            kwargs["id"] = data["id"]
            ensure_feature_ids_above(data["id"])
        return kwargs


class SolidFeature:
    """
    Gemeinsame Logik für Features, die aus einem Sketch einen Körper erzeugen.

    Erwartet die Attribute ``sketch_feature_id`` und ``operation``.
    """

    sketch_feature_id: Optional[str]
    operation: str

    def sketch_input(self, ctx: ExecutionContext) -> FeatureResult:
        """Sketch-Ergebnis mit mindestens einem geschlossenen Profil, sonst FeatureExecutionError."""
        res = ctx.results.get(self.sketch_feature_id) if self.sketch_feature_id else None
        if res is None or res.has_error:
            raise FeatureExecutionError("Sketch feature not found or has errors")
        if not res.is_sketch:
            raise FeatureExecutionError("Referenced feature is not a sketch")
        if not any(p.closed for p in res.profiles):
            raise FeatureExecutionError("No closed profiles found in sketch")
        return res

    def get_previous_solid(self, ctx: ExecutionContext) -> Optional[Mesh3D]:
        """Erster fehlerfreie Solid rückwärts ab index-1."""
        tree = ctx.tree
        if tree is None:
            return None
        index = tree.get_index(self)
        if index < 0:
            index = len(tree.features)
        for i in range(index - 1, -1, -1):
            res = ctx.results.get(tree.features[i].id)
            if res is not None and res.is_solid:
                return res.geometry
        return None

    def apply_operation(self, ctx: ExecutionContext, mesh: Mesh3D) -> BooleanResult:
        """
        Verknüpft das neue Mesh mit dem vorherigen Solid.

        Fehlgeschlagene Booleans fallen auf das neue Mesh zurück (WARNING).
        """
        op = self.operation
        if op == "new":
            return BooleanResult.from_operation(op, mesh)

        prev = self.get_previous_solid(ctx)
        if prev is None:
            return BooleanResult.from_operation(op, mesh, message="Kein vorheriger Solid, neues Mesh")

        if not is_enabled("csg_booleans"):
            return BooleanResult.from_operation(
                op, mesh, status=ResultStatus.WARNING,
                message="CSG-Booleans deaktiviert, neues Mesh", fallback=True)

        # Degeneriertes Werkzeug (z.B. Distanz 0) wirkt wie ein leerer Körper
        tool = mesh if mesh.volume() > Tolerances.EPSILON_MATH else Mesh3D()
        try:
            combined = boolean_op(prev, tool, op)
        except Exception as e:
            fallback = BooleanResult.from_operation(
                op, mesh, status=ResultStatus.WARNING,
                message=f"Boolean {op} fehlgeschlagen, nutze neues Mesh: {e}", fallback=True)
            fallback.details["exception_type"] = type(e).__name__
            return fallback
        return BooleanResult.from_operation(op, combined)

    def finish_solid(self, ctx: ExecutionContext, mesh: Mesh3D) -> FeatureResult:
        mesh.orient_outward()
        mesh.compute_edges()
        boolean = self.apply_operation(ctx, mesh)
        warnings = []
        if boolean.fallback:
            boolean.log(getattr(self, "name", "Feature"))
            warnings.append(boolean.message)
        return FeatureResult.solid_result(boolean.value, tool=mesh, warnings=warnings)


def validate_operation(operation: str) -> str:
    if operation not in SOLID_OPERATIONS:
        raise ValueError(f"Unbekannte Operation '{operation}', erlaubt: {', '.join(SOLID_OPERATIONS)}")
    return operation
