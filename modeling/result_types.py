"""
CadKernel - Ergebnis-Typen für Modeling-Operationen
===================================================

OperationResult trennt vier Ausgänge einer Operation:
- SUCCESS: wie erwartet ausgeführt
- WARNING: ausgeführt, aber über einen Fallback (z.B. Boolean fehlgeschlagen)
- EMPTY: korrekt ausgeführt, aber ohne Geometrie
- ERROR: abgebrochen

FeatureResult ist das gecachte Artefakt eines Features im FeatureTree
(Sketch, Solid, Suppressed-Marker oder gefangener Fehler).

Usage:
    result = BooleanResult.from_operation("subtract", mesh)
    if result.fallback:
        result.log("Extrude1")
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional, List, Dict
from loguru import logger


class ResultStatus(Enum):
    SUCCESS = auto()
    WARNING = auto()
    EMPTY = auto()
    ERROR = auto()


@dataclass
class OperationResult:
    """
    Ergebnis einer Modeling-Operation.

    value ist bei EMPTY und ERROR None, details sammelt Kontext
    (Fallback, Exception-Typ).
    """
    status: ResultStatus
    value: Any = None
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, value: Any, message: str = "") -> "OperationResult":
        return cls(ResultStatus.SUCCESS, value, message)

    @classmethod
    def warning(cls, value: Any, message: str, fallback_used: Optional[str] = None) -> "OperationResult":
        details = {"fallback_used": fallback_used} if fallback_used else {}
        return cls(ResultStatus.WARNING, value, message, details)

    @classmethod
    def empty(cls, message: str = "Keine Geometrie") -> "OperationResult":
        return cls(ResultStatus.EMPTY, None, message)

    @classmethod
    def error(cls, message: str, exception: Optional[Exception] = None) -> "OperationResult":
        details = {}
        if exception is not None:
            details["exception_type"] = type(exception).__name__
            details["exception_message"] = str(exception)
        return cls(ResultStatus.ERROR, None, message, details)

    @property
    def is_success(self) -> bool:
        """SUCCESS, oder WARNING mit verwertbarem Wert."""
        return self.status == ResultStatus.SUCCESS or (
            self.status == ResultStatus.WARNING and self.value is not None
        )

    @property
    def is_error(self) -> bool:
        return self.status == ResultStatus.ERROR

    @property
    def is_empty(self) -> bool:
        return self.status == ResultStatus.EMPTY

    def log(self, context: str = "") -> "OperationResult":
        """Protokolliert mit dem zum Status passenden Level; gibt self zurück."""
        prefix = f"[{context}] " if context else ""
        if self.status == ResultStatus.SUCCESS:
            logger.success(f"{prefix}{self.message}")
        elif self.status == ResultStatus.WARNING:
            logger.warning(f"{prefix}{self.message}")
        elif self.status == ResultStatus.EMPTY:
            logger.info(f"{prefix}{self.message}")
        else:
            logger.error(f"{prefix}{self.message}")
            if "exception_type" in self.details:
                logger.error(f"{prefix}  {self.details['exception_type']}: {self.details['exception_message']}")
        return self


@dataclass
class BooleanResult(OperationResult):
    """
    Ergebnis von SolidFeature.apply_operation.

    fallback ist True, wenn value statt des Boolean-Ergebnisses das
    unveränderte Werkzeug-Mesh hält.
    """
    operation_type: str = ""
    fallback: bool = False

    @classmethod
    def from_operation(cls, op_type: str, mesh: Any,
                       status: ResultStatus = ResultStatus.SUCCESS,
                       message: str = "", fallback: bool = False) -> "BooleanResult":
        return cls(
            status=status,
            value=mesh,
            message=message or f"Boolean {op_type} ausgeführt",
            operation_type=op_type,
            fallback=fallback,
        )


# --- Feature Results ---

class ResultKind(Enum):
    SKETCH = "sketch"
    SOLID = "solid"
    SUPPRESSED = "suppressed"
    ERROR = "error"


@dataclass
class FeatureResult:
    """
    Cached artifact of one feature.

    Sketch results carry sketch, plane and profiles; solid results carry the
    final mesh (``geometry``, alias ``solid``), the feature's own
    tool mesh before the boolean (``tool``), volume and AABB of the final mesh.
    """
    kind: ResultKind
    error: Optional[str] = None
    sketch: Any = None
    plane: Any = None
    profiles: List[Any] = field(default_factory=list)
    geometry: Any = None
    tool: Any = None
    volume: float = 0.0
    bounding_box: Any = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def suppressed_result(cls) -> "FeatureResult":
        return cls(kind=ResultKind.SUPPRESSED)

    @classmethod
    def failed(cls, message: str) -> "FeatureResult":
        return cls(kind=ResultKind.ERROR, error=message)

    @classmethod
    def sketch_result(cls, sketch: Any, plane: Any, profiles: List[Any]) -> "FeatureResult":
        return cls(kind=ResultKind.SKETCH, sketch=sketch, plane=plane, profiles=list(profiles))

    @classmethod
    def solid_result(cls, mesh: Any, tool: Any = None, warnings: List[str] = None) -> "FeatureResult":
        return cls(
            kind=ResultKind.SOLID,
            geometry=mesh,
            tool=tool,
            volume=mesh.volume(),
            bounding_box=mesh.bounding_box(),
            warnings=warnings or [],
        )

    @property
    def solid(self) -> Any:
        return self.geometry

    @property
    def type(self) -> str:
        return self.kind.value

    @property
    def suppressed(self) -> bool:
        return self.kind == ResultKind.SUPPRESSED

    @property
    def is_solid(self) -> bool:
        return self.kind == ResultKind.SOLID and self.error is None

    @property
    def is_sketch(self) -> bool:
        return self.kind == ResultKind.SKETCH and self.error is None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind.value}
        if self.error is not None:
            data["error"] = self.error
        if self.kind == ResultKind.SKETCH:
            data["profiles"] = [p.to_dict() for p in self.profiles]
            if self.plane is not None:
                data["plane"] = self.plane.to_dict()
        elif self.kind == ResultKind.SOLID:
            data["geometry"] = self.geometry.to_dict()
            data["volume"] = self.volume
            data["boundingBox"] = self.bounding_box.to_dict()
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data
