"""
CadKernel - Basisklassen für Sketch-Operationen
===============================================

Topologie-Operationen (Union, Disconnect, Split, Trim, ...) arbeiten direkt
auf einer Scene und liefern ein strukturiertes OperationResult.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, TYPE_CHECKING
from enum import Enum, auto

from loguru import logger

if TYPE_CHECKING:
    from sketcher.scene import Scene


class ResultStatus(Enum):
    """Status einer Operation."""
    SUCCESS = auto()
    WARNING = auto()  # Ausgeführt, aber mit Einschränkungen
    NO_TARGET = auto()  # Nichts zu tun (Punkt fehlt, schon getrennt, ...)
    ERROR = auto()


@dataclass
class OperationResult:
    """
    Ergebnis einer Sketch-Operation.

    ``data`` trägt das Ergebnis der Operation (neue Punkte, Segmente, ...).
    """
    status: ResultStatus
    message: str = ""
    data: Any = None

    @property
    def success(self) -> bool:
        return self.status in (ResultStatus.SUCCESS, ResultStatus.WARNING)

    @property
    def is_error(self) -> bool:
        return self.status == ResultStatus.ERROR

    @classmethod
    def ok(cls, message: str = "", data: Any = None) -> 'OperationResult':
        return cls(ResultStatus.SUCCESS, message, data)

    @classmethod
    def warning(cls, message: str, data: Any = None) -> 'OperationResult':
        return cls(ResultStatus.WARNING, message, data)

    @classmethod
    def no_target(cls, message: str = "Kein Ziel gefunden", data: Any = None) -> 'OperationResult':
        return cls(ResultStatus.NO_TARGET, message, data)

    @classmethod
    def error(cls, message: str) -> 'OperationResult':
        return cls(ResultStatus.ERROR, message)


class SketchOperation(ABC):
    """
    Basisklasse für Operationen auf einer Scene.

    Unterklassen implementieren ``_run``; ``execute`` merkt sich das
    Ergebnis und protokolliert Fehler.
    """

    name = "operation"

    def __init__(self, scene: 'Scene'):
        self.scene = scene
        self._last_result: Optional[OperationResult] = None

    @property
    def last_result(self) -> Optional[OperationResult]:
        """Letztes Ergebnis der Operation."""
        return self._last_result

    def execute(self, *args, **kwargs) -> OperationResult:
        result = self._run(*args, **kwargs)
        if result.is_error:
            logger.warning(f"[{self.name}] {result.message}")
        elif result.status == ResultStatus.WARNING:
            logger.info(f"[{self.name}] {result.message}")
        self._last_result = result
        return result

    @abstractmethod
    def _run(self, *args, **kwargs) -> OperationResult:
        ...

    def can_execute(self, *args, **kwargs) -> bool:
        return True

    def _has_point(self, pt) -> bool:
        return any(p is pt for p in self.scene.points)

    def _has_segment(self, seg) -> bool:
        return any(s is seg for s in self.scene.segments)
