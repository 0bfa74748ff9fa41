"""
CadKernel - Variablen-Tabelle
Prozessweite Variablen für Constraints und Bemaßungen

Verwendung:
    from core.variables import get_variables

    table = get_variables()
    table.set('width', 100)
    table.set('height', 'width * 0.5')  # Formel!

    value = table.get('height')  # -> 50.0
    table.resolve_value('height')  # -> 50.0
"""

import re
import math
from typing import Dict, Any, Optional, List, Tuple, Union
from loguru import logger


_NAME_PATTERN = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')


class VariableTable:
    """
    Variablen-Tabelle für Sketch-Constraints.
    Unterstützt Zahlen und Formeln über andere Variablen.
    """

    def __init__(self):
        self._values: Dict[str, float] = {}  # Name -> aktueller Wert
        self._formulas: Dict[str, str] = {}  # Name -> Original-Formel
        self._dependencies: Dict[str, List[str]] = {}  # Name -> referenzierte Variablen

        # Standard mathematische Funktionen für Formeln
        self._math_funcs = {
            'sin': math.sin,
            'cos': math.cos,
            'tan': math.tan,
            'asin': math.asin,
            'acos': math.acos,
            'atan': math.atan,
            'atan2': math.atan2,
            'sqrt': math.sqrt,
            'hypot': math.hypot,
            'log': math.log,
            'exp': math.exp,
            'pow': pow,
            'floor': math.floor,
            'ceil': math.ceil,
            'abs': abs,
            'min': min,
            'max': max,
            'pi': math.pi,
            'e': math.e,
            'tau': math.tau,
            'radians': math.radians,
            'degrees': math.degrees,
        }

    def set(self, name: str, value: Union[float, str]) -> float:
        """
        Setzt eine Variable.

        Args:
            name: Variablenname (z.B. 'width', 'hole_r')
            value: Wert (Zahl) oder Formel (String wie 'width * 2')

        Returns:
            Der neue Wert der Variable
        """
        name = name.strip()
        if not _NAME_PATTERN.match(name):
            raise ValueError(f"Ungültiger Variablenname: {name}")

        if isinstance(value, str):
            deps = self._find_dependencies(value)
            if name in deps or self._depends_on(deps, name):
                raise ValueError(f"Zyklische Formel für '{name}': {value}")
            self._formulas[name] = value
            self._dependencies[name] = deps
            self._values[name] = self._evaluate(value)
        else:
            self._values[name] = float(value)
            self._formulas.pop(name, None)
            self._dependencies[name] = []

        self._update_dependents(name)
        return self._values[name]

    def get(self, name: str, default: Optional[float] = None) -> Optional[float]:
        """Gibt den Wert einer Variable zurück"""
        return self._values.get(name, default)

    def has(self, name: str) -> bool:
        return name in self._values

    def get_formula(self, name: str) -> Optional[str]:
        """Gibt die Formel einer Variable zurück (oder None wenn direkter Wert)"""
        return self._formulas.get(name)

    def delete(self, name: str) -> bool:
        """Löscht eine Variable"""
        if name not in self._values:
            return False
        del self._values[name]
        self._formulas.pop(name, None)
        self._dependencies.pop(name, None)
        return True

    def clear(self):
        self._values.clear()
        self._formulas.clear()
        self._dependencies.clear()

    def list_all(self) -> List[Tuple[str, float, Optional[str]]]:
        """
        Gibt alle Variablen als Liste zurück.

        Returns:
            Liste von (name, value, formula_or_none), nach Name sortiert
        """
        return sorted(
            ((name, value, self._formulas.get(name)) for name, value in self._values.items()),
            key=lambda x: x[0]
        )

    def __len__(self):
        return len(self._values)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    # === Auflösung ===

    def evaluate(self, expression: str) -> float:
        """
        Evaluiert einen Ausdruck über die Variablen-Tabelle.

        Raises:
            ValueError: wenn der Ausdruck nicht ausgewertet werden kann
        """
        namespace = {**self._values, **self._math_funcs}
        try:
            result = eval(expression, {"__builtins__": {}}, namespace)
            return float(result)
        except Exception as e:
            raise ValueError(f"Ausdruck '{expression}' nicht auswertbar: {e}") from e

    def resolve_value(self, value: Union[float, int, str, None]) -> Optional[float]:
        """
        Löst einen Constraint-Wert auf.

        Reihenfolge für Strings: (1) Variable, (2) Zahl-Literal, (3) Ausdruck.
        Gibt None zurück wenn nichts davon greift.
        """
        if value is None:
            return None
        if isinstance(value, bool):
            return float(value)
        if isinstance(value, (int, float)):
            return float(value)

        text = str(value).strip()
        if text in self._values:
            return self._values[text]
        try:
            return float(text)
        except ValueError:
            pass
        try:
            return self.evaluate(text)
        except ValueError as e:
            logger.debug(f"[Variables] {e}")
            return None

    # === Interna ===

    def _find_dependencies(self, formula: str) -> List[str]:
        """Findet alle Variablen-Referenzen in einer Formel"""
        words = re.findall(r'[a-zA-Z_][a-zA-Z0-9_]*', formula)
        deps = [w for w in words if w not in self._math_funcs]
        return sorted(set(deps))

    def _depends_on(self, names: List[str], target: str, _seen=None) -> bool:
        """True wenn eine der Variablen (transitiv) von target abhängt."""
        seen = _seen if _seen is not None else set()
        for n in names:
            if n == target:
                return True
            if n in seen:
                continue
            seen.add(n)
            if self._depends_on(self._dependencies.get(n, []), target, seen):
                return True
        return False

    def _evaluate(self, formula: str) -> float:
        """Evaluiert eine Formel, 0.0 bei Fehler"""
        try:
            return self.evaluate(formula)
        except ValueError as e:
            logger.warning(f"Fehler beim Evaluieren von '{formula}': {e}")
            return 0.0

    def _update_dependents(self, changed: str):
        """Aktualisiert alle Variablen die von changed abhängen"""
        for name, deps in self._dependencies.items():
            if changed in deps and name in self._formulas:
                self._values[name] = self._evaluate(self._formulas[name])
                self._update_dependents(name)

    # === Serialisierung ===

    def to_dict(self) -> Dict[str, Any]:
        """Exportiert Variablen für Speicherung"""
        return {
            'values': dict(self._values),
            'formulas': dict(self._formulas)
        }

    def from_dict(self, data: Dict[str, Any]):
        """Importiert Variablen aus gespeicherten Daten (ersetzt den Inhalt)"""
        self.clear()
        formulas = data.get('formulas', {}) or {}

        # Erst direkte Werte laden, dann Formeln (damit Referenzen funktionieren)
        for name, value in (data.get('values', {}) or {}).items():
            if name not in formulas:
                self.set(name, float(value))
        for name, formula in formulas.items():
            self.set(name, formula)


# Globale Variablen-Instanz
_global_variables = VariableTable()


def get_variables() -> VariableTable:
    """Gibt die globale Variablen-Tabelle zurück"""
    return _global_variables


def reset_variables():
    """Leert die globale Tabelle (Tests, neues Dokument)."""
    _global_variables.clear()
