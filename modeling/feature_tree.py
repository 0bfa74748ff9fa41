"""
CadKernel - Feature Tree
========================

Geordnete Liste parametrischer Features mit Ergebnis-Cache.

Kernkonzepte:
1. Abhängigkeiten: jedes Feature steht hinter allen Features, von denen es abhängt
2. Recalculation: ab dem geänderten Feature bis zum Ende, Fehler werden
   pro Feature gefangen und der Walk läuft weiter
3. Reentrancy-Guard: ein recalculate_from während einer Recalculation
   setzt nur ein Pending-Flag, danach folgt ein voller Durchlauf

Usage:
    tree = FeatureTree()
    tree.add_feature(sketch_feature)
    tree.add_feature(ExtrudeFeature(sketch_feature_id=sketch_feature.id, distance=100))
    final = tree.get_final_result()
"""

from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Set, Union

from loguru import logger

from config.feature_flags import is_enabled
from modeling.features import Feature, ExecutionContext, create_feature
from modeling.result_types import FeatureResult


FeatureRef = Union[str, Feature]

DEPENDENCIES_NOT_SATISFIED = "Dependencies not satisfied"


class FeatureTreeError(ValueError):
    """Verletzung der Baum-Topologie (fehlende Abhängigkeit, Reorder, Entfernen)."""


class RecalcState(Enum):
    IDLE = auto()
    RECALCULATING = auto()
    RECALCULATING_PENDING = auto()


def _feature_id(ref: FeatureRef) -> str:
    return ref if isinstance(ref, str) else ref.id


class FeatureTree:
    """
    Ordered list of parametric features.

    ``results`` enthält für jedes Feature nach einer Recalculation einen
    Eintrag: Ergebnis, Fehler oder Suppressed-Marker.
    """

    def __init__(self):
        self.features: List[Feature] = []
        self._feature_map: Dict[str, Feature] = {}
        self.results: Dict[str, FeatureResult] = {}
        self.state = RecalcState.IDLE

    # === Verwaltung ===

    def add_feature(self, feature: Feature, index: Optional[int] = None) -> Feature:
        """
        Fügt ein Feature ein (ans Ende, wenn index fehlt oder außerhalb liegt)
        und rechnet ab diesem Feature neu.

        Raises:
            FeatureTreeError: wenn eine Abhängigkeit nicht im Baum ist oder
                ``index`` vor einer Abhängigkeit liegt
        """
        for dep_id in feature.get_dependencies():
            if dep_id not in self._feature_map:
                raise FeatureTreeError(f"Cannot add feature {feature.name}: dependency {dep_id} not found")
        if feature.id in self._feature_map:
            raise FeatureTreeError(f"Feature {feature.id} ist bereits im Baum")

        if index is not None and 0 <= index < len(self.features):
            last_dep = max((self.get_index(d) for d in feature.get_dependencies()), default=-1)
            if index <= last_dep:
                raise FeatureTreeError(
                    f"Cannot add feature {feature.name} at index {index}: "
                    f"dependency {self.features[last_dep].name} is at index {last_dep}"
                )
            self.features.insert(index, feature)
        else:
            self.features.append(feature)
        self._feature_map[feature.id] = feature

        logger.debug(f"[FeatureTree] {feature.name} ({feature.id}) an Position {self.get_index(feature)}")
        self.recalculate_from(feature)
        return feature

    def remove_feature(self, ref: FeatureRef) -> bool:
        """
        Entfernt ein Feature ohne Abhängige.

        Raises:
            FeatureTreeError: wenn andere Features davon abhängen
        """
        feature = self._feature_map.get(_feature_id(ref))
        if feature is None:
            return False
        dependents = self.get_dependents(feature.id)
        if dependents:
            names = ", ".join(f.name for f in dependents)
            raise FeatureTreeError(f"Cannot remove feature {feature.name}: other features depend on it ({names})")

        self.features.remove(feature)
        del self._feature_map[feature.id]
        self.results.pop(feature.id, None)
        for other in self.features:
            other.remove_child(feature.id)
        logger.debug(f"[FeatureTree] {feature.name} entfernt")
        return True

    def get_feature(self, feature_id: str) -> Optional[Feature]:
        return self._feature_map.get(feature_id)

    def get_index(self, ref: FeatureRef) -> int:
        feature = self._feature_map.get(_feature_id(ref))
        if feature is None:
            return -1
        for i, f in enumerate(self.features):
            if f is feature:
                return i
        return -1

    def get_result(self, ref: FeatureRef) -> Optional[FeatureResult]:
        return self.results.get(_feature_id(ref))

    def __len__(self):
        return len(self.features)

    def __iter__(self):
        return iter(self.features)

    def __contains__(self, ref) -> bool:
        return _feature_id(ref) in self._feature_map

    # === Reorder ===

    def can_reorder(self, ref: FeatureRef, new_index: int) -> bool:
        feature = self._feature_map.get(_feature_id(ref))
        if feature is None:
            return False
        for dep_id in feature.get_dependencies():
            if self.get_index(dep_id) >= new_index:
                return False
        for dependent in self.get_dependents(feature.id):
            if self.get_index(dependent) <= new_index:
                return False
        return True

    def reorder_feature(self, ref: FeatureRef, new_index: int) -> bool:
        """
        Verschiebt ein Feature an new_index.

        Returns:
            False bei unbekanntem Feature oder Index außerhalb

        Raises:
            FeatureTreeError: wenn die neue Position Abhängigkeiten verletzt
        """
        feature = self._feature_map.get(_feature_id(ref))
        if feature is None:
            return False
        old_index = self.get_index(feature)
        if old_index < 0 or new_index < 0 or new_index >= len(self.features):
            return False
        if not self.can_reorder(feature, new_index):
            raise FeatureTreeError(f"Cannot reorder feature {feature.name}: would break dependencies")

        self.features.pop(old_index)
        self.features.insert(new_index, feature)
        logger.debug(f"[FeatureTree] {feature.name}: {old_index} → {new_index}")

        start = min(old_index, new_index)
        if start < len(self.features):
            self.recalculate_from(self.features[start])
        return True

    # === Abhängigkeiten ===

    def get_dependents(self, ref: FeatureRef) -> List[Feature]:
        """Direkte Abhängige in Baum-Reihenfolge."""
        fid = _feature_id(ref)
        return [f for f in self.features if fid in f.dependencies]

    def get_all_dependencies(self, ref: FeatureRef) -> List[Feature]:
        """Transitive Abhängigkeiten in Ausführungsreihenfolge (ohne das Feature selbst)."""
        feature = self._feature_map.get(_feature_id(ref))
        if feature is None:
            return []
        visited: Set[str] = set()
        ordered: List[Feature] = []

        # Iterativer Post-Order-DFS
        stack = [(feature, False)]
        while stack:
            current, expanded = stack.pop()
            if expanded:
                ordered.append(current)
                continue
            if current.id in visited:
                continue
            visited.add(current.id)
            stack.append((current, True))
            for dep_id in reversed(current.dependencies):
                dep = self._feature_map.get(dep_id)
                if dep is not None and dep.id not in visited:
                    stack.append((dep, False))
        return ordered[:-1]

    def get_all_dependents(self, ref: FeatureRef) -> List[Feature]:
        """Transitive Abhängige."""
        visited: Set[str] = set()
        result: List[Feature] = []
        queue = [_feature_id(ref)]
        while queue:
            fid = queue.pop(0)
            for dep in self.get_dependents(fid):
                if dep.id not in visited:
                    visited.add(dep.id)
                    result.append(dep)
                    queue.append(dep.id)
        return result

    # === Ausführung ===

    def _context(self) -> ExecutionContext:
        return ExecutionContext(results=self.results, tree=self)

    def _run_feature(self, feature: Feature):
        debug = is_enabled("feature_tree_debug")
        if feature.suppressed:
            self.results[feature.id] = FeatureResult.suppressed_result()
            if debug:
                logger.debug(f"[FeatureTree] {feature.name}: unterdrückt")
            return

        ctx = self._context()
        if not feature.can_execute(ctx):
            feature.error = DEPENDENCIES_NOT_SATISFIED
            self.results[feature.id] = FeatureResult.failed(feature.error)
            if debug:
                logger.debug(f"[FeatureTree] {feature.name}: {feature.error}")
            return

        try:
            result = feature.execute(ctx)
        except Exception as e:
            feature.error = str(e)
            feature.result = None
            self.results[feature.id] = FeatureResult.failed(feature.error)
            logger.error(f"[FeatureTree] Fehler in {feature.name}: {e}")
            return

        feature.result = result
        feature.error = None
        self.results[feature.id] = result
        if debug:
            logger.debug(f"[FeatureTree] {feature.name}: {result.type}")

    def _walk(self, start: int):
        for feature in list(self.features[start:]):
            self._run_feature(feature)

    def execute_all(self) -> Dict[str, FeatureResult]:
        """Leert den Cache und führt alle Features neu aus."""
        self.results = {}
        self._walk(0)
        return self.results

    def recalculate_from(self, ref: FeatureRef):
        """
        Rechnet ab dem Feature bis zum Ende neu.

        Während einer laufenden Recalculation wird nur vorgemerkt; nach
        Abschluss folgt dann ein voller execute_all().
        """
        if self.state != RecalcState.IDLE:
            self.state = RecalcState.RECALCULATING_PENDING
            return

        start = self.get_index(ref)
        if start < 0:
            return

        self.state = RecalcState.RECALCULATING
        try:
            self._walk(start)
        finally:
            pending = self.state == RecalcState.RECALCULATING_PENDING
            self.state = RecalcState.IDLE

        if pending:
            logger.debug("[FeatureTree] Vorgemerkte Recalculation, voller Durchlauf")
            self.state = RecalcState.RECALCULATING
            try:
                self.execute_all()
            finally:
                self.state = RecalcState.IDLE

    @property
    def is_recalculating(self) -> bool:
        return self.state != RecalcState.IDLE

    def mark_modified(self, ref: FeatureRef):
        feature = self._feature_map.get(_feature_id(ref))
        if feature is None:
            return
        feature.touch()
        self.recalculate_from(feature)

    def get_final_result(self) -> Optional[FeatureResult]:
        """Letztes Ergebnis, das weder unterdrückt noch fehlerhaft ist."""
        for feature in reversed(self.features):
            res = self.results.get(feature.id)
            if not feature.suppressed and res is not None and not res.has_error:
                return res
        return None

    def clear(self):
        self.features = []
        self._feature_map.clear()
        self.results = {}

    # === Serialisierung ===

    def to_dict(self) -> Dict[str, Any]:
        return {"features": [f.to_dict() for f in self.features]}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]],
                  factory: Callable[[Dict[str, Any]], Optional[Feature]] = create_feature) -> 'FeatureTree':
        """
        Baut den Baum aus Records in gespeicherter Reihenfolge und führt alles aus.

        Raises:
            FeatureTreeError: bei unbekanntem Typ oder Abhängigkeit auf ein
                nicht (vorher) vorhandenes Feature
        """
        tree = cls()
        if not data or not data.get("features"):
            return tree

        for record in data["features"]:
            try:
                feature = factory(record)
            except ValueError as e:
                raise FeatureTreeError(f"Feature {record.get('id')!r} ({record.get('name')!r}): {e}") from e
            if feature is None:
                continue
            for dep_id in feature.dependencies:
                if dep_id not in tree._feature_map:
                    raise FeatureTreeError(
                        f"Feature {feature.id!r} ({feature.name}) referenziert unbekanntes Feature {dep_id!r}")
            tree.features.append(feature)
            tree._feature_map[feature.id] = feature

        tree.execute_all()
        return tree
