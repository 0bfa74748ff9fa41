"""
CadKernel - Assembly
====================

Container für Part-Instanzen mit eigener Platzierung.

Mates, Explosionsansicht, Stückliste und Kollisionsprüfung sind noch
nicht umgesetzt: die Methoden loggen eine Warnung und liefern Platzhalter.

Usage:
    asm = Assembly("Getriebe")
    inst = asm.add_component(part)
    asm.get_component(inst.id).visible = False
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from modeling.part import Part


def _xyz(value: Any) -> Tuple[float, float, float]:
    if isinstance(value, dict):
        return (float(value.get("x", 0.0)), float(value.get("y", 0.0)), float(value.get("z", 0.0)))
    return tuple(float(c) for c in value)


@dataclass
class ComponentTransform:
    """
    Platzierung einer Instanz.

    position in Weltkoordinaten, rotation als Euler-Winkel XYZ in Grad.
    """
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def is_identity(self) -> bool:
        return self.position == (0.0, 0.0, 0.0) and self.rotation == (0.0, 0.0, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": dict(zip("xyz", self.position)),
            "rotation": dict(zip("xyz", self.rotation)),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ComponentTransform":
        if not data:
            return cls()
        return cls(
            position=_xyz(data.get("position", (0.0, 0.0, 0.0))),
            rotation=_xyz(data.get("rotation", (0.0, 0.0, 0.0))),
        )


@dataclass(eq=False)
class ComponentInstance:
    """Eine platzierte Part-Instanz im Assembly."""
    id: str
    component: Part
    transform: ComponentTransform = field(default_factory=ComponentTransform)
    visible: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "component": self.component.to_dict(),
            "transform": self.transform.to_dict(),
            "visible": self.visible,
        }


class Assembly:
    """Assembly aus Part-Instanzen (Constraints nur als gespeicherte Records)."""

    def __init__(self, name: str = "Assembly1"):
        self.name = name
        self.description = ""
        self.created = datetime.now()
        self.modified = self.created
        self.components: List[ComponentInstance] = []
        self.constraints: List[Dict[str, Any]] = []
        self.bom: List[Dict[str, Any]] = []

    def _touch(self):
        self.modified = datetime.now()

    # === Komponenten ===

    def add_component(self, component: Part, transform=None) -> ComponentInstance:
        """
        Fügt eine Instanz hinzu. Die Id lautet ``component_N`` mit N =
        Anzahl der Instanzen nach dem Einfügen.
        """
        if isinstance(transform, ComponentTransform):
            placement = transform
        else:
            placement = ComponentTransform.from_dict(transform)
        instance = ComponentInstance(
            id=f"component_{len(self.components) + 1}",
            component=component,
            transform=placement,
        )
        self.components.append(instance)
        self._touch()
        logger.debug(f"[Assembly] {self.name}: {instance.id} ({component.name}) hinzugefügt")
        return instance

    def remove_component(self, component_id: str) -> bool:
        for i, inst in enumerate(self.components):
            if inst.id == component_id:
                del self.components[i]
                self._touch()
                return True
        return False

    def get_component_by_id(self, component_id: str) -> Optional[ComponentInstance]:
        for inst in self.components:
            if inst.id == component_id:
                return inst
        return None

    get_component = get_component_by_id

    # === Noch nicht umgesetzt ===

    def add_mate(self, *args, **kwargs) -> Optional[Dict[str, Any]]:
        logger.warning(f"[Assembly] {self.name}: Mates werden noch nicht unterstützt")
        return None

    def create_exploded_view(self, *args, **kwargs) -> Dict[str, Any]:
        logger.warning(f"[Assembly] {self.name}: Explosionsansicht noch nicht unterstützt")
        return {}

    def generate_bom(self) -> List[Dict[str, Any]]:
        logger.warning(f"[Assembly] {self.name}: Stückliste noch nicht unterstützt")
        return []

    def detect_interferences(self) -> List[Dict[str, Any]]:
        logger.warning(f"[Assembly] {self.name}: Kollisionsprüfung noch nicht unterstützt")
        return []

    # === Serialisierung ===

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "Assembly",
            "name": self.name,
            "description": self.description,
            "created": self.created.isoformat(),
            "modified": self.modified.isoformat(),
            "components": [inst.to_dict() for inst in self.components],
            "constraints": list(self.constraints),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Assembly":
        asm = cls(data.get("name", "Assembly1"))
        asm.description = data.get("description", "")
        for key in ("created", "modified"):
            value = data.get(key)
            if value:
                try:
                    setattr(asm, key, datetime.fromisoformat(value))
                except (TypeError, ValueError):
                    logger.warning(f"[Assembly] Ungültiger Zeitstempel {key}={value!r}")

        for record in data.get("components", []):
            comp_data = record.get("component") or {}
            if comp_data.get("type") != "Part":
                logger.warning(f"[Assembly] Komponente {record.get('id')!r} übersprungen: "
                               f"Typ {comp_data.get('type')!r}")
                continue
            asm.components.append(ComponentInstance(
                id=record.get("id") or f"component_{len(asm.components) + 1}",
                component=Part.from_dict(comp_data),
                transform=ComponentTransform.from_dict(record.get("transform")),
                visible=bool(record.get("visible", True)),
            ))
        asm.constraints = list(data.get("constraints", []))
        return asm
