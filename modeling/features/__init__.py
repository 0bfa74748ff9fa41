"Features Submodule"

from typing import Any, Dict

from .base import (
    Feature, FeatureType, FeatureExecutionError, ExecutionContext, SolidFeature,
    SOLID_OPERATIONS, next_feature_id, reset_feature_ids,
)
from .sketch_feature import SketchFeature
from .extrude import ExtrudeFeature, extrude_profiles
from .revolve import RevolveFeature, revolve_profiles


FEATURE_CLASSES = {
    FeatureType.SKETCH.value: SketchFeature,
    FeatureType.EXTRUDE.value: ExtrudeFeature,
    FeatureType.REVOLVE.value: RevolveFeature,
}


def create_feature(data: Dict[str, Any]) -> Feature:
    """
    Baut ein Feature aus einem serialisierten Record anhand von ``type``.

    Raises:
        ValueError: bei unbekanntem Typ
    """
    feature_type = (data or {}).get("type")
    cls = FEATURE_CLASSES.get(feature_type)
    if cls is None:
        raise ValueError(f"Unbekannter Feature-Typ: {feature_type!r}")
    return cls.from_dict(data)


__all__ = [
    "Feature",
    "FeatureType",
    "FeatureExecutionError",
    "ExecutionContext",
    "SolidFeature",
    "SOLID_OPERATIONS",
    "SketchFeature",
    "ExtrudeFeature",
    "RevolveFeature",
    "extrude_profiles",
    "revolve_profiles",
    "create_feature",
    "next_feature_id",
    "reset_feature_ids",
]
