"""
CadKernel - 3D Modeling
Parametrischer Feature-Baum über Dreiecks-/Polygonnetzen mit CSG-Booleans.
"""

from modeling.geometry3d import Plane3D
from modeling.mesh import Mesh3D, MeshFace, BoundingBox
from modeling.csg import BooleanOperationError, boolean_op, calculate_mesh_volume, calculate_bounding_box
from modeling.result_types import OperationResult, BooleanResult, FeatureResult, ResultStatus, ResultKind
from modeling.features import (
    Feature, FeatureType, FeatureExecutionError, SketchFeature, ExtrudeFeature, RevolveFeature,
    create_feature,
)
from modeling.feature_tree import FeatureTree, FeatureTreeError
from modeling.part import Part, Material, MATERIALS
from modeling.assembly import Assembly, ComponentInstance, ComponentTransform

__all__ = [
    "Plane3D",
    "Mesh3D",
    "MeshFace",
    "BoundingBox",
    "BooleanOperationError",
    "boolean_op",
    "calculate_mesh_volume",
    "calculate_bounding_box",
    "OperationResult",
    "BooleanResult",
    "FeatureResult",
    "ResultStatus",
    "ResultKind",
    "Feature",
    "FeatureType",
    "FeatureExecutionError",
    "SketchFeature",
    "ExtrudeFeature",
    "RevolveFeature",
    "create_feature",
    "FeatureTree",
    "FeatureTreeError",
    "Part",
    "Material",
    "MATERIALS",
    "Assembly",
    "ComponentInstance",
    "ComponentTransform",
]
