"""
CadKernel - Sketch-Operationen
==============================

Topologie-Operationen auf einer Scene. Jede Operation ist eine Klasse mit
``execute`` (liefert OperationResult) plus eine Funktions-Abkürzung.

Verwendung:
    from sketcher.operations import split, union

    first, second = split(scene, seg, 5.0, 0.0)
    union(scene, first.p1, other_point)
"""

from .base import OperationResult, ResultStatus, SketchOperation
from .topology import UnionOperation, DisconnectOperation, union, disconnect
from .split import (
    SplitOperation, MergeCollinearOperation,
    split, split_at, merge_collinear_at_point, project_parameter,
)
from .trim import (
    TrimOperation, MovePointOperation, MoveShapeOperation,
    trim, move_point, move_shape,
)

__all__ = [
    # Core
    'OperationResult',
    'ResultStatus',
    'SketchOperation',
    # Topologie
    'UnionOperation',
    'DisconnectOperation',
    'union',
    'disconnect',
    # Split / Merge
    'SplitOperation',
    'MergeCollinearOperation',
    'split',
    'split_at',
    'merge_collinear_at_point',
    'project_parameter',
    # Trim / Move
    'TrimOperation',
    'MovePointOperation',
    'MoveShapeOperation',
    'trim',
    'move_point',
    'move_shape',
]
