"""
Column metadata propagation: predicts each node's input and output columns
from the CSV headers and live variables feeding the graph.
"""

from .propagator import SchemaPropagator
from .transformers import (
    ColumnTransform,
    FunctionTransform,
    TransformRegistry,
    default_registry,
)

__all__ = [
    "ColumnTransform",
    "FunctionTransform",
    "SchemaPropagator",
    "TransformRegistry",
    "default_registry",
]
