"""
Column transforms
=================
A column transform predicts the columns a node will produce from the
columns wired into it, without running any data:

    compute_outputs(input_columns, values, schema) -> output_columns

Both maps are keyed by port name.  Transforms are registered against an
algorithm id in a TransformRegistry, which validates them up front; an
algorithm with no registered transform passes its input columns through.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from flownote.core.Errors import TransformRegistrationError
from flownote.core.Node import ColumnMap
from flownote.core.Schema import NodeSchema
from flownote.core.Types import Column

logger = logging.getLogger(__name__)

DEFAULT_INPUT = "df_in"
DEFAULT_OUTPUT = "df_out"


class ColumnTransform(ABC):
    @abstractmethod
    def compute_outputs(self, input_columns: ColumnMap, values: Dict, schema: NodeSchema) -> ColumnMap:
        pass


class FunctionTransform(ColumnTransform):
    """Adapts a plain function with the compute_outputs signature."""

    def __init__(self, func: Callable[[ColumnMap, Dict, NodeSchema], ColumnMap], name: Optional[str] = None):
        self.func = func
        self.name = name or getattr(func, "__name__", "transform")

    def compute_outputs(self, input_columns: ColumnMap, values: Dict, schema: NodeSchema) -> ColumnMap:
        return self.func(input_columns, values, schema)

    def __repr__(self):
        return f"FunctionTransform({self.name})"


# ── Port helpers ──────────────────────────────────────────────────────────────

def output_port(schema: NodeSchema) -> str:
    outputs = schema.output_names()
    return outputs[0] if outputs else DEFAULT_OUTPUT


def primary_input(input_columns: ColumnMap) -> List[Column]:
    if DEFAULT_INPUT in input_columns:
        return input_columns[DEFAULT_INPUT]
    for columns in input_columns.values():
        return columns
    return []


def _as_list(value) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [part.strip() for part in str(value).split(",") if part.strip()]


# ── Built-in transforms ───────────────────────────────────────────────────────

def passthrough(input_columns: ColumnMap, values: Dict, schema: NodeSchema) -> ColumnMap:
    return {output_port(schema): list(primary_input(input_columns))}


def select_columns(input_columns: ColumnMap, values: Dict, schema: NodeSchema) -> ColumnMap:
    wanted = set(_as_list(values.get("columns")))
    kept = [c for c in primary_input(input_columns) if c.name in wanted]
    return {output_port(schema): kept}


def rename_columns(input_columns: ColumnMap, values: Dict, schema: NodeSchema) -> ColumnMap:
    mapping = values.get("columns_map") or {}
    if not isinstance(mapping, dict):
        raise ValueError(f"columns_map must be a mapping, got {type(mapping).__name__}")
    renamed = [Column(str(mapping.get(c.name, c.name)), c.type) for c in primary_input(input_columns)]
    return {output_port(schema): renamed}


def _sides(input_columns: ColumnMap, schema: NodeSchema):
    ports = [p for p in schema.input_names() if p in input_columns]
    ports += [p for p in input_columns if p not in ports]
    left = input_columns[ports[0]] if len(ports) > 0 else []
    right = input_columns[ports[1]] if len(ports) > 1 else []
    return left, right


def merge_dfs(input_columns: ColumnMap, values: Dict, schema: NodeSchema) -> ColumnMap:
    left, right = _sides(input_columns, schema)
    keys = _as_list(values.get("on"))
    suffixes = values.get("suffixes") or ["_x", "_y"]
    left_suffix, right_suffix = (list(suffixes) + ["_x", "_y"])[:2]

    left_names = {c.name for c in left}
    right_names = {c.name for c in right}
    result: List[Column] = []

    for key in keys:
        match = next((c for c in left if c.name == key), None) or next((c for c in right if c.name == key), None)
        if match is not None:
            result.append(match)

    for column in left:
        if column.name in keys:
            continue
        name = column.name + left_suffix if column.name in right_names else column.name
        result.append(Column(name, column.type))

    for column in right:
        if column.name in keys:
            continue
        name = column.name + right_suffix if column.name in left_names else column.name
        result.append(Column(name, column.type))

    return {output_port(schema): result}


def concat_dfs(input_columns: ColumnMap, values: Dict, schema: NodeSchema) -> ColumnMap:
    seen = set()
    result: List[Column] = []
    ports = [p for p in schema.input_names() if p in input_columns]
    ports += [p for p in input_columns if p not in ports]
    for port in ports:
        for column in input_columns[port]:
            if column.name not in seen:
                seen.add(column.name)
                result.append(column)
    return {output_port(schema): result}


PASSTHROUGH_IDS = ("filter_rows", "sort_values", "drop_duplicates", "fill_na", "astype")


# ── Registry ──────────────────────────────────────────────────────────────────

class TransformRegistry:
    """Algorithm id -> ColumnTransform, validated on registration."""

    def __init__(self, fallback: Optional[ColumnTransform] = None):
        self._transforms: Dict[str, ColumnTransform] = {}
        self.fallback = fallback or FunctionTransform(passthrough)

    def register(self, algorithm_id: str, transform, replace: bool = False) -> ColumnTransform:
        if not isinstance(algorithm_id, str) or not algorithm_id.strip():
            raise TransformRegistrationError(f"algorithm id must be a non-empty string, got {algorithm_id!r}")

        if isinstance(transform, ColumnTransform):
            resolved = transform
        elif callable(transform):
            resolved = FunctionTransform(transform)
        else:
            raise TransformRegistrationError(
                f"transform for '{algorithm_id}' must be a ColumnTransform or a callable, "
                f"got {type(transform).__name__}"
            )

        if algorithm_id in self._transforms and not replace:
            raise TransformRegistrationError(f"a transform is already registered for '{algorithm_id}'")

        self._transforms[algorithm_id] = resolved
        logger.debug("Registered column transform %r for %s", resolved, algorithm_id)
        return resolved

    def get(self, algorithm_id: str) -> ColumnTransform:
        return self._transforms.get(algorithm_id, self.fallback)

    def is_registered(self, algorithm_id: str) -> bool:
        return algorithm_id in self._transforms

    def __contains__(self, algorithm_id: str) -> bool:
        return self.is_registered(algorithm_id)

    def __len__(self):
        return len(self._transforms)


def default_registry() -> TransformRegistry:
    registry = TransformRegistry()
    registry.register("select_columns", select_columns)
    registry.register("rename_columns", rename_columns)
    registry.register("merge_dfs", merge_dfs)
    registry.register("concat_dfs", concat_dfs)
    for algorithm_id in PASSTHROUGH_IDS:
        registry.register(algorithm_id, passthrough)
    return registry
