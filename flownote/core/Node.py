from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .Schema import NodeSchema, FREE_CELL_NAME, free_cell_schema
from .Types import Column, MetadataStatus

logger = logging.getLogger(__name__)


ColumnMap = Dict[str, List[Column]]


def columns_to_dict(columns: ColumnMap) -> Dict[str, List[Dict[str, Any]]]:
    return {port: [c.to_dict() for c in cols] for port, cols in columns.items()}


def columns_from_dict(data: Optional[Dict[str, Any]]) -> ColumnMap:
    return {port: [Column.from_dict(c) for c in cols] for port, cols in (data or {}).items()}


@dataclass
class NodeMetadata:
    """Column metadata written by the propagation pass."""
    input_columns: ColumnMap = field(default_factory=dict)
    output_columns: ColumnMap = field(default_factory=dict)
    status: MetadataStatus = MetadataStatus.READY
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "inputColumns": columns_to_dict(self.input_columns),
            "outputColumns": columns_to_dict(self.output_columns),
            "status": self.status.value,
        }
        if self.error:
            result["error"] = self.error
        return result

    @staticmethod
    def from_dict(data: Optional[Dict[str, Any]]) -> NodeMetadata:
        data = data or {}
        status = MetadataStatus.ERROR if data.get("status") == "error" else MetadataStatus.READY
        return NodeMetadata(
            input_columns=columns_from_dict(data.get("inputColumns")),
            output_columns=columns_from_dict(data.get("outputColumns")),
            status=status,
            error=data.get("error"),
        )


class FlowNode:
    """
    One computation unit of a document.

    `ordinal` is allocated once from the document counter and never changes;
    `output_vars` maps each output port to its bound variable name and is
    owned by the VariableBinder.
    """

    def __init__(self,
                 node_id: Optional[str],
                 schema: Optional[NodeSchema],
                 ordinal: int,
                 values: Optional[Dict[str, Any]] = None,
                 position: Optional[Dict[str, float]] = None,
                 source: str = ""):
        self.id = node_id or str(uuid.uuid4())
        self.schema = schema if schema is not None else free_cell_schema()
        self.ordinal = ordinal
        self.values: Dict[str, Any] = copy.deepcopy(values) if values else {}
        self.output_vars: Dict[str, str] = {}
        self.position: Optional[Dict[str, float]] = position
        self.source = source
        self.metadata: Optional[NodeMetadata] = None

    def __repr__(self):
        return f"FlowNode({self.id}, {self.schema.id}, #{self.ordinal})"

    @property
    def is_free(self) -> bool:
        return self.schema.is_free

    def label(self) -> str:
        if self.schema.name and self.schema.name != FREE_CELL_NAME:
            return self.schema.name

        if self.source.strip() == "":
            return "(Unnamed Step)"

        first_line = self.source.split("\n")[0].strip()
        if first_line.startswith("#"):
            return first_line.lstrip("#").strip()
        if len(first_line) > 20:
            return first_line[:20] + "..."
        return first_line

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "number": self.ordinal,
            "schema": self.schema.to_dict(),
            "values": copy.deepcopy(self.values),
            "outputVars": dict(self.output_vars),
        }
        if self.position is not None:
            result["position"] = dict(self.position)
        if self.source:
            result["source"] = self.source
        if self.metadata is not None:
            result["metadata"] = self.metadata.to_dict()
        return result

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> FlowNode:
        schema = NodeSchema.from_dict(data["schema"]) if data.get("schema") else None
        node = FlowNode(
            node_id=data.get("id"),
            schema=schema,
            ordinal=int(data["number"]),
            values=data.get("values"),
            position=data.get("position"),
            source=data.get("source") or "",
        )
        node.output_vars = dict(data.get("outputVars") or {})
        if data.get("metadata"):
            node.metadata = NodeMetadata.from_dict(data["metadata"])
        return node
