"""
Notebook-shaped document store
==============================
The host notebook persists a flow as cells plus metadata: one cell per node,
with the node's fields stored under `flow_*` keys of the cell metadata, and
the edge list plus the ordinal counter stored on the notebook itself.

    cell.metadata:      node_id, flow_schema, flow_values, flow_output_vars,
                        flow_node_number, flow_position, flow_status,
                        flow_input_columns, flow_output_columns
    notebook.metadata:  flow_edges, flow_number_seq

`save_document` / `load_document` translate between a FlowDocument and any
IDocumentStore using those keys.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional

from .Document import FlowDocument
from .Errors import NodeNotFoundError
from .Interface import IDocumentStore
from .Node import NodeMetadata
from .Schema import free_cell_schema
from .Types import NodeStatus

logger = logging.getLogger(__name__)

NODE_ID_KEY = "node_id"
SCHEMA_KEY = "flow_schema"
VALUES_KEY = "flow_values"
OUTPUT_VARS_KEY = "flow_output_vars"
NUMBER_KEY = "flow_node_number"
POSITION_KEY = "flow_position"
STATUS_KEY = "flow_status"
INPUT_COLUMNS_KEY = "flow_input_columns"
OUTPUT_COLUMNS_KEY = "flow_output_columns"
METADATA_STATUS_KEY = "flow_metadata_status"
EDGES_KEY = "flow_edges"
SEQ_KEY = "flow_number_seq"


class InMemoryDocumentStore(IDocumentStore):
    """A list of cells ({"source", "metadata"}) plus notebook-level metadata."""

    def __init__(self):
        self.cells: List[Dict[str, Any]] = []
        self.metadata: Dict[str, Any] = {}

    def _cell(self, node_id: str) -> Dict[str, Any]:
        for cell in self.cells:
            if cell["metadata"].get(NODE_ID_KEY) == node_id:
                return cell
        raise NodeNotFoundError(node_id)

    def get(self, key: str, node_id: Optional[str] = None) -> Any:
        table = self.metadata if node_id is None else self._cell(node_id)["metadata"]
        return copy.deepcopy(table.get(key))

    def set(self, key: str, value: Any, node_id: Optional[str] = None):
        table = self.metadata if node_id is None else self._cell(node_id)["metadata"]
        if value is None:
            table.pop(key, None)
        else:
            table[key] = copy.deepcopy(value)

    def insert_node(self, node_id: str, index: Optional[int] = None, source: str = ""):
        cell = {"source": source, "metadata": {NODE_ID_KEY: node_id}}
        if index is None or index >= len(self.cells):
            self.cells.append(cell)
        else:
            self.cells.insert(max(0, index), cell)

    def delete_node_at_index(self, index: int):
        if index < 0 or index >= len(self.cells):
            raise IndexError(f"No cell at index {index}")
        del self.cells[index]

    def get_source(self, node_id: str) -> str:
        return self._cell(node_id)["source"]

    def set_source(self, node_id: str, source: str):
        self._cell(node_id)["source"] = source

    def node_ids(self) -> List[str]:
        return [c["metadata"][NODE_ID_KEY] for c in self.cells if c["metadata"].get(NODE_ID_KEY)]

    def index_of(self, node_id: str) -> int:
        for i, cell in enumerate(self.cells):
            if cell["metadata"].get(NODE_ID_KEY) == node_id:
                return i
        raise NodeNotFoundError(node_id)

    # ── Notebook JSON ────────────────────────────────────────────────────────

    def to_notebook(self) -> Dict[str, Any]:
        return {
            "metadata": copy.deepcopy(self.metadata),
            "cells": [
                {"cell_type": "code", "source": c["source"], "metadata": copy.deepcopy(c["metadata"])}
                for c in self.cells
            ],
        }

    @staticmethod
    def from_notebook(data: Dict[str, Any]) -> InMemoryDocumentStore:
        store = InMemoryDocumentStore()
        store.metadata = copy.deepcopy(data.get("metadata") or {})
        for cell in data.get("cells") or []:
            source = cell.get("source") or ""
            if isinstance(source, list):
                source = "".join(source)
            store.cells.append({"source": source, "metadata": copy.deepcopy(cell.get("metadata") or {})})
        return store


# ── FlowDocument <-> store ───────────────────────────────────────────────────

def save_node(store: IDocumentStore, document: FlowDocument, node_id: str):
    """Write one node's fields into its cell metadata."""
    node = document.get_node(node_id)
    store.set(SCHEMA_KEY, node.schema.to_dict(), node_id)
    store.set(VALUES_KEY, node.values, node_id)
    store.set(OUTPUT_VARS_KEY, node.output_vars, node_id)
    store.set(NUMBER_KEY, node.ordinal, node_id)
    store.set(POSITION_KEY, node.position, node_id)
    overlay = document.execution_status.get(node_id)
    store.set(STATUS_KEY, overlay.value if overlay else None, node_id)
    if node.metadata is not None:
        meta = node.metadata.to_dict()
        store.set(INPUT_COLUMNS_KEY, meta["inputColumns"], node_id)
        store.set(OUTPUT_COLUMNS_KEY, meta["outputColumns"], node_id)
        store.set(METADATA_STATUS_KEY, meta["status"], node_id)
    if not node.is_free:
        store.set_source(node_id, node.source)


def save_document(store: IDocumentStore, document: FlowDocument):
    """Mirror a whole document into `store`, adding cells for new nodes and dropping stale ones."""
    wanted = set(document.nodes)
    stored = store.node_ids()
    for index in reversed(range(len(stored))):
        if stored[index] not in wanted:
            store.delete_node_at_index(index)

    present = set(store.node_ids())
    for i, node in enumerate(document.node_list()):
        if node.id not in present:
            store.insert_node(node.id, index=i, source=node.source)
        save_node(store, document, node.id)

    store.set(EDGES_KEY, [e.to_dict() for e in document.edges])
    store.set(SEQ_KEY, document.next_ordinal)


def load_document(store: IDocumentStore) -> FlowDocument:
    """Rebuild a FlowDocument from the cells of `store`, in cell order."""
    nodes: List[Dict[str, Any]] = []
    overlays: Dict[str, NodeStatus] = {}
    metadata: Dict[str, NodeMetadata] = {}
    seq = store.get(SEQ_KEY) or 1
    taken = set()

    for node_id in store.node_ids():
        number = store.get(NUMBER_KEY, node_id)
        if not isinstance(number, int) or number in taken:
            # cells created outside the flow view have no ordinal yet
            number = max([seq - 1] + list(taken)) + 1
            seq = number + 1
        taken.add(number)

        schema = store.get(SCHEMA_KEY, node_id)
        nodes.append({
            "id": node_id,
            "number": number,
            "schema": schema if schema else None,
            "values": store.get(VALUES_KEY, node_id),
            "outputVars": store.get(OUTPUT_VARS_KEY, node_id),
            "position": store.get(POSITION_KEY, node_id),
            "source": store.get_source(node_id),
        })

        status = NodeStatus.from_raw(store.get(STATUS_KEY, node_id))
        if status is not None:
            overlays[node_id] = status

        input_columns = store.get(INPUT_COLUMNS_KEY, node_id)
        output_columns = store.get(OUTPUT_COLUMNS_KEY, node_id)
        if input_columns is not None or output_columns is not None:
            metadata[node_id] = NodeMetadata.from_dict({
                "inputColumns": input_columns,
                "outputColumns": output_columns,
                "status": store.get(METADATA_STATUS_KEY, node_id),
            })

    document = FlowDocument.from_dict({
        "nextOrdinal": seq,
        "nodes": nodes,
        "edges": store.get(EDGES_KEY) or [],
    })

    for index, (node_id, node) in enumerate(document.nodes.items()):
        if node.is_free and not store.get(SCHEMA_KEY, node_id):
            # a schema-less cell gets the free-cell ports of its position
            node.schema = free_cell_schema(index)
            document.binder.bind(node)
        node.metadata = metadata.get(node_id)
    document.execution_status.update(overlays)
    logger.debug("Loaded %d nodes and %d edges from store", len(document.nodes), len(document.edges))
    return document


__all__ = [
    "InMemoryDocumentStore",
    "load_document",
    "save_document",
    "save_node",
]
