"""
SchemaPropagator
================
Recomputes the column metadata of every node by walking the graph
upstream-first:

  source nodes      columns fetched from the schema library (CSV header or
                    a live variable), minus the configured index column
  all other nodes   columns predicted by the node's registered transform

Each node's result is `NodeMetadata(input_columns, output_columns, status)`.
A failing fetch or transform marks that node `error` with empty outputs and
the pass carries on with the rest of the graph.

A pass is exclusive: a trigger that arrives while one is in flight is
dropped, not queued.  Results are committed only for nodes that still exist
and whose metadata actually changed, and metadata is not part of the
document fingerprint, so a commit never triggers another pass.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from flownote.compiler.topo import dfs_postorder
from flownote.core.Node import ColumnMap, NodeMetadata
from flownote.core.Schema import FetchDescriptor, NodeKind, NodeSchema, SourceKind, resolve_kind
from flownote.core.Types import Column, MetadataStatus
from flownote.server.trace.trace_types import (
    MetadataUpdatedEvent,
    PropagationDoneEvent,
    PropagationStartEvent,
    TraceEvent,
)

from .transformers import TransformRegistry, default_registry, output_port

if TYPE_CHECKING:
    from flownote.core.Document import FlowDocument
    from flownote.core.GraphPrimitives import Edge
    from flownote.core.Interface import ISchemaLibrary
    from flownote.core.Node import FlowNode

logger = logging.getLogger(__name__)


def _normalise(columns: Any) -> List[Column]:
    return [c if isinstance(c, Column) else Column.from_dict(c) for c in columns or []]


class SchemaPropagator:
    def __init__(self,
                 document: "FlowDocument",
                 library: "ISchemaLibrary",
                 registry: Optional[TransformRegistry] = None,
                 tracer=None):
        self.document = document
        self.library = library
        self.registry = registry or default_registry()
        self.tracer = tracer
        self._running = False
        self._last_fingerprint: Optional[Tuple] = None
        # schema id -> (schema the kind was resolved from, kind)
        self._kinds: Dict[str, Tuple[NodeSchema, NodeKind]] = {}

    @property
    def is_running(self) -> bool:
        return self._running

    def kind_of(self, node: "FlowNode") -> NodeKind:
        cached = self._kinds.get(node.schema.id)
        if cached is not None and cached[0] == node.schema:
            return cached[1]
        # a custom schema may reuse an id with a different category or args
        kind = resolve_kind(node.schema, self.registry)
        self._kinds[node.schema.id] = (node.schema, kind)
        return kind

    def _fire(self, payload: TraceEvent):
        if self.tracer is not None:
            self.tracer.fire(payload)

    # ── Triggering ──────────────────────────────────────────────────────────

    async def maybe_propagate(self) -> Optional[List[str]]:
        """
        Run a pass if edges or parameter values changed since the last one.
        Returns the ids whose metadata changed, or None when nothing ran.
        """
        if self.document.fingerprint() == self._last_fingerprint:
            return None
        return await self.propagate()

    async def propagate(self) -> Optional[List[str]]:
        """
        Run one full pass.  Returns the ids whose metadata changed, or None
        when the call was dropped because a pass is already in flight.
        """
        if self._running:
            logger.debug("Propagation already in flight; dropping trigger")
            return None

        self._running = True
        try:
            self._last_fingerprint = self.document.fingerprint()
            nodes = self.document.node_list()
            edges = self.document.edges
            self._fire(PropagationStartEvent(type="PROPAGATION_START", nodeCount=len(nodes)))

            ordered = dfs_postorder(nodes, edges, on_cycle=self._on_cycle)
            computed: Dict[str, NodeMetadata] = {}
            for node in ordered:
                computed[node.id] = await self._compute_node(node, edges, computed)

            changed = self._commit(computed)
            self._fire(PropagationDoneEvent(type="PROPAGATION_DONE", changed=changed))
            return changed
        finally:
            self._running = False

    def _on_cycle(self, node_id: str):
        logger.warning("Cycle through node %s; metadata past this point may be stale", node_id)

    # ── Per-node computation ────────────────────────────────────────────────

    def _input_columns(self, node: "FlowNode", edges: List["Edge"], computed: Dict[str, NodeMetadata]) -> ColumnMap:
        inputs: ColumnMap = {}
        for edge in edges:
            if edge.target_id != node.id:
                continue
            upstream = computed.get(edge.source_id)
            if upstream is None and self.document.has_node(edge.source_id):
                # not reached yet because of a cycle; use what was committed last time
                upstream = self.document.get_node(edge.source_id).metadata
            if upstream is None:
                continue
            columns = upstream.output_columns.get(edge.source_port)
            if columns is not None:
                inputs[edge.target_port] = list(columns)
        return inputs

    async def _compute_node(self,
                            node: "FlowNode",
                            edges: List["Edge"],
                            computed: Dict[str, NodeMetadata]) -> NodeMetadata:
        inputs = self._input_columns(node, edges, computed)
        try:
            kind = self.kind_of(node)
            if isinstance(kind, SourceKind):
                outputs = await self._fetch(node, kind.fetch)
            else:
                outputs = kind.transform.compute_outputs(inputs, dict(node.values), node.schema)
            outputs = {port: _normalise(cols) for port, cols in (outputs or {}).items()}
        except Exception as exc:
            logger.warning("Column propagation failed for node %s (%s): %s", node.id, node.schema.id, exc)
            return NodeMetadata(inputs, {}, MetadataStatus.ERROR, str(exc) or type(exc).__name__)
        return NodeMetadata(inputs, outputs, MetadataStatus.READY)

    async def _fetch(self, node: "FlowNode", fetch: FetchDescriptor) -> ColumnMap:
        value = node.values.get(fetch.value_arg)
        if not value or not str(value).strip():
            return {}

        if fetch.is_file:
            columns = await self.library.fetch_file_columns(str(value))
        else:
            columns = await self.library.fetch_variable_columns(str(value))
        columns = _normalise(columns)

        index = next((str(node.values[a]).strip() for a in fetch.index_args if node.values.get(a)), "")
        if index:
            columns = [c for c in columns if c.name.lower() != index.lower()]
        return {output_port(node.schema): columns}

    # ── Commit ──────────────────────────────────────────────────────────────

    def _commit(self, computed: Dict[str, NodeMetadata]) -> List[str]:
        changed: List[str] = []
        for node_id, metadata in computed.items():
            if not self.document.has_node(node_id):
                logger.debug("Discarding metadata for deleted node %s", node_id)
                continue
            node = self.document.get_node(node_id)
            if node.metadata == metadata:
                continue
            node.metadata = metadata
            changed.append(node_id)
            self._fire(MetadataUpdatedEvent(
                type="METADATA_UPDATED",
                nodeId=node_id,
                status=metadata.status.value,
                metadata=metadata.to_dict(),
            ))
        if changed:
            logger.debug("Committed column metadata for %d node(s)", len(changed))
        return changed
