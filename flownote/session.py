"""
FlowSession
===========
One open flow: the FlowDocument plus the collaborators around it.

    user action ──► FlowSession ──► FlowDocument     (mutation)
                                ──► CodeSynthesizer  (cell text of touched nodes)
                                ──► StatusComputer   (readiness of touched nodes)
                                ──► IDocumentStore   (persistence)
                                ──► SchemaPropagator (column metadata, async)
                                ──► IExecutor        (running a cell, async)

Every mutation is synchronous and leaves the store consistent with the
document.  Column propagation is never run implicitly; callers await
`propagate()` after a batch of changes.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from flownote.compiler import compile_document
from flownote.compiler.synthesizer import CodeSynthesizer, DEFAULT_WORKFLOW_IMPORT
from flownote.core.Document import FlowDocument
from flownote.core.DocumentStore import (
    EDGES_KEY,
    SEQ_KEY,
    InMemoryDocumentStore,
    load_document,
    save_document,
    save_node,
)
from flownote.core.Errors import SchemaError
from flownote.core.GraphPrimitives import Edge
from flownote.core.Interface import IDocumentStore, IExecutor, ISchemaLibrary
from flownote.core.Node import FlowNode
from flownote.core.Schema import NodeSchema
from flownote.core.Status import StatusComputer
from flownote.core.Types import NodeStatus
from flownote.propagation import SchemaPropagator, TransformRegistry
from flownote.server.trace.trace_types import (
    EdgeAddedEvent,
    EdgeRemovedEvent,
    NodeDeletedEvent,
    NodeDoneEvent,
    NodeErrorEvent,
    NodeRunningEvent,
    NodeStatusEvent,
    TraceEvent,
)

logger = logging.getLogger(__name__)

SchemaRef = Union[str, NodeSchema, Dict[str, Any], None]


def has_error_output(outputs: List[Dict[str, Any]]) -> bool:
    return any(o.get("output_type") == "error" for o in outputs or [])


class FlowSession:
    def __init__(self,
                 document: Optional[FlowDocument] = None,
                 store: Optional[IDocumentStore] = None,
                 library: Optional[ISchemaLibrary] = None,
                 executor: Optional[IExecutor] = None,
                 root: Optional[str] = None,
                 workflow_import: str = DEFAULT_WORKFLOW_IMPORT,
                 registry: Optional[TransformRegistry] = None,
                 tracer=None):
        self.store = store if store is not None else InMemoryDocumentStore()
        self.library = library
        self.executor = executor
        self.tracer = tracer
        self.root = root
        self.workflow_import = workflow_import
        self.registry = registry
        self.synthesizer = CodeSynthesizer(root=root, workflow_import=workflow_import)
        self._attach(document if document is not None else FlowDocument())

    def _attach(self, document: FlowDocument):
        self.document = document
        self.status = StatusComputer(document)
        self.propagator: Optional[SchemaPropagator] = None
        if self.library is not None:
            self.propagator = SchemaPropagator(document, self.library, self.registry, self.tracer)

    @classmethod
    def from_store(cls, store: IDocumentStore, **kwargs) -> FlowSession:
        return cls(document=load_document(store), store=store, **kwargs)

    def _fire(self, payload: TraceEvent):
        if self.tracer is not None:
            self.tracer.fire(payload)

    def _resolve_schema(self, schema: SchemaRef) -> Optional[NodeSchema]:
        if schema is None or isinstance(schema, NodeSchema):
            return schema
        if isinstance(schema, dict):
            return NodeSchema.from_dict(schema)
        if self.library is None:
            raise SchemaError(f"No schema library configured to look up '{schema}'")
        resolved = self.library.get_schema(schema)
        if resolved is None:
            raise SchemaError(f"Unknown algorithm '{schema}'")
        return resolved

    # ── Refresh helpers ─────────────────────────────────────────────────────

    def _save_edges(self):
        self.store.set(EDGES_KEY, [e.to_dict() for e in self.document.edges])
        self.store.set(SEQ_KEY, self.document.next_ordinal)

    def _refresh(self, node_ids: List[str]) -> Dict[str, NodeStatus]:
        """Regenerate cell text, persist and recompute status for `node_ids`."""
        for node_id in node_ids:
            if not self.document.has_node(node_id):
                continue
            self.synthesizer.refresh_node(self.document, node_id)
            save_node(self.store, self.document, node_id)

        statuses = self.status.recompute(node_ids)
        for node_id, status in statuses.items():
            self._fire(NodeStatusEvent(type="NODE_STATUS", nodeId=node_id, status=status.value))
        return statuses

    # ── Node operations ─────────────────────────────────────────────────────

    def insert_node(self,
                    schema: SchemaRef = None,
                    values: Optional[Dict[str, Any]] = None,
                    node_id: Optional[str] = None,
                    position: Optional[Dict[str, float]] = None,
                    index: Optional[int] = None,
                    source: str = "") -> FlowNode:
        node = self.document.insert_node(
            schema=self._resolve_schema(schema),
            values=values,
            node_id=node_id,
            position=position,
            index=index,
            source=source,
        )
        self.store.insert_node(node.id, index=self.document.index_of(node.id), source=node.source)
        self._save_edges()
        self._refresh([node.id])
        return node

    def delete_node(self, node_id: str) -> Dict[str, NodeStatus]:
        """Delete a node and its edges; returns the recomputed status of every node that lost an input."""
        stored = self.store.node_ids()
        store_index = stored.index(node_id) if node_id in stored else None
        affected = self.document.delete_node(node_id)
        if store_index is not None:
            self.store.delete_node_at_index(store_index)
        self._save_edges()
        self._fire(NodeDeletedEvent(type="NODE_DELETED", nodeId=node_id))
        return self._refresh(affected)

    def assign_schema(self, node_id: str, schema: SchemaRef) -> FlowNode:
        resolved = self._resolve_schema(schema)
        if resolved is None:
            raise SchemaError("assign_schema requires a schema")
        stale = self.document.assign_schema(node_id, resolved)
        self._save_edges()
        targets = [e.target_id for e in stale if e.target_id != node_id]
        self._refresh([node_id] + list(dict.fromkeys(targets)))
        return self.document.get_node(node_id)

    def set_values(self, node_id: str, values: Dict[str, Any]) -> FlowNode:
        self.document.set_values(node_id, values)
        self._refresh([node_id])
        return self.document.get_node(node_id)

    def set_position(self, node_id: str, x: float, y: float):
        self.document.set_position(node_id, x, y)
        save_node(self.store, self.document, node_id)

    def set_source(self, node_id: str, source: str):
        self.document.set_source(node_id, source)
        self.store.set_source(node_id, source)

    # ── Edge operations ─────────────────────────────────────────────────────

    def connect(self, source_id: str, source_port: str, target_id: str, target_port: str) -> Edge:
        edge = self.document.connect(source_id, source_port, target_id, target_port)
        self._save_edges()
        self._fire(EdgeAddedEvent(type="EDGE_ADDED", edge=edge.to_dict()))
        self._refresh([target_id])
        return edge

    def disconnect(self, source_id: str, source_port: str, target_id: str, target_port: str) -> bool:
        removed = self.document.disconnect(source_id, source_port, target_id, target_port)
        if removed:
            self._save_edges()
            edge = Edge(source_id, source_port, target_id, target_port)
            self._fire(EdgeRemovedEvent(type="EDGE_REMOVED", edge=edge.to_dict()))
            self._refresh([target_id])
        return removed

    # ── Code and status ─────────────────────────────────────────────────────

    def node_code(self, node_id: str) -> Optional[str]:
        return self.synthesizer.node_source(self.document, node_id)

    def generate_document(self) -> str:
        return compile_document(self.document, root=self.root, workflow_import=self.workflow_import)

    def statuses(self) -> Dict[str, NodeStatus]:
        return self.status.compute_all()

    def clear_execution(self, node_id: Optional[str] = None):
        self.document.clear_execution_status(node_id)
        node_ids = list(self.document.nodes) if node_id is None else [node_id]
        for nid in node_ids:
            if self.document.has_node(nid):
                save_node(self.store, self.document, nid)

    # ── Async collaborators ─────────────────────────────────────────────────

    async def propagate(self, force: bool = False) -> Optional[List[str]]:
        """Recompute column metadata; returns the ids that changed, or None if no pass ran."""
        if self.propagator is None:
            raise RuntimeError("Column propagation needs a schema library")
        if force:
            changed = await self.propagator.propagate()
        else:
            changed = await self.propagator.maybe_propagate()
        for node_id in changed or []:
            if self.document.has_node(node_id):
                save_node(self.store, self.document, node_id)
        return changed

    async def run_node(self, node_id: str) -> List[Dict[str, Any]]:
        """
        Execute a node's cell through the executor.  The node shows `running`
        while it executes, then `success` or `failed` depending on whether any
        output is an error record.
        """
        if self.executor is None:
            raise RuntimeError("Running a node needs an executor")

        node = self.document.get_node(node_id)
        if not node.is_free:
            self.synthesizer.refresh_node(self.document, node_id)
        self.document.set_execution_status(node_id, NodeStatus.RUNNING)
        save_node(self.store, self.document, node_id)
        self._fire(NodeRunningEvent(type="NODE_RUNNING", nodeId=node_id))

        try:
            outputs = await self.executor.run(node_id, node.source)
        except Exception as exc:
            logger.exception("Executor failed on node %s", node_id)
            outputs = [{"output_type": "error", "ename": type(exc).__name__, "evalue": str(exc), "traceback": []}]

        failed = has_error_output(outputs)
        if self.document.has_node(node_id):
            self.document.set_execution_status(node_id, NodeStatus.FAILED if failed else NodeStatus.SUCCESS)
            save_node(self.store, self.document, node_id)

        if failed:
            error = next(o for o in outputs if o.get("output_type") == "error")
            self._fire(NodeErrorEvent(type="NODE_ERROR", nodeId=node_id, error=f"{error.get('ename')}: {error.get('evalue')}"))
        else:
            self._fire(NodeDoneEvent(type="NODE_DONE", nodeId=node_id))
        return outputs

    # ── Persistence ─────────────────────────────────────────────────────────

    def save(self):
        save_document(self.store, self.document)

    def load(self, data: Dict[str, Any]) -> FlowDocument:
        """Replace the open document with a serialised one and mirror it into the store."""
        document = FlowDocument.from_dict(data)
        self._attach(document)
        for node in document.node_list():
            if not node.is_free:
                self.synthesizer.refresh_node(document, node.id)
        self.save()
        return document
