from __future__ import annotations

import copy
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from flownote.compiler.binder import VariableBinder
from .Errors import NodeNotFoundError, UnknownPortError, PortAlreadyConnectedError
from .GraphPrimitives import Edge, Graph
from .Node import FlowNode
from .Schema import NodeSchema, free_cell_schema
from .Types import NodeStatus

logger = logging.getLogger(__name__)

DEFAULT_X = 100
FIRST_Y = 50
SPACING_Y = 150


class FlowDocument:
    """
    Nodes, edges and the document-wide ordinal counter of one flow.

    All mutation goes through this object.  Node order is insertion order
    (the cell order of the backing notebook) and breaks ties in the
    topological sort.
    """

    def __init__(self, next_ordinal: int = 1):
        self.nodes: Dict[str, FlowNode] = {}
        self.graph = Graph()
        self.binder = VariableBinder()
        self.next_ordinal = next_ordinal
        # Execution overlay: node_id -> RUNNING | SUCCESS | FAILED
        self.execution_status: Dict[str, NodeStatus] = {}

    def allocate_ordinal(self) -> int:
        ordinal = self.next_ordinal
        self.next_ordinal += 1
        return ordinal

    # ── Queries ─────────────────────────────────────────────────────────────

    @property
    def edges(self) -> List[Edge]:
        return list(self.graph.edges)

    def node_list(self) -> List[FlowNode]:
        return list(self.nodes.values())

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def get_node(self, node_id: str) -> FlowNode:
        node = self.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def index_of(self, node_id: str) -> int:
        self.get_node(node_id)
        return list(self.nodes.keys()).index(node_id)

    def get_incoming_edge(self, node_id: str, port_name: str) -> Optional[Edge]:
        return self.graph.get_incoming_edge(node_id, port_name)

    def upstream_reference(self, node_id: str, port_name: str) -> Optional[str]:
        """Bound variable of the producer wired into (node_id, port_name), if any."""
        edge = self.graph.get_incoming_edge(node_id, port_name)
        if edge is None:
            return None
        source = self.nodes.get(edge.source_id)
        if source is None:
            return None
        return self.binder.reference(source, edge.source_port)

    def downstream_ids(self, node_id: str) -> List[str]:
        result: List[str] = []
        for edge in self.graph.get_all_outgoing(node_id):
            if edge.target_id not in result:
                result.append(edge.target_id)
        return result

    # ── Node lifecycle ──────────────────────────────────────────────────────

    def _default_position(self) -> Dict[str, float]:
        ys = [n.position["y"] for n in self.nodes.values() if n.position]
        return {"x": DEFAULT_X, "y": (max(ys) if ys else FIRST_Y) + SPACING_Y}

    def insert_node(self,
                    schema: Optional[NodeSchema] = None,
                    values: Optional[Dict[str, Any]] = None,
                    node_id: Optional[str] = None,
                    position: Optional[Dict[str, float]] = None,
                    index: Optional[int] = None,
                    source: str = "") -> FlowNode:
        if node_id is not None and node_id in self.nodes:
            raise ValueError(f"Node with id '{node_id}' already exists in the document")

        if schema is None:
            schema = free_cell_schema(len(self.nodes))
        if values is None:
            values = schema.default_values()

        node = FlowNode(
            node_id=node_id,
            schema=schema,
            ordinal=self.allocate_ordinal(),
            values=values,
            position=position or self._default_position(),
            source=source,
        )
        self.binder.bind(node)

        if index is None or index >= len(self.nodes):
            self.nodes[node.id] = node
        else:
            items = list(self.nodes.items())
            items.insert(max(0, index), (node.id, node))
            self.nodes = dict(items)

        logger.debug("Inserted %r at ordinal %d", node, node.ordinal)
        return node

    def delete_node(self, node_id: str) -> List[str]:
        """
        Remove a node and every edge touching it.  Returns the ids of the
        surviving nodes that lost an input, whose code and status need to be
        recomputed.
        """
        self.get_node(node_id)
        removed = self.graph.remove_node_edges(node_id)
        del self.nodes[node_id]
        self.execution_status.pop(node_id, None)

        affected: List[str] = []
        for edge in removed:
            if edge.target_id != node_id and edge.target_id not in affected:
                affected.append(edge.target_id)
        logger.debug("Deleted node %s (%d edges)", node_id, len(removed))
        return affected

    def assign_schema(self, node_id: str, schema: NodeSchema) -> List[Edge]:
        """
        Give a node a new algorithm.  Values reset to the schema defaults and
        output variables are rebound for the new port list.  Edges attached to
        ports the new schema no longer has are dropped and returned.
        """
        node = self.get_node(node_id)
        node.schema = schema
        node.values = schema.default_values()
        node.metadata = None
        self.binder.bind(node)

        references = schema.reference_names()
        stale = [
            e for e in self.graph.edges
            if (e.source_id == node_id and not schema.has_output(e.source_port))
            or (e.target_id == node_id and e.target_port not in references)
        ]
        for edge in stale:
            self.graph.remove_edge(edge)
        return stale

    def set_values(self, node_id: str, values: Dict[str, Any]):
        node = self.get_node(node_id)
        node.values = copy.deepcopy(values)

    def set_position(self, node_id: str, x: float, y: float):
        self.get_node(node_id).position = {"x": x, "y": y}

    def set_source(self, node_id: str, source: str):
        self.get_node(node_id).source = source

    # ── Edges ───────────────────────────────────────────────────────────────

    def connect(self, source_id: str, source_port: str, target_id: str, target_port: str) -> Edge:
        source = self.get_node(source_id)
        target = self.get_node(target_id)

        if not source.schema.has_output(source_port):
            raise UnknownPortError(f"Output port '{source_port}' not found on node '{source_id}'")
        if target_port not in target.schema.reference_names():
            raise UnknownPortError(f"Input port '{target_port}' not found on node '{target_id}'")

        return self.graph.add_edge(source_id, source_port, target_id, target_port)

    def disconnect(self, source_id: str, source_port: str, target_id: str, target_port: str) -> bool:
        return self.graph.remove_edge(Edge(source_id, source_port, target_id, target_port))

    # ── Execution overlay ───────────────────────────────────────────────────

    def set_execution_status(self, node_id: str, status: NodeStatus):
        self.get_node(node_id)
        if status not in (NodeStatus.RUNNING, NodeStatus.SUCCESS, NodeStatus.FAILED):
            raise ValueError(f"{status} is not an execution status")
        self.execution_status[node_id] = status

    def clear_execution_status(self, node_id: Optional[str] = None):
        if node_id is None:
            self.execution_status.clear()
        else:
            self.execution_status.pop(node_id, None)

    # ── Change detection ────────────────────────────────────────────────────

    def fingerprint(self) -> Tuple:
        """
        Snapshot of everything that should retrigger column propagation: the
        edge set and each node's algorithm and parameter values.  Metadata
        written by the propagator is not part of it.
        """
        nodes = tuple(
            (n.id, n.schema.id, json.dumps(n.values, sort_keys=True, default=str))
            for n in self.nodes.values()
        )
        return nodes, tuple(sorted(self.graph.edges))

    # ── Persistence ─────────────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nextOrdinal": self.next_ordinal,
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "edges": [e.to_dict() for e in self.graph.edges],
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> FlowDocument:
        nodes = [FlowNode.from_dict(n) for n in data.get("nodes") or []]
        highest = max((n.ordinal for n in nodes), default=0)
        document = FlowDocument(next_ordinal=max(int(data.get("nextOrdinal") or 1), highest + 1))

        for node in nodes:
            document.nodes[node.id] = node
            document.binder.bind(node)

        for raw in data.get("edges") or []:
            edge = Edge.from_dict(raw)
            if edge.source_id not in document.nodes or edge.target_id not in document.nodes:
                logger.warning("Dropping edge %r with a missing endpoint", edge)
                continue
            try:
                document.graph.add_edge(*edge)
            except PortAlreadyConnectedError:
                # stored documents may predate the single-producer rule; the first edge wins
                logger.warning("Dropping conflicting edge %r", edge)
        return document
