from typing import Dict, Iterable, List, Optional, TYPE_CHECKING
import logging

from .Types import NodeStatus

if TYPE_CHECKING:
    from .Document import FlowDocument
    from .GraphPrimitives import Edge
    from .Node import FlowNode

logger = logging.getLogger(__name__)


def structural_status(node: 'FlowNode', edges: Iterable['Edge']) -> NodeStatus:
    """Readiness from category and connectivity alone."""
    if node.is_free:
        return NodeStatus.UNCONFIGURED

    connected = {e.target_port for e in edges if e.target_id == node.id}
    for port in node.schema.input_names():
        if port not in connected:
            return NodeStatus.UNCONFIGURED
    return NodeStatus.CONFIGURED


class StatusComputer:
    """
    Derives the readiness label of every node.  An active execution overlay
    (running / success / failed) wins over the structural computation until
    it is cleared on the document.
    """

    def __init__(self, document: 'FlowDocument'):
        self.document = document

    def status_of(self, node_id: str) -> NodeStatus:
        node = self.document.get_node(node_id)
        overlay: Optional[NodeStatus] = self.document.execution_status.get(node_id)
        if overlay is not None:
            return overlay
        return structural_status(node, self.document.graph.get_all_incoming(node_id))

    def compute_all(self) -> Dict[str, NodeStatus]:
        return {node_id: self.status_of(node_id) for node_id in self.document.nodes}

    def recompute(self, node_ids: List[str]) -> Dict[str, NodeStatus]:
        result: Dict[str, NodeStatus] = {}
        for node_id in node_ids:
            if self.document.has_node(node_id):
                result[node_id] = self.status_of(node_id)
        return result
