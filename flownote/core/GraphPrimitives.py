from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from .Errors import PortAlreadyConnectedError


# Edges are immutable; the four endpoint fields are the whole identity.
class Edge(NamedTuple):
    source_id: str
    source_port: str
    target_id: str
    target_port: str

    @property
    def id(self) -> str:
        return f"e-{self.source_id}-{self.target_id}-{self.source_port}-{self.target_port}"

    def touches(self, node_id: str) -> bool:
        return self.source_id == node_id or self.target_id == node_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sourceId": self.source_id,
            "sourcePort": self.source_port,
            "targetId": self.target_id,
            "targetPort": self.target_port,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'Edge':
        return Edge(
            str(data["sourceId"]),
            str(data["sourcePort"]),
            str(data["targetId"]),
            str(data["targetPort"]),
        )

    def __repr__(self):
        return f"Edge({self.source_id}.{self.source_port} -> {self.target_id}.{self.target_port})"


class Graph:
    """
    Edge arena for one document.  Nodes live on the document; the graph only
    stores connections plus an index of the single producer feeding each
    (node_id, port_name) input.
    """

    def __init__(self):
        self.edges: List[Edge] = []
        self.incoming_edges: Dict[Tuple[str, str], Edge] = {}

    def add_edge(self, source_id: str, source_port: str, target_id: str, target_port: str) -> Edge:
        edge = Edge(source_id, source_port, target_id, target_port)

        existing = self.incoming_edges.get((target_id, target_port))
        if existing is not None:
            if existing == edge:
                return existing
            raise PortAlreadyConnectedError(target_id, target_port)

        self.edges.append(edge)
        self.incoming_edges[(target_id, target_port)] = edge
        return edge

    def remove_edge(self, edge: Edge) -> bool:
        if edge not in self.edges:
            return False
        self.edges.remove(edge)
        del self.incoming_edges[(edge.target_id, edge.target_port)]
        return True

    def remove_node_edges(self, node_id: str) -> List[Edge]:
        """Drop every edge touching `node_id` and return the removed edges."""
        removed = [e for e in self.edges if e.touches(node_id)]
        for edge in removed:
            self.remove_edge(edge)
        return removed

    def get_incoming_edge(self, node_id: str, port_name: str) -> Optional[Edge]:
        return self.incoming_edges.get((node_id, port_name))

    def get_all_incoming(self, node_id: str) -> List[Edge]:
        return [e for e in self.edges if e.target_id == node_id]

    def get_all_outgoing(self, node_id: str) -> List[Edge]:
        return [e for e in self.edges if e.source_id == node_id]
