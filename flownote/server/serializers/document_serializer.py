"""
Document serializer — converts a FlowSession into the JSON-safe wire shape
the flow canvas expects.

# SerializedNode keys: id, number, label, schema, values, outputVars,
#                      position, source, metadata, status, criticalArgs,
#                      connectedInputs
# SerializedEdge keys: id, sourceId, sourcePort, targetId, targetPort
# SerializedDocument keys: nextOrdinal, nodes, edges
"""
from __future__ import annotations

from typing import Any, Dict, Optional, TYPE_CHECKING

from flownote.core.Schema import critical_args
from flownote.core.Types import NodeStatus

if TYPE_CHECKING:
    from flownote.core.Node import FlowNode
    from flownote.session import FlowSession


def serialize_node(session: "FlowSession", node: "FlowNode", status: Optional[NodeStatus] = None) -> Dict[str, Any]:
    data = node.to_dict()
    data["label"] = node.label()
    data["status"] = (status or session.status.status_of(node.id)).value
    data["criticalArgs"] = [a.name for a in critical_args(node.schema)]
    data["connectedInputs"] = sorted(e.target_port for e in session.document.graph.get_all_incoming(node.id))
    data.setdefault("position", None)
    data.setdefault("source", node.source)
    return data


def serialize_document(session: "FlowSession") -> Dict[str, Any]:
    statuses = session.statuses()
    return {
        "nextOrdinal": session.document.next_ordinal,
        "nodes": [serialize_node(session, n, statuses[n.id]) for n in session.document.node_list()],
        "edges": [e.to_dict() for e in session.document.edges],
    }


def serialize_statuses(statuses: Dict[str, NodeStatus]) -> Dict[str, str]:
    return {node_id: status.value for node_id, status in statuses.items()}
