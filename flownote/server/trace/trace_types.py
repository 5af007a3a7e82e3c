"""
Shapes of the events FlowSession and SchemaPropagator hand to a tracer.

They are TypedDicts, so building one yields a plain dict that goes straight
out over Socket.IO.  `ts` is optional on construction; TraceEmitter.fire
stamps it.
"""
from typing import Any, Dict, List, Literal, TypedDict, Union


class _Stamped(TypedDict, total=False):
    ts: int


# ── Document events ─────────────────────────────────────────────────────────

class NodeStatusEvent(_Stamped):
    type: Literal["NODE_STATUS"]
    nodeId: str
    status: str


class NodeDeletedEvent(_Stamped):
    type: Literal["NODE_DELETED"]
    nodeId: str


class EdgeAddedEvent(_Stamped):
    type: Literal["EDGE_ADDED"]
    edge: Dict[str, str]


class EdgeRemovedEvent(_Stamped):
    type: Literal["EDGE_REMOVED"]
    edge: Dict[str, str]


# ── Execution events ────────────────────────────────────────────────────────

class NodeRunningEvent(_Stamped):
    type: Literal["NODE_RUNNING"]
    nodeId: str


class NodeDoneEvent(_Stamped):
    type: Literal["NODE_DONE"]
    nodeId: str


class NodeErrorEvent(_Stamped):
    type: Literal["NODE_ERROR"]
    nodeId: str
    error: str


# ── Propagation events ──────────────────────────────────────────────────────

class PropagationStartEvent(_Stamped):
    type: Literal["PROPAGATION_START"]
    nodeCount: int


class MetadataUpdatedEvent(_Stamped):
    type: Literal["METADATA_UPDATED"]
    nodeId: str
    status: str
    metadata: Dict[str, Any]


class PropagationDoneEvent(_Stamped):
    type: Literal["PROPAGATION_DONE"]
    changed: List[str]


TraceEvent = Union[
    NodeStatusEvent,
    NodeDeletedEvent,
    EdgeAddedEvent,
    EdgeRemovedEvent,
    NodeRunningEvent,
    NodeDoneEvent,
    NodeErrorEvent,
    PropagationStartEvent,
    MetadataUpdatedEvent,
    PropagationDoneEvent,
]
