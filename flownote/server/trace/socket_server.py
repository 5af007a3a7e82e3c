"""
Socket.IO channel for the editor UI.

Every event fired on `global_tracer` is re-emitted as a `trace` message, and
a client that connects is first sent a `snapshot` with the status of every
node so it can draw the graph without replaying history.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

import socketio

from flownote.server.state import get_flow_state

from .trace_emitter import global_tracer
from .trace_types import TraceEvent

logger = logging.getLogger(__name__)

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*",
    logger=False,
    engineio_logger=False,
)


# ── Trace bridge ────────────────────────────────────────────────────────────

def _on_trace(event: TraceEvent) -> None:
    """
    Runs inside TraceEmitter.fire().  Events fired with no running loop
    (the CLI, synchronous tests) have no client to reach and are skipped.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    loop.create_task(sio.emit("trace", event))


global_tracer.on_trace(_on_trace)


def status_snapshot() -> dict:
    session = get_flow_state().session
    propagator = session.propagator
    return {
        "statuses": {node_id: status.value for node_id, status in session.statuses().items()},
        "propagating": propagator is not None and propagator.is_running,
    }


# ── Connection lifecycle ────────────────────────────────────────────────────

@sio.event
async def connect(sid: str, environ: dict) -> None:
    logger.debug("Trace client connected: %s", sid)
    await sio.emit("snapshot", status_snapshot(), to=sid)


@sio.event
async def disconnect(sid: str) -> None:
    logger.debug("Trace client disconnected: %s", sid)


def create_socket_app(fastapi_app: Any, cors_origins: Optional[List[str]] = None) -> socketio.ASGIApp:
    """Mount Socket.IO at the root and forward every other request to *fastapi_app*."""
    if cors_origins is not None:
        sio.eio.cors_allowed_origins = cors_origins
    return socketio.ASGIApp(sio, other_asgi_app=fastapi_app)
