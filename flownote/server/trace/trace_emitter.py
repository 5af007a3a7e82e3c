"""
TraceEmitter: synchronous fan-out of session and propagation events.

FlowSession and SchemaPropagator call `fire()` with one of the events in
trace_types.py; every registered listener (the Socket.IO bridge, a logger,
a test collecting events) receives the same dict, stamped with `ts` in
milliseconds.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, List

from .trace_types import TraceEvent

logger = logging.getLogger(__name__)

Listener = Callable[[TraceEvent], None]


class TraceEmitter:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def on_trace(self, callback: Listener) -> None:
        self._listeners.append(callback)

    def off_trace(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def fire(self, event: TraceEvent) -> None:
        event.setdefault("ts", int(time.time() * 1000))
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # the mutation that fired the event has already happened
                logger.exception("Trace listener %r failed on %s", listener, event.get("type"))


global_tracer = TraceEmitter()
