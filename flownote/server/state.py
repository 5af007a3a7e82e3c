"""
FlowState — the single open flow served by the API.

Builds a small demo flow on startup so the UI has something to display on
first load:

    Load CSV ──► Select Columns ──► Describe
          └────► Line Plot
"""
from __future__ import annotations

import logging
from typing import Optional

from flownote.core.Document import FlowDocument
from flownote.core.DocumentStore import InMemoryDocumentStore
from flownote.core.Executor import NamespaceExecutor
from flownote.session import FlowSession

from .config import Settings
from .library import SchemaLibrary
from .trace.trace_emitter import global_tracer

logger = logging.getLogger(__name__)


class FlowState:
    """Holds the settings, the algorithm library, the executor and the open session."""

    def __init__(self, settings: Optional[Settings] = None, seed_demo: bool = True) -> None:
        self.settings = settings or Settings.from_env()
        self.executor = NamespaceExecutor()
        kwargs = {"root": self.settings.server_root, "namespace": lambda: self.executor.namespace}
        if self.settings.library_path:
            self.library = SchemaLibrary.from_file(self.settings.library_path, **kwargs)
        else:
            self.library = SchemaLibrary(**kwargs)
        self.session = self.new_session()
        if seed_demo:
            self._seed_demo()

    def new_session(self, document: Optional[FlowDocument] = None) -> FlowSession:
        return FlowSession(
            document=document,
            store=InMemoryDocumentStore(),
            library=self.library,
            executor=self.executor,
            root=self.settings.server_root,
            workflow_import=self.settings.workflow_import,
            tracer=global_tracer,
        )

    def reset(self, seed_demo: bool = False) -> FlowSession:
        self.executor.reset()
        self.session = self.new_session()
        if seed_demo:
            self._seed_demo()
        return self.session

    # ── Demo flow ───────────────────────────────────────────────────────────

    def _seed_demo(self) -> None:
        s = self.session

        load = s.insert_node("load_csv", position={"x": 80, "y": 100})
        s.set_values(load.id, {**load.values, "filepath": "sales.csv"})

        select = s.insert_node("select_columns", position={"x": 380, "y": 100})
        s.set_values(select.id, {"columns": ["region", "revenue"]})

        describe = s.insert_node("describe", position={"x": 680, "y": 100})
        plot = s.insert_node("plot_line", position={"x": 380, "y": 300})
        # bare-identifier strings render as variable references
        s.set_values(plot.id, {**plot.values, "y": ["revenue"], "title": "Revenue by row"})

        s.connect(load.id, "df_out", select.id, "df_in")
        s.connect(select.id, "df_out", describe.id, "df_in")
        s.connect(load.id, "df_out", plot.id, "df_in")
        logger.debug("Seeded demo flow with %d nodes", len(s.document.nodes))


# Lazily created so importing the routes module does not read the environment.
_flow_state: Optional[FlowState] = None


def get_flow_state() -> FlowState:
    global _flow_state
    if _flow_state is None:
        _flow_state = FlowState()
    return _flow_state


def set_flow_state(state: FlowState) -> FlowState:
    global _flow_state
    _flow_state = state
    return state
