"""
Full-document emitter
=====================
Concatenates every node's code in dependency order under a single header.

    import pandas as pd
    import numpy as np
    import matplotlib.pyplot as plt
    from workflow_lib import *
    <schema imports, deduplicated>

    # Load CSV
    n01_df_out = load_csv(...)
    ...

A cyclic document produces exactly one line, CYCLE_DIAGNOSTIC, and no node
code at all.  Output is a pure function of the document and the root, so
the same inputs always give byte-identical text.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Set, TYPE_CHECKING

from .synthesizer import CodeSynthesizer, DEFAULT_WORKFLOW_IMPORT
from .templates import CodeWriter
from .topo import CycleDetected, kahn_sort

if TYPE_CHECKING:
    from flownote.core.Document import FlowDocument
    from flownote.core.Node import FlowNode

logger = logging.getLogger(__name__)

CYCLE_DIAGNOSTIC = "# Error: Cycle detected in workflow!"

BASE_IMPORTS = [
    "import pandas as pd",
    "import numpy as np",
    "import matplotlib.pyplot as plt",
]


# ── Header ────────────────────────────────────────────────────────────────────

def _header(ordered: List["FlowNode"], workflow_import: Optional[str]) -> List[str]:
    seen: Set[str] = set()
    lines: List[str] = []

    def _maybe(line: str) -> None:
        if line and line not in seen:
            seen.add(line)
            lines.append(line)

    for line in BASE_IMPORTS:
        _maybe(line)
    if workflow_import:
        _maybe(workflow_import)
    for node in ordered:
        for line in node.schema.imports:
            _maybe(line)
    return lines


# ── Public API ────────────────────────────────────────────────────────────────

def emit(document: "FlowDocument",
         root: Optional[str] = None,
         workflow_import: str = DEFAULT_WORKFLOW_IMPORT) -> str:
    try:
        ordered = kahn_sort(document.node_list(), document.edges)
    except CycleDetected as exc:
        logger.warning("Not generating code: %s", exc)
        return CYCLE_DIAGNOSTIC

    synthesizer = CodeSynthesizer(root=root, workflow_import=workflow_import)
    writer = CodeWriter()
    writer.extend(_header(ordered, workflow_import))
    writer.blank()

    for node in ordered:
        if node.is_free:
            text = node.source.rstrip("\n")
        else:
            text = synthesizer.node_source(document, node.id, standalone=False)
        if text:
            writer.extend(text.split("\n"))
            writer.blank()

    return writer.result()
