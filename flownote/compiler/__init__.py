"""
FlowNote compiler
=================
Turns a flow document (nodes, schemas, edges) into sequential Python.

Pipeline
--------
    FlowDocument  →  [topo.kahn_sort]          →  ordered nodes
    ordered nodes →  [synthesizer]              →  per-node text
    per-node text →  [emitter.emit]             →  full listing

Public API
----------
    from flownote.compiler import compile_document

    source = compile_document(document, root="/srv/notebooks")
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

from .emitter import CYCLE_DIAGNOSTIC, emit
from .synthesizer import DEFAULT_WORKFLOW_IMPORT, CodeSynthesizer, synthesize_node, resolve_values
from .topo import CycleDetected, dfs_postorder, kahn_sort

if TYPE_CHECKING:
    from flownote.core.Document import FlowDocument


def compile_document(
    document: "FlowDocument",
    root: Optional[str] = None,
    workflow_import: str = DEFAULT_WORKFLOW_IMPORT,
) -> str:
    """
    Compile a whole document into one Python listing.

    Args:
        document:        The FlowDocument to compile.
        root:            Directory `filepath` parameters are resolved against.
        workflow_import: Import line for the algorithm library.

    Returns:
        The listing, or CYCLE_DIAGNOSTIC when the graph has a cycle.
    """
    return emit(document, root=root, workflow_import=workflow_import)


__all__ = [
    "CYCLE_DIAGNOSTIC",
    "DEFAULT_WORKFLOW_IMPORT",
    "CodeSynthesizer",
    "CycleDetected",
    "compile_document",
    "dfs_postorder",
    "kahn_sort",
    "resolve_values",
    "synthesize_node",
]
