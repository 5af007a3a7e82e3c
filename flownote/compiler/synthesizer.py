"""
Per-node code synthesis
=======================
Produces the source text of one node from its schema, its resolved values
and the variable names bound to its outputs.

Two modes, chosen by the schema:

  structured call   (no template)
        # Load CSV
        n01_df_out = load_csv(filepath='/srv/dataset/a.csv', sep=',')
        try:
            display(n01_df_out.head())
        except Exception:
            print(n01_df_out)

  flat template     (schema.template is set)
        {OUTPUT_VAR}, {VAR_NAME}, {<port>} and {<arg>} placeholders are
        replaced literally, parameters in schema order.

Value resolution
----------------
Before synthesis every input port and input-role argument is resolved
against the edge set: a wired name takes the upstream bound variable, an
unwired one is forced to None so stale values never leak into the code.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .templates import CodeWriter, format_value, is_bare_identifier, raw_value

if TYPE_CHECKING:
    from flownote.core.Document import FlowDocument
    from flownote.core.Schema import NodeSchema

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_IMPORT = "from workflow_lib import *"
CAPTURE_VAR = "res"


def resolve_values(document: "FlowDocument", node_id: str) -> Dict[str, Any]:
    node = document.get_node(node_id)
    resolved = dict(node.values)
    for name in node.schema.reference_names():
        reference = document.upstream_reference(node_id, name)
        resolved[name] = reference if is_bare_identifier(reference) else None
    return resolved


# ── Structured call mode ─────────────────────────────────────────────────────

def _call_arguments(schema: "NodeSchema", values: Dict[str, Any], root: Optional[str]) -> List[str]:
    args: List[str] = []
    included = set()

    # Input ports first: some library signatures take the frame positionally.
    for port in schema.inputs:
        if port.name in included:
            continue
        value = values.get(port.name)
        args.append(f"{port.name}={format_value(value, port.name, root)}")
        included.add(port.name)

    for arg in schema.args:
        if arg.is_output or arg.name in included:
            continue
        value = values[arg.name] if arg.name in values else arg.default
        args.append(f"{arg.name}={format_value(value, arg.name, root)}")
        included.add(arg.name)

    return args


def _emit_call(schema: "NodeSchema",
               values: Dict[str, Any],
               output_vars: Dict[str, str],
               root: Optional[str],
               writer: CodeWriter) -> None:
    call = f"{schema.call_name}({', '.join(_call_arguments(schema, values, root))})"
    outputs = schema.output_names()

    if not outputs:
        writer.writeln(call)
        return

    primary = output_vars.get(outputs[0])
    if len(outputs) == 1 and is_bare_identifier(primary):
        target = primary
        writer.assign(target, call)
    else:
        target = CAPTURE_VAR
        writer.assign(CAPTURE_VAR, call)
        for port in outputs:
            alias = output_vars.get(port)
            if is_bare_identifier(alias):
                writer.assign(alias, CAPTURE_VAR)

    writer.try_except([f"display({target}.head())"], [f"print({target})"])


# ── Flat template mode ───────────────────────────────────────────────────────

def _fill_template(schema: "NodeSchema",
                   values: Dict[str, Any],
                   output_vars: Dict[str, str],
                   ordinal: int,
                   root: Optional[str]) -> str:
    outputs = schema.output_names()
    output_var = output_vars.get(outputs[0]) if outputs else None
    if not output_var:
        output_var = f"n{ordinal:02d}_out"

    input_var = next(
        (values[p] for p in schema.input_names() if is_bare_identifier(values.get(p))),
        None,
    )

    code = schema.template or ""
    code = code.replace("{OUTPUT_VAR}", output_var)
    code = code.replace("{VAR_NAME}", input_var or output_var)

    for port in schema.inputs:
        code = code.replace("{" + port.name + "}", raw_value(values.get(port.name)))

    for arg in schema.args:
        value = values[arg.name] if arg.name in values else arg.default
        code = code.replace("{" + arg.name + "}", raw_value(value, arg.name, root))
    return code


# ── Public API ───────────────────────────────────────────────────────────────

def synthesize_node(schema: "NodeSchema",
                    values: Dict[str, Any],
                    output_vars: Dict[str, str],
                    root: Optional[str] = None,
                    ordinal: int = 0,
                    workflow_import: Optional[str] = DEFAULT_WORKFLOW_IMPORT) -> str:
    """
    Source text for one node.  `values` must already be resolved (see
    resolve_values).  Pass workflow_import=None to leave the library import
    to a document header.
    """
    writer = CodeWriter()
    writer.comment(schema.name or "Step")

    if schema.is_flat_template:
        writer.extend(_fill_template(schema, values, output_vars, ordinal, root).split("\n"))
        return writer.result()

    if workflow_import:
        writer.writeln(workflow_import)
    _emit_call(schema, values, output_vars, root, writer)
    return writer.result()


class CodeSynthesizer:
    """Synthesizes node text against a live document."""

    def __init__(self, root: Optional[str] = None, workflow_import: str = DEFAULT_WORKFLOW_IMPORT):
        self.root = root
        self.workflow_import = workflow_import

    def node_source(self, document: "FlowDocument", node_id: str, standalone: bool = True) -> Optional[str]:
        """
        Code for one node, or None for free cells, whose text belongs to the
        user.  Standalone text carries its own library import.
        """
        node = document.get_node(node_id)
        if node.is_free:
            return None
        document.binder.bind(node)
        return synthesize_node(
            node.schema,
            resolve_values(document, node_id),
            node.output_vars,
            root=self.root,
            ordinal=node.ordinal,
            workflow_import=self.workflow_import if standalone else None,
        )

    def refresh_node(self, document: "FlowDocument", node_id: str) -> bool:
        """Rewrite the stored source of a node; returns True when it changed."""
        source = self.node_source(document, node_id)
        node = document.get_node(node_id)
        if source is None or source == node.source:
            return False
        node.source = source
        return True
