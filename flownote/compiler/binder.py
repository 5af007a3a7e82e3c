"""
Variable binding
================
Every output port of a node is bound to a stable Python identifier:

    n{ordinal:02d}_{sanitised_port}        e.g.  n03_df_out

The ordinal is the node's persisted sequence number, so the same
(ordinal, port) pair always produces the same name.  Bindings are stored on
the node and recomputed only when the node's list of output ports changes;
names already bound to surviving ports are kept as they are, because
downstream cells reference them verbatim.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, TYPE_CHECKING

if TYPE_CHECKING:
    from flownote.core.Node import FlowNode

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_]")


def sanitize_port(port_name: str) -> str:
    return _UNSAFE.sub("_", str(port_name))


def var_name(ordinal: int, port_name: str) -> str:
    return f"n{ordinal:02d}_{sanitize_port(port_name)}"


class VariableBinder:
    """Single source of truth for output variable names."""

    def needs_binding(self, node: "FlowNode") -> bool:
        return list(node.output_vars.keys()) != node.schema.output_names()

    def bind(self, node: "FlowNode") -> Dict[str, str]:
        """Bind the node's output ports; a no-op when the port list is unchanged."""
        if not self.needs_binding(node):
            return node.output_vars

        previous = node.output_vars
        bound: Dict[str, str] = {}
        taken: List[str] = []
        for port in node.schema.output_names():
            name = previous.get(port) or var_name(node.ordinal, port)
            # "a-b" and "a_b" sanitise to the same name on one node
            if name in taken:
                suffix = 2
                while f"{name}_{suffix}" in taken:
                    suffix += 1
                name = f"{name}_{suffix}"
            taken.append(name)
            bound[port] = name

        if previous:
            logger.debug("Rebinding outputs of %s: %s -> %s", node.id, previous, bound)
        node.output_vars = bound
        return bound

    def assignment_target(self, node: "FlowNode", port_name: str) -> str:
        """Variable a node's own code assigns for `port_name`."""
        self.bind(node)
        return node.output_vars[port_name]

    def reference(self, source: "FlowNode", source_port: str):
        """Variable a downstream node uses to consume `source.source_port`, or None."""
        self.bind(source)
        return source.output_vars.get(source_port)
