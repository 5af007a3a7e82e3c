"""
Topological ordering
====================
Two traversals over the same (nodes, edges) pair:

  kahn_sort       in-degree / FIFO ordering used for code generation.
                  Fails fast with CycleDetected; never returns a partial
                  order.

  dfs_postorder   depth-first postorder over upstream edges used by the
                  column propagation pass.  A node reached again while it
                  is still being visited is skipped, so nodes on a cycle
                  are ordered arbitrarily instead of reported.

Both accept any node objects carrying an `id` attribute and any edge objects
carrying `source_id` / `target_id`.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

logger = logging.getLogger(__name__)


class CycleDetected(ValueError):
    def __init__(self, unresolved: List[str]):
        super().__init__(f"Cycle detected among nodes: {', '.join(unresolved)}")
        self.unresolved = unresolved


def kahn_sort(nodes: Sequence[Any], edges: Sequence[Any]) -> List[Any]:
    """
    Order `nodes` so that every edge's source precedes its target.

    Zero in-degree nodes are seeded in their original order; ties keep that
    order throughout.  Edges naming unknown nodes are ignored.
    """
    by_id: Dict[str, Any] = {}
    for node in nodes:
        by_id[node.id] = node

    in_degree: Dict[str, int] = {node_id: 0 for node_id in by_id}
    adjacency: Dict[str, List[str]] = {node_id: [] for node_id in by_id}

    for edge in edges:
        if edge.source_id not in by_id or edge.target_id not in by_id:
            continue
        adjacency[edge.source_id].append(edge.target_id)
        in_degree[edge.target_id] += 1

    queue = deque(node_id for node_id in by_id if in_degree[node_id] == 0)
    ordered: List[Any] = []

    while queue:
        node_id = queue.popleft()
        ordered.append(by_id[node_id])
        for neighbour in adjacency[node_id]:
            in_degree[neighbour] -= 1
            if in_degree[neighbour] == 0:
                queue.append(neighbour)

    if len(ordered) < len(by_id):
        unresolved = [node_id for node_id in by_id if in_degree[node_id] > 0]
        raise CycleDetected(unresolved)

    return ordered


def dfs_postorder(nodes: Sequence[Any],
                  edges: Sequence[Any],
                  on_cycle: Optional[Callable[[str], None]] = None) -> List[Any]:
    """
    Upstream-first depth-first ordering.  Re-entering a node that is still
    on the visit stack stops that branch; `on_cycle` is told which node.
    """
    by_id: Dict[str, Any] = {node.id: node for node in nodes}
    upstream: Dict[str, List[str]] = {node_id: [] for node_id in by_id}
    for edge in edges:
        if edge.target_id in upstream:
            upstream[edge.target_id].append(edge.source_id)

    visited: Set[str] = set()
    visiting: Set[str] = set()
    ordered: List[Any] = []

    def visit(node_id: str) -> None:
        if node_id in visiting:
            if on_cycle is not None:
                on_cycle(node_id)
            return
        if node_id in visited:
            return
        visiting.add(node_id)
        for source_id in upstream.get(node_id, []):
            visit(source_id)
        visiting.discard(node_id)
        visited.add(node_id)
        node = by_id.get(node_id)
        if node is not None:
            ordered.append(node)

    for node in nodes:
        visit(node.id)
    return ordered
