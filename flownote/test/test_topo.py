import random
from types import SimpleNamespace

import pytest

from flownote.compiler.topo import CycleDetected, dfs_postorder, kahn_sort
from flownote.core.GraphPrimitives import Edge


def _nodes(*ids):
    return [SimpleNamespace(id=i) for i in ids]


def _ids(nodes):
    return [n.id for n in nodes]


def _random_dag(rng, size):
    nodes = _nodes(*[f"n{i}" for i in range(size)])
    # edges only run from a lower to a higher rank, so the graph is acyclic
    rank = list(range(size))
    rng.shuffle(rank)
    edges = []
    for i in range(size):
        for j in range(size):
            if rank[i] < rank[j] and rng.random() < 0.3:
                edges.append(Edge(f"n{i}", "out", f"n{j}", f"in{i}"))
    return nodes, edges


class TestKahnSort:

    def test_independent_nodes_keep_their_order(self):
        assert _ids(kahn_sort(_nodes("c", "a", "b"), [])) == ["c", "a", "b"]

    def test_two_node_chain(self):
        """A.out -> B.in orders A before B."""
        nodes = _nodes("B", "A")
        edges = [Edge("A", "out", "B", "in")]
        assert _ids(kahn_sort(nodes, edges)) == ["A", "B"]

    def test_random_acyclic_graphs(self):
        rng = random.Random(7)
        for size in range(1, 25):
            nodes, edges = _random_dag(rng, size)
            ordered = _ids(kahn_sort(nodes, edges))

            assert len(ordered) == len(nodes)
            position = {node_id: i for i, node_id in enumerate(ordered)}
            for edge in edges:
                assert position[edge.source_id] < position[edge.target_id]

    def test_same_input_same_order(self):
        rng = random.Random(11)
        nodes, edges = _random_dag(rng, 12)
        assert _ids(kahn_sort(nodes, edges)) == _ids(kahn_sort(nodes, edges))

    def test_self_loop_is_a_cycle(self):
        with pytest.raises(CycleDetected) as info:
            kahn_sort(_nodes("A"), [Edge("A", "out", "A", "in")])
        assert info.value.unresolved == ["A"]

    def test_cycle_yields_no_partial_order(self):
        nodes = _nodes("free", "A", "B")
        edges = [Edge("A", "out", "B", "in"), Edge("B", "out", "A", "in")]
        with pytest.raises(CycleDetected) as info:
            kahn_sort(nodes, edges)
        assert sorted(info.value.unresolved) == ["A", "B"]

    def test_edges_to_unknown_nodes_are_ignored(self):
        nodes = _nodes("A", "B")
        edges = [Edge("ghost", "out", "A", "in"), Edge("A", "out", "B", "in")]
        assert _ids(kahn_sort(nodes, edges)) == ["A", "B"]


class TestDfsPostorder:

    def test_upstream_first(self):
        nodes = _nodes("C", "B", "A")
        edges = [Edge("A", "out", "B", "in"), Edge("B", "out", "C", "in")]
        assert _ids(dfs_postorder(nodes, edges)) == ["A", "B", "C"]

    def test_cycle_stops_silently(self):
        seen = []
        nodes = _nodes("A", "B")
        edges = [Edge("A", "out", "B", "in"), Edge("B", "out", "A", "in")]

        ordered = _ids(dfs_postorder(nodes, edges, on_cycle=seen.append))

        assert ordered == ["B", "A"]
        assert seen == ["A"]

    def test_every_node_once(self):
        rng = random.Random(3)
        nodes, edges = _random_dag(rng, 15)
        ordered = _ids(dfs_postorder(nodes, edges))
        assert sorted(ordered) == sorted(_ids(nodes))
        position = {node_id: i for i, node_id in enumerate(ordered)}
        for edge in edges:
            assert position[edge.source_id] < position[edge.target_id]
