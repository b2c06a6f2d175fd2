"""Topological ordering and layering (Kahn's algorithm)."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rtmx.graph.graph import DependencyGraph


def _kahn_order(graph: DependencyGraph) -> list[str]:
    """Dependencies-first order of every node not on or behind a cycle.

    The queue is seeded in insertion order, which makes the result
    deterministic for a given database.
    """
    remaining = {node: len(graph.dependencies(node)) for node in graph.nodes}
    queue = deque(node for node in graph.nodes if remaining[node] == 0)
    order = []
    while queue:
        node = queue.popleft()
        order.append(node)
        for dependent in graph.dependents(node):
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                queue.append(dependent)
    return order


def topological_sort(graph: DependencyGraph) -> list[str] | None:
    """Every node once, each dependency before its dependents.

    Returns ``None`` when the graph has a cycle.
    """
    order = _kahn_order(graph)
    if len(order) != graph.node_count:
        return None
    return order


def layers(graph: DependencyGraph) -> list[list[str]]:
    """Group nodes by longest dependency chain below them.

    Layer 0 holds the roots; a node sits in layer ``k`` when all of its
    dependencies are in layers below ``k`` and at least one is in
    ``k - 1``.  Nodes on or downstream of a cycle have no layer.
    """
    depth: dict[str, int] = {}
    for node in _kahn_order(graph):
        deps = graph.dependencies(node)
        depth[node] = 1 + max(depth[d] for d in deps) if deps else 0

    if not depth:
        return []
    result: list[list[str]] = [[] for _ in range(max(depth.values()) + 1)]
    for node in graph.nodes:
        if node in depth:
            result[depth[node]].append(node)
    return result
