"""Blocking analysis: which incomplete requirements hold up the most work."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rtmx.graph.graph import DependencyGraph


def count_blocked_incomplete(graph: DependencyGraph, req_id: str) -> int:
    """Number of distinct incomplete requirements transitively held up by *req_id*.

    The walk follows ``dependents`` edges and stops at complete
    requirements: a finished requirement is not blocked, so nothing
    behind it is blocked through it.
    """
    visited = {req_id}
    count = 0
    stack = [req_id]
    while stack:
        node = stack.pop()
        for dependent in graph.dependents(node):
            if dependent in visited:
                continue
            visited.add(dependent)
            if graph.is_incomplete(dependent):
                count += 1
                stack.append(dependent)
    return count


def blocking_analysis(graph: DependencyGraph) -> dict[str, int]:
    """Map of incomplete requirement -> blocked count, nonzero entries only."""
    analysis = {}
    for req_id in graph.nodes:
        if not graph.is_incomplete(req_id):
            continue
        count = count_blocked_incomplete(graph, req_id)
        if count > 0:
            analysis[req_id] = count
    return analysis


def _rank(scores: dict[str, int]) -> list[str]:
    return sorted(scores, key=lambda rid: (-scores[rid], rid))


def critical_path(graph: DependencyGraph) -> list[str]:
    """Blocking requirements, highest impact first (ties by ID)."""
    return _rank(blocking_analysis(graph))


def bottleneck_requirements(graph: DependencyGraph, min_blocked: int) -> list[str]:
    """Incomplete requirements blocking at least *min_blocked* others."""
    scores = {}
    for req_id in graph.nodes:
        if not graph.is_incomplete(req_id):
            continue
        count = count_blocked_incomplete(graph, req_id)
        if count >= min_blocked:
            scores[req_id] = count
    return _rank(scores)


def unblocked_incomplete(graph: DependencyGraph) -> list[str]:
    """Incomplete requirements whose direct dependencies are all complete."""
    return [
        req_id
        for req_id in graph.nodes
        if graph.is_incomplete(req_id) and not graph.is_blocked(req_id)
    ]
