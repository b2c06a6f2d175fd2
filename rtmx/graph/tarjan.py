"""Cycle detection with Tarjan's strongly-connected-components algorithm."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rtmx.graph.graph import DependencyGraph


def strongly_connected_components(graph: DependencyGraph) -> list[list[str]]:
    """Return every SCC, in the order Tarjan's algorithm completes them.

    Nodes are visited in database insertion order.  The traversal keeps
    its own work stack instead of recursing.
    """
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    sccs: list[list[str]] = []
    counter = 0

    def visit(node: str) -> Iterator[str]:
        nonlocal counter
        index[node] = lowlink[node] = counter
        counter += 1
        stack.append(node)
        on_stack.add(node)
        return iter(graph.dependencies(node))

    for root in graph.nodes:
        if root in index:
            continue
        work: list[tuple[str, Iterator[str]]] = [(root, visit(root))]
        while work:
            node, successors = work[-1]
            for succ in successors:
                if succ not in index:
                    work.append((succ, visit(succ)))
                    break
                if succ in on_stack:
                    lowlink[node] = min(lowlink[node], index[succ])
            else:
                work.pop()
                if lowlink[node] == index[node]:
                    scc = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        scc.append(member)
                        if member == node:
                            break
                    sccs.append(scc)
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])
    return sccs


def find_cycles(graph: DependencyGraph) -> list[list[str]]:
    """SCCs that form a cycle: two or more members, or one with a self-loop."""
    cycles = []
    for scc in strongly_connected_components(graph):
        if len(scc) > 1 or scc[0] in graph.dependencies(scc[0]):
            cycles.append(scc)
    return cycles


def find_cycle_path(graph: DependencyGraph, members: list[str]) -> list[str]:
    """Return a closed walk through *members* that starts and ends at ``members[0]``.

    Only edges between members are followed.  If no such walk exists the
    member list itself is returned.
    """
    if not members:
        return []

    member_set = set(members)
    start = members[0]
    path = [start]
    visited = {start}
    stack = [iter(graph.dependencies(start))]
    while stack:
        for dep in stack[-1]:
            if dep not in member_set:
                continue
            if dep == start:
                return path + [start]
            if dep not in visited:
                visited.add(dep)
                path.append(dep)
                stack.append(iter(graph.dependencies(dep)))
                break
        else:
            stack.pop()
            path.pop()
    return list(members)
