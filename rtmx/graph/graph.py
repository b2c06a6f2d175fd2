"""Dependency graph built from a snapshot of an RTM database.

An edge ``X -> Y`` means "X depends on Y".  ``dependencies`` holds the
forward edges, ``dependents`` the reverse ones.  Only edges whose two
endpoints exist in the database are kept; cross-repository references
(``repo:REQ-ID``) are dropped.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from rtmx.db.store import RTMDatabase
from rtmx.graph import critical, tarjan, topo
from rtmx.models.requirement import is_cross_repo


def dfs_preorder(adjacency: Mapping[str, list[str]], start: str) -> list[str]:
    """Nodes reachable from *start*, each once, in depth-first discovery order.

    *start* itself is never part of the result, even when a cycle leads
    back to it.  Uses an explicit stack so deep chains do not hit the
    interpreter recursion limit.
    """
    visited = {start}
    result: list[str] = []
    stack = [iter(adjacency.get(start, ()))]
    while stack:
        for nxt in stack[-1]:
            if nxt not in visited:
                visited.add(nxt)
                result.append(nxt)
                stack.append(iter(adjacency.get(nxt, ())))
                break
        else:
            stack.pop()
    return result


class DependencyGraph:
    """Read-only dependency graph over a database snapshot.

    The node list, edges and completion flags are captured at
    construction time; rebuild the graph after mutating the database.
    """

    def __init__(self, db: RTMDatabase) -> None:
        self._nodes: list[str] = db.ids()
        self._position: dict[str, int] = {rid: i for i, rid in enumerate(self._nodes)}
        self._incomplete: dict[str, bool] = {req.req_id: req.is_incomplete for req in db.all()}
        self._dependencies: dict[str, list[str]] = {}
        self._dependents: dict[str, list[str]] = {rid: [] for rid in self._nodes}

        for req in db.all():
            deps = []
            for dep in req.dependencies:
                if is_cross_repo(dep) or dep not in self._position:
                    continue
                deps.append(dep)
                self._dependents[dep].append(req.req_id)
            self._dependencies[req.req_id] = deps

    # ------------------------------------------------------------------
    # Primitive queries
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> list[str]:
        return list(self._nodes)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return sum(len(deps) for deps in self._dependencies.values())

    def __contains__(self, req_id: object) -> bool:
        return req_id in self._position

    def dependencies(self, req_id: str) -> list[str]:
        return list(self._dependencies.get(req_id, ()))

    def dependents(self, req_id: str) -> list[str]:
        return list(self._dependents.get(req_id, ()))

    def is_incomplete(self, req_id: str) -> bool:
        return self._incomplete.get(req_id, False)

    def roots(self) -> list[str]:
        """Requirements with no (local) dependencies."""
        return [rid for rid in self._nodes if not self._dependencies[rid]]

    def leaves(self) -> list[str]:
        """Requirements nothing else depends on."""
        return [rid for rid in self._nodes if not self._dependents[rid]]

    def transitive_dependencies(self, req_id: str) -> list[str]:
        return dfs_preorder(self._dependencies, req_id)

    def transitive_dependents(self, req_id: str) -> list[str]:
        return dfs_preorder(self._dependents, req_id)

    def is_blocked(self, req_id: str) -> bool:
        return bool(self.blocking_dependencies(req_id))

    def blocking_dependencies(self, req_id: str) -> list[str]:
        return [dep for dep in self._dependencies.get(req_id, ()) if self._incomplete[dep]]

    def statistics(self) -> dict[str, Any]:
        nodes = self.node_count
        edges = self.edge_count
        return {
            "nodes": nodes,
            "edges": edges,
            "roots": len(self.roots()),
            "leaves": len(self.leaves()),
            "avg_dependencies": edges / nodes if nodes else 0.0,
        }

    # ------------------------------------------------------------------
    # Algorithms
    # ------------------------------------------------------------------

    def find_cycles(self) -> list[list[str]]:
        return tarjan.find_cycles(self)

    def has_cycles(self) -> bool:
        return bool(self.find_cycles())

    def find_cycle_path(self, members: list[str]) -> list[str]:
        return tarjan.find_cycle_path(self, members)

    def topological_sort(self) -> list[str] | None:
        return topo.topological_sort(self)

    def execution_order(self) -> list[str] | None:
        """Order in which requirements can be completed (dependencies first)."""
        return self.topological_sort()

    def layers(self) -> list[list[str]]:
        return topo.layers(self)

    def blocking_analysis(self) -> dict[str, int]:
        return critical.blocking_analysis(self)

    def critical_path(self) -> list[str]:
        return critical.critical_path(self)

    def bottleneck_requirements(self, min_blocked: int) -> list[str]:
        return critical.bottleneck_requirements(self, min_blocked)

    def unblocked_incomplete(self) -> list[str]:
        return critical.unblocked_incomplete(self)

    def next_workable(self) -> list[str]:
        """Incomplete requirements that can be started right now."""
        return self.unblocked_incomplete()
