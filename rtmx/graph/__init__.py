"""Dependency graph algorithms."""

from rtmx.graph.graph import DependencyGraph, dfs_preorder

__all__ = ["DependencyGraph", "dfs_preorder"]
