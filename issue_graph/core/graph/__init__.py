"""Dependency graph model.

`GraphEngine` owns issues and edges; `cycle_guard` and `traversal` are the
pure reachability helpers it is built on. Layout, scheduling and health
checks all consume an engine instance rather than module-level state.
"""
