"""Layered (Sugiyama-style) layout of the dependency graph.

Phases:
  1. Layer assignment: prerequisites sit left of their dependents.
  2. Crossing reduction: barycenter sweeps, a fixed number of iterations.
  3. Coordinates: columns per layer, variable-height nodes stacked per column.

The result is a pure function of the graph and priorities.
"""
from __future__ import annotations

import logging
import math
from typing import Optional

from issue_graph.core.config import ImportancePolicy, LayoutConfig
from issue_graph.core.graph.engine import GraphEngine
from issue_graph.core.graph.traversal import Adjacency, reverse_adjacency, topological_order
from issue_graph.core.model import Issue, LayoutEdge, LayoutResult, NodePosition
from issue_graph.core.schedule.importance import importance_map


logger = logging.getLogger(__name__)


def assign_layers(deps: Adjacency) -> dict[str, int]:
    """layer = 0 without in-graph prerequisites, else 1 + deepest prerequisite.

    Walks the topological order instead of recursing. A prerequisite that
    has no layer yet can only be a cycle back edge; it counts as layer 0.
    """
    layers: dict[str, int] = {}
    for nid in topological_order(deps):
        best = -1
        for p in deps[nid]:
            if p in deps:
                best = max(best, layers.get(p, 0))
        layers[nid] = best + 1
    return layers


def node_height(issue: Issue, config: LayoutConfig) -> float:
    """Header plus a capped number of wrapped description lines."""
    text = issue.description.strip()
    lines = math.ceil(len(text) / max(1, config.chars_per_line)) if text else 0
    return config.header_height + min(lines, config.max_description_lines) * config.line_height


def _rank(layer_ids: list[str]) -> dict[str, float]:
    return {nid: float(i) for i, nid in enumerate(layer_ids)}


def _sweep(
    layer_ids: list[str],
    neighbors: Adjacency,
    neighbor_rank: dict[str, float],
    own_rank: dict[str, float],
) -> list[str]:
    """Re-sort one layer by the mean rank of each node's neighbours in the adjacent layer.

    Nodes with no neighbour there keep their current rank as target.
    """

    def target(nid: str) -> float:
        positions = [neighbor_rank[n] for n in neighbors.get(nid, ()) if n in neighbor_rank]
        if not positions:
            return own_rank[nid]
        return sum(positions) / len(positions)

    return sorted(layer_ids, key=lambda nid: (target(nid), own_rank[nid]))


def order_layers(
    engine: GraphEngine,
    layers: dict[str, int],
    iterations: int = 4,
) -> list[list[str]]:
    """Barycenter crossing reduction.

    Each layer starts sorted by ascending priority (insertion order breaks
    ties). Every iteration runs a forward sweep (layer 1..max, against
    prerequisites in layer-1) then a backward sweep (layer max-1..0,
    against dependents in layer+1).
    """
    deps = engine.dependency_map()
    rev = reverse_adjacency(deps)
    layer_count = (max(layers.values()) + 1) if layers else 0

    issues = {i.id: i for i in engine}
    index = {nid: i for i, nid in enumerate(issues)}
    ordering: list[list[str]] = [[] for _ in range(layer_count)]
    for issue in engine:
        ordering[layers[issue.id]].append(issue.id)
    for row in ordering:
        row.sort(key=lambda nid: (issues[nid].priority, index[nid]))

    for _ in range(iterations):
        for li in range(1, layer_count):
            ordering[li] = _sweep(ordering[li], deps, _rank(ordering[li - 1]), _rank(ordering[li]))
        for li in range(layer_count - 2, -1, -1):
            ordering[li] = _sweep(ordering[li], rev, _rank(ordering[li + 1]), _rank(ordering[li]))

    return ordering


def count_crossings(ordering: list[list[str]], deps: Adjacency) -> int:
    """Edge crossings between consecutive layers (inversion count)."""
    total = 0
    for li in range(len(ordering) - 1):
        left = _rank(ordering[li])
        right = _rank(ordering[li + 1])
        edges: list[tuple[float, float]] = []
        for nid in ordering[li + 1]:
            for p in deps.get(nid, ()):
                if p in left:
                    edges.append((left[p], right[nid]))
        for i in range(len(edges)):
            for j in range(i + 1, len(edges)):
                a, b = edges[i], edges[j]
                if (a[0] - b[0]) * (a[1] - b[1]) < 0:
                    total += 1
    return total


def layout_graph(
    engine: GraphEngine,
    config: Optional[LayoutConfig] = None,
    policy: Optional[ImportancePolicy] = None,
) -> LayoutResult:
    config = config or LayoutConfig()
    deps = engine.dependency_map()
    issues = {i.id: i for i in engine}

    layers = assign_layers(deps)
    ordering = order_layers(engine, layers, iterations=config.crossing_iterations)
    logger.debug("layout: %d issue(s) in %d layer(s)", len(engine), len(ordering))

    positions: dict[str, NodePosition] = {}
    max_bottom = 0.0
    for li, row in enumerate(ordering):
        x = config.padding + li * (config.node_width + config.horizontal_gap)
        y = config.padding
        for rank, nid in enumerate(row):
            h = node_height(issues[nid], config)
            positions[nid] = NodePosition(issue_id=nid, x=x, y=y, height=h, layer=li, order=float(rank))
            y += h + config.vertical_gap
        if row:
            max_bottom = max(max_bottom, y - config.vertical_gap)

    layer_count = len(ordering)
    if layer_count:
        width = 2 * config.padding + layer_count * config.node_width + (layer_count - 1) * config.horizontal_gap
        height = max_bottom + config.padding
    else:
        width = height = 2 * config.padding

    weights = importance_map(engine, policy=policy)
    edges: list[LayoutEdge] = []
    for issue in issues.values():
        d = positions[issue.id]
        for p in issue.dependencies:
            pp = positions.get(p)
            if pp is None:
                continue
            edges.append(
                LayoutEdge(
                    dependent_id=issue.id,
                    prerequisite_id=p,
                    x1=pp.x + config.node_width,
                    y1=pp.y + pp.height / 2,
                    x2=d.x,
                    y2=d.y + d.height / 2,
                    importance=weights.get(p, 0.0),
                )
            )

    return LayoutResult(
        positions=[positions[nid] for row in ordering for nid in row],
        edges=edges,
        width=width,
        height=height,
        crossings=count_crossings(ordering, deps),
    )
