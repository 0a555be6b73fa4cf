from __future__ import annotations

import logging
from dataclasses import dataclass, field

from issue_graph.core.errors import GraphValidationError
from issue_graph.core.graph.engine import GraphEngine
from issue_graph.core.graph.traversal import Adjacency, reaches


logger = logging.getLogger(__name__)


# Graph health rules. These are data-quality findings, never exceptions:
# - L_INVALID_EDGE: dependency references an unknown issue id
# - L_REDUNDANT_EDGE: dependency already implied by a longer path
# - L_CYCLE_DETECTED: dependency cycle exists (reported, never auto-broken)


@dataclass(frozen=True)
class InvalidEdge:
    dependent_id: str
    dangling_id: str


@dataclass(frozen=True)
class RedundantEdge:
    dependent_id: str
    redundant_id: str
    through_id: str


@dataclass(frozen=True)
class GraphHealth:
    cycles: list[list[str]] = field(default_factory=list)
    invalid_edges: list[InvalidEdge] = field(default_factory=list)
    redundant_edges: list[RedundantEdge] = field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        return not (self.cycles or self.invalid_edges or self.redundant_edges)


def find_invalid_edges(engine: GraphEngine) -> list[InvalidEdge]:
    out: list[InvalidEdge] = []
    for issue in engine:
        for dep in issue.dependencies:
            if dep not in engine:
                out.append(InvalidEdge(dependent_id=issue.id, dangling_id=dep))
    return out


def remove_invalid_edges(engine: GraphEngine) -> int:
    removed = 0
    for edge in find_invalid_edges(engine):
        engine.remove_dependency(edge.dependent_id, edge.dangling_id)
        removed += 1
    if removed:
        logger.info("removed %d invalid dependency edge(s)", removed)
    return removed


def _redundant_through(deps: Adjacency, dependent_id: str, prerequisite_id: str) -> str | None:
    """Another direct prerequisite of `dependent_id` that still reaches `prerequisite_id`."""
    skip = (dependent_id, prerequisite_id)
    for other in deps.get(dependent_id, ()):
        if other == prerequisite_id:
            continue
        if reaches(deps, other, prerequisite_id, skip_edge=skip):
            return other
    return None


def find_redundant_edges(engine: GraphEngine) -> list[RedundantEdge]:
    """Edges `A -> C` where C is still reachable from A without that edge."""
    deps = engine.dependency_map()
    out: list[RedundantEdge] = []
    for nid, prereqs in deps.items():
        if len(prereqs) < 2:
            continue
        for p in prereqs:
            if p not in deps:
                # dangling; reported as an invalid edge instead
                continue
            through = _redundant_through(deps, nid, p)
            if through is not None:
                out.append(RedundantEdge(dependent_id=nid, redundant_id=p, through_id=through))
    return out


def remove_redundant_edges(engine: GraphEngine) -> int:
    """Transitive reduction pass.

    Edges are dropped one at a time against the current edge set, so each
    removal keeps reachability intact even on cyclic input. Passes repeat
    until nothing changes, which makes a second call a no-op.
    """
    removed = 0
    while True:
        removed_this_pass = 0
        for issue in engine:
            nid = issue.id
            for p in list(issue.dependencies):
                if p not in engine:
                    continue
                if _redundant_through(engine.dependency_map(), nid, p) is not None:
                    engine.remove_dependency(nid, p)
                    removed_this_pass += 1
        removed += removed_this_pass
        if removed_this_pass == 0:
            break
    if removed:
        logger.info("removed %d redundant dependency edge(s)", removed)
    return removed


def find_cycles(engine: GraphEngine) -> list[list[str]]:
    """Report pre-existing cycles, each as `[a, b, ..., a]`."""
    deps = engine.dependency_map()
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {nid: WHITE for nid in deps.keys()}
    emitted: set[str] = set()
    out: list[list[str]] = []

    # Explicit frame stack: long chains must not hit the recursion limit.
    for root in list(state.keys()):
        if state[root] != WHITE:
            continue
        state[root] = GRAY
        on_path: list[str] = [root]
        frames: list[tuple[str, int]] = [(root, 0)]
        while frames:
            u, idx = frames[-1]
            prereqs = deps[u]
            if idx < len(prereqs):
                frames[-1] = (u, idx + 1)
                v = prereqs[idx]
                if v not in state:
                    continue
                if state[v] == GRAY:
                    # cycle: v ... u -> v
                    cycle = on_path[on_path.index(v):] + [v]
                    key = "->".join(cycle)
                    if key not in emitted:
                        emitted.add(key)
                        out.append(cycle)
                elif state[v] == WHITE:
                    state[v] = GRAY
                    on_path.append(v)
                    frames.append((v, 0))
                continue
            frames.pop()
            on_path.pop()
            state[u] = BLACK

    return out


def health(engine: GraphEngine) -> GraphHealth:
    return GraphHealth(
        cycles=find_cycles(engine),
        invalid_edges=find_invalid_edges(engine),
        redundant_edges=find_redundant_edges(engine),
    )


def health_errors(report: GraphHealth, file: str | None = None) -> list[GraphValidationError]:
    """Render a health report as coded diagnostics for printing."""
    errors: list[GraphValidationError] = []
    for cycle in report.cycles:
        errors.append(
            GraphValidationError(
                code="L_CYCLE_DETECTED",
                message="dependency cycle detected: " + " -> ".join(cycle),
                file=file,
                path=f"issues.{cycle[0]}.dependencies",
            )
        )
    for inv in report.invalid_edges:
        errors.append(
            GraphValidationError(
                code="L_INVALID_EDGE",
                message=f"dependency references unknown id: {inv.dangling_id}",
                file=file,
                path=f"issues.{inv.dependent_id}.dependencies",
            )
        )
    for red in report.redundant_edges:
        errors.append(
            GraphValidationError(
                code="L_REDUNDANT_EDGE",
                message=f"dependency on {red.redundant_id} is implied through {red.through_id}",
                file=file,
                path=f"issues.{red.dependent_id}.dependencies",
            )
        )
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
