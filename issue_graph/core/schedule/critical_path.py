from __future__ import annotations

import logging
import math
from typing import Mapping, Optional, Sequence

from issue_graph.core.config import ScheduleConfig
from issue_graph.core.graph.engine import GraphEngine
from issue_graph.core.graph.traversal import Adjacency, reverse_adjacency, topological_order
from issue_graph.core.model import (
    CriticalPathDisagreement,
    DurationEstimate,
    Issue,
    ScheduledTask,
    ScheduleResult,
)


logger = logging.getLogger(__name__)


def _days(value: float) -> int:
    # Whole calendar days; partial days round up.
    return max(0, math.ceil(value))


def resolve_estimate(
    issue: Issue,
    estimates: Mapping[str, DurationEstimate],
    config: ScheduleConfig,
) -> DurationEstimate:
    """Provider estimate first, then the issue's own, then the default."""
    est = estimates.get(issue.id) or issue.estimate
    if est is not None:
        return est
    d = config.default_expected_days
    return DurationEstimate(min_days=d, expected_days=d, max_days=d, confidence=0.0)


def forward_pass(
    order: Sequence[str],
    deps: Adjacency,
    durations: Mapping[str, int],
) -> tuple[dict[str, int], dict[str, int]]:
    """Earliest start/finish: start = latest prerequisite finish (0 without any)."""
    start: dict[str, int] = {}
    end: dict[str, int] = {}
    for nid in order:
        s = max((end[p] for p in deps[nid] if p in end), default=0)
        start[nid] = s
        end[nid] = s + durations[nid]
    return start, end


def backward_pass(
    order: Sequence[str],
    deps: Adjacency,
    durations: Mapping[str, int],
    makespan: int,
) -> dict[str, int]:
    """Latest finish that does not push the makespan."""
    rev = reverse_adjacency(deps)
    latest_finish: dict[str, int] = {}
    latest_start: dict[str, int] = {}
    for nid in reversed(order):
        succ = [s for s in rev.get(nid, ()) if s in latest_start]
        lf = min((latest_start[s] for s in succ), default=makespan)
        latest_finish[nid] = lf
        latest_start[nid] = lf - durations[nid]
    return latest_finish


def pack_lanes(intervals: Sequence[tuple[str, int, int]]) -> dict[str, int]:
    """Lowest row whose placed intervals do not overlap [start, end).

    Intervals are placed in the order given.
    """
    rows: list[list[tuple[int, int]]] = []
    out: dict[str, int] = {}
    for nid, s, e in intervals:
        for ri, row in enumerate(rows):
            if all(not (s < e2 and s2 < e) for s2, e2 in row):
                row.append((s, e))
                out[nid] = ri
                break
        else:
            rows.append([(s, e)])
            out[nid] = len(rows) - 1
    return out


def _makespan(order: Sequence[str], deps: Adjacency, durations: Mapping[str, int]) -> int:
    _, end = forward_pass(order, deps, durations)
    return max(end.values(), default=0)


def schedule_graph(
    engine: GraphEngine,
    estimates: Optional[Mapping[str, DurationEstimate]] = None,
    asserted_critical_path: Optional[Sequence[str]] = None,
    config: Optional[ScheduleConfig] = None,
) -> ScheduleResult:
    """Duration-based schedule with critical-path analysis.

    Day 0 is today. Closed issues take no time unless
    `config.closed_takes_time`. An externally asserted critical path is only
    compared against the computed one; the computed one always wins.
    """
    config = config or ScheduleConfig()
    estimates = estimates or {}

    if len(engine) > config.soft_node_limit:
        logger.warning(
            "scheduling %d issues (soft limit %d); the plan may be hard to read",
            len(engine),
            config.soft_node_limit,
        )

    deps = engine.dependency_map()
    order = topological_order(deps)
    position = {nid: i for i, nid in enumerate(order)}

    resolved: dict[str, DurationEstimate] = {}
    skip: set[str] = set()
    for issue in engine:
        resolved[issue.id] = resolve_estimate(issue, estimates, config)
        if issue.is_closed and not config.closed_takes_time:
            skip.add(issue.id)

    def bound(attr: str) -> dict[str, int]:
        return {nid: 0 if nid in skip else _days(getattr(est, attr)) for nid, est in resolved.items()}

    expected = bound("expected_days")
    start, end = forward_pass(order, deps, expected)
    makespan = max(end.values(), default=0)
    latest_finish = backward_pass(order, deps, expected, makespan)

    critical = {nid for nid in order if end[nid] == latest_finish[nid]}
    logger.debug("schedule: makespan %d day(s), %d critical issue(s)", makespan, len(critical))

    placement = sorted(order, key=lambda nid: (start[nid], position[nid]))
    rows = pack_lanes([(nid, start[nid], end[nid]) for nid in placement])

    tasks = [
        ScheduledTask(
            issue_id=nid,
            start_day=start[nid],
            end_day=end[nid],
            row=rows[nid],
            is_on_critical_path=nid in critical,
            slack=latest_finish[nid] - end[nid],
        )
        for nid in placement
    ]
    critical_path = [nid for nid in placement if nid in critical]

    disagreement: Optional[CriticalPathDisagreement] = None
    if asserted_critical_path is not None:
        asserted = set(asserted_critical_path)
        only_asserted = [nid for nid in asserted_critical_path if nid not in critical]
        only_computed = [nid for nid in critical_path if nid not in asserted]
        if only_asserted or only_computed:
            disagreement = CriticalPathDisagreement(
                only_asserted=only_asserted,
                only_computed=only_computed,
            )
            logger.warning(
                "asserted critical path disagrees with computed one "
                "(only asserted: %s; only computed: %s)",
                ", ".join(only_asserted) or "-",
                ", ".join(only_computed) or "-",
            )

    return ScheduleResult(
        tasks=tasks,
        min_days=_makespan(order, deps, bound("min_days")),
        expected_days=makespan,
        max_days=_makespan(order, deps, bound("max_days")),
        critical_path=critical_path,
        disagreement=disagreement,
    )
