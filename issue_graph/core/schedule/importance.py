from __future__ import annotations

from typing import Optional

from issue_graph.core.config import ImportancePolicy
from issue_graph.core.graph.engine import GraphEngine
from issue_graph.core.graph.traversal import reverse_adjacency, transitive_dependencies
from issue_graph.core.model import Issue, ScheduleResult


def _weight(issue: Issue, policy: ImportancePolicy) -> float:
    if not policy.priority_weighted:
        return 1.0
    return policy.priority_weights.get(issue.priority, 1.0)


def _score(
    dependents: set[str],
    open_issues: list[Issue],
    policy: ImportancePolicy,
) -> float:
    total = sum(_weight(i, policy) for i in open_issues)
    if total <= 0:
        return 0.0
    hit = sum(_weight(i, policy) for i in open_issues if i.id in dependents)
    return hit / total


def importance(
    engine: GraphEngine,
    prerequisite_id: str,
    policy: Optional[ImportancePolicy] = None,
    schedule: Optional[ScheduleResult] = None,
) -> float:
    """Share of open issues that transitively wait on `prerequisite_id`, in [0, 1].

    A visualization hint only. With `policy.priority_weighted` each open
    issue counts by its priority weight instead of 1. When a schedule is
    given, issues on its critical path get `policy.critical_path_bonus`.
    """
    return importance_map(engine, policy=policy, schedule=schedule).get(prerequisite_id, 0.0)


def importance_map(
    engine: GraphEngine,
    policy: Optional[ImportancePolicy] = None,
    schedule: Optional[ScheduleResult] = None,
) -> dict[str, float]:
    policy = policy or ImportancePolicy()
    open_issues = [i for i in engine if not i.is_closed]
    rev = reverse_adjacency(engine.dependency_map())
    critical = set(schedule.critical_path) if schedule is not None else set()

    out: dict[str, float] = {}
    for issue in engine:
        score = _score(transitive_dependencies(rev, issue.id), open_issues, policy)
        if issue.id in critical and policy.critical_path_bonus:
            score += policy.critical_path_bonus
        out[issue.id] = max(0.0, min(1.0, score))
    return out
