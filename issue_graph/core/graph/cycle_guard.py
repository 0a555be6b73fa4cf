from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from issue_graph.core.graph.traversal import Adjacency, reaches, shortest_path


@dataclass(frozen=True)
class CycleBreakOption:
    """An existing edge whose removal would admit a rejected dependency."""

    dependent_id: str
    prerequisite_id: str
    dependent_title: str = ""
    prerequisite_title: str = ""


def would_create_cycle(deps: Adjacency, dependent_id: str, prerequisite_id: str) -> bool:
    """Check whether `dependent_id -> prerequisite_id` would close a cycle.

    The new edge closes a cycle iff `dependent_id` already is (transitively)
    a prerequisite of `prerequisite_id`, i.e. a BFS from `prerequisite_id`
    along existing dependency edges reaches `dependent_id`. Self-edges count.
    """
    if dependent_id == prerequisite_id:
        return True
    return reaches(deps, prerequisite_id, dependent_id)


def find_cycle_path(deps: Adjacency, dependent_id: str, prerequisite_id: str) -> Optional[list[str]]:
    """Existing path `prerequisite_id -> ... -> dependent_id` the new edge would close."""
    if dependent_id == prerequisite_id:
        return [dependent_id]
    return shortest_path(deps, prerequisite_id, dependent_id)


def cycle_break_options(
    deps: Adjacency,
    dependent_id: str,
    prerequisite_id: str,
    titles: Optional[dict[str, str]] = None,
) -> list[CycleBreakOption]:
    path = find_cycle_path(deps, dependent_id, prerequisite_id)
    if not path or len(path) < 2:
        return []

    titles = titles or {}
    out: list[CycleBreakOption] = []
    for a, b in zip(path, path[1:]):
        # a depends on b along the existing path
        out.append(
            CycleBreakOption(
                dependent_id=a,
                prerequisite_id=b,
                dependent_title=titles.get(a, a),
                prerequisite_title=titles.get(b, b),
            )
        )
    return out
