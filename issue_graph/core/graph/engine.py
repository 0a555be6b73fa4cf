from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from issue_graph.core.errors import (
    E_CYCLE_DETECTED,
    E_DUPLICATE_ID,
    E_NOT_FOUND,
    E_SELF_REFERENCE,
    GraphMutationError,
)
from issue_graph.core.graph import cycle_guard, traversal
from issue_graph.core.graph.cycle_guard import CycleBreakOption
from issue_graph.core.model import Issue, IssueStatus


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationResult:
    ok: bool
    error: Optional[GraphMutationError] = None
    cycle_path: list[str] = field(default_factory=list)
    cycle_break_options: list[CycleBreakOption] = field(default_factory=list)


_OK = MutationResult(ok=True)


class GraphEngine:
    """Owns the issues and their dependency edges.

    Edges are stored on the dependent (`Issue.dependencies`). Every mutation
    that could break acyclicity goes through `add_dependency`. The engine
    does no locking; callers serialize mutations.
    """

    def __init__(self, issues: Iterable[Issue] = ()) -> None:
        """Build from `issues`; a repeated id raises the `add_issue` error."""
        self._issues: dict[str, Issue] = {}
        for issue in issues:
            result = self.add_issue(issue)
            if result.error is not None:
                raise result.error

    # --- nodes -------------------------------------------------------------

    def __contains__(self, issue_id: object) -> bool:
        return issue_id in self._issues

    def __len__(self) -> int:
        return len(self._issues)

    def __iter__(self) -> Iterator[Issue]:
        return iter(list(self._issues.values()))

    @property
    def ids(self) -> list[str]:
        return list(self._issues.keys())

    def get(self, issue_id: str) -> Optional[Issue]:
        return self._issues.get(issue_id)

    def add_issue(self, issue: Issue) -> MutationResult:
        if issue.id in self._issues:
            return MutationResult(
                ok=False,
                error=GraphMutationError(
                    code=E_DUPLICATE_ID,
                    message=f"issue already exists: {issue.id}",
                    path=f"issues.{issue.id}",
                ),
            )
        self._issues[issue.id] = issue
        return _OK

    def remove_issue(self, issue_id: str) -> bool:
        """Delete an issue and strip it from every other issue's dependencies."""
        if issue_id not in self._issues:
            return False
        del self._issues[issue_id]
        for other in self._issues.values():
            if issue_id in other.dependencies:
                other.dependencies = [d for d in other.dependencies if d != issue_id]
        return True

    def set_status(self, issue_id: str, status: IssueStatus) -> bool:
        issue = self._issues.get(issue_id)
        if issue is None:
            return False
        issue.status = status
        return True

    def dependency_map(self) -> dict[str, list[str]]:
        """Snapshot of the edge set: dependent id -> prerequisite ids."""
        return {nid: list(i.dependencies) for nid, i in self._issues.items()}

    def titles(self) -> dict[str, str]:
        return {nid: i.title for nid, i in self._issues.items()}

    # --- guarded edge mutation --------------------------------------------

    def would_create_cycle(self, dependent_id: str, prerequisite_id: str) -> bool:
        return cycle_guard.would_create_cycle(self.dependency_map(), dependent_id, prerequisite_id)

    def find_cycle_path(self, dependent_id: str, prerequisite_id: str) -> Optional[list[str]]:
        return cycle_guard.find_cycle_path(self.dependency_map(), dependent_id, prerequisite_id)

    def cycle_break_options(self, dependent_id: str, prerequisite_id: str) -> list[CycleBreakOption]:
        return cycle_guard.cycle_break_options(
            self.dependency_map(), dependent_id, prerequisite_id, titles=self.titles()
        )

    def add_dependency(self, dependent_id: str, prerequisite_id: str) -> MutationResult:
        """Record that `dependent_id` cannot start until `prerequisite_id` is closed.

        Rejected mutations leave the edge set untouched.
        """
        if dependent_id == prerequisite_id:
            return MutationResult(
                ok=False,
                error=GraphMutationError(
                    code=E_SELF_REFERENCE,
                    message=f"issue cannot depend on itself: {dependent_id}",
                    path=f"issues.{dependent_id}.dependencies",
                ),
            )

        for nid in (dependent_id, prerequisite_id):
            if nid not in self._issues:
                return MutationResult(
                    ok=False,
                    error=GraphMutationError(
                        code=E_NOT_FOUND,
                        message=f"unknown issue id: {nid}",
                        path=f"issues.{nid}",
                    ),
                )

        dependent = self._issues[dependent_id]
        if prerequisite_id in dependent.dependencies:
            return _OK

        if self.would_create_cycle(dependent_id, prerequisite_id):
            path = self.find_cycle_path(dependent_id, prerequisite_id) or []
            logger.warning(
                "rejected dependency %s -> %s: would close cycle %s",
                dependent_id,
                prerequisite_id,
                " -> ".join([dependent_id] + path),
            )
            return MutationResult(
                ok=False,
                error=GraphMutationError(
                    code=E_CYCLE_DETECTED,
                    message="dependency would create a cycle: "
                    + " -> ".join([dependent_id] + path),
                    path=f"issues.{dependent_id}.dependencies",
                ),
                cycle_path=path,
                cycle_break_options=self.cycle_break_options(dependent_id, prerequisite_id),
            )

        dependent.dependencies = dependent.dependencies + [prerequisite_id]
        return _OK

    def remove_dependency(self, dependent_id: str, prerequisite_id: str) -> None:
        issue = self._issues.get(dependent_id)
        if issue is None or prerequisite_id not in issue.dependencies:
            return
        issue.dependencies = [d for d in issue.dependencies if d != prerequisite_id]

    def add_dependency_breaking_cycle(
        self,
        dependent_id: str,
        prerequisite_id: str,
        break_edge: tuple[str, str],
    ) -> MutationResult:
        """Drop `break_edge` (dependent, prerequisite) and retry the guarded add.

        When the retry still fails the dropped edge is restored.
        """
        b_dep, b_pre = break_edge
        b_issue = self._issues.get(b_dep)
        snapshot = list(b_issue.dependencies) if b_issue is not None else None

        self.remove_dependency(b_dep, b_pre)
        result = self.add_dependency(dependent_id, prerequisite_id)
        if not result.ok and b_issue is not None and snapshot is not None:
            b_issue.dependencies = snapshot
        return result

    def reverse_dependency(self, dependent_id: str, prerequisite_id: str) -> MutationResult:
        """Turn `dependent -> prerequisite` into `prerequisite -> dependent`.

        On failure the original edge list is restored.
        """
        dependent = self._issues.get(dependent_id)
        for nid, issue in ((dependent_id, dependent), (prerequisite_id, self._issues.get(prerequisite_id))):
            if issue is None:
                return MutationResult(
                    ok=False,
                    error=GraphMutationError(
                        code=E_NOT_FOUND,
                        message=f"unknown issue id: {nid}",
                        path=f"issues.{nid}",
                    ),
                )
        assert dependent is not None

        snapshot = list(dependent.dependencies)
        self.remove_dependency(dependent_id, prerequisite_id)
        result = self.add_dependency(prerequisite_id, dependent_id)
        if not result.ok:
            dependent.dependencies = snapshot
        return result

    # --- queries ---------------------------------------------------------

    def transitive_dependencies(self, issue_id: str) -> set[str]:
        return traversal.transitive_dependencies(self.dependency_map(), issue_id)

    def transitive_dependents(self, issue_id: str) -> set[str]:
        return traversal.transitive_dependents(self.dependency_map(), issue_id)

    def blockers(self, issue_id: str) -> list[Issue]:
        """Direct prerequisites of `issue_id` that are not closed yet."""
        issue = self._issues.get(issue_id)
        if issue is None:
            return []
        out: list[Issue] = []
        for dep_id in issue.dependencies:
            dep = self._issues.get(dep_id)
            if dep is not None and not dep.is_closed:
                out.append(dep)
        return out

    def blocking(self, issue_id: str) -> list[Issue]:
        """Unclosed issues that directly wait on `issue_id`."""
        return [i for i in self._issues.values() if issue_id in i.dependencies and not i.is_closed]

    def ready(self) -> list[Issue]:
        out: list[Issue] = []
        for issue in self._issues.values():
            if issue.status != "open":
                continue
            deps = [self._issues.get(d) for d in issue.dependencies]
            if all(d is not None and d.is_closed for d in deps):
                out.append(issue)
        return out

    def blocked(self) -> list[Issue]:
        return [i for i in self._issues.values() if not i.is_closed and self.blockers(i.id)]

    def by_status(self) -> dict[str, list[Issue]]:
        out: dict[str, list[Issue]] = {"open": [], "in_progress": [], "closed": []}
        for issue in self._issues.values():
            out.setdefault(issue.status, []).append(issue)
        return out
