from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional


IssueStatus = Literal["open", "in_progress", "closed"]

ISSUE_STATUSES: tuple[str, ...] = ("open", "in_progress", "closed")


@dataclass(frozen=True)
class DurationEstimate:
    min_days: float
    expected_days: float
    max_days: float
    confidence: float = 0.5
    reasoning: str = ""
    factors: tuple[str, ...] = ()


@dataclass
class Issue:
    id: str
    title: str
    status: IssueStatus = "open"
    priority: int = 2  # 0 (most urgent) .. 4
    description: str = ""
    dependencies: list[str] = field(default_factory=list)  # prerequisite ids, insertion order
    estimate: Optional[DurationEstimate] = None

    @property
    def is_closed(self) -> bool:
        return self.status == "closed"


@dataclass(frozen=True)
class NodePosition:
    issue_id: str
    x: float
    y: float
    height: float
    layer: int
    order: float


@dataclass(frozen=True)
class LayoutEdge:
    dependent_id: str
    prerequisite_id: str
    x1: float
    y1: float
    x2: float
    y2: float
    importance: float


@dataclass(frozen=True)
class LayoutResult:
    positions: list[NodePosition]
    edges: list[LayoutEdge]
    width: float
    height: float
    crossings: int

    def position_of(self, issue_id: str) -> Optional[NodePosition]:
        for p in self.positions:
            if p.issue_id == issue_id:
                return p
        return None


@dataclass(frozen=True)
class ScheduledTask:
    issue_id: str
    start_day: int
    end_day: int
    row: int
    is_on_critical_path: bool
    slack: int = 0


@dataclass(frozen=True)
class CriticalPathDisagreement:
    """Ids where an externally asserted critical path differs from the computed one."""

    only_asserted: list[str]
    only_computed: list[str]


@dataclass(frozen=True)
class ScheduleResult:
    tasks: list[ScheduledTask]
    min_days: int
    expected_days: int
    max_days: int
    critical_path: list[str]
    disagreement: Optional[CriticalPathDisagreement] = None

    def task_for(self, issue_id: str) -> Optional[ScheduledTask]:
        for t in self.tasks:
            if t.issue_id == issue_id:
                return t
        return None
