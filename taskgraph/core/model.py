from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal, Optional, Union


TaskStatus = Literal["backlog", "todo", "in_progress", "in_review", "done"]
DependencyType = Literal["FS", "SS", "FF", "SF"]

TASK_STATUSES: tuple[str, ...] = ("backlog", "todo", "in_progress", "in_review", "done")
DEPENDENCY_TYPES: tuple[str, ...] = ("FS", "SS", "FF", "SF")

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    key: str
    owner_id: Optional[str] = None
    members: tuple[str, ...] = ()


@dataclass(frozen=True)
class Task:
    id: str
    project_id: str
    title: str
    task_key: Optional[str] = None
    status: TaskStatus = "todo"

    start_date: Optional[DateLike] = None
    due_date: Optional[DateLike] = None
    estimated_hours: Optional[float] = None
    progress: int = 0
    assigned_to: Optional[str] = None


@dataclass(frozen=True)
class DependencyEdge:
    id: int
    predecessor_id: str
    successor_id: str
    # Carried and persisted; the CPM arithmetic treats every edge as FS with zero lag.
    type: DependencyType = "FS"
    lag_days: int = 0


@dataclass(frozen=True)
class TaskRef:
    """Minimal identifying data for displaying an edge endpoint."""

    id: str
    task_key: Optional[str]
    title: str
    status: TaskStatus

    @classmethod
    def of(cls, task: Task) -> "TaskRef":
        return cls(id=task.id, task_key=task.task_key, title=task.title, status=task.status)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "task_key": self.task_key, "title": self.title, "status": self.status}


@dataclass(frozen=True)
class EdgeDetail:
    edge: DependencyEdge
    predecessor: TaskRef
    successor: TaskRef

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.edge.id,
            "predecessor": self.predecessor.to_dict(),
            "successor": self.successor.to_dict(),
            "type": self.edge.type,
            "lag_days": self.edge.lag_days,
        }


@dataclass(frozen=True)
class Workspace:
    schema_version: str
    projects_by_id: dict[str, Project]
    tasks_by_id: dict[str, Task]
    edges: list[DependencyEdge]


@dataclass(frozen=True)
class ProjectSnapshot:
    """Read-only view of one project's tasks and the edges between them."""

    project_id: str
    tasks: tuple[Task, ...]
    edges: tuple[DependencyEdge, ...]


@dataclass(frozen=True)
class ScheduleNode:
    task_id: str
    task_key: Optional[str]
    title: str
    duration: int
    earliest_start: int
    earliest_finish: int
    latest_start: int
    latest_finish: int
    slack: int

    @property
    def is_critical(self) -> bool:
        return self.slack == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.task_id,
            "task_key": self.task_key,
            "title": self.title,
            "duration": self.duration,
            "earliest_start": self.earliest_start,
            "earliest_finish": self.earliest_finish,
            "latest_start": self.latest_start,
            "latest_finish": self.latest_finish,
            "slack": self.slack,
            "is_critical": self.is_critical,
        }


@dataclass(frozen=True)
class Schedule:
    project_id: str
    project_duration: int
    nodes: list[ScheduleNode]  # topological order
    critical_path: list[ScheduleNode]

    def node(self, task_id: str) -> ScheduleNode:
        for n in self.nodes:
            if n.task_id == task_id:
                return n
        raise KeyError(task_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "project_duration": self.project_duration,
            "critical_path": [n.to_dict() for n in self.critical_path],
            "all_tasks": [n.to_dict() for n in self.nodes],
        }


@dataclass(frozen=True)
class TaskEdit:
    task_id: str
    start_date: Optional[DateLike] = None
    due_date: Optional[DateLike] = None
    progress: Optional[int] = None


@dataclass(frozen=True)
class TaskSummary:
    id: str
    task_key: Optional[str]
    start_date: Optional[DateLike]
    due_date: Optional[DateLike]
    progress: int

    @classmethod
    def of(cls, task: Task) -> "TaskSummary":
        return cls(
            id=task.id,
            task_key=task.task_key,
            start_date=task.start_date,
            due_date=task.due_date,
            progress=task.progress,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "task_key": self.task_key,
            "start_date": _iso(self.start_date),
            "due_date": _iso(self.due_date),
            "progress": self.progress,
        }


@dataclass(frozen=True)
class BatchItemError:
    task_id: Optional[str]
    code: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.task_id, "code": self.code, "error": self.message}


@dataclass(frozen=True)
class BatchResult:
    applied: list[TaskSummary] = field(default_factory=list)
    errors: list[BatchItemError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "applied": [s.to_dict() for s in self.applied],
            "errors": [e.to_dict() for e in self.errors],
        }


def _iso(v: Optional[DateLike]) -> Optional[str]:
    return v.isoformat() if v is not None else None
