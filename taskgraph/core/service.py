from __future__ import annotations

from functools import partial
from typing import Any, Iterable, Optional

from taskgraph.core.batch.batch_update import apply_batch, update_task_dates
from taskgraph.core.config import DEFAULT_SETTINGS, Settings
from taskgraph.core.errors import NotFoundError
from taskgraph.core.graph.dependencies import DependencyStore
from taskgraph.core.graph.store import WorkspaceStore
from taskgraph.core.model import BatchResult, EdgeDetail, Schedule, TaskEdit, TaskSummary, Workspace
from taskgraph.core.schedule.cpm import compute_schedule
from taskgraph.core.schedule.duration import task_duration


class GanttService:
    """Entry points behind the Gantt view: critical path, dependencies, date edits."""

    def __init__(self, store: WorkspaceStore, settings: Settings = DEFAULT_SETTINGS) -> None:
        self.store = store
        self.settings = settings
        self.dependencies = DependencyStore(store, default_type=settings.default_dependency_type)

    @classmethod
    def from_workspace(cls, workspace: Workspace, settings: Settings = DEFAULT_SETTINGS) -> "GanttService":
        return cls(WorkspaceStore.from_workspace(workspace), settings)

    def critical_path(self, project_id: str) -> Schedule:
        if self.store.get_project(project_id) is None:
            raise NotFoundError(code="E_NOT_FOUND", message=f"project not found: {project_id}", path="project_id")
        snapshot = self.store.snapshot(project_id)
        if not snapshot.tasks:
            raise NotFoundError(
                code="E_NOT_FOUND",
                message=f"project has no tasks to schedule: {project_id}",
                path="project_id",
            )
        duration = partial(
            task_duration,
            hours_per_day=self.settings.hours_per_day,
            default_days=self.settings.default_duration_days,
        )
        return compute_schedule(snapshot, duration)

    def list_dependencies(self, project_id: str) -> list[EdgeDetail]:
        return self.dependencies.list_edges(project_id)

    def create_dependency(
        self,
        predecessor_id: str,
        successor_id: str,
        type: Optional[str] = None,
        lag_days: Optional[int] = None,
    ) -> EdgeDetail:
        return self.dependencies.add_edge(predecessor_id, successor_id, type=type, lag_days=lag_days)

    def update_dependency(self, edge_id: int, type: Optional[str] = None, lag_days: Optional[int] = None) -> EdgeDetail:
        return self.dependencies.update_edge(edge_id, type=type, lag_days=lag_days)

    def delete_dependency(self, edge_id: int) -> None:
        self.dependencies.remove_edge(edge_id)

    def update_task_dates(self, edit: TaskEdit, *, actor: Optional[str] = None) -> TaskSummary:
        return update_task_dates(self.store, edit, actor=actor)

    def batch_update_tasks(self, edits: Iterable[TaskEdit], *, actor: Optional[str] = None) -> BatchResult:
        return apply_batch(self.store, edits, actor=actor)

    def to_dict(self) -> dict[str, Any]:
        return self.store.to_dict()
