from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from taskgraph.core.errors import NotFoundError
from taskgraph.core.log import get_logger
from taskgraph.core.model import DependencyEdge, Project, ProjectSnapshot, Task, Workspace


logger = get_logger(__name__)


@dataclass
class _State:
    projects: dict[str, Project]
    tasks: dict[str, Task]
    edges: dict[int, DependencyEdge]
    # task id -> {other task id: edge id}
    successors: dict[str, dict[str, int]]
    predecessors: dict[str, dict[str, int]]
    next_edge_id: int

    def copy(self) -> "_State":
        # Records are frozen, so copying the containers is enough.
        return _State(
            projects=dict(self.projects),
            tasks=dict(self.tasks),
            edges=dict(self.edges),
            successors={k: dict(v) for k, v in self.successors.items()},
            predecessors={k: dict(v) for k, v in self.predecessors.items()},
            next_edge_id=self.next_edge_id,
        )


class WorkspaceStore:
    """In-memory arena of projects, tasks and dependency edges.

    Everything is keyed by id. Mutations go through ``transaction()``, which
    serialises writers and rolls the state back if the block raises.
    """

    def __init__(self, schema_version: str = "0.1.0") -> None:
        self.schema_version = schema_version
        self._lock = threading.RLock()
        self._state = _State({}, {}, {}, {}, {}, 1)

    @classmethod
    def from_workspace(cls, workspace: Workspace) -> "WorkspaceStore":
        """Load a validated workspace as-is.

        Edges are inserted without invariant checks: a hand-edited file may
        already violate them, which lint and the scheduler's cycle check report.
        """
        store = cls(schema_version=workspace.schema_version)
        for p in workspace.projects_by_id.values():
            store.put_project(p)
        for t in workspace.tasks_by_id.values():
            store.put_task(t)
        for e in workspace.edges:
            store._insert_edge(e)
        logger.debug(
            "loaded %d projects, %d tasks, %d dependencies",
            len(workspace.projects_by_id),
            len(workspace.tasks_by_id),
            len(workspace.edges),
        )
        return store

    @contextmanager
    def transaction(self) -> Iterator["WorkspaceStore"]:
        with self._lock:
            saved = self._state.copy()
            try:
                yield self
            except BaseException:
                self._state = saved
                raise

    # Reads

    def get_project(self, project_id: str) -> Optional[Project]:
        return self._state.projects.get(project_id)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._state.tasks.get(task_id)

    def require_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise NotFoundError(code="E_NOT_FOUND", message=f"task not found: {task_id}", path="task_id")
        return task

    def get_edge(self, edge_id: int) -> Optional[DependencyEdge]:
        return self._state.edges.get(edge_id)

    def edge_between(self, predecessor_id: str, successor_id: str) -> Optional[DependencyEdge]:
        eid = self._state.successors.get(predecessor_id, {}).get(successor_id)
        return self._state.edges[eid] if eid is not None else None

    def successor_ids(self, task_id: str) -> list[str]:
        return list(self._state.successors.get(task_id, {}).keys())

    def predecessor_ids(self, task_id: str) -> list[str]:
        return list(self._state.predecessors.get(task_id, {}).keys())

    def tasks_in_project(self, project_id: str) -> list[Task]:
        return [t for t in self._state.tasks.values() if t.project_id == project_id]

    def all_edges(self) -> list[DependencyEdge]:
        return sorted(self._state.edges.values(), key=lambda e: e.id)

    def snapshot(self, project_id: str) -> ProjectSnapshot:
        """Consistent read of one project's tasks and the edges between them."""
        with self._lock:
            tasks = tuple(self.tasks_in_project(project_id))
            ids = {t.id for t in tasks}
            edges = tuple(
                e for e in self.all_edges() if e.predecessor_id in ids and e.successor_id in ids
            )
        return ProjectSnapshot(project_id=project_id, tasks=tasks, edges=edges)

    # Writes (callers hold a transaction)

    def allocate_edge_id(self) -> int:
        eid = self._state.next_edge_id
        self._state.next_edge_id += 1
        return eid

    def put_edge(self, edge: DependencyEdge) -> None:
        if edge.id in self._state.edges:
            old = self._state.edges[edge.id]
            if (old.predecessor_id, old.successor_id) != (edge.predecessor_id, edge.successor_id):
                raise ValueError("dependency endpoints are immutable")
            self._state.edges[edge.id] = edge
            return
        self._insert_edge(edge)

    def delete_edge(self, edge_id: int) -> DependencyEdge:
        edge = self._state.edges.pop(edge_id)
        succs = self._state.successors.get(edge.predecessor_id, {})
        if succs.get(edge.successor_id) == edge.id:
            del succs[edge.successor_id]
        preds = self._state.predecessors.get(edge.successor_id, {})
        if preds.get(edge.predecessor_id) == edge.id:
            del preds[edge.predecessor_id]
        return edge

    def put_project(self, project: Project) -> None:
        self._state.projects[project.id] = project

    def put_task(self, task: Task) -> None:
        self._state.tasks[task.id] = task

    def _insert_edge(self, edge: DependencyEdge) -> None:
        self._state.edges[edge.id] = edge
        self._state.successors.setdefault(edge.predecessor_id, {})[edge.successor_id] = edge.id
        self._state.predecessors.setdefault(edge.successor_id, {})[edge.predecessor_id] = edge.id
        self._state.next_edge_id = max(self._state.next_edge_id, edge.id + 1)

    # Serialisation

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "schema_version": self.schema_version,
                "projects": [_project_dict(p) for p in self._state.projects.values()],
                "tasks": [_task_dict(t) for t in self._state.tasks.values()],
                "dependencies": [_edge_dict(e) for e in self.all_edges()],
            }


def _project_dict(p: Project) -> dict[str, Any]:
    out: dict[str, Any] = {"id": p.id, "name": p.name, "key": p.key}
    if p.owner_id is not None:
        out["owner_id"] = p.owner_id
    if p.members:
        out["members"] = list(p.members)
    return out


def _task_dict(t: Task) -> dict[str, Any]:
    out: dict[str, Any] = {"id": t.id, "project_id": t.project_id, "title": t.title}
    if t.task_key is not None:
        out["task_key"] = t.task_key
    out["status"] = t.status
    for k in ("start_date", "due_date", "estimated_hours"):
        v = getattr(t, k)
        if v is not None:
            out[k] = v
    out["progress"] = t.progress
    if t.assigned_to is not None:
        out["assigned_to"] = t.assigned_to
    return out


def _edge_dict(e: DependencyEdge) -> dict[str, Any]:
    return {
        "id": e.id,
        "predecessor_id": e.predecessor_id,
        "successor_id": e.successor_id,
        "type": e.type,
        "lag_days": e.lag_days,
    }
