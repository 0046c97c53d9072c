from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Optional

from taskgraph.core.errors import AuthorizationError, GraphError, ValidationError
from taskgraph.core.graph.store import WorkspaceStore
from taskgraph.core.log import get_logger
from taskgraph.core.model import BatchItemError, BatchResult, Task, TaskEdit, TaskSummary
from taskgraph.core.validate.validate_workspace import coerce_date


logger = get_logger(__name__)


def update_task_dates(store: WorkspaceStore, edit: TaskEdit, *, actor: Optional[str] = None) -> TaskSummary:
    """Apply one date/progress edit in its own transaction.

    Omitted fields keep their current value. When ``actor`` is given it must
    be the project owner, a project member or the task's assignee.
    """
    if edit.progress is not None:
        if isinstance(edit.progress, bool) or not isinstance(edit.progress, int) or not 0 <= edit.progress <= 100:
            raise ValidationError(
                code="E_VALIDATION",
                message="progress must be an integer between 0 and 100",
                path="progress",
            )

    with store.transaction() as s:
        task = s.require_task(edit.task_id)
        if actor is not None:
            _check_access(s, task, actor)

        updated = replace(
            task,
            start_date=edit.start_date if edit.start_date is not None else task.start_date,
            due_date=edit.due_date if edit.due_date is not None else task.due_date,
            progress=edit.progress if edit.progress is not None else task.progress,
        )
        s.put_task(updated)
        logger.info("updated task %s dates", task.id)
        return TaskSummary.of(updated)


def apply_batch(store: WorkspaceStore, edits: Iterable[TaskEdit], *, actor: Optional[str] = None) -> BatchResult:
    """Apply edits one by one; a failing item never undoes its siblings."""
    result = BatchResult()
    for edit in edits:
        try:
            result.applied.append(update_task_dates(store, edit, actor=actor))
        except GraphError as e:
            logger.warning("batch item %s failed: %s", edit.task_id, e.message)
            result.errors.append(BatchItemError(task_id=edit.task_id, code=e.code, message=e.message))
    return result


def parse_task_edits(raw: Any) -> tuple[list[TaskEdit], list[BatchItemError]]:
    """Turn a loaded YAML/JSON edit list into TaskEdits.

    Malformed items become per-item errors; only a non-list payload raises.
    Items use ``id`` (or ``task_id``), ``start_date``, ``due_date``, ``progress``.
    """
    if not isinstance(raw, list):
        raise ValidationError(code="E_VALIDATION", message="tasks array is required", path="tasks")

    edits: list[TaskEdit] = []
    errors: list[BatchItemError] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            errors.append(BatchItemError(task_id=None, code="E_VALIDATION", message=f"item {i} must be an object"))
            continue
        task_id = item.get("id", item.get("task_id"))
        if not isinstance(task_id, str) or not task_id.strip():
            errors.append(BatchItemError(task_id=None, code="E_VALIDATION", message=f"item {i} has no task id"))
            continue
        try:
            edits.append(
                TaskEdit(
                    task_id=task_id,
                    start_date=coerce_date(item.get("start_date")),
                    due_date=coerce_date(item.get("due_date")),
                    progress=item.get("progress"),
                )
            )
        except ValueError as e:
            errors.append(BatchItemError(task_id=task_id, code="E_VALIDATION", message=str(e)))
    return edits, errors


def _check_access(store: WorkspaceStore, task: Task, actor: str) -> None:
    project = store.get_project(task.project_id)
    allowed = task.assigned_to == actor
    if project is not None:
        allowed = allowed or project.owner_id == actor or actor in project.members
    if not allowed:
        raise AuthorizationError(
            code="E_FORBIDDEN",
            message=f"{actor} does not have access to update task {task.id}",
            path="task_id",
        )
