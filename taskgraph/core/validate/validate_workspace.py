from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from typing import Any, Iterable, Optional, cast

from taskgraph.core.errors import WorkspaceValidationError
from taskgraph.core.model import (
    DEPENDENCY_TYPES,
    TASK_STATUSES,
    DateLike,
    DependencyEdge,
    DependencyType,
    Project,
    Task,
    TaskStatus,
    Workspace,
)


def coerce_date(v: Any) -> Optional[DateLike]:
    """Return a date/datetime for v (None passes through).

    YAML already yields date objects; JSON and CLI input arrive as ISO strings.
    Raises ValueError for anything else.
    """
    if v is None or isinstance(v, (date, datetime)):
        return v
    if isinstance(v, str):
        s = v.strip()
        if len(s) == 10:
            return date.fromisoformat(s)
        return datetime.fromisoformat(s)
    raise ValueError(f"expected an ISO date, got {type(v).__name__}")


def validate_workspace(ws: dict[str, Any]) -> tuple[Optional[Workspace], list[WorkspaceValidationError]]:
    """Validate workspace schema v0.

    Returns (workspace, errors). Workspace is None when errors exist.
    Graph invariants (self-loops, duplicate pairs, cycles) are lint's job.
    """

    file = cast(Optional[str], ws.get("__file__"))
    errors: list[WorkspaceValidationError] = []

    def err(code: str, message: str, path: str) -> None:
        errors.append(WorkspaceValidationError(code=code, message=message, file=file, path=path))

    schema_version = ws.get("schema_version")
    if not isinstance(schema_version, str) or not schema_version.strip():
        err("E_REQUIRED_FIELD", "schema_version is required and must be a non-empty string", "schema_version")

    for section in ("projects", "tasks", "dependencies"):
        if not isinstance(ws.get(section), list):
            err("E_INVALID_TYPE", f"{section} must be an array", section)
    if errors and any(e.path in ("projects", "tasks", "dependencies") for e in errors):
        return None, _sorted(errors)

    projects_by_id: dict[str, Project] = {}
    for i, raw in enumerate(ws["projects"]):
        p_path = f"projects[{i}]"
        if not isinstance(raw, dict):
            err("E_INVALID_TYPE", "project must be an object", p_path)
            continue
        pid = raw.get("id")
        if not _is_id(pid):
            err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{p_path}.id")
            continue
        if pid in projects_by_id:
            err("E_DUPLICATE_ID", f"duplicate project id: {pid}", f"{p_path}.id")
            continue
        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            err("E_REQUIRED_FIELD", "name is required and must be a non-empty string", f"{p_path}.name")
            continue
        key = raw.get("key", pid)
        if not isinstance(key, str):
            err("E_INVALID_TYPE", "key must be a string", f"{p_path}.key")
            continue
        owner = raw.get("owner_id")
        if owner is not None and not isinstance(owner, str):
            err("E_INVALID_TYPE", "owner_id must be a string", f"{p_path}.owner_id")
            continue
        members = raw.get("members", [])
        if not isinstance(members, list) or not all(isinstance(m, str) for m in members):
            err("E_INVALID_TYPE", "members must be an array of strings", f"{p_path}.members")
            continue
        projects_by_id[pid] = Project(
            id=pid, name=name, key=key, owner_id=owner, members=tuple(members)
        )

    tasks_by_id: dict[str, Task] = {}
    for i, raw in enumerate(ws["tasks"]):
        t_path = f"tasks[{i}]"
        if not isinstance(raw, dict):
            err("E_INVALID_TYPE", "task must be an object", t_path)
            continue
        tid = raw.get("id")
        if not _is_id(tid):
            err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{t_path}.id")
            continue
        if tid in tasks_by_id:
            err("E_DUPLICATE_ID", f"duplicate task id: {tid}", f"{t_path}.id")
            continue

        project_id = raw.get("project_id")
        if not _is_id(project_id):
            err("E_REQUIRED_FIELD", "project_id is required and must be a non-empty string", f"{t_path}.project_id")
            continue
        if project_id not in projects_by_id:
            err("E_UNKNOWN_PROJECT", f"project_id references unknown project: {project_id}", f"{t_path}.project_id")
            continue

        title = raw.get("title")
        if not isinstance(title, str) or not title.strip():
            err("E_REQUIRED_FIELD", "title is required and must be a non-empty string", f"{t_path}.title")
            continue

        status = raw.get("status", "todo")
        if status not in TASK_STATUSES:
            err("E_INVALID_ENUM", f"status must be one of {list(TASK_STATUSES)}", f"{t_path}.status")
            continue

        task_key = raw.get("task_key")
        if task_key is not None and not isinstance(task_key, str):
            err("E_INVALID_TYPE", "task_key must be a string", f"{t_path}.task_key")
            continue

        dates: dict[str, Optional[DateLike]] = {}
        for field_name in ("start_date", "due_date"):
            try:
                dates[field_name] = coerce_date(raw.get(field_name))
            except ValueError as e:
                err("E_INVALID_DATE", f"{field_name}: {e}", f"{t_path}.{field_name}")
        if len(dates) != 2:
            continue

        hours = raw.get("estimated_hours")
        if hours is not None and (isinstance(hours, bool) or not isinstance(hours, (int, float))):
            err("E_INVALID_TYPE", "estimated_hours must be a number", f"{t_path}.estimated_hours")
            continue

        progress = raw.get("progress", 0)
        if not _is_int(progress) or not 0 <= progress <= 100:
            err("E_INVALID_TYPE", "progress must be an integer between 0 and 100", f"{t_path}.progress")
            continue

        assigned_to = raw.get("assigned_to")
        if assigned_to is not None and not isinstance(assigned_to, str):
            err("E_INVALID_TYPE", "assigned_to must be a string", f"{t_path}.assigned_to")
            continue

        tasks_by_id[tid] = Task(
            id=tid,
            project_id=project_id,
            title=title,
            task_key=task_key,
            status=cast(TaskStatus, status),
            start_date=dates["start_date"],
            due_date=dates["due_date"],
            estimated_hours=hours,
            progress=progress,
            assigned_to=assigned_to,
        )

    edges: list[DependencyEdge] = []
    next_id = _max_edge_id(ws["dependencies"]) + 1
    seen_ids: set[int] = set()
    for i, raw in enumerate(ws["dependencies"]):
        d_path = f"dependencies[{i}]"
        if not isinstance(raw, dict):
            err("E_INVALID_TYPE", "dependency must be an object", d_path)
            continue

        eid = raw.get("id")
        if eid is None:
            eid = next_id
            next_id += 1
        elif not _is_int(eid):
            err("E_INVALID_TYPE", "id must be an integer", f"{d_path}.id")
            continue
        if eid in seen_ids:
            err("E_DUPLICATE_ID", f"duplicate dependency id: {eid}", f"{d_path}.id")
            continue

        endpoints_ok = True
        for field_name in ("predecessor_id", "successor_id"):
            ref = raw.get(field_name)
            if not _is_id(ref):
                err("E_REQUIRED_FIELD", f"{field_name} is required and must be a non-empty string", f"{d_path}.{field_name}")
                endpoints_ok = False
            elif ref not in tasks_by_id:
                err("E_UNKNOWN_TASK", f"{field_name} references unknown task: {ref}", f"{d_path}.{field_name}")
                endpoints_ok = False
        if not endpoints_ok:
            continue

        dep_type = raw.get("type", "FS")
        if dep_type not in DEPENDENCY_TYPES:
            err("E_INVALID_ENUM", f"type must be one of {list(DEPENDENCY_TYPES)}", f"{d_path}.type")
            continue

        lag = raw.get("lag_days", 0)
        if not _is_int(lag):
            err("E_INVALID_TYPE", "lag_days must be an integer", f"{d_path}.lag_days")
            continue

        seen_ids.add(eid)
        edges.append(
            DependencyEdge(
                id=eid,
                predecessor_id=raw["predecessor_id"],
                successor_id=raw["successor_id"],
                type=cast(DependencyType, dep_type),
                lag_days=lag,
            )
        )

    if errors:
        return None, _sorted(errors)

    return (
        Workspace(
            schema_version=cast(str, schema_version),
            projects_by_id=projects_by_id,
            tasks_by_id=tasks_by_id,
            edges=edges,
        ),
        [],
    )


def summarize_workspace(workspace: Workspace) -> str:
    counts = Counter(t.project_id for t in workspace.tasks_by_id.values())
    parts = [f"{pid}={counts.get(pid, 0)}" for pid in sorted(workspace.projects_by_id)]
    return (
        f"OK: {len(workspace.projects_by_id)} projects, "
        f"{len(workspace.tasks_by_id)} tasks, {len(workspace.edges)} dependencies"
        + ("\nTasks per project: " + ", ".join(parts) if parts else "")
    )


def _is_id(v: Any) -> bool:
    return isinstance(v, str) and bool(v.strip())


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _max_edge_id(deps: list[Any]) -> int:
    ids = [d.get("id") for d in deps if isinstance(d, dict) and _is_int(d.get("id"))]
    return max(ids, default=0)


def _sorted(errors: Iterable[WorkspaceValidationError]) -> list[WorkspaceValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
