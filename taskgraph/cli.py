from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from taskgraph.core.batch.batch_update import parse_task_edits
from taskgraph.core.config import DEFAULT_SETTINGS, LOG_LEVELS, Settings, SettingsError, load_settings
from taskgraph.core.errors import GraphError, InternalError, ValidationError, WorkspaceLoadError, error_item
from taskgraph.core.io.load_workspace import dump_workspace, load_document, load_workspace
from taskgraph.core.lint.lint_workspace import lint_workspace
from taskgraph.core.log import configure_logging
from taskgraph.core.model import BatchResult, Schedule, TaskEdit
from taskgraph.core.service import GanttService
from taskgraph.core.validate.validate_workspace import coerce_date, summarize_workspace, validate_workspace

app = typer.Typer(add_completion=False, no_args_is_help=True)
deps_app = typer.Typer(add_completion=False, no_args_is_help=True, help="Manage task dependencies.")
tasks_app = typer.Typer(add_completion=False, no_args_is_help=True, help="Edit task dates and progress.")
app.add_typer(deps_app, name="deps")
app.add_typer(tasks_app, name="tasks")

FORMATS = ("text", "json")


@app.callback()
def _callback(
    ctx: typer.Context,
    settings_file: Optional[str] = typer.Option(None, "--settings", help="Optional YAML settings file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Task dependency graph and critical-path scheduler."""
    try:
        settings = load_settings(settings_file)
        if log_level:
            settings = _with_log_level(settings, log_level)
    except FileNotFoundError:
        _print_errors(
            [
                WorkspaceLoadError(
                    code="E_SETTINGS_FILE_NOT_FOUND",
                    message=f"settings file not found: {settings_file}",
                    path="settings",
                )
            ]
        )
        raise typer.Exit(code=1)
    except OSError as e:
        _print_errors(
            [
                WorkspaceLoadError(
                    code="E_SETTINGS_FILE_READ",
                    message=f"cannot read settings file {settings_file}: {e}",
                    path="settings",
                )
            ]
        )
        raise typer.Exit(code=1)
    except SettingsError as e:
        _print_errors([ValidationError(code="E_SETTINGS_INVALID", message=str(e), path="settings")])
        raise typer.Exit(code=2)

    configure_logging(settings.log_level)
    ctx.obj = settings


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a workspace file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a workspace file and lint its dependency graph."""
    _check_format(format)

    try:
        ws = load_workspace(path)
    except WorkspaceLoadError as e:
        _fail("validate", format, [e], exit_code=1)

    workspace, errors = validate_workspace(ws)
    all_errors: list[GraphError] = [*lint_workspace(ws), *errors]
    if all_errors:
        _fail("validate", format, all_errors, exit_code=2)

    assert workspace is not None
    if format == "text":
        typer.echo(summarize_workspace(workspace))
        return
    _emit_json(
        "validate",
        {
            "project_count": len(workspace.projects_by_id),
            "task_count": len(workspace.tasks_by_id),
            "dependency_count": len(workspace.edges),
        },
    )


@app.command("schedule")
def schedule(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a workspace file"),
    project_id: str = typer.Argument(..., help="Project to schedule"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Compute the critical path (CPM) for one project."""
    _check_format(format)
    service = _open(ctx, path, "schedule", format)

    try:
        result = service.critical_path(project_id)
    except GraphError as e:
        _fail("schedule", format, [e], exit_code=2)

    if format == "json":
        _emit_json("schedule", result.to_dict())
        return
    _print_schedule(result)


@deps_app.command("list")
def deps_list(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a workspace file"),
    project_id: str = typer.Argument(..., help="Project whose dependencies to list"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """List dependencies touching a project's tasks."""
    _check_format(format)
    service = _open(ctx, path, "deps list", format)
    details = service.list_dependencies(project_id)

    if format == "json":
        _emit_json("deps list", [d.to_dict() for d in details])
        return
    if not details:
        typer.echo(f"No dependencies in project {project_id}")
        return
    for d in details:
        typer.echo(
            f"{d.edge.id}: {d.predecessor.id} -> {d.successor.id} ({d.edge.type}, lag={d.edge.lag_days})"
        )


@deps_app.command("add")
def deps_add(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a workspace file"),
    predecessor_id: str = typer.Argument(..., help="Task that must come first"),
    successor_id: str = typer.Argument(..., help="Task that depends on the predecessor"),
    type: Optional[str] = typer.Option(None, "--type", help="FS|SS|FF|SF (default from settings)"),
    lag: Optional[int] = typer.Option(None, "--lag", help="Lag in days (may be negative)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Add a dependency edge (rejected if it would create a cycle)."""
    _check_format(format)
    service = _open(ctx, path, "deps add", format)

    try:
        detail = service.create_dependency(predecessor_id, successor_id, type=type, lag_days=lag)
    except GraphError as e:
        _fail("deps add", format, [e], exit_code=2)

    _save(service, path, "deps add", format)
    if format == "json":
        _emit_json("deps add", detail.to_dict())
        return
    typer.echo(
        f"OK: added dependency {detail.edge.id}: {predecessor_id} -> {successor_id} "
        f"({detail.edge.type}, lag={detail.edge.lag_days})"
    )


@deps_app.command("update")
def deps_update(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a workspace file"),
    edge_id: int = typer.Argument(..., help="Dependency id"),
    type: Optional[str] = typer.Option(None, "--type", help="FS|SS|FF|SF"),
    lag: Optional[int] = typer.Option(None, "--lag", help="Lag in days (may be negative)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Change a dependency's type and/or lag. Endpoints cannot be changed."""
    _check_format(format)
    service = _open(ctx, path, "deps update", format)

    try:
        detail = service.update_dependency(edge_id, type=type, lag_days=lag)
    except GraphError as e:
        _fail("deps update", format, [e], exit_code=2)

    _save(service, path, "deps update", format)
    if format == "json":
        _emit_json("deps update", detail.to_dict())
        return
    typer.echo(f"OK: updated dependency {edge_id} ({detail.edge.type}, lag={detail.edge.lag_days})")


@deps_app.command("remove")
def deps_remove(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a workspace file"),
    edge_id: int = typer.Argument(..., help="Dependency id"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Delete a dependency."""
    _check_format(format)
    service = _open(ctx, path, "deps remove", format)

    try:
        service.delete_dependency(edge_id)
    except GraphError as e:
        _fail("deps remove", format, [e], exit_code=2)

    _save(service, path, "deps remove", format)
    if format == "json":
        _emit_json("deps remove", {"id": edge_id})
        return
    typer.echo(f"OK: removed dependency {edge_id}")


@tasks_app.command("set-dates")
def tasks_set_dates(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a workspace file"),
    task_id: str = typer.Argument(..., help="Task to update"),
    start: Optional[str] = typer.Option(None, "--start", help="New start date (ISO)"),
    due: Optional[str] = typer.Option(None, "--due", help="New due date (ISO)"),
    progress: Optional[int] = typer.Option(None, "--progress", help="Progress percentage 0-100"),
    actor: Optional[str] = typer.Option(None, "--actor", help="User making the change"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Update one task's dates and/or progress."""
    _check_format(format)
    service = _open(ctx, path, "tasks set-dates", format)

    try:
        edit = TaskEdit(
            task_id=task_id,
            start_date=_parse_date_option(start, "start"),
            due_date=_parse_date_option(due, "due"),
            progress=progress,
        )
        summary = service.update_task_dates(edit, actor=actor)
    except GraphError as e:
        _fail("tasks set-dates", format, [e], exit_code=2)

    _save(service, path, "tasks set-dates", format)
    if format == "json":
        _emit_json("tasks set-dates", summary.to_dict())
        return
    d = summary.to_dict()
    typer.echo(f"OK: {d['id']} start={d['start_date']} due={d['due_date']} progress={d['progress']}")


@tasks_app.command("batch-update")
def tasks_batch_update(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a workspace file"),
    edits_file: str = typer.Argument(..., help="YAML/JSON list of {id, start_date?, due_date?, progress?}"),
    actor: Optional[str] = typer.Option(None, "--actor", help="User making the change"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Apply many date edits; failing items are reported, the rest still apply."""
    _check_format(format)
    service = _open(ctx, path, "tasks batch-update", format)

    try:
        edits, parse_errors = parse_task_edits(load_document(edits_file))
    except WorkspaceLoadError as e:
        _fail("tasks batch-update", format, [e], exit_code=1)
    except GraphError as e:
        _fail("tasks batch-update", format, [e], exit_code=2)

    result = service.batch_update_tasks(edits, actor=actor)
    combined = BatchResult(applied=result.applied, errors=parse_errors + result.errors)
    if combined.applied:
        _save(service, path, "tasks batch-update", format)

    if format == "json":
        _emit_json("tasks batch-update", combined.to_dict())
        return
    typer.echo(f"Updated {len(combined.applied)} tasks")
    for item in combined.errors:
        typer.echo(f"{item.task_id or '<item>'}: {item.code}: {item.message}", err=True)


def _open(ctx: typer.Context, path: str, command: str, format: str) -> GanttService:
    try:
        ws = load_workspace(path)
    except WorkspaceLoadError as e:
        _fail(command, format, [e], exit_code=1)

    workspace, errors = validate_workspace(ws)
    if errors or workspace is None:
        _fail(command, format, list(errors), exit_code=2)
    return GanttService.from_workspace(workspace, _settings(ctx))


def _save(service: GanttService, path: str, command: str, format: str) -> None:
    try:
        dump_workspace(service.to_dict(), path)
    except InternalError as e:
        _fail(command, format, [e], exit_code=1)


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else DEFAULT_SETTINGS


def _with_log_level(settings: Settings, log_level: str) -> Settings:
    if log_level.upper() not in LOG_LEVELS:
        raise SettingsError(f"log_level must be one of {list(LOG_LEVELS)}")
    return replace(settings, log_level=log_level.upper())


def _parse_date_option(value: Optional[str], name: str) -> Any:
    try:
        return coerce_date(value)
    except ValueError as e:
        raise ValidationError(code="E_VALIDATION", message=f"invalid {name} date: {e}", path=name) from e


def _print_schedule(result: Schedule) -> None:
    table = Table(title=f"Schedule: {result.project_id}")
    for col in ("Task", "Title", "Dur", "ES", "EF", "LS", "LF", "Slack", "Critical"):
        table.add_column(col)
    for n in result.nodes:
        table.add_row(
            n.task_key or n.task_id,
            n.title,
            str(n.duration),
            str(n.earliest_start),
            str(n.earliest_finish),
            str(n.latest_start),
            str(n.latest_finish),
            str(n.slack),
            "yes" if n.is_critical else "",
        )
    Console().print(table)
    typer.echo(f"Project duration: {result.project_duration} days")
    typer.echo("Critical path: " + " -> ".join(n.task_id for n in result.critical_path))


def _check_format(format: str) -> None:
    if format not in FORMATS:
        err = ValidationError(
            code="E_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: text, json)",
            file=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _emit_json(command: str, data: Any) -> None:
    payload = {"tool": "taskgraph", "command": command, "ok": True, "error_count": 0, "errors": [], "data": data}
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


def _fail(command: str, format: str, errors: list[GraphError], *, exit_code: int) -> NoReturn:
    if format == "json":
        payload = {
            "tool": "taskgraph",
            "command": command,
            "ok": False,
            "error_count": len(errors),
            "errors": [error_item(e, source=_source(e)) for e in errors],
            "data": None,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    else:
        _print_errors(errors)
    raise typer.Exit(code=exit_code)


def _source(e: GraphError) -> str:
    if isinstance(e, WorkspaceLoadError):
        return "load"
    if isinstance(e, InternalError):
        return "storage"
    if e.code.startswith("L_"):
        return "lint"
    if e.code.startswith("E_") and e.file:
        return "validate"
    return "graph"


def _print_errors(errors: list[GraphError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="taskgraph")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
