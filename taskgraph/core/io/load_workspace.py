from __future__ import annotations

import json
import os
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from taskgraph.core.errors import InternalError, WorkspaceLoadError


YAML_SUFFIXES = {".yaml", ".yml"}


def load_workspace(path: str) -> dict[str, Any]:
    """Load a YAML/JSON workspace file.

    Returns a dict with keys: schema_version, projects, tasks, dependencies.
    Types are left alone; validate_workspace checks the shape.
    """
    p = Path(path)
    data = _parse(p)
    if not isinstance(data, dict):
        raise WorkspaceLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    # Missing sections default to empty; validator checks the rest.
    normalized: dict[str, Any] = {
        "schema_version": data.get("schema_version"),
        "projects": data.get("projects", []),
        "tasks": data.get("tasks", []),
        "dependencies": data.get("dependencies", []),
    }
    normalized["__file__"] = str(p)
    return normalized


def load_document(path: str) -> Any:
    """Load any YAML/JSON document (used for batch edit files)."""
    return _parse(Path(path))


def _parse(p: Path) -> Any:
    if not p.exists():
        raise WorkspaceLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))

    suffix = p.suffix.lower()
    if suffix not in YAML_SUFFIXES and suffix != ".json":
        raise WorkspaceLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported formats are .yaml/.yml and .json",
            file=str(p),
        )

    try:
        raw_text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise WorkspaceLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    if suffix in YAML_SUFFIXES:
        try:
            return yaml.safe_load(raw_text)
        except yaml.YAMLError as e:
            raise WorkspaceLoadError(code="E_YAML_PARSE", message=str(e), file=str(p)) from e
    try:
        return json.loads(raw_text)
    except json.JSONDecodeError as e:
        raise WorkspaceLoadError(code="E_JSON_PARSE", message=str(e), file=str(p)) from e


def dump_workspace(data: dict[str, Any], path: str) -> None:
    """Write the workspace next to its destination, then swap it in.

    Filesystem failures surface as InternalError (E_INTERNAL); the previous
    file is left untouched.
    """
    p = Path(path)
    payload = {k: v for k, v in data.items() if not k.startswith("__")}
    try:
        if str(p.parent) not in (".", ""):
            p.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{p.name}.", dir=str(p.parent))
    except OSError as e:
        raise InternalError(code="E_INTERNAL", message=f"cannot write workspace: {e}", file=str(p)) from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            if p.suffix.lower() == ".json":
                json.dump(payload, f, indent=2, default=_json_default)
                f.write("\n")
            else:
                yaml.safe_dump(payload, f, sort_keys=False, default_flow_style=False, allow_unicode=True)
        os.replace(tmp, p)
    except BaseException as e:
        if os.path.exists(tmp):
            os.unlink(tmp)
        if isinstance(e, OSError):
            raise InternalError(code="E_INTERNAL", message=f"cannot write workspace: {e}", file=str(p)) from e
        raise


def _json_default(v: Any) -> Any:
    if isinstance(v, (date, datetime)):
        return v.isoformat()
    raise TypeError(f"not JSON serializable: {type(v).__name__}")
