from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GraphError(Exception):
    """Base error envelope for workspace, graph and scheduling failures."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<workspace>"
        return f"{loc}: {self.code}: {self.message}"


class WorkspaceLoadError(GraphError):
    pass


class WorkspaceValidationError(GraphError):
    pass


class ValidationError(GraphError):
    """Malformed or self-referential input."""


class NotFoundError(GraphError):
    pass


class DuplicateError(GraphError):
    pass


class CrossProjectError(GraphError):
    pass


class CycleError(GraphError):
    pass


class AuthorizationError(GraphError):
    pass


class InternalError(GraphError):
    pass


def error_item(e: GraphError, *, source: str) -> dict:
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "source": source,
    }
