from __future__ import annotations

from typing import Any, Optional

from taskgraph.core.errors import (
    CrossProjectError,
    CycleError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from taskgraph.core.graph.cycle_guard import describe_cycle, find_cycle_path
from taskgraph.core.graph.store import WorkspaceStore
from taskgraph.core.log import get_logger
from taskgraph.core.model import DEPENDENCY_TYPES, DependencyEdge, EdgeDetail, TaskRef


logger = get_logger(__name__)


class DependencyStore:
    """Dependency edges of a workspace, with their invariants.

    Every check runs inside the same transaction as the write it guards.
    """

    def __init__(self, store: WorkspaceStore, *, default_type: str = "FS") -> None:
        self.store = store
        self.default_type = default_type

    def add_edge(
        self,
        predecessor_id: str,
        successor_id: str,
        type: Optional[str] = None,
        lag_days: Optional[int] = None,
    ) -> EdgeDetail:
        dep_type = self.default_type if type is None else type
        lag = 0 if lag_days is None else lag_days

        if not predecessor_id or not successor_id:
            raise ValidationError(
                code="E_VALIDATION",
                message="predecessor and successor task ids are required",
                path="predecessor_id" if not predecessor_id else "successor_id",
            )
        if predecessor_id == successor_id:
            raise ValidationError(
                code="E_VALIDATION",
                message=f"task cannot depend on itself: {predecessor_id}",
                path="successor_id",
            )
        _check_type(dep_type)
        _check_lag(lag)

        with self.store.transaction() as s:
            predecessor = s.get_task(predecessor_id)
            if predecessor is None:
                raise NotFoundError(
                    code="E_NOT_FOUND",
                    message=f"predecessor task not found: {predecessor_id}",
                    path="predecessor_id",
                )
            successor = s.get_task(successor_id)
            if successor is None:
                raise NotFoundError(
                    code="E_NOT_FOUND",
                    message=f"successor task not found: {successor_id}",
                    path="successor_id",
                )

            if predecessor.project_id != successor.project_id:
                raise CrossProjectError(
                    code="E_CROSS_PROJECT",
                    message=(
                        f"both tasks must be from the same project "
                        f"({predecessor_id} is in {predecessor.project_id}, "
                        f"{successor_id} is in {successor.project_id})"
                    ),
                    path="successor_id",
                )

            if s.edge_between(predecessor_id, successor_id) is not None:
                raise DuplicateError(
                    code="E_DUPLICATE",
                    message=f"dependency already exists: {predecessor_id} -> {successor_id}",
                    path="successor_id",
                )

            cycle = find_cycle_path(s.successor_ids, predecessor_id, successor_id)
            if cycle is not None:
                logger.warning("rejected %s -> %s: would close a cycle", predecessor_id, successor_id)
                raise CycleError(
                    code="E_CYCLE",
                    message=f"this would create a circular dependency: {describe_cycle(cycle)}",
                    path="successor_id",
                )

            edge = DependencyEdge(
                id=s.allocate_edge_id(),
                predecessor_id=predecessor_id,
                successor_id=successor_id,
                type=dep_type,  # type: ignore[arg-type]
                lag_days=lag,
            )
            s.put_edge(edge)
            logger.info("added dependency %d: %s -> %s (%s, lag=%d)", edge.id, predecessor_id, successor_id, dep_type, lag)
            return self._detail(edge)

    def update_edge(
        self,
        edge_id: int,
        type: Optional[str] = None,
        lag_days: Optional[int] = None,
    ) -> EdgeDetail:
        """Change type and/or lag. None keeps the current value."""
        if type is not None:
            _check_type(type)
        if lag_days is not None:
            _check_lag(lag_days)

        with self.store.transaction() as s:
            edge = self._require_edge(edge_id)
            updated = DependencyEdge(
                id=edge.id,
                predecessor_id=edge.predecessor_id,
                successor_id=edge.successor_id,
                type=edge.type if type is None else type,  # type: ignore[arg-type]
                lag_days=edge.lag_days if lag_days is None else lag_days,
            )
            s.put_edge(updated)
            logger.info("updated dependency %d (%s, lag=%d)", edge_id, updated.type, updated.lag_days)
            return self._detail(updated)

    def remove_edge(self, edge_id: int) -> None:
        with self.store.transaction() as s:
            self._require_edge(edge_id)
            edge = s.delete_edge(edge_id)
            logger.info("removed dependency %d: %s -> %s", edge_id, edge.predecessor_id, edge.successor_id)

    def list_edges(self, project_id: str) -> list[EdgeDetail]:
        ids = {t.id for t in self.store.tasks_in_project(project_id)}
        return [
            self._detail(e)
            for e in self.store.all_edges()
            if e.predecessor_id in ids or e.successor_id in ids
        ]

    def predecessors_of(self, task_id: str) -> list[str]:
        return self.store.predecessor_ids(task_id)

    def successors_of(self, task_id: str) -> list[str]:
        return self.store.successor_ids(task_id)

    def _require_edge(self, edge_id: int) -> DependencyEdge:
        edge = self.store.get_edge(edge_id)
        if edge is None:
            raise NotFoundError(code="E_NOT_FOUND", message=f"dependency not found: {edge_id}", path="edge_id")
        return edge

    def _detail(self, edge: DependencyEdge) -> EdgeDetail:
        pred = self.store.require_task(edge.predecessor_id)
        succ = self.store.require_task(edge.successor_id)
        return EdgeDetail(edge=edge, predecessor=TaskRef.of(pred), successor=TaskRef.of(succ))


def _check_type(dep_type: Any) -> None:
    if dep_type not in DEPENDENCY_TYPES:
        raise ValidationError(
            code="E_VALIDATION",
            message=f"type must be one of {list(DEPENDENCY_TYPES)}, got {dep_type!r}",
            path="type",
        )


def _check_lag(lag: Any) -> None:
    if not isinstance(lag, int) or isinstance(lag, bool):
        raise ValidationError(code="E_VALIDATION", message="lag_days must be an integer", path="lag_days")
