"""Critical Path Method over a project snapshot.

Kahn's algorithm gives the topological order, then one forward pass (earliest
times) and one backward pass (latest times). Every dependency is treated as
finish-to-start with zero lag; ``type`` and ``lag_days`` are carried by the
edges but do not shift any time here.

Times are whole days relative to project start (day 0).
"""
from __future__ import annotations

import heapq
from typing import Callable, Optional

from taskgraph.core.errors import CycleError
from taskgraph.core.log import get_logger
from taskgraph.core.model import ProjectSnapshot, Schedule, ScheduleNode, Task
from taskgraph.core.schedule.duration import task_duration


logger = get_logger(__name__)

DurationFn = Callable[[Task], int]


def topological_order(task_ids: list[str], successors: dict[str, list[str]]) -> list[str]:
    """Kahn's algorithm. Ready tasks are released in ``task_ids`` order.

    Raises CycleError when some tasks can never become ready.
    """
    position = {tid: i for i, tid in enumerate(task_ids)}
    indegree = {tid: 0 for tid in task_ids}
    for succs in successors.values():
        for s in succs:
            indegree[s] += 1

    ready: list[tuple[int, str]] = [(position[t], t) for t in task_ids if indegree[t] == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        _, cur = heapq.heappop(ready)
        order.append(cur)
        for nxt in successors.get(cur, []):
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                heapq.heappush(ready, (position[nxt], nxt))

    if len(order) != len(task_ids):
        stuck = sorted((t for t in task_ids if indegree[t] > 0), key=position.__getitem__)
        raise CycleError(
            code="E_CYCLE",
            message=f"dependency graph contains a cycle through: {', '.join(stuck)}",
        )
    return order


def compute_schedule(snapshot: ProjectSnapshot, duration: Optional[DurationFn] = None) -> Schedule:
    """Compute the CPM schedule for a snapshot.

    All-or-nothing: a cycle raises before any node is produced.
    """
    duration = duration or task_duration

    tasks_by_id: dict[str, Task] = {t.id: t for t in snapshot.tasks}
    task_ids = list(tasks_by_id.keys())

    successors: dict[str, list[str]] = {tid: [] for tid in task_ids}
    predecessors: dict[str, list[str]] = {tid: [] for tid in task_ids}
    seen_pairs: set[tuple[str, str]] = set()
    for e in snapshot.edges:
        pair = (e.predecessor_id, e.successor_id)
        if e.predecessor_id not in tasks_by_id or e.successor_id not in tasks_by_id:
            continue
        if pair in seen_pairs:
            continue
        seen_pairs.add(pair)
        successors[e.predecessor_id].append(e.successor_id)
        predecessors[e.successor_id].append(e.predecessor_id)

    order = topological_order(task_ids, successors)
    durations = {tid: duration(tasks_by_id[tid]) for tid in order}

    es: dict[str, int] = {}
    ef: dict[str, int] = {}
    for tid in order:
        es[tid] = max((ef[p] for p in predecessors[tid]), default=0)
        ef[tid] = es[tid] + durations[tid]

    project_duration = max(ef.values(), default=0)

    ls: dict[str, int] = {}
    lf: dict[str, int] = {}
    for tid in reversed(order):
        lf[tid] = min((ls[s] for s in successors[tid]), default=project_duration)
        ls[tid] = lf[tid] - durations[tid]

    nodes = [
        ScheduleNode(
            task_id=tid,
            task_key=tasks_by_id[tid].task_key,
            title=tasks_by_id[tid].title,
            duration=durations[tid],
            earliest_start=es[tid],
            earliest_finish=ef[tid],
            latest_start=ls[tid],
            latest_finish=lf[tid],
            slack=ls[tid] - es[tid],
        )
        for tid in order
    ]
    critical = [n for n in nodes if n.is_critical]

    logger.debug(
        "project %s: %d tasks, duration=%d, critical=%d",
        snapshot.project_id,
        len(nodes),
        project_duration,
        len(critical),
    )
    return Schedule(
        project_id=snapshot.project_id,
        project_duration=project_duration,
        nodes=nodes,
        critical_path=critical,
    )
