from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from taskgraph.core.model import DateLike, Task


SECONDS_PER_DAY = 86400


def task_duration(task: Task, *, hours_per_day: int = 8, default_days: int = 1) -> int:
    """Duration of a task in whole days. Never raises.

    1. start_date and due_date: ceil of the span in days, at least 1.
    2. estimated_hours > 0: ceil(hours / hours_per_day).
    3. default_days.
    """
    span = _span_days(task.start_date, task.due_date)
    if span is not None:
        return span if span > 0 else 1

    hours = task.estimated_hours
    if hours is not None and hours > 0 and hours_per_day > 0:
        return math.ceil(hours / hours_per_day)

    return default_days


def _span_days(start: Optional[DateLike], due: Optional[DateLike]) -> Optional[int]:
    if start is None or due is None:
        return None
    a, b = _as_datetime(start), _as_datetime(due)
    if (a.tzinfo is None) != (b.tzinfo is None):
        # Mixed naive/aware values are compared as wall-clock time.
        a, b = a.replace(tzinfo=None), b.replace(tzinfo=None)
    return math.ceil((b - a).total_seconds() / SECONDS_PER_DAY)


def _as_datetime(v: DateLike) -> datetime:
    if isinstance(v, datetime):
        return v
    return datetime(v.year, v.month, v.day)
