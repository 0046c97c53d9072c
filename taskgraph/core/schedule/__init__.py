"""CPM scheduling: task durations and the critical-path calculator."""

from taskgraph.core.schedule.cpm import compute_schedule, topological_order
from taskgraph.core.schedule.duration import task_duration

__all__ = ["compute_schedule", "topological_order", "task_duration"]
