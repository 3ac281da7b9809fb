"""Query scheduler for tick-based recurring query execution.

The scheduler launches each scheduled query every ``splayed_interval``
ticks and reports what changed since the query's previous execution.
"""

from hostwatch.scheduler.monitor import PerformanceCollector, ProcessSampler
from hostwatch.scheduler.query_runner import LaunchOutcome, QueryRunner
from hostwatch.scheduler.runner import SchedulerRunner, SchedulerState
from hostwatch.scheduler.schedule import (
    ConfigSchedule,
    ScheduledQuery,
    ScheduleSource,
    StaticSchedule,
    splay_value,
)

__all__ = [
    "ConfigSchedule",
    "LaunchOutcome",
    "PerformanceCollector",
    "ProcessSampler",
    "QueryRunner",
    "ScheduledQuery",
    "ScheduleSource",
    "SchedulerRunner",
    "SchedulerState",
    "StaticSchedule",
    "splay_value",
]
