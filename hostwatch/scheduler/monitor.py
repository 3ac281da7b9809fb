"""Resource monitoring of scheduled query execution.

When monitoring is enabled the query runner samples the agent's own
process before and after each query and hands both samples to a
PerformanceCollector, which keeps per-query running totals.
"""

import logging
import threading
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Protocol

import psutil

from hostwatch.results.models import ResultSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceSample:
    """CPU and memory counters of the agent process at one instant."""

    user_time: float
    system_time: float
    resident_size: int
    wall_time: float


@dataclass
class QueryPerformance:
    """Accumulated resource usage of one scheduled query.

    Attributes:
        executions: Number of monitored executions
        last_executed: Unix time of the last monitored execution
        wall_time: Total seconds spent executing
        user_time: Total user CPU seconds spent executing
        system_time: Total system CPU seconds spent executing
        average_memory: Mean resident size after execution, in bytes
        output_size: Total bytes of result data produced
    """

    executions: int = 0
    last_executed: int = 0
    wall_time: float = 0.0
    user_time: float = 0.0
    system_time: float = 0.0
    average_memory: int = 0
    output_size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ProcessSampler:
    """Samples resource counters of a process (the current one by default)."""

    def __init__(self, pid: Optional[int] = None) -> None:
        self._process = psutil.Process(pid)

    def sample(self) -> Optional[ResourceSample]:
        """Take a sample, or None if the process cannot be inspected."""
        try:
            with self._process.oneshot():
                cpu = self._process.cpu_times()
                memory = self._process.memory_info()
        except psutil.Error as e:
            logger.debug(f"Failed to sample process resources: {e}")
            return None

        return ResourceSample(
            user_time=cpu.user,
            system_time=cpu.system,
            resident_size=memory.rss,
            wall_time=time.monotonic(),
        )


class MonitoringCollector(Protocol):
    """Receives the resource usage of each monitored query execution."""

    def record(
        self,
        name: str,
        elapsed: float,
        size: int,
        before: ResourceSample,
        after: ResourceSample,
    ) -> None:
        ...


class PerformanceCollector:
    """In-memory per-query performance totals.

    Example:
        collector = PerformanceCollector()
        collector.record("processes", 0.2, 4096, before, after)
        collector.get("processes").executions  # 1
    """

    def __init__(self) -> None:
        self._stats: Dict[str, QueryPerformance] = {}
        self._lock = threading.Lock()

    def record(
        self,
        name: str,
        elapsed: float,
        size: int,
        before: ResourceSample,
        after: ResourceSample,
    ) -> None:
        """Add one execution to the totals of a query."""
        with self._lock:
            stats = self._stats.setdefault(name, QueryPerformance())
            stats.executions += 1
            stats.last_executed = int(time.time())
            stats.wall_time += elapsed
            stats.user_time += max(after.user_time - before.user_time, 0.0)
            stats.system_time += max(after.system_time - before.system_time, 0.0)
            stats.average_memory = (
                stats.average_memory * (stats.executions - 1) + after.resident_size
            ) // stats.executions
            stats.output_size += size

    def get(self, name: str) -> Optional[QueryPerformance]:
        """Totals of one query, or None if it was never monitored."""
        with self._lock:
            return self._stats.get(name)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Totals of every monitored query."""
        with self._lock:
            return {name: stats.to_dict() for name, stats in self._stats.items()}

    def reset(self, name: Optional[str] = None) -> None:
        """Forget the totals of one query, or of all queries."""
        with self._lock:
            if name is None:
                self._stats.clear()
            else:
                self._stats.pop(name, None)


def result_byte_size(rows: ResultSet) -> int:
    """Size of a result set as the total length of its column names and values."""
    size = 0
    for row in rows:
        for column, value in row.items():
            size += len(column)
            size += len(str(value))
    return size
