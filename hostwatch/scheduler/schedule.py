"""Scheduled query definitions and schedule snapshots.

A schedule maps query names to ScheduledQuery entries. The scheduler
reads one immutable snapshot per tick; reloading configuration swaps in
a whole new snapshot rather than mutating entries in place.
"""

import logging
import os
import random
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Protocol, runtime_checkable

from hostwatch.config import HostwatchConfig, QueryConfig

logger = logging.getLogger(__name__)

# Mixed into every splay computation of this process
PROCESS_SPLAY_SEED = f"{os.getpid()}:{time.time_ns()}"


@dataclass(frozen=True)
class ScheduledQuery:
    """A query scheduled to run every ``splayed_interval`` ticks.

    Attributes:
        name: Unique query name, also the key of its stored results
        query: Query text handed to the execution engine
        interval: Configured base interval in seconds
        splayed_interval: Interval after per-name jitter is applied
        options: Explicitly configured boolean options
    """

    name: str
    query: str
    interval: int
    splayed_interval: int
    options: Mapping[str, bool] = field(default_factory=dict)

    @property
    def snapshot(self) -> bool:
        """Emit the full result set instead of a differential."""
        return bool(self.options.get("snapshot", False))

    @property
    def report_removed(self) -> bool:
        """Report removed rows; only an explicit ``removed = false`` disables it."""
        return self.options.get("removed", True) is not False

    def is_due(self, tick: int) -> bool:
        """Whether the query runs on the given tick."""
        return tick % self.splayed_interval == 0


def splay_value(interval: int, splay_percent: int, seed: str) -> int:
    """Jitter an interval by up to ``splay_percent`` percent.

    The result is drawn uniformly from
    ``[max(1, interval - d), interval + d]`` with
    ``d = int(interval * splay_percent / 100)``, using a generator seeded
    by ``seed`` so the same inputs always give the same value.

    Args:
        interval: Base interval in seconds
        splay_percent: Maximum jitter in percent; values outside
            (0, 100] disable splay
        seed: Seed string, normally derived from the query name

    Returns:
        The splayed interval (always >= 1)
    """
    if splay_percent <= 0 or splay_percent > 100:
        return interval

    difference = int(interval * splay_percent / 100)
    max_value = interval + difference
    min_value = max(interval - difference, 1)

    if max_value == min_value:
        return max_value

    return random.Random(seed).randint(min_value, max_value)


def build_scheduled_query(
    name: str,
    entry: QueryConfig,
    splay_percent: int,
    process_seed: str = PROCESS_SPLAY_SEED,
) -> ScheduledQuery:
    """Create a ScheduledQuery from its configuration entry."""
    splayed = splay_value(
        entry.interval,
        splay_percent,
        seed=f"{name}:{entry.interval}:{process_seed}",
    )
    return ScheduledQuery(
        name=name,
        query=entry.query,
        interval=entry.interval,
        splayed_interval=splayed,
        options=MappingProxyType(dict(entry.options)),
    )


@runtime_checkable
class ScheduleSource(Protocol):
    """Provides point-in-time snapshots of the schedule."""

    def snapshot(self) -> Mapping[str, ScheduledQuery]:
        """Return the current schedule in iteration order."""
        ...


class StaticSchedule:
    """Schedule source over a fixed set of queries.

    Example:
        schedule = StaticSchedule([
            ScheduledQuery("uptime", "SELECT * FROM uptime", 10, 10),
        ])
    """

    def __init__(self, queries=()) -> None:
        self._queries: Mapping[str, ScheduledQuery] = MappingProxyType(
            {query.name: query for query in queries}
        )

    def snapshot(self) -> Mapping[str, ScheduledQuery]:
        return self._queries

    def replace(self, queries) -> None:
        """Swap in a new set of queries."""
        self._queries = MappingProxyType({query.name: query for query in queries})


class ConfigSchedule:
    """Schedule source built from the ``[schedule]`` configuration section.

    Splayed intervals are computed once per load, so they stay stable for
    the life of the process unless the configuration is reloaded.
    """

    def __init__(
        self,
        config: HostwatchConfig,
        process_seed: Optional[str] = None,
    ) -> None:
        """Initialize the schedule.

        Args:
            config: Configuration holding the schedule and splay percent
            process_seed: Splay seed override, mainly for tests
        """
        self._process_seed = process_seed or PROCESS_SPLAY_SEED
        self._queries: Mapping[str, ScheduledQuery] = MappingProxyType({})
        self.reload(config)

    def reload(self, config: HostwatchConfig) -> None:
        """Rebuild the schedule from configuration."""
        queries: Dict[str, ScheduledQuery] = {}
        for name, entry in config.schedule.items():
            queries[name] = build_scheduled_query(
                name,
                entry,
                config.scheduler.splay_percent,
                self._process_seed,
            )
            if queries[name].splayed_interval != entry.interval:
                logger.debug(
                    f"Splayed interval for {name}: "
                    f"{entry.interval} -> {queries[name].splayed_interval}"
                )

        self._queries = MappingProxyType(queries)
        logger.info(f"Loaded schedule with {len(queries)} queries")

    def snapshot(self) -> Mapping[str, ScheduledQuery]:
        return self._queries
