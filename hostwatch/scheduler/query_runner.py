"""Query runner for executing one scheduled query once.

The QueryRunner handles a single launch of a scheduled query:
execution, optional resource monitoring, differential computation
against the stored result set, and emission to the result log sink.
"""

import logging
import time
from enum import Enum
from typing import Callable, Optional

from hostwatch.exceptions import ExecutionError, SinkError, StorageError
from hostwatch.results.models import QueryLogItem, ResultSet
from hostwatch.results.store import ResultStore
from hostwatch.scheduler.monitor import (
    MonitoringCollector,
    PerformanceCollector,
    ProcessSampler,
    result_byte_size,
)
from hostwatch.scheduler.schedule import ScheduledQuery
from hostwatch.services.engine import QueryEngine
from hostwatch.services.log_sink import LogSink

logger = logging.getLogger(__name__)


class LaunchOutcome(Enum):
    """How a single launch of a query ended."""

    EXECUTION_FAILED = "execution_failed"  # Engine error, nothing else done
    SNAPSHOT_EMITTED = "snapshot_emitted"  # Full result set logged
    STORAGE_FAILED = "storage_failed"  # Stored state unreadable or unwritable
    NO_CHANGES = "no_changes"  # Nothing to report
    EMITTED = "emitted"  # Differential results logged
    SINK_FAILED = "sink_failed"  # Results computed but not logged


class QueryRunner:
    """Runs scheduled queries and reports what changed.

    The QueryRunner is responsible for:
    1. Executing the query through the query engine
    2. Sampling the agent's resource usage around it (when enabled)
    3. Emitting snapshot queries in full
    4. Diffing other queries against their stored results
    5. Emitting non-empty differentials to the result log sink

    Every failure is logged and ends the launch; none is raised.

    Example:
        runner = QueryRunner(engine, store, sink, hostname_identifier)
        outcome = runner.launch("processes", scheduled_query)
    """

    def __init__(
        self,
        engine: QueryEngine,
        store: ResultStore,
        sink: LogSink,
        host_identifier: Callable[[], str],
        enable_monitor: bool = False,
        collector: Optional[MonitoringCollector] = None,
        sampler: Optional[ProcessSampler] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the query runner.

        Args:
            engine: Query execution engine
            store: Result store used for differential queries
            sink: Result log sink
            host_identifier: Provider of this host's identifier
            enable_monitor: Sample process resources around each query
            collector: Receiver of resource samples (default: in-memory totals)
            sampler: Process sampler (default: the current process)
            clock: Source of the log item timestamps
        """
        self._engine = engine
        self._store = store
        self._sink = sink
        self._host_identifier = host_identifier
        self._enable_monitor = enable_monitor
        self._collector = collector if collector is not None else PerformanceCollector()
        self._sampler = sampler
        self._clock = clock

        if enable_monitor and self._sampler is None:
            self._sampler = ProcessSampler()

    @property
    def collector(self) -> MonitoringCollector:
        return self._collector

    def launch(self, name: str, query: ScheduledQuery) -> LaunchOutcome:
        """Run one scheduled query once.

        Args:
            name: Name of the query in the schedule
            query: The scheduled query

        Returns:
            How the launch ended
        """
        logger.debug(f"Executing query: {query.query}")

        try:
            rows = self._execute(name, query)
        except ExecutionError as e:
            logger.error(f"Error executing query ({query.query}): {e}")
            return LaunchOutcome.EXECUTION_FAILED

        identifier = self._host_identifier()
        item = QueryLogItem.create(name, identifier, now=self._clock())

        if query.snapshot:
            item.snapshot_results = rows
            try:
                self._sink.log_snapshot(item)
            except SinkError as e:
                logger.error(f"Error logging the snapshot of query ({query.query}): {e}")
                return LaunchOutcome.SINK_FAILED
            return LaunchOutcome.SNAPSHOT_EMITTED

        try:
            diff = self._store.compute_and_store(name, rows)
        except StorageError as e:
            logger.error(f"Error adding new results to database: {e}")
            return LaunchOutcome.STORAGE_FAILED

        if not query.report_removed:
            diff.removed.clear()

        if diff.is_empty():
            return LaunchOutcome.NO_CHANGES

        logger.debug(f"Found results for query ({name}) for host: {identifier}")
        item.results = diff

        try:
            self._sink.log_results(item)
        except SinkError as e:
            logger.error(f"Error logging the results of query ({query.query}): {e}")
            return LaunchOutcome.SINK_FAILED

        return LaunchOutcome.EMITTED

    def _execute(self, name: str, query: ScheduledQuery) -> ResultSet:
        """Execute a query, recording its resource usage when monitoring."""
        if not self._enable_monitor:
            return self._engine.execute(query.query)

        before = self._sampler.sample()
        started = time.monotonic()
        rows = self._engine.execute(query.query)
        elapsed = time.monotonic() - started
        after = self._sampler.sample()

        if before is not None and after is not None:
            try:
                self._collector.record(name, elapsed, result_byte_size(rows), before, after)
            except Exception as e:
                logger.debug(f"Failed to record performance of {name}: {e}")

        return rows
