"""Main agent service for hostwatch.

This module provides the core service functionality including:
- A service group that runs background services and joins them
- Registration of the query scheduler as a background service
- Agent lifecycle management (start/stop)
- Signal handling for graceful shutdown
"""

import asyncio
import logging
import signal
from typing import Any, Dict, List, Optional, Protocol

from hostwatch.config import HostwatchConfig
from hostwatch.exceptions import HostwatchError, SchedulerError
from hostwatch.results.store import ResultStore
from hostwatch.scheduler.query_runner import QueryRunner
from hostwatch.scheduler.runner import SchedulerRunner
from hostwatch.scheduler.schedule import ConfigSchedule, ScheduleSource
from hostwatch.services.engine import SQLQueryEngine
from hostwatch.services.host import build_host_identifier
from hostwatch.services.log_sink import FileLogSink

logger = logging.getLogger(__name__)


class Service(Protocol):
    """A long-running unit of work managed by a ServiceGroup."""

    name: str

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run until finished or until ``stop_event`` is set."""
        ...


class ServiceGroup:
    """Runs background services that share one stop signal.

    Each registered service runs as its own asyncio task. join_all()
    waits until every registered service has finished, and stop_all()
    sets the shared stop event so that all of them wind down.

    Example:
        services = ServiceGroup()
        services.add_service(runner)
        ...
        services.stop_all()
        await services.join_all()
    """

    def __init__(self) -> None:
        self._stop_event = asyncio.Event()
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def stop_event(self) -> asyncio.Event:
        return self._stop_event

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def add_service(self, service: Service) -> asyncio.Task:
        """Start a service in the background.

        Must be called from within the running event loop.

        Args:
            service: The service to start

        Returns:
            The task running the service

        Raises:
            SchedulerError: If a service with the same name is still
                running, or the group is shutting down
        """
        if self._stop_event.is_set():
            raise SchedulerError(f"Cannot start {service.name}: services are stopping")

        existing = self._tasks.get(service.name)
        if existing is not None and not existing.done():
            raise SchedulerError(f"Service {service.name} is already running")

        task = asyncio.create_task(self._run_service(service), name=service.name)
        self._tasks[service.name] = task
        logger.debug(f"Registered service {service.name}")
        return task

    async def _run_service(self, service: Service) -> None:
        try:
            await service.run(self._stop_event)
        except asyncio.CancelledError:
            logger.info(f"Service {service.name} cancelled")
            raise
        except Exception:
            logger.exception(f"Service {service.name} failed")

    async def join_all(self) -> None:
        """Wait until every registered service has finished."""
        while True:
            pending = [task for task in self._tasks.values() if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def stop_all(self) -> None:
        """Signal every service to stop. Safe to call more than once."""
        if not self._stop_event.is_set():
            logger.info("Stopping services")
        self._stop_event.set()

    def running_services(self) -> List[str]:
        """Names of services that have not finished yet."""
        return [name for name, task in self._tasks.items() if not task.done()]


def start_scheduler(
    services: ServiceGroup,
    schedule: ScheduleSource,
    query_runner: QueryRunner,
    timeout: int = 0,
    interval: float = 1,
) -> SchedulerRunner:
    """Register a scheduler runner as a background service.

    Returns as soon as the runner is registered.

    Args:
        services: Service group to register with
        schedule: Schedule source for the runner
        query_runner: Runner used to launch due queries
        timeout: Last tick to run, 0 for no limit
        interval: Seconds between ticks

    Returns:
        The registered runner

    Raises:
        SchedulerError: If a scheduler is already running in the group
    """
    runner = SchedulerRunner(schedule, query_runner, timeout=timeout, interval=interval)
    services.add_service(runner)
    return runner


class HostwatchDaemon:
    """Main agent service for hostwatch.

    The HostwatchDaemon wires the result store, query engine, log sink
    and schedule into a scheduler and manages its lifecycle.

    Example:
        daemon = HostwatchDaemon(config)

        await daemon.start()
        await daemon.run_until_shutdown()
        await daemon.stop()
    """

    def __init__(
        self,
        config: HostwatchConfig,
        timeout: Optional[int] = None,
        interval: Optional[float] = None,
    ):
        """Initialize the agent service.

        Args:
            config: hostwatch configuration
            timeout: Override of ``config.scheduler.timeout``
            interval: Override of ``config.scheduler.interval``
        """
        self._config = config
        self._timeout = config.scheduler.timeout if timeout is None else timeout
        self._interval = config.scheduler.interval if interval is None else interval
        self._services: Optional[ServiceGroup] = None
        self._store: Optional[ResultStore] = None
        self._engine: Optional[SQLQueryEngine] = None
        self._query_runner: Optional[QueryRunner] = None
        self._scheduler: Optional[SchedulerRunner] = None
        self._running = False

    async def start(self) -> None:
        """Start the agent services.

        This initializes:
        1. Result store
        2. Query engine and result log sink
        3. Schedule and query runner
        4. Scheduler, registered as a background service

        Raises:
            HostwatchError: If a component fails to start
        """
        if self._running:
            raise SchedulerError("hostwatch daemon is already running")

        logger.info("Starting hostwatch daemon...")

        self._store = ResultStore.from_url(self._config.resolved_database_url)
        logger.info(f"Result store opened: {self._config.resolved_database_url}")

        self._engine = SQLQueryEngine.from_url(self._config.data_source.url)
        sink = FileLogSink(self._config.results_log_path, self._config.snapshots_log_path)

        self._query_runner = QueryRunner(
            engine=self._engine,
            store=self._store,
            sink=sink,
            host_identifier=build_host_identifier(
                self._config.host_identifier, self._config.data_dir
            ),
            enable_monitor=self._config.scheduler.enable_monitor,
        )
        schedule = ConfigSchedule(self._config)

        self._services = ServiceGroup()
        self._scheduler = start_scheduler(
            self._services,
            schedule,
            self._query_runner,
            timeout=self._timeout,
            interval=self._interval,
        )

        self._running = True
        logger.info("hostwatch daemon started successfully")

    async def stop(self) -> None:
        """Stop the agent services.

        Signals the scheduler, waits for the tick in progress to finish,
        then releases the store and engine. Safe to call more than once.
        """
        if self._services is not None:
            self._services.stop_all()
            await self._services.join_all()

        if self._running:
            logger.info("Stopping hostwatch daemon...")
        self._running = False

        if self._engine is not None:
            self._engine.close()
            self._engine = None
        if self._store is not None:
            self._store.close()
            self._store = None

        logger.info("hostwatch daemon stopped")

    async def run_until_shutdown(self) -> None:
        """Block until every service has finished.

        Returns when the scheduler reaches its timeout or after
        request_shutdown() has been called.
        """
        if self._services is not None:
            await self._services.join_all()

    def request_shutdown(self) -> None:
        """Request agent shutdown."""
        logger.info("Shutdown requested")
        if self._services is not None:
            self._services.stop_all()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def scheduler(self) -> Optional[SchedulerRunner]:
        """The scheduler runner, or None if not started."""
        return self._scheduler

    @property
    def query_runner(self) -> Optional[QueryRunner]:
        return self._query_runner

    def get_status(self) -> Dict[str, Any]:
        """Get agent status, including monitored query performance."""
        status: Dict[str, Any] = {"running": self._running}
        if self._scheduler is not None:
            status["scheduler"] = self._scheduler.get_status()
        if self._query_runner is not None and self._config.scheduler.enable_monitor:
            status["performance"] = self._query_runner.collector.snapshot()
        return status


async def run_daemon(config: HostwatchConfig, options: Optional[Dict[str, Any]] = None) -> bool:
    """Run the hostwatch agent with signal handling.

    Starts the scheduler and blocks until it and every other background
    service have finished, either by reaching the schedule timeout or
    through SIGTERM/SIGINT.

    Args:
        config: hostwatch configuration
        options: Agent options including:
            - timeout: Override of the schedule timeout
            - interval: Override of the tick interval

    Returns:
        True if the agent started and shut down in order, False if it
        could not be started
    """
    options = options or {}
    daemon = HostwatchDaemon(
        config,
        timeout=options.get("timeout"),
        interval=options.get("interval"),
    )

    # Set up signal handlers
    loop = asyncio.get_running_loop()

    def handle_signal(sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        daemon.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except (NotImplementedError, RuntimeError):
            # Windows and non-main threads don't support add_signal_handler
            logger.debug(f"Signal handler for {sig.name} not installed")

    try:
        try:
            await daemon.start()
        except HostwatchError as e:
            logger.error(f"Could not start scheduler: {e}")
            return False

        await daemon.run_until_shutdown()
        return True
    finally:
        await daemon.stop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass
