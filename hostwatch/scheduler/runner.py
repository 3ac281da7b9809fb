"""Scheduler loop for tick-based query execution.

The SchedulerRunner advances a tick counter once per interval and, on
each tick, launches every scheduled query whose splayed interval divides
the counter. Launches within a tick run one after another; the loop
never runs two queries at the same time.

Between ticks the runner waits on a stop event with a timeout, so a
stop request ends the wait immediately instead of after the full
interval.
"""

import asyncio
import logging
import time
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional

from hostwatch.exceptions import SchedulerError
from hostwatch.scheduler.query_runner import LaunchOutcome, QueryRunner
from hostwatch.scheduler.schedule import ScheduledQuery, ScheduleSource

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    """Lifecycle state of a scheduler runner."""

    IDLE = auto()  # Created, not started
    RUNNING = auto()  # Ticking
    STOPPED = auto()  # Finished, by timeout or stop request


def seconds_of_minute() -> int:
    """Current local wall-clock second within the minute (0-59)."""
    return time.localtime().tm_sec


class SchedulerRunner:
    """Runs scheduled queries on a tick counter.

    The counter starts at the current seconds-of-minute (or at
    ``start_tick``) and increases by one per iteration. With a non-zero
    ``timeout`` the runner stops once the counter exceeds it.

    Example:
        runner = SchedulerRunner(schedule, query_runner, timeout=0, interval=1)

        # Run until request_stop() is called
        await runner.run()
    """

    name = "scheduler"

    def __init__(
        self,
        schedule: ScheduleSource,
        query_runner: QueryRunner,
        timeout: int = 0,
        interval: float = 1,
        start_tick: Optional[int] = None,
        tick_seed: Callable[[], int] = seconds_of_minute,
    ) -> None:
        """Initialize the scheduler runner.

        Args:
            schedule: Source of schedule snapshots, read once per tick
            query_runner: Runner used to launch due queries
            timeout: Last tick to run, 0 to run until stopped
            interval: Seconds to sleep between ticks
            start_tick: Initial tick counter (default: from tick_seed)
            tick_seed: Provider of the initial tick counter

        Raises:
            SchedulerError: If timeout or interval is negative
        """
        if interval < 0:
            raise SchedulerError(f"interval must not be negative, got {interval}")
        if timeout < 0:
            raise SchedulerError(f"timeout must not be negative, got {timeout}")

        self._schedule = schedule
        self._query_runner = query_runner
        self._timeout = timeout
        self._interval = interval
        self._start_tick = start_tick
        self._tick_seed = tick_seed

        self._state = SchedulerState.IDLE
        self._tick = 0
        self._ticks_run = 0
        self._launches = 0
        self._failures = 0
        self._stop_requested = False
        self._stop_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def tick(self) -> int:
        """Current value of the tick counter."""
        return self._tick

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run the scheduler loop until timeout or stop request.

        Args:
            stop_event: Shared stop signal; a private one is created if
                not given

        Raises:
            SchedulerError: If this runner was already started
        """
        if self._state is not SchedulerState.IDLE:
            raise SchedulerError("Scheduler runner has already been started")

        self._loop = asyncio.get_running_loop()
        self._stop_event = stop_event if stop_event is not None else asyncio.Event()
        if self._stop_requested:
            self._stop_event.set()

        self._tick = self._start_tick if self._start_tick is not None else self._tick_seed()
        self._state = SchedulerState.RUNNING
        logger.info(
            f"Scheduler started at tick {self._tick} "
            f"(timeout={self._timeout or 'none'}, interval={self._interval}s)"
        )

        try:
            while not self._stop_event.is_set():
                if self._timeout and self._tick > self._timeout:
                    logger.info(f"Scheduler reached timeout at tick {self._tick}")
                    break

                await self._run_tick(self._tick)
                self._ticks_run += 1

                if await self._sleep():
                    break
                self._tick += 1
        finally:
            self._state = SchedulerState.STOPPED
            logger.info(f"Scheduler stopped after {self._ticks_run} ticks")

    def request_stop(self) -> None:
        """Ask the loop to stop; safe to call repeatedly and from any thread."""
        self._stop_requested = True
        if self._stop_event is None or self._loop is None:
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._stop_event.set()
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._stop_event.set)

    async def _run_tick(self, tick: int) -> None:
        """Launch every query due on this tick, in schedule order."""
        schedule = self._schedule.snapshot()
        for name, query in schedule.items():
            if query.is_due(tick):
                await self._launch(name, query)

    async def _launch(self, name: str, query: ScheduledQuery) -> None:
        """Launch one query in a worker thread and wait for it."""
        self._launches += 1
        try:
            outcome = await asyncio.to_thread(self._query_runner.launch, name, query)
        except Exception:
            self._failures += 1
            logger.exception(f"Unexpected error launching query {name}")
            return

        if outcome in (
            LaunchOutcome.EXECUTION_FAILED,
            LaunchOutcome.STORAGE_FAILED,
            LaunchOutcome.SINK_FAILED,
        ):
            self._failures += 1

    async def _sleep(self) -> bool:
        """Wait one interval; return True if woken by a stop request."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            return False
        return True

    def get_status(self) -> Dict[str, Any]:
        """Get scheduler status.

        Returns:
            Dictionary with scheduler status information
        """
        schedule = self._schedule.snapshot()
        return {
            "state": self._state.name.lower(),
            "tick": self._tick,
            "ticks_run": self._ticks_run,
            "launches": self._launches,
            "failures": self._failures,
            "timeout": self._timeout,
            "interval": self._interval,
            "queries": len(schedule),
        }
