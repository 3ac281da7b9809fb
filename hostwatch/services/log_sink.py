"""Result log sinks.

A sink receives QueryLogItem records on two channels: differential
results and snapshots. Emission is fire-and-forget from the scheduler's
point of view; a failure raises SinkError and is never retried.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import List, Protocol, Tuple

from hostwatch.exceptions import SinkError
from hostwatch.results.models import QueryLogItem

logger = logging.getLogger(__name__)


class LogSink(Protocol):
    """Destination for query log items."""

    def log_results(self, item: QueryLogItem) -> None:
        """Emit a differential results item.

        Raises:
            SinkError: If the item could not be emitted
        """
        ...

    def log_snapshot(self, item: QueryLogItem) -> None:
        """Emit a snapshot item.

        Raises:
            SinkError: If the item could not be emitted
        """
        ...


class FileLogSink:
    """Appends query log items as JSON lines to two files.

    Differential items go to ``results_path`` and snapshot items to
    ``snapshots_path``. Each item is written with a single write call
    under a lock, so lines from concurrent callers never interleave.
    """

    def __init__(self, results_path: Path, snapshots_path: Path) -> None:
        self.results_path = Path(results_path)
        self.snapshots_path = Path(snapshots_path)
        self._lock = threading.Lock()

    def log_results(self, item: QueryLogItem) -> None:
        self._append(self.results_path, item)

    def log_snapshot(self, item: QueryLogItem) -> None:
        self._append(self.snapshots_path, item)

    def _append(self, path: Path, item: QueryLogItem) -> None:
        try:
            line = json.dumps(item.to_dict(), ensure_ascii=False) + "\n"
        except (TypeError, ValueError) as e:
            raise SinkError(f"Failed to serialize log item: {e}", item.name) from e

        try:
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line)
        except OSError as e:
            raise SinkError(f"Failed to write {path}: {e}", item.name) from e


class MemoryLogSink:
    """Keeps emitted items in memory; used by ``schedule exec --print``.

    ``items`` holds every item in emission order across both channels.
    """

    def __init__(self) -> None:
        self._emitted: List[Tuple[str, QueryLogItem]] = []

    def log_results(self, item: QueryLogItem) -> None:
        self._emitted.append(("results", item))

    def log_snapshot(self, item: QueryLogItem) -> None:
        self._emitted.append(("snapshot", item))

    @property
    def items(self) -> List[QueryLogItem]:
        return [item for _, item in self._emitted]

    @property
    def results(self) -> List[QueryLogItem]:
        return [item for channel, item in self._emitted if channel == "results"]

    @property
    def snapshots(self) -> List[QueryLogItem]:
        return [item for channel, item in self._emitted if channel == "snapshot"]
