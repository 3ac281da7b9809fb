"""Result data types shared by the differential engine and the log sink."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# A row maps column names to string values; column order is preserved
Row = Dict[str, str]

# Rows of one execution, duplicates allowed
ResultSet = List[Row]


@dataclass
class DiffResults:
    """Rows added and removed since the previous execution of a query.

    Attributes:
        added: Rows present now but not in the stored result set
        removed: Rows present in the stored result set but not now
    """

    added: ResultSet = field(default_factory=list)
    removed: ResultSet = field(default_factory=list)

    def is_empty(self) -> bool:
        """Whether nothing changed."""
        return not self.added and not self.removed

    def to_dict(self) -> Dict[str, Any]:
        return {"added": list(self.added), "removed": list(self.removed)}


@dataclass
class QueryLogItem:
    """One record handed to the result log sink.

    Exactly one of ``snapshot_results`` and ``results`` is set.

    Attributes:
        name: Scheduled query name
        host_identifier: Identifier of the host that ran the query
        unix_time: Execution time as seconds since the epoch
        calendar_time: Execution time as a human-readable UTC string
        snapshot_results: Full result set of a snapshot query
        results: Differential results of a non-snapshot query
    """

    name: str
    host_identifier: str
    unix_time: int
    calendar_time: str
    snapshot_results: Optional[ResultSet] = None
    results: Optional[DiffResults] = None

    @property
    def is_snapshot(self) -> bool:
        return self.snapshot_results is not None

    @classmethod
    def create(cls, name: str, host_identifier: str, now: Optional[float] = None) -> "QueryLogItem":
        """Create an item stamped with the current (or given) time."""
        if now is None:
            now = time.time()
        return cls(
            name=name,
            host_identifier=host_identifier,
            unix_time=int(now),
            calendar_time=ascii_time(now),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON structure written to result logs."""
        data: Dict[str, Any] = {
            "name": self.name,
            "hostIdentifier": self.host_identifier,
            "calendarTime": self.calendar_time,
            "unixTime": self.unix_time,
        }
        if self.snapshot_results is not None:
            data["snapshot"] = list(self.snapshot_results)
        else:
            data["diffResults"] = (self.results or DiffResults()).to_dict()
        return data


def ascii_time(now: float) -> str:
    """Format a timestamp like ``Mon Oct 18 16:10:00 2026 UTC``."""
    return time.asctime(time.gmtime(now)) + " UTC"
