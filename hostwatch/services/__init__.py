"""External collaborators of the scheduler.

Default implementations of the query engine, the result log sink and
the host identifier provider.
"""

from hostwatch.services.engine import QueryEngine, SQLQueryEngine
from hostwatch.services.host import build_host_identifier, hostname_identifier
from hostwatch.services.log_sink import FileLogSink, LogSink, MemoryLogSink

__all__ = [
    "FileLogSink",
    "LogSink",
    "MemoryLogSink",
    "QueryEngine",
    "SQLQueryEngine",
    "build_host_identifier",
    "hostname_identifier",
]
