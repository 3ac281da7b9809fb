"""Exceptions raised by the hostwatch scheduling and result-tracking layers."""


class HostwatchError(Exception):
    """Base exception for hostwatch errors."""

    def __init__(self, message: str, query_name: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.query_name = query_name

    def __str__(self) -> str:
        if self.query_name:
            return f"{self.message} (query: {self.query_name})"
        return self.message


class ExecutionError(HostwatchError):
    """Raised when the query engine fails to execute a query."""

    def __init__(
        self,
        message: str,
        query_name: str | None = None,
        query: str | None = None,
    ) -> None:
        super().__init__(message, query_name)
        self.query = query

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.query:
            parts.append(f"(sql: {self.query[:200]})")
        return " ".join(parts)


class StorageError(HostwatchError):
    """Raised when persisted query results cannot be read or written."""
    pass


class SinkError(HostwatchError):
    """Raised when a query log item cannot be emitted."""
    pass


class SchedulerError(HostwatchError):
    """Raised when the scheduler cannot be registered or started."""
    pass


class ConfigurationError(HostwatchError):
    """Raised when the schedule or agent configuration is unusable."""
    pass


class NotFoundError(HostwatchError):
    """Raised when a named query or stored result does not exist."""
    pass
