"""Query execution engines.

The scheduler consumes an engine as an opaque synchronous call: query
text in, rows out, ExecutionError on failure. SQLQueryEngine runs the
query against any database SQLAlchemy can reach and stringifies every
value so that row comparison stays exact and type-independent.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from hostwatch.database.connection import create_db_engine
from hostwatch.exceptions import ExecutionError
from hostwatch.results.models import ResultSet

logger = logging.getLogger(__name__)


class QueryEngine(Protocol):
    """Executes query text and returns the resulting rows."""

    def execute(self, query: str) -> ResultSet:
        """Run a query.

        Raises:
            ExecutionError: If the query fails
        """
        ...


class SQLQueryEngine:
    """Runs scheduled queries against a SQL data source.

    Example:
        engine = SQLQueryEngine.from_url("sqlite:////var/lib/inventory.db")
        rows = engine.execute("SELECT name, version FROM packages")
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, url: str) -> "SQLQueryEngine":
        return cls(create_db_engine(url))

    def execute(self, query: str) -> ResultSet:
        """Run a query and return its rows as column -> string mappings.

        NULL values become empty strings.

        Raises:
            ExecutionError: If the query cannot be executed
        """
        try:
            with self._engine.connect() as conn:
                result = conn.execute(text(query))
                if not result.returns_rows:
                    return []
                columns = list(result.keys())
                return [
                    {column: _to_text(value) for column, value in zip(columns, row)}
                    for row in result
                ]
        except SQLAlchemyError as e:
            raise ExecutionError(str(e.__cause__ or e), query=query) from e

    def close(self) -> None:
        self._engine.dispose()


def _to_text(value: Optional[object]) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
