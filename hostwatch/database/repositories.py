"""Database repositories for hostwatch.

Provides data access for stored query result sets. Repositories only
flush; the caller's session scope decides when a unit of work commits,
so that a load-and-replace sequence lands in a single transaction.
"""

from __future__ import annotations

import json
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from hostwatch.database.models import QueryResult


class QueryResultRepository:
    """
    Repository for stored query result sets.

    Example:
        with session_scope(factory) as session:
            repo = QueryResultRepository(session)
            previous = repo.load_rows("processes")
            repo.replace("processes", rows)
    """

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy session
        """
        self.session = session

    def get_by_name(self, name: str, for_update: bool = False) -> Optional[QueryResult]:
        """
        Get the stored state of a query.

        Args:
            name: Query name
            for_update: Lock the row for the rest of the transaction
                (ignored by SQLite, which locks the database on write)

        Returns:
            QueryResult if found, None otherwise
        """
        query = self.session.query(QueryResult).filter(QueryResult.name == name)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def load_rows(self, name: str) -> Optional[List[Dict[str, str]]]:
        """
        Load the stored result set of a query.

        Args:
            name: Query name

        Returns:
            List of rows, or None if the query has no stored state

        Raises:
            ValueError: If the stored payload is not a JSON list of objects
        """
        record = self.get_by_name(name, for_update=True)
        if record is None:
            return None
        return decode_rows(record.results)

    def replace(self, name: str, rows: List[Dict[str, str]]) -> QueryResult:
        """
        Replace the stored result set of a query, creating it if needed.

        Args:
            name: Query name
            rows: New result set

        Returns:
            The updated record (flushed, not committed)
        """
        record = self.get_by_name(name)
        payload = encode_rows(rows)

        if record is None:
            record = QueryResult(name=name, results=payload, row_count=len(rows), counter=1)
            self.session.add(record)
        else:
            record.results = payload
            record.row_count = len(rows)
            record.counter = (record.counter or 0) + 1

        self.session.flush()
        return record

    def delete(self, name: str) -> bool:
        """
        Delete the stored state of a query.

        Args:
            name: Query name

        Returns:
            True if deleted, False if not found
        """
        record = self.get_by_name(name)
        if not record:
            return False

        self.session.delete(record)
        self.session.flush()
        return True

    def get_all(self) -> List[QueryResult]:
        """Get every stored query state, ordered by name."""
        return self.session.query(QueryResult).order_by(QueryResult.name).all()

    def list_names(self) -> List[str]:
        """Get the names of all queries with stored state."""
        return [name for (name,) in self.session.query(QueryResult.name).order_by(QueryResult.name)]

    def count(self) -> int:
        """Get the number of queries with stored state."""
        return self.session.query(QueryResult).count()


def encode_rows(rows: List[Dict[str, str]]) -> str:
    """Serialize a result set, preserving row and column order."""
    return json.dumps(rows, separators=(",", ":"), ensure_ascii=False)


def decode_rows(payload: str) -> List[Dict[str, str]]:
    """
    Deserialize a stored result set.

    Raises:
        ValueError: If the payload is not a JSON list of objects
    """
    data = json.loads(payload)
    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        raise ValueError("stored results are not a list of rows")
    return data
