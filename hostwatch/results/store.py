"""Persistent store of the most recent result set of each query.

The ResultStore is the differential engine's view of prior-run state.
compute_and_store() loads the previous result set, computes the diff and
writes the new result set in one database transaction, so after a crash
the store holds either the old or the new result set of a query.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from hostwatch.database.connection import create_db_engine, create_tables, session_scope
from hostwatch.database.repositories import QueryResultRepository
from hostwatch.exceptions import StorageError
from hostwatch.results.diff import diff_result_sets
from hostwatch.results.models import DiffResults, ResultSet

logger = logging.getLogger(__name__)


class ResultStore:
    """Keyed store of prior query results with atomic diff-and-replace.

    Every operation on a given query name is serialized through a
    per-name lock; operations on different names do not block each other.

    Example:
        store = ResultStore.from_url("sqlite:////var/lib/hostwatch/hostwatch.db")
        diff = store.compute_and_store("processes", rows)
        if not diff.is_empty():
            ...
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        """Initialize the store.

        Args:
            session_factory: Session maker bound to a database whose
                tables already exist
        """
        self._session_factory = session_factory
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_url(cls, database_url: str) -> "ResultStore":
        """Open (and create if needed) a store at a database URL.

        Raises:
            StorageError: If the database cannot be opened
        """
        try:
            engine = create_db_engine(database_url)
            create_tables(engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to open result store: {e}") from e

        return cls(sessionmaker(bind=engine, autoflush=False, expire_on_commit=False))

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    def compute_and_store(self, name: str, new_results: ResultSet) -> DiffResults:
        """Diff a new result set against the stored one and replace it.

        A query with no stored state diffs against an empty set, so its
        first execution reports every row as added.

        Args:
            name: Query name
            new_results: Rows returned by the current execution

        Returns:
            Rows added and removed since the stored result set

        Raises:
            StorageError: If the stored state cannot be read, decoded or
                written. The stored state is left unchanged.
        """
        with self._lock_for(name):
            try:
                with session_scope(self._session_factory) as session:
                    repo = QueryResultRepository(session)
                    previous = repo.load_rows(name)
                    diff = diff_result_sets(previous or [], new_results)
                    repo.replace(name, list(new_results))
            except (SQLAlchemyError, ValueError) as e:
                raise StorageError(f"Failed to update stored results: {e}", name) from e

        logger.debug(
            f"Stored {len(new_results)} rows for {name}: "
            f"{len(diff.added)} added, {len(diff.removed)} removed"
        )
        return diff

    def get(self, name: str) -> Optional[ResultSet]:
        """Get the stored result set of a query, or None if absent.

        Raises:
            StorageError: If the stored state cannot be read
        """
        with self._lock_for(name):
            try:
                with session_scope(self._session_factory) as session:
                    return QueryResultRepository(session).load_rows(name)
            except (SQLAlchemyError, ValueError) as e:
                raise StorageError(f"Failed to read stored results: {e}", name) from e

    def delete(self, name: str) -> bool:
        """Forget the stored result set of a query.

        The next execution of the query will report every row as added.

        Raises:
            StorageError: If the stored state cannot be deleted
        """
        with self._lock_for(name):
            try:
                with session_scope(self._session_factory) as session:
                    deleted = QueryResultRepository(session).delete(name)
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to delete stored results: {e}", name) from e

        if deleted:
            logger.info(f"Cleared stored results for {name}")
        return deleted

    def names(self) -> List[str]:
        """Names of all queries with stored state.

        Raises:
            StorageError: If the store cannot be read
        """
        try:
            with session_scope(self._session_factory) as session:
                return QueryResultRepository(session).list_names()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list stored results: {e}") from e

    def summaries(self) -> List[dict]:
        """Summary (name, row count, replace counter, timestamps) of each stored query.

        Raises:
            StorageError: If the store cannot be read
        """
        try:
            with session_scope(self._session_factory) as session:
                return [record.to_dict() for record in QueryResultRepository(session).get_all()]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list stored results: {e}") from e

    def close(self) -> None:
        """Release database connections held by the store."""
        bind = self._session_factory.kw.get("bind")
        if bind is not None:
            bind.dispose()
