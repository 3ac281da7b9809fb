"""
Database connection management for hostwatch.

Provides SQLAlchemy engine and session helpers for the result store.
Each ResultStore owns its engine, so several stores (or test databases)
can coexist in one process.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def get_db_path(database_url: str) -> Optional[Path]:
    """
    Get the database file path for a SQLite URL.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Path to the SQLite database file, or None for in-memory
        and non-SQLite databases
    """
    if database_url.startswith("sqlite:///"):
        path = database_url[len("sqlite:///"):]
        if path and path != ":memory:":
            return Path(path)
    return None


def create_db_engine(database_url: str) -> Engine:
    """
    Create a SQLAlchemy engine for the result store.

    SQLite databases get their parent directory created and run with
    synchronous=FULL so that a committed result set survives a crash.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Configured SQLAlchemy engine
    """
    is_sqlite = database_url.startswith("sqlite")

    db_path = get_db_path(database_url)
    if db_path is not None:
        db_path.parent.mkdir(parents=True, exist_ok=True)

    if is_sqlite:
        # In-memory databases live per connection, so share one connection
        pool_args = {"poolclass": StaticPool} if db_path is None else {}
        engine = create_engine(
            database_url,
            connect_args={
                "check_same_thread": False,  # Launches run in worker threads
                "timeout": 30,
            },
            echo=False,
            **pool_args,
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable durable writes for SQLite."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA synchronous=FULL")
            cursor.close()
    else:
        engine = create_engine(
            database_url,
            pool_pre_ping=True,  # Verify connections before use
            pool_recycle=3600,
            echo=False,
        )

    logger.debug(f"Database engine initialized: {database_url}")
    return engine


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Run a unit of work in one transaction.

    Commits when the block exits normally and rolls back on any exception,
    so callers either see every write of the block or none of them.

    Args:
        session_factory: Session maker to open the session from

    Yields:
        SQLAlchemy Session
    """
    session = session_factory()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """
    Create all database tables that do not exist yet.

    Args:
        engine: Engine bound to the target database
    """
    from hostwatch.database.models import Base

    Base.metadata.create_all(bind=engine)
    logger.debug("Database tables created")

