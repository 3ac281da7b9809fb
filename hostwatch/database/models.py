"""
SQLAlchemy models for the hostwatch result store.

One row per scheduled query name holds the most recent result set of
that query, serialized as JSON.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, declarative_base

# Create base class for all models
Base = declarative_base()


class QueryResult(Base):
    """
    Most recent result set of a differential query.

    Created by the first differential execution of a query and replaced
    on every later one. Snapshot queries never get a row.
    """

    __tablename__ = "query_results"

    # Query name is the identity of the stored state
    name: Mapped[str] = mapped_column(String, primary_key=True)

    # JSON array of row objects
    results: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    row_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Number of times the stored set has been replaced
    counter: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the stored state to a summary dictionary."""
        return {
            "name": self.name,
            "row_count": self.row_count,
            "counter": self.counter,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<QueryResult(name={self.name!r}, rows={self.row_count})>"
