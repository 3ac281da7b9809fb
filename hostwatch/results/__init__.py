"""Differential result tracking.

Computes what changed between two executions of a scheduled query and
keeps the most recent result set of every differential query.
"""

from hostwatch.results.diff import diff_result_sets, row_key
from hostwatch.results.models import DiffResults, QueryLogItem, ResultSet, Row
from hostwatch.results.store import ResultStore

__all__ = [
    "DiffResults",
    "QueryLogItem",
    "ResultSet",
    "ResultStore",
    "Row",
    "diff_result_sets",
    "row_key",
]
