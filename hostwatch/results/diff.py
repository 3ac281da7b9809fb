"""Row-level differencing of query result sets.

Rows have no primary key: the whole row is its identity. Each row is
reduced to a canonical key (its column/value pairs sorted by column
name) and the two result sets are compared as multisets of those keys,
so a row that appears twice in the new set and once in the old one is
reported as added once.
"""

import json
from collections import Counter
from typing import Iterable

from hostwatch.results.models import DiffResults, ResultSet, Row


def row_key(row: Row) -> str:
    """Canonical, order-independent serialization of a row."""
    return json.dumps(sorted(row.items()), separators=(",", ":"), ensure_ascii=False)


def count_rows(rows: Iterable[Row]) -> Counter:
    """Multiplicity of each distinct row, keyed by row_key()."""
    return Counter(row_key(row) for row in rows)


def diff_result_sets(old: ResultSet, new: ResultSet) -> DiffResults:
    """Compute the rows added and removed between two executions.

    Rows keep the order in which they appear in their source set. For a
    row present ``m`` times in ``old`` and ``n`` times in ``new``, the
    first ``n - m`` surplus copies from ``new`` are added, or the last
    ``m - n`` copies from ``old`` are removed.

    Args:
        old: Result set of the previous execution (empty on first run)
        new: Result set of the current execution

    Returns:
        DiffResults such that ``old - removed + added == new`` as multisets
    """
    unmatched = count_rows(old)

    added: ResultSet = []
    for row in new:
        key = row_key(row)
        if unmatched[key] > 0:
            unmatched[key] -= 1
        else:
            added.append(row)

    removed: ResultSet = []
    for row in reversed(old):
        key = row_key(row)
        if unmatched[key] > 0:
            unmatched[key] -= 1
            removed.append(row)
    removed.reverse()

    return DiffResults(added=added, removed=removed)
