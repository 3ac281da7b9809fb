"""Shared fixtures for hostwatch tests."""

from typing import Dict, List

import pytest

from hostwatch.config import clear_config_cache
from hostwatch.exceptions import ExecutionError
from hostwatch.results.store import ResultStore
from hostwatch.scheduler.schedule import ScheduledQuery


class FakeEngine:
    """Query engine returning scripted result sets per query text.

    Each entry in ``responses[query]`` is consumed by one execution; the
    last entry repeats. An ExecutionError entry is raised instead of
    returned.
    """

    def __init__(self, responses: Dict[str, list] | None = None) -> None:
        self.responses = responses or {}
        self.executed: List[str] = []

    def execute(self, query: str):
        self.executed.append(query)
        script = self.responses.get(query)
        if not script:
            raise ExecutionError("no such table", query=query)
        response = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(response, Exception):
            raise response
        return [dict(row) for row in response]


def make_query(
    name: str,
    interval: int = 10,
    splayed_interval: int | None = None,
    **options: bool,
) -> ScheduledQuery:
    """Build a ScheduledQuery whose query text is ``SELECT <name>``."""
    return ScheduledQuery(
        name=name,
        query=f"SELECT {name}",
        interval=interval,
        splayed_interval=splayed_interval or interval,
        options=options,
    )


@pytest.fixture
def store(tmp_path):
    """Result store backed by a SQLite file in a temporary directory."""
    result_store = ResultStore.from_url(f"sqlite:///{tmp_path}/results.db")
    yield result_store
    result_store.close()


@pytest.fixture
def host_identifier():
    """Host identifier provider with a fixed value."""
    return lambda: "test-host"


@pytest.fixture(autouse=True)
def fresh_config_cache():
    """Start and end every test without a cached configuration."""
    clear_config_cache()
    yield
    clear_config_cache()
