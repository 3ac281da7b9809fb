"""Tests for the query runner."""

import logging
from unittest.mock import Mock

import pytest

from conftest import FakeEngine, make_query
from hostwatch.exceptions import ExecutionError, SinkError, StorageError
from hostwatch.scheduler.monitor import PerformanceCollector, ResourceSample
from hostwatch.scheduler.query_runner import LaunchOutcome, QueryRunner
from hostwatch.services.log_sink import MemoryLogSink


@pytest.fixture
def sink():
    return MemoryLogSink()


def _runner(engine, store, sink, **kwargs):
    return QueryRunner(
        engine=engine,
        store=store,
        sink=sink,
        host_identifier=lambda: "test-host",
        clock=lambda: 1_700_000_000.0,
        **kwargs,
    )


class TestLaunch:
    """Tests for QueryRunner.launch."""

    def test_first_run_emits_all_rows(self, store, sink):
        """Test that the first execution reports every row as added."""
        engine = FakeEngine({"SELECT processes": [[{"pid": "1"}, {"pid": "2"}]]})
        runner = _runner(engine, store, sink)

        outcome = runner.launch("processes", make_query("processes"))

        assert outcome is LaunchOutcome.EMITTED
        assert len(sink.results) == 1
        item = sink.results[0]
        assert item.name == "processes"
        assert item.host_identifier == "test-host"
        assert item.unix_time == 1_700_000_000
        assert item.results.added == [{"pid": "1"}, {"pid": "2"}]
        assert item.results.removed == []

    def test_unchanged_results_emit_nothing(self, store, sink):
        """Test that a repeat execution with the same rows is silent."""
        engine = FakeEngine({"SELECT q": [[{"a": "1"}]]})
        runner = _runner(engine, store, sink)
        query = make_query("q")

        runner.launch("q", query)
        outcome = runner.launch("q", query)

        assert outcome is LaunchOutcome.NO_CHANGES
        assert len(sink.results) == 1

    def test_changes_emit_diff(self, store, sink):
        """Test that a changed result set emits additions and removals."""
        engine = FakeEngine({"SELECT q": [[{"a": "1"}, {"a": "2"}], [{"a": "2"}, {"a": "3"}]]})
        runner = _runner(engine, store, sink)
        query = make_query("q")

        runner.launch("q", query)
        outcome = runner.launch("q", query)

        assert outcome is LaunchOutcome.EMITTED
        diff = sink.results[-1].results
        assert diff.added == [{"a": "3"}]
        assert diff.removed == [{"a": "1"}]

    def test_execution_failure(self, store, sink):
        """Test that an engine error ends the launch without side effects."""
        engine = FakeEngine({"SELECT q": [ExecutionError("no such table", query="SELECT q")]})
        runner = _runner(engine, store, sink)

        outcome = runner.launch("q", make_query("q"))

        assert outcome is LaunchOutcome.EXECUTION_FAILED
        assert sink.items == []
        assert store.get("q") is None

    def test_execution_failure_is_logged(self, store, sink, caplog):
        """Test that an engine error is logged with the query text."""
        runner = _runner(FakeEngine(), store, sink)

        with caplog.at_level(logging.ERROR, logger="hostwatch.scheduler.query_runner"):
            runner.launch("q", make_query("q"))

        assert "Error executing query (SELECT q)" in caplog.text

    def test_snapshot_never_touches_store(self, store, sink):
        """Test that snapshot queries emit full results and store nothing."""
        rows = [{"user": "root"}, {"user": "alice"}]
        engine = FakeEngine({"SELECT users": [rows]})
        runner = _runner(engine, store, sink)
        query = make_query("users", snapshot=True)

        assert runner.launch("users", query) is LaunchOutcome.SNAPSHOT_EMITTED
        assert runner.launch("users", query) is LaunchOutcome.SNAPSHOT_EMITTED

        assert len(sink.snapshots) == 2
        assert sink.results == []
        assert sink.snapshots[1].snapshot_results == rows
        assert store.get("users") is None

    def test_snapshot_with_empty_result_is_emitted(self, store, sink):
        """Test that an empty snapshot is still emitted."""
        runner = _runner(FakeEngine({"SELECT q": [[]]}), store, sink)

        assert runner.launch("q", make_query("q", snapshot=True)) is LaunchOutcome.SNAPSHOT_EMITTED
        assert sink.snapshots[0].snapshot_results == []

    def test_storage_failure(self, sink):
        """Test that a store error ends the launch before emission."""
        store = Mock()
        store.compute_and_store.side_effect = StorageError("database is locked", "q")
        runner = _runner(FakeEngine({"SELECT q": [[{"a": "1"}]]}), store, sink)

        outcome = runner.launch("q", make_query("q"))

        assert outcome is LaunchOutcome.STORAGE_FAILED
        assert sink.items == []

    def test_sink_failure_keeps_stored_state(self, store):
        """Test that a failed emission is not retried and state still advances."""
        sink = Mock()
        sink.log_results.side_effect = SinkError("disk full", "q")
        runner = _runner(FakeEngine({"SELECT q": [[{"a": "1"}]]}), store, sink)

        outcome = runner.launch("q", make_query("q"))

        assert outcome is LaunchOutcome.SINK_FAILED
        assert sink.log_results.call_count == 1
        assert store.get("q") == [{"a": "1"}]

    def test_snapshot_sink_failure(self, store):
        """Test that a failed snapshot emission is reported."""
        sink = Mock()
        sink.log_snapshot.side_effect = SinkError("disk full", "q")
        runner = _runner(FakeEngine({"SELECT q": [[{"a": "1"}]]}), store, sink)

        assert runner.launch("q", make_query("q", snapshot=True)) is LaunchOutcome.SINK_FAILED


class TestRemovedOption:
    """Tests for the removed=false option."""

    def test_removed_false_suppresses_removals(self, store, sink):
        """Test that removals are dropped and a removal-only diff is silent."""
        engine = FakeEngine({
            "SELECT q": [
                [{"a": "1"}, {"a": "2"}],
                [{"a": "1"}],
                [{"a": "1"}, {"a": "3"}],
            ]
        })
        runner = _runner(engine, store, sink)
        query = make_query("q", removed=False)

        assert runner.launch("q", query) is LaunchOutcome.EMITTED
        assert runner.launch("q", query) is LaunchOutcome.NO_CHANGES
        assert store.get("q") == [{"a": "1"}]

        assert runner.launch("q", query) is LaunchOutcome.EMITTED
        last = sink.results[-1].results
        assert last.added == [{"a": "3"}]
        assert last.removed == []
        assert len(sink.results) == 2

    def test_removed_true_reports_removals(self, store, sink):
        """Test that an explicit removed=true behaves like the default."""
        engine = FakeEngine({"SELECT q": [[{"a": "1"}], []]})
        runner = _runner(engine, store, sink)
        query = make_query("q", removed=True)

        runner.launch("q", query)

        assert runner.launch("q", query) is LaunchOutcome.EMITTED
        assert sink.results[-1].results.removed == [{"a": "1"}]


class TestMonitoring:
    """Tests for resource monitoring around executions."""

    @pytest.fixture
    def sampler(self):
        sampler = Mock()
        sampler.sample.side_effect = [
            ResourceSample(user_time=1.0, system_time=1.0, resident_size=1000, wall_time=0.0),
            ResourceSample(user_time=1.5, system_time=1.0, resident_size=3000, wall_time=1.0),
        ]
        return sampler

    def test_records_performance(self, store, sink, sampler):
        """Test that a monitored execution is recorded."""
        collector = PerformanceCollector()
        engine = FakeEngine({"SELECT q": [[{"pid": "1"}]]})
        runner = _runner(
            engine, store, sink, enable_monitor=True, collector=collector, sampler=sampler
        )

        runner.launch("q", make_query("q"))

        stats = collector.get("q")
        assert stats.executions == 1
        assert stats.user_time == pytest.approx(0.5)
        assert stats.average_memory == 3000
        assert stats.output_size == len("pid") + len("1")

    def test_failed_execution_not_recorded(self, store, sink, sampler):
        """Test that a failed execution leaves no performance record."""
        collector = Mock()
        runner = _runner(
            FakeEngine(), store, sink, enable_monitor=True, collector=collector, sampler=sampler
        )

        runner.launch("q", make_query("q"))

        collector.record.assert_not_called()

    def test_monitor_disabled(self, store, sink, sampler):
        """Test that nothing is sampled when monitoring is off."""
        collector = Mock()
        runner = _runner(
            FakeEngine({"SELECT q": [[]]}), store, sink, collector=collector, sampler=sampler
        )

        runner.launch("q", make_query("q"))

        sampler.sample.assert_not_called()
        collector.record.assert_not_called()

    def test_collector_failure_does_not_fail_launch(self, store, sink, sampler):
        """Test that a broken collector does not affect the launch."""
        collector = Mock()
        collector.record.side_effect = RuntimeError("collector down")
        runner = _runner(
            FakeEngine({"SELECT q": [[{"a": "1"}]]}),
            store,
            sink,
            enable_monitor=True,
            collector=collector,
            sampler=sampler,
        )

        assert runner.launch("q", make_query("q")) is LaunchOutcome.EMITTED
