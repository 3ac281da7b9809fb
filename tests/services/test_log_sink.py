"""Tests for result log sinks."""

import json

import pytest

from hostwatch.exceptions import SinkError
from hostwatch.results.models import DiffResults, QueryLogItem
from hostwatch.services.log_sink import FileLogSink, MemoryLogSink


def _item(name="processes", **kwargs):
    item = QueryLogItem.create(name, "host-1", now=0)
    for key, value in kwargs.items():
        setattr(item, key, value)
    return item


class TestQueryLogItem:
    """Tests for the log item format."""

    def test_diff_item(self):
        """Test the serialized form of a differential item."""
        item = _item(results=DiffResults(added=[{"pid": "1"}], removed=[]))

        assert item.to_dict() == {
            "name": "processes",
            "hostIdentifier": "host-1",
            "calendarTime": "Thu Jan  1 00:00:00 1970 UTC",
            "unixTime": 0,
            "diffResults": {"added": [{"pid": "1"}], "removed": []},
        }
        assert not item.is_snapshot

    def test_snapshot_item(self):
        """Test the serialized form of a snapshot item."""
        item = _item(snapshot_results=[{"user": "root"}])

        data = item.to_dict()

        assert data["snapshot"] == [{"user": "root"}]
        assert "diffResults" not in data
        assert item.is_snapshot


class TestFileLogSink:
    """Tests for FileLogSink."""

    def test_writes_json_lines(self, tmp_path):
        """Test that each item becomes one JSON line in the right file."""
        sink = FileLogSink(tmp_path / "results.log", tmp_path / "snapshots.log")

        sink.log_results(_item(results=DiffResults(added=[{"a": "1"}])))
        sink.log_results(_item(results=DiffResults(removed=[{"a": "1"}])))
        sink.log_snapshot(_item(snapshot_results=[{"b": "2"}]))

        results = (tmp_path / "results.log").read_text().splitlines()
        snapshots = (tmp_path / "snapshots.log").read_text().splitlines()
        assert len(results) == 2
        assert len(snapshots) == 1
        assert json.loads(results[1])["diffResults"]["removed"] == [{"a": "1"}]
        assert json.loads(snapshots[0])["snapshot"] == [{"b": "2"}]

    def test_creates_parent_directory(self, tmp_path):
        """Test that missing log directories are created."""
        path = tmp_path / "logs" / "nested" / "results.log"
        sink = FileLogSink(path, tmp_path / "snapshots.log")

        sink.log_results(_item(results=DiffResults(added=[{"a": "1"}])))

        assert path.exists()

    def test_write_failure_raises_sink_error(self, tmp_path):
        """Test that an unwritable destination raises SinkError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        sink = FileLogSink(blocker / "results.log", tmp_path / "snapshots.log")

        with pytest.raises(SinkError) as exc_info:
            sink.log_results(_item(results=DiffResults(added=[{"a": "1"}])))

        assert exc_info.value.query_name == "processes"


class TestMemoryLogSink:
    """Tests for MemoryLogSink."""

    def test_keeps_items(self):
        """Test that items are kept per channel."""
        sink = MemoryLogSink()
        diff_item = _item(results=DiffResults(added=[{"a": "1"}]))
        snapshot_item = _item(snapshot_results=[])

        sink.log_results(diff_item)
        sink.log_snapshot(snapshot_item)

        assert sink.results == [diff_item]
        assert sink.snapshots == [snapshot_item]
        assert sink.items == [diff_item, snapshot_item]

    def test_items_in_emission_order(self):
        """Test that items keep emission order across channels."""
        sink = MemoryLogSink()
        snapshot_item = _item("users", snapshot_results=[{"name": "root"}])
        diff_item = _item(results=DiffResults(added=[{"a": "1"}]))

        sink.log_snapshot(snapshot_item)
        sink.log_results(diff_item)

        assert sink.items == [snapshot_item, diff_item]
        assert sink.results == [diff_item]
        assert sink.snapshots == [snapshot_item]
