"""Tests for hostwatch CLI commands."""

import json
import os
import sqlite3
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from hostwatch import __version__
from hostwatch.cli.exit_codes import ExitCode
from hostwatch.main import app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Config file with an inventory data source and two queries."""
    for name in ("HOSTWATCH_DATA_DIR", "HOSTWATCH_DATABASE_URL", "HOSTWATCH_CONFIG_DIR"):
        monkeypatch.delenv(name, raising=False)

    inventory = tmp_path / "inventory.db"
    conn = sqlite3.connect(inventory)
    conn.execute("CREATE TABLE packages (name TEXT, version TEXT)")
    conn.execute("INSERT INTO packages VALUES ('bash', '5.2'), ('curl', '8.5')")
    conn.execute("CREATE TABLE users (name TEXT)")
    conn.execute("INSERT INTO users VALUES ('root')")
    conn.commit()
    conn.close()

    path = tmp_path / "config.toml"
    path.write_text(
        f'config_dir = "{tmp_path}/config"\n'
        f'data_dir = "{tmp_path}/data"\n'
        'host_identifier = "test-host"\n'
        "\n"
        "[data_source]\n"
        f'url = "sqlite:///{inventory}"\n'
        "\n"
        "[scheduler]\n"
        "splay_percent = 0\n"
        "\n"
        "[schedule.packages]\n"
        'query = "SELECT name, version FROM packages"\n'
        "interval = 10\n"
        "\n"
        "[schedule.users]\n"
        'query = "SELECT name FROM users"\n'
        "interval = 60\n"
        "snapshot = true\n"
        "\n"
        "[schedule.broken]\n"
        'query = "SELECT * FROM missing_table"\n'
        "interval = 30\n"
    )
    return path


class TestMainApp:
    """Tests for the top-level app."""

    def test_version(self):
        """Test the --version flag."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_quiet_and_verbose_rejected(self):
        """Test that --quiet and --verbose cannot be combined."""
        result = runner.invoke(app, ["--quiet", "--verbose", "config", "path"])

        assert result.exit_code == ExitCode.INVALID_ARGUMENT


class TestScheduleCommands:
    """Tests for the schedule command group."""

    def test_list(self, config_file):
        """Test listing scheduled queries."""
        result = runner.invoke(app, ["schedule", "list", "--config", str(config_file), "--json"])

        assert result.exit_code == 0
        assert '"packages"' in result.output
        assert '"users"' in result.output
        assert '"splayed_interval": 10' in result.output

    def test_list_table(self, config_file):
        """Test the table view of the schedule."""
        result = runner.invoke(app, ["schedule", "list", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "Scheduled Queries" in result.output

    def test_exec_prints_diff(self, config_file):
        """Test launching a differential query once, then again."""
        args = ["schedule", "exec", "packages", "--config", str(config_file), "--print"]

        first = runner.invoke(app, args)
        second = runner.invoke(app, args)

        assert first.exit_code == 0
        assert "emitted" in first.output
        assert '"hostIdentifier": "test-host"' in first.output
        assert '"bash"' in first.output
        assert second.exit_code == 0
        assert "no changes" in second.output

    def test_exec_snapshot_writes_log(self, config_file, tmp_path):
        """Test that a snapshot launch writes the snapshot log."""
        result = runner.invoke(app, ["schedule", "exec", "users", "--config", str(config_file)])

        assert result.exit_code == 0
        lines = (tmp_path / "data" / "logs" / "hostwatch.snapshots.log").read_text().splitlines()
        assert json.loads(lines[0])["snapshot"] == [{"name": "root"}]

    def test_exec_unknown_query(self, config_file):
        """Test launching a query that is not scheduled."""
        result = runner.invoke(app, ["schedule", "exec", "nope", "--config", str(config_file)])

        assert result.exit_code == ExitCode.NOT_FOUND

    def test_exec_failing_query(self, config_file):
        """Test that an engine error maps to the execution exit code."""
        result = runner.invoke(app, ["schedule", "exec", "broken", "--config", str(config_file)])

        assert result.exit_code == ExitCode.EXECUTION_ERROR


class TestResultsCommands:
    """Tests for the results command group."""

    @pytest.fixture
    def populated(self, config_file):
        runner.invoke(app, ["schedule", "exec", "packages", "--config", str(config_file), "--print"])
        return config_file

    def test_list(self, populated):
        """Test listing stored results."""
        result = runner.invoke(app, ["results", "list", "--config", str(populated), "--json"])

        assert result.exit_code == 0
        assert '"name": "packages"' in result.output
        assert '"row_count": 2' in result.output

    def test_list_empty(self, config_file):
        """Test listing an empty store."""
        result = runner.invoke(app, ["results", "list", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "No stored results" in result.output

    def test_show(self, populated):
        """Test showing the stored rows of a query."""
        result = runner.invoke(app, ["results", "show", "packages", "--config", str(populated), "--json"])

        assert result.exit_code == 0
        assert '"curl"' in result.output

    def test_show_missing(self, config_file):
        """Test showing a query with no stored results."""
        result = runner.invoke(app, ["results", "show", "packages", "--config", str(config_file)])

        assert result.exit_code == ExitCode.NOT_FOUND

    def test_clear(self, populated):
        """Test clearing stored results."""
        result = runner.invoke(app, ["results", "clear", "packages", "--config", str(populated), "--yes"])
        after = runner.invoke(app, ["results", "show", "packages", "--config", str(populated)])

        assert result.exit_code == 0
        assert after.exit_code == ExitCode.NOT_FOUND

    def test_clear_aborted(self, populated):
        """Test that declining the confirmation keeps the results."""
        result = runner.invoke(
            app, ["results", "clear", "packages", "--config", str(populated)], input="n\n"
        )
        after = runner.invoke(app, ["results", "show", "packages", "--config", str(populated)])

        assert result.exit_code == 0
        assert after.exit_code == 0


class TestConfigCommands:
    """Tests for the config command group."""

    def test_show_json(self, config_file):
        """Test showing the configuration as JSON."""
        result = runner.invoke(app, ["config", "show", "--config", str(config_file), "--format", "json"])

        assert result.exit_code == 0
        assert '"splay_percent": 0' in result.output

    def test_show_section(self, config_file):
        """Test showing one configuration section."""
        result = runner.invoke(app, ["config", "show", "scheduler", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "splay_percent" in result.output

    def test_validate(self, config_file):
        """Test validating a good configuration."""
        result = runner.invoke(app, ["config", "validate", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "3 scheduled queries" in result.output

    def test_validate_invalid(self, tmp_path):
        """Test that a bad schedule maps to the configuration exit code."""
        path = tmp_path / "bad.toml"
        path.write_text('[schedule.q]\nquery = "SELECT 1"\ninterval = 0\n')

        result = runner.invoke(app, ["config", "validate", "--config", str(path)])

        assert result.exit_code == ExitCode.CONFIGURATION_ERROR

    def test_validate_invalid_scheduler(self, tmp_path):
        """Test that a mistyped scheduler setting fails validation."""
        path = tmp_path / "bad.toml"
        path.write_text('[scheduler]\ntimeout = "10"\n')

        result = runner.invoke(app, ["config", "validate", "--config", str(path)])

        assert result.exit_code == ExitCode.CONFIGURATION_ERROR
        assert "Configuration is valid" not in result.output

    def test_env(self):
        """Test listing environment variables."""
        result = runner.invoke(app, ["config", "env"])

        assert result.exit_code == 0
        assert "Supported Environment Variables" in result.output


class TestRunCommands:
    """Tests for the run command group."""

    def test_run_until_timeout(self, config_file, tmp_path):
        """Test a foreground run that stops at its timeout."""
        result = runner.invoke(
            app,
            ["run", "--config", str(config_file), "--timeout", "100", "--interval", "0"],
        )

        assert result.exit_code == 0
        assert "hostwatch agent stopped" in result.output
        assert not (tmp_path / "data" / "hostwatch.pid").exists()
        results_log = tmp_path / "data" / "logs" / "hostwatch.results.log"
        first = json.loads(results_log.read_text().splitlines()[0])
        assert first["name"] == "packages"

    def test_run_rejects_second_agent(self, config_file, tmp_path):
        """Test that run refuses to start while another agent is alive."""
        pid_path = tmp_path / "data" / "hostwatch.pid"
        pid_path.parent.mkdir(parents=True)
        pid_path.write_text("4242")

        with patch("hostwatch.daemon.pid.psutil.pid_exists", return_value=True):
            result = runner.invoke(app, ["run", "--config", str(config_file), "--timeout", "1"])

        assert result.exit_code == ExitCode.SCHEDULER_ERROR

    def test_status_not_running(self, config_file):
        """Test status when no agent is running."""
        result = runner.invoke(app, ["run", "status", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "not running" in result.output

    def test_stop_not_running(self, config_file):
        """Test stop when no agent is running."""
        result = runner.invoke(app, ["run", "stop", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "not running" in result.output

    def test_status_running(self, config_file, tmp_path):
        """Test status while the agent PID file names a live process."""
        pid_path = tmp_path / "data" / "hostwatch.pid"
        pid_path.parent.mkdir(parents=True)
        pid_path.write_text(str(os.getpid()))

        result = runner.invoke(app, ["run", "status", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "Agent is running" in result.output
        assert "Scheduled queries" in result.output
