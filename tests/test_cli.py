"""Tests for CLI commands."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from sleep_monitor.assertions import AssertionQueryError, AssertionRecord
from sleep_monitor.cli import main
from sleep_monitor.config import Config


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def default_config():
    """Config.load() returns defaults without touching the real home directory."""
    config = Config()
    with patch("sleep_monitor.config.Config.load", return_value=config):
        yield config


class TestMonitorCommand:
    """Tests for the default (no subcommand) invocation."""

    def test_runs_monitor_with_defaults(self, runner, default_config):
        """No flags runs the monitor with the full filter and no auto-kill."""
        with patch("sleep_monitor.daemon.run_monitor", new_callable=AsyncMock) as mock_run:
            result = runner.invoke(main, [])

        assert result.exit_code == 0, result.output
        mock_run.assert_awaited_once()
        config = mock_run.call_args.args[0]
        assert config.filter.use_minimal is False
        assert config.auto_kill.enabled is False
        assert "System service filtering: enabled" in result.output

    def test_flags_override_config(self, runner, default_config):
        """--no-filter, --auto-kill and --threshold reach the monitor config."""
        with patch("sleep_monitor.daemon.run_monitor", new_callable=AsyncMock) as mock_run:
            result = runner.invoke(main, ["--no-filter", "--auto-kill", "--threshold", "10"])

        assert result.exit_code == 0, result.output
        config = mock_run.call_args.args[0]
        assert config.filter.use_minimal is True
        assert config.filter.excluded_names == frozenset({"powerd"})
        assert config.auto_kill.enabled is True
        assert config.auto_kill.threshold_seconds == 600
        assert "System service filtering: disabled" in result.output

    def test_negative_threshold_rejected(self, runner, default_config):
        """--threshold must be a non-negative number of minutes."""
        result = runner.invoke(main, ["--threshold", "-1"])

        assert result.exit_code == 2

    def test_test_flag_sends_notification(self, runner, default_config):
        """--test runs the notification smoke test and exits."""
        with (
            patch("sleep_monitor.notifications.send_test_notification") as mock_send,
            patch("sleep_monitor.daemon.run_monitor", new_callable=AsyncMock) as mock_run,
        ):
            result = runner.invoke(main, ["--test"])

        assert result.exit_code == 0, result.output
        mock_send.assert_called_once()
        channel, alerts = mock_send.call_args.args
        assert channel.executable == "terminal-notifier"
        assert alerts is default_config.alerts
        mock_run.assert_not_called()

    def test_invalid_config_file(self, runner):
        """A bad config file is reported as a CLI error."""
        with patch(
            "sleep_monitor.config.Config.load",
            side_effect=ValueError("poll_interval must be > 0, got 0"),
        ):
            result = runner.invoke(main, [])

        assert result.exit_code == 1
        assert "poll_interval must be > 0" in result.output


class TestStatusCommand:
    """Tests for the status command."""

    def test_status_no_apps(self, runner, default_config):
        with patch("sleep_monitor.assertions.get_sleep_preventing_apps", return_value=[]):
            result = runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "No apps preventing sleep." in result.output

    def test_status_lists_records(self, runner, default_config):
        records = [
            AssertionRecord(4121, "Xcode", "build"),
            AssertionRecord(4121, "Xcode", "index"),
            AssertionRecord(812, "zoom.us", "Zoom meeting"),
        ]
        with patch(
            "sleep_monitor.assertions.get_sleep_preventing_apps", return_value=records
        ) as mock_get:
            result = runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "2 apps preventing sleep" in result.output
        assert "Zoom meeting" in result.output
        assert result.output.count("Xcode") == 2
        excluded = mock_get.call_args.args[0]
        assert "coreaudiod" in excluded

    def test_status_no_filter(self, runner, default_config):
        with patch(
            "sleep_monitor.assertions.get_sleep_preventing_apps", return_value=[]
        ) as mock_get:
            runner.invoke(main, ["status", "--no-filter"])

        assert mock_get.call_args.args[0] == frozenset({"powerd"})

    def test_status_query_error(self, runner, default_config):
        with patch(
            "sleep_monitor.assertions.get_sleep_preventing_apps",
            side_effect=AssertionQueryError("pmset not found"),
        ):
            result = runner.invoke(main, ["status"])

        assert result.exit_code == 1
        assert "pmset not found" in result.output


class TestConfigCommands:
    """Tests for config subcommands."""

    @pytest.fixture
    def config_dir(self, tmp_path: Path):
        with patch.object(Config, "config_dir", property(lambda self: tmp_path)):
            yield tmp_path

    def test_config_show(self, runner, config_dir):
        result = runner.invoke(main, ["config", "show"])

        assert result.exit_code == 0
        assert "Exists: False" in result.output
        assert "[auto_kill]" in result.output
        assert "never_kill = caffeinate, appleh13camerad" in result.output

    def test_config_reset_writes_defaults(self, runner, config_dir):
        result = runner.invoke(main, ["config", "reset", "--yes"])

        assert result.exit_code == 0
        assert (config_dir / "config.toml").exists()
        assert Config.load(config_dir / "config.toml") == Config()

    def test_config_reset_requires_confirmation(self, runner, config_dir):
        result = runner.invoke(main, ["config", "reset"], input="n\n")

        assert result.exit_code == 1
        assert not (config_dir / "config.toml").exists()

    def test_config_edit_creates_file(self, runner, config_dir):
        with (
            patch.dict("os.environ", {"EDITOR": "vi"}),
            patch("subprocess.run", return_value=MagicMock(returncode=0)) as mock_run,
        ):
            result = runner.invoke(main, ["config", "edit"])

        assert result.exit_code == 0
        assert (config_dir / "config.toml").exists()
        mock_run.assert_called_once_with(["vi", str(config_dir / "config.toml")])
