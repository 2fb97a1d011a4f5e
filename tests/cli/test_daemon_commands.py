"""Tests for burrow daemon start / stop / status."""

from __future__ import annotations

import json
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from burrow.cli.daemon import _format_uptime
from burrow.cli.main import cli
from burrow.core.errors import DaemonError
from burrow.index.progress import IndexerProgress

runner = CliRunner()


@pytest.fixture
def no_daemon() -> Generator[None, None, None]:
    with patch("burrow.cli.daemon.running_daemon_pid", return_value=None):
        yield


@pytest.fixture
def daemon_up(fake_daemon: Any) -> Generator[Any, None, None]:
    with (
        patch("burrow.cli.daemon.running_daemon_pid", return_value=4242),
        patch("burrow.cli.daemon.daemon_client", side_effect=fake_daemon.client),
    ):
        yield fake_daemon


class TestFormatUptime:
    def test_seconds(self) -> None:
        assert _format_uptime(42) == "42s"

    def test_minutes(self) -> None:
        assert _format_uptime(125) == "2m 5s"

    def test_hours(self) -> None:
        assert _format_uptime(3725) == "1h 2m 5s"


class TestStart:
    def test_given_running_daemon_then_noop(
        self, write_config: Callable[[str], Path], daemon_up: Any
    ) -> None:
        write_config()

        with patch("burrow.cli.daemon.run_daemon") as run_daemon:
            result = runner.invoke(cli, ["daemon", "start"])

        assert result.exit_code == 0
        assert "Daemon already running (PID 4242)" in result.output
        run_daemon.assert_not_called()

    def test_foreground_runs_server(
        self, write_config: Callable[[str], Path], no_daemon: None
    ) -> None:
        write_config()

        with (
            patch("burrow.cli.daemon._configure_daemon_logging") as configure,
            patch("burrow.cli.daemon.run_daemon", new_callable=AsyncMock) as run_daemon,
        ):
            result = runner.invoke(cli, ["daemon", "start"])

        assert result.exit_code == 0, result.output
        configure.assert_called_once()
        run_daemon.assert_awaited_once()

    def test_foreground_lease_refused_exits_1(
        self, write_config: Callable[[str], Path], no_daemon: None
    ) -> None:
        write_config()

        with (
            patch("burrow.cli.daemon._configure_daemon_logging"),
            patch(
                "burrow.cli.daemon.run_daemon",
                new_callable=AsyncMock,
                side_effect=DaemonError.already_running(99),
            ),
        ):
            result = runner.invoke(cli, ["daemon", "start"])

        assert result.exit_code == 1
        assert "Daemon already running (PID 99)" in result.output

    def test_foreground_failure_points_at_log_file(
        self, write_config: Callable[[str], Path], no_daemon: None
    ) -> None:
        write_config()

        with (
            patch("burrow.cli.daemon._configure_daemon_logging"),
            patch("burrow.cli.daemon.get_log_file_path", return_value=Path("/tmp/daemon.log")),
            patch(
                "burrow.cli.daemon.run_daemon",
                new_callable=AsyncMock,
                side_effect=DaemonError.already_running(99),
            ),
        ):
            result = runner.invoke(cli, ["daemon", "start"])

        assert result.exit_code == 1
        assert "See /tmp/daemon.log for details." in result.output

    def test_background_waits_for_socket(
        self, write_config: Callable[[str], Path], fake_daemon: Any, no_daemon: None
    ) -> None:
        write_config()

        with (
            patch("burrow.cli.daemon.spawn_background", return_value=777) as spawn,
            patch("burrow.cli.daemon.daemon_client", side_effect=fake_daemon.client),
        ):
            result = runner.invoke(cli, ["daemon", "start", "--background"])

        assert result.exit_code == 0, result.output
        spawn.assert_called_once()
        assert "Daemon started (PID 777)" in result.output
        assert "/daemon/status" in fake_daemon.paths_called()

    def test_background_timeout_exits_1(
        self,
        write_config: Callable[[str], Path],
        fake_daemon: Any,
        no_daemon: None,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        write_config()
        monkeypatch.setenv("BURROW__DAEMON__STARTUP_TIMEOUT_SEC", "0.3")
        fake_daemon.down = {"*"}

        with (
            patch("burrow.cli.daemon.spawn_background", return_value=777),
            patch("burrow.cli.daemon.daemon_client", side_effect=fake_daemon.client),
        ):
            result = runner.invoke(cli, ["daemon", "start", "--background"])

        assert result.exit_code == 1
        assert "Daemon did not respond within 0.3s" in result.output
        assert "daemon.out" in result.output


class TestStop:
    def test_given_no_daemon_then_reports(
        self, write_config: Callable[[str], Path], no_daemon: None
    ) -> None:
        write_config()

        result = runner.invoke(cli, ["daemon", "stop"])

        assert result.exit_code == 0
        assert "Daemon is not running." in result.output

    def test_requests_shutdown_and_waits(
        self, write_config: Callable[[str], Path], daemon_up: Any
    ) -> None:
        write_config()

        with (
            patch("burrow.cli.daemon.wait_for_exit", return_value=True) as wait,
            patch("burrow.cli.daemon.signal_daemon") as signal_daemon,
        ):
            result = runner.invoke(cli, ["daemon", "stop"])

        assert result.exit_code == 0, result.output
        assert "Stopping daemon (PID 4242)..." in result.output
        assert "Daemon stopped." in result.output
        assert daemon_up.paths_called() == ["/daemon/shutdown"]
        assert wait.call_args.args[1] == 8.0
        signal_daemon.assert_not_called()

    def test_given_unresponsive_daemon_then_sends_sigterm(
        self, write_config: Callable[[str], Path], daemon_up: Any
    ) -> None:
        write_config()
        daemon_up.down = {"*"}

        with (
            patch("burrow.cli.daemon.wait_for_exit", return_value=True),
            patch("burrow.cli.daemon.signal_daemon") as signal_daemon,
        ):
            result = runner.invoke(cli, ["daemon", "stop"])

        assert result.exit_code == 0, result.output
        assert "sending SIGTERM" in result.output
        signal_daemon.assert_called_once()

    def test_given_daemon_never_exits_then_exits_1(
        self, write_config: Callable[[str], Path], daemon_up: Any
    ) -> None:
        write_config()

        with patch("burrow.cli.daemon.wait_for_exit", return_value=False):
            result = runner.invoke(cli, ["daemon", "stop"])

        assert result.exit_code == 1
        assert "Daemon did not stop within 8 seconds." in result.output


class TestStatus:
    def test_not_running(self, write_config: Callable[[str], Path], no_daemon: None) -> None:
        write_config()

        result = runner.invoke(cli, ["daemon", "status"])

        assert result.exit_code == 0
        assert "Daemon: not running" in result.output

    def test_not_running_json(self, write_config: Callable[[str], Path], no_daemon: None) -> None:
        write_config()

        result = runner.invoke(cli, ["daemon", "status", "--json"])

        assert json.loads(result.stdout) == {"running": False}

    def test_idle_daemon(self, write_config: Callable[[str], Path], daemon_up: Any) -> None:
        write_config()

        result = runner.invoke(cli, ["daemon", "status"])

        assert result.exit_code == 0, result.output
        assert "4242" in result.output
        assert "1h 2m 5s" in result.output
        assert "idle" in result.output
        assert "Indexed 3, skipped 1, removed 0, 0 errors" in result.output

    def test_indexing_daemon(self, write_config: Callable[[str], Path], daemon_up: Any) -> None:
        write_config()
        daemon_up.progress = [IndexerProgress(running=True, phase="scanning")]

        result = runner.invoke(cli, ["daemon", "status"])

        assert "scanning 0/0" in result.output

    def test_json(self, write_config: Callable[[str], Path], daemon_up: Any) -> None:
        write_config()

        result = runner.invoke(cli, ["daemon", "status", "--json"])

        data = json.loads(result.stdout)
        assert data["running"] is True
        assert data["daemon"] == {"version": "0.1.0", "pid": 4242, "uptime_secs": 3725}
        assert data["indexer"]["running"] is False

    def test_unresponsive_daemon_exits_1(
        self, write_config: Callable[[str], Path], daemon_up: Any
    ) -> None:
        write_config()
        daemon_up.down = {"/daemon/status"}

        result = runner.invoke(cli, ["daemon", "status"])

        assert result.exit_code == 1
        assert "Daemon (PID 4242) is not responding" in result.output
