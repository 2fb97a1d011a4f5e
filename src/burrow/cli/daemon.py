"""burrow daemon start / stop / status commands."""

from __future__ import annotations

import asyncio
import time

import click

from burrow.cli.utils import daemon_client, echo_json, load_cli_config, running_daemon_pid
from burrow.config import paths
from burrow.config.models import BurrowConfig, LoggingConfig, LogOutputConfig
from burrow.core.errors import DaemonError, StoreError
from burrow.core.logging import configure_logging, get_log_file_path
from burrow.core.progress import heading, key_value, spinner, status
from burrow.daemon.client import DaemonClient
from burrow.daemon.lifecycle import run_daemon, signal_daemon, spawn_background, wait_for_exit
from burrow.daemon.models import DaemonStatus, IndexerProgress

READY_POLL_SEC = 0.1


def _format_uptime(seconds: int) -> str:
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def _configure_daemon_logging(config: BurrowConfig) -> None:
    """Configured outputs at their level, plus a DEBUG JSON log file."""
    outputs = [
        output.model_copy(update={"level": output.level or config.logging.level})
        for output in config.logging.outputs
    ]
    log_file = paths.log_dir().absolute() / "daemon.log"
    outputs.append(LogOutputConfig(destination=str(log_file), format="json", level="DEBUG"))
    configure_logging(config=LoggingConfig(level="DEBUG", outputs=outputs))


async def _wait_until_ready(client: DaemonClient, timeout: float) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if await client.is_responsive():
            return True
        await asyncio.sleep(READY_POLL_SEC)
    return False


@click.group("daemon")
def daemon_group() -> None:
    """Manage the background indexing daemon."""


@daemon_group.command("start")
@click.option("--background", is_flag=True, help="Detach and return once the daemon answers")
def start_command(background: bool) -> None:
    """Start the daemon. Runs in the foreground unless --background is given."""
    config = load_cli_config()

    pid = running_daemon_pid()
    if pid is not None:
        click.echo(f"Daemon already running (PID {pid})")
        return

    if background:
        child = spawn_background()
        timeout = config.daemon.startup_timeout_sec
        with spinner("Starting daemon"):
            ready = asyncio.run(_wait_until_ready(daemon_client(config), timeout))
        if not ready:
            status(
                f"Daemon did not respond within {timeout:g}s, see {paths.log_dir() / 'daemon.out'}",
                style="error",
            )
            raise SystemExit(1)
        status(f"Daemon started (PID {child})", style="success")
        return

    _configure_daemon_logging(config)
    try:
        asyncio.run(run_daemon(config))
    except (DaemonError, StoreError) as e:
        log_file = get_log_file_path()
        if log_file:
            status(f"{e.message}. See {log_file} for details.", style="error")
        else:
            status(e.message, style="error")
        raise SystemExit(1) from e
    except KeyboardInterrupt:
        click.echo("\nStopped")


@daemon_group.command("stop")
def stop_command() -> None:
    """Ask the daemon to shut down and wait for it to exit."""
    config = load_cli_config()
    pid_path = paths.pid_path()

    pid = running_daemon_pid()
    if pid is None:
        click.echo("Daemon is not running.")
        return

    click.echo(f"Stopping daemon (PID {pid})...")
    try:
        asyncio.run(daemon_client(config).shutdown())
    except DaemonError as e:
        status(f"Shutdown request failed ({e.message}), sending SIGTERM", style="warning")
        signal_daemon(pid_path)

    timeout = config.timeouts.server_stop_sec + config.timeouts.force_exit_sec
    if not wait_for_exit(pid_path, timeout):
        status(f"Daemon did not stop within {timeout:g} seconds.", style="error")
        raise SystemExit(1)
    status("Daemon stopped.", style="success")


@daemon_group.command("status")
@click.option("--json", "as_json", is_flag=True, help="Print daemon and indexer state as JSON")
def status_command(as_json: bool) -> None:
    """Show whether the daemon is running and what its indexer is doing."""
    config = load_cli_config()

    pid = running_daemon_pid()
    if pid is None:
        if as_json:
            echo_json({"running": False})
        else:
            click.echo("Daemon: not running")
        return

    client = daemon_client(config)

    async def fetch() -> tuple[DaemonStatus, IndexerProgress]:
        return await client.status(), await client.progress()

    try:
        info, progress = asyncio.run(fetch())
    except DaemonError as e:
        status(f"Daemon (PID {pid}) is not responding: {e.message}", style="error")
        raise SystemExit(1) from e

    if as_json:
        echo_json(
            {"running": True, "daemon": info.model_dump(), "indexer": progress.model_dump()}
        )
        return

    heading("Daemon")
    key_value("PID", str(info.pid))
    key_value("Version", info.version)
    key_value("Uptime", _format_uptime(info.uptime_secs))
    key_value("Socket", str(client.socket_path))
    if progress.running:
        key_value("Indexer", f"{progress.phase} {progress.processed}/{progress.total}")
    else:
        key_value("Indexer", "idle")
        if progress.last_result:
            key_value("Last result", progress.last_result)
