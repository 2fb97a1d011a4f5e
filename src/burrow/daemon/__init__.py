"""Background daemon: PID-file singleton, Unix-socket HTTP server and client."""

from burrow.daemon.app import create_app
from burrow.daemon.client import DaemonClient, poll_progress
from burrow.daemon.indexer import BackgroundIndexer
from burrow.daemon.lifecycle import ServerController, run_daemon
from burrow.daemon.pidfile import PidLease, is_daemon_running

__all__ = [
    "BackgroundIndexer",
    "DaemonClient",
    "PidLease",
    "ServerController",
    "create_app",
    "is_daemon_running",
    "poll_progress",
    "run_daemon",
]
