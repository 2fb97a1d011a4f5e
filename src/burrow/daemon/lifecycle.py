"""Daemon lifecycle management."""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path

import structlog
import uvicorn

from burrow.config import paths
from burrow.config.models import BurrowConfig
from burrow.daemon.indexer import BackgroundIndexer
from burrow.daemon.pidfile import PidLease, is_daemon_running, read_pid, remove_pid_file
from burrow.index.embedding import OllamaEmbedder
from burrow.index.indexer import Indexer
from burrow.index.store import VectorStore

logger = structlog.get_logger()


@dataclass
class ServerController:
    """
    Daemon state: one VectorStore, one Indexer and its ProgressTracker.

    Exactly one instance exists per daemon process. Route handlers read
    it; the shutdown event is set by POST /daemon/shutdown or a signal.
    """

    config: BurrowConfig
    store: VectorStore
    embedder: OllamaEmbedder
    history_path: Path = field(default_factory=paths.history_db_path)

    indexer: BackgroundIndexer = field(init=False)
    started_at: float = field(default_factory=time.monotonic, init=False)
    _shutdown_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    def __post_init__(self) -> None:
        self.indexer = BackgroundIndexer(Indexer(self.store, self.embedder, self.config))

    @property
    def uptime_secs(self) -> int:
        return int(time.monotonic() - self.started_at)

    def request_shutdown(self) -> None:
        logger.info("shutdown_requested")
        self._shutdown_event.set()

    def wait_for_shutdown(self) -> asyncio.Event:
        """Get the shutdown event for external coordination."""
        return self._shutdown_event

    async def stop(self) -> None:
        """Stop the background indexer and close the store."""
        logger.info("server stopping")
        try:
            async with asyncio.timeout(self.config.timeouts.server_stop_sec):
                await self.indexer.stop()
        except TimeoutError:
            logger.warning(
                "server_stop_timeout",
                message=f"Shutdown timed out after {self.config.timeouts.server_stop_sec}s",
            )
        self.store.close()
        logger.info("server stopped")


def _remove_stale_socket(socket_path: Path) -> None:
    if socket_path.exists() or socket_path.is_symlink():
        logger.debug("stale_socket_removed", path=str(socket_path))
        socket_path.unlink()


async def run_daemon(config: BurrowConfig) -> None:
    """Serve the daemon protocol on the runtime socket until shutdown.

    Raises:
        DaemonError: Another daemon already owns the runtime directory.
        StoreError: The vector store could not be opened.
    """
    from burrow.daemon.app import create_app

    socket_path = paths.socket_path()
    lease = PidLease(paths.pid_path())
    lease.acquire()

    try:
        store = VectorStore(paths.vector_db_path())
        embedder = OllamaEmbedder(
            config.ollama.url,
            config.models.embedding.name,
            timeout=config.ollama.timeout_sec,
        )
        controller = ServerController(config=config, store=store, embedder=embedder)
        app = create_app(controller)

        _remove_stale_socket(socket_path)
        uvicorn_config = uvicorn.Config(
            app,
            uds=str(socket_path),
            log_level="warning",  # Use structlog instead
            log_config=None,
            ws="none",
            lifespan="off",
        )
        server = uvicorn.Server(uvicorn_config)

        loop = asyncio.get_running_loop()
        shutdown_count = 0
        force_exit_task: asyncio.Task[None] | None = None

        async def force_exit_after_timeout() -> None:
            """Force exit if graceful shutdown takes too long."""
            await asyncio.sleep(config.timeouts.force_exit_sec)
            logger.info("forcing_exit_after_timeout")
            server.force_exit = True

        def begin_shutdown() -> None:
            nonlocal shutdown_count, force_exit_task
            shutdown_count += 1
            server.should_exit = True
            if shutdown_count == 1:
                force_exit_task = loop.create_task(force_exit_after_timeout())
            else:
                server.force_exit = True
                if force_exit_task:
                    force_exit_task.cancel()

        def signal_handler() -> None:
            logger.info("shutdown_signal_received", count=shutdown_count + 1)
            controller.request_shutdown()

        async def watch_shutdown() -> None:
            event = controller.wait_for_shutdown()
            while True:
                await event.wait()
                event.clear()
                begin_shutdown()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)
        watcher = loop.create_task(watch_shutdown())

        logger.info("daemon_started", pid=os.getpid(), socket=str(socket_path))
        try:
            await server.serve()
        finally:
            watcher.cancel()
            if force_exit_task:
                force_exit_task.cancel()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            await controller.stop()
    finally:
        with contextlib.suppress(FileNotFoundError):
            socket_path.unlink()
        lease.release()
        logger.info("daemon_exited")


def spawn_background() -> int:
    """Start `python -m burrow daemon start` detached. Returns the child PID."""
    log_path = paths.log_dir() / "daemon.out"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("ab") as out:
        proc = subprocess.Popen(
            [sys.executable, "-m", "burrow", "daemon", "start"],
            stdin=subprocess.DEVNULL,
            stdout=out,
            stderr=out,
            start_new_session=True,
            close_fds=True,
        )
    logger.info("daemon_spawned", pid=proc.pid)
    return proc.pid


def signal_daemon(pid_path: Path) -> bool:
    """Send SIGTERM to the daemon named by pid_path. Returns True if sent."""
    pid = read_pid(pid_path)
    if pid is None:
        return False
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        remove_pid_file(pid_path)
        return False
    logger.info("daemon_stop_signal_sent", pid=pid)
    return True


def wait_for_exit(pid_path: Path, timeout: float, *, interval: float = 0.1) -> bool:
    """Poll until no live daemon owns pid_path. Returns False on timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if is_daemon_running(pid_path) is None:
            return True
        time.sleep(interval)
    return is_daemon_running(pid_path) is None
