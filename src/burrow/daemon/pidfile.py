"""Single-instance enforcement through a PID file.

The PID file is a lease: the daemon creates it with an exclusive
create-if-absent, and anyone who finds a lease whose owner is dead
removes it. Liveness is checked through a LivenessCheck so the platform
specific part stays small.
"""

from __future__ import annotations

import contextlib
import os
import signal
from pathlib import Path
from typing import Protocol

import structlog

from burrow.core.errors import DaemonError

logger = structlog.get_logger()


class LivenessCheck(Protocol):
    def is_alive(self, pid: int) -> bool: ...


class PosixLivenessCheck:
    """Signal 0 to the PID: no such process means dead, EPERM means alive."""

    def is_alive(self, pid: int) -> bool:
        if pid <= 0:
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            # Exists but owned by someone else
            return True
        return True


class AssumeAliveCheck:
    """For platforms without POSIX signals; stale leases must be removed by hand."""

    def is_alive(self, pid: int) -> bool:
        return pid > 0


def default_liveness() -> LivenessCheck:
    if hasattr(signal, "SIGKILL"):
        return PosixLivenessCheck()
    return AssumeAliveCheck()


def read_pid(pid_path: Path) -> int | None:
    try:
        return int(pid_path.read_text().strip())
    except (FileNotFoundError, ValueError):
        return None


def remove_pid_file(pid_path: Path) -> None:
    with contextlib.suppress(FileNotFoundError):
        pid_path.unlink()


def write_pid_file(pid_path: Path, pid: int | None = None) -> None:
    """Unconditionally write pid (default: this process). Prefer PidLease."""
    pid_path.parent.mkdir(parents=True, exist_ok=True)
    pid_path.write_text(str(pid or os.getpid()))
    logger.debug("pid_file_written", pid_path=str(pid_path))


def is_daemon_running(pid_path: Path, liveness: LivenessCheck | None = None) -> int | None:
    """PID of the live daemon owning pid_path, or None.

    A PID file pointing at a dead process (or holding garbage) is removed.
    """
    pid = read_pid(pid_path)
    if pid is None:
        if pid_path.exists():
            logger.info("stale_pid_file_removed", pid_path=str(pid_path), reason="unreadable")
            remove_pid_file(pid_path)
        return None

    if (liveness or default_liveness()).is_alive(pid):
        return pid

    logger.info("stale_pid_file_removed", pid_path=str(pid_path), pid=pid)
    remove_pid_file(pid_path)
    return None


class PidLease:
    """Exclusive ownership of a PID file for the lifetime of a daemon.

    Usage::

        lease = PidLease(paths.pid_path())
        lease.acquire()          # raises DaemonError if a live daemon owns it
        try:
            serve()
        finally:
            lease.release()
    """

    def __init__(self, pid_path: Path, *, liveness: LivenessCheck | None = None) -> None:
        self.pid_path = pid_path
        self.liveness = liveness or default_liveness()
        self.pid = os.getpid()
        self.held = False

    def _create(self) -> bool:
        try:
            fd = os.open(self.pid_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w") as f:
            f.write(str(self.pid))
        return True

    def acquire(self) -> None:
        """Create the PID file, clearing a dead owner's lease once.

        Raises:
            DaemonError: A live process already holds the lease.
        """
        self.pid_path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(2):
            if self._create():
                self.held = True
                logger.debug("pid_lease_acquired", pid=self.pid, pid_path=str(self.pid_path))
                return
            owner = is_daemon_running(self.pid_path, self.liveness)
            if owner is not None and owner != self.pid:
                raise DaemonError.already_running(owner)
            if owner == self.pid:
                self.held = True
                return
        # Lost a race with another starter between cleanup and create
        owner = read_pid(self.pid_path)
        raise DaemonError.already_running(owner or 0)

    def release(self) -> None:
        """Remove the PID file if it still names this process."""
        if not self.held:
            return
        if read_pid(self.pid_path) == self.pid:
            remove_pid_file(self.pid_path)
        self.held = False

    def __enter__(self) -> PidLease:
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
