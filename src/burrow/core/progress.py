"""User-facing console feedback for CLI operations.

Design principles:
- Single line updates, no spam
- Graceful degradation in non-TTY (CI, pipes)
- Suppress structlog console output while a live display is active

Usage::

    from burrow.core.progress import status, spinner, IndexProgressView

    status("Daemon started", style="success")  # ✓ Daemon started
    status("Failed to connect", style="error")  # ✗ Failed to connect

    with spinner("Indexing notes.md"):
        do_work()

    with IndexProgressView() as view:
        view.update(snapshot)  # IndexerProgress
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType
from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from burrow.index.progress import IndexerProgress

_console = Console(stderr=True)
_stdout = Console()

_STYLES = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}

_suppress_console_logs = threading.local()


def is_console_suppressed() -> bool:
    """Check if console logging is currently suppressed."""
    return getattr(_suppress_console_logs, "active", False)


@contextmanager
def suppress_console_logs() -> Iterator[None]:
    """Suppress structlog console output while a live display runs.

    Logs are still written to file handlers.
    """
    _suppress_console_logs.active = True
    try:
        yield
    finally:
        _suppress_console_logs.active = False


def _get_logger() -> BoundLogger:
    """Get logger lazily to respect runtime config."""
    from burrow.core.logging import get_logger

    return get_logger("progress")


def _is_tty() -> bool:
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def get_console() -> Console:
    """Get the shared Rich console instance (stderr)."""
    return _console


def get_stdout() -> Console:
    """Console for primary command output (stdout)."""
    return _stdout


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    """Print a styled status message to stderr."""
    prefix = _STYLES.get(style, "")
    padding = " " * indent
    _console.print(f"{padding}{prefix}{message}", highlight=False)

    _get_logger().debug("status", message=message, style=style)


def heading(title: str) -> None:
    _stdout.print(f"[bold]{title}[/bold]", highlight=False)


def key_value(key: str, value: str) -> None:
    _stdout.print(f"  [dim]{key + ':':<18}[/dim] {value}", highlight=False)


def flag(label: str, ok: bool) -> None:
    """Print an OK/FAIL line for a health flag."""
    mark = "[green]✓ OK[/green]" if ok else "[red]✗ FAIL[/red]"
    _stdout.print(f"  {label + ':':<18} {mark}", highlight=False)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return "1 file" / "3 files"."""
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"


@contextmanager
def spinner(message: str, *, indent: int = 0) -> Iterator[None]:
    """Spinner with log suppression. Non-TTY prints the message once."""
    padding = " " * indent
    if _is_tty():
        with (
            suppress_console_logs(),
            _console.status(f"{padding}[cyan]{message}[/cyan]", spinner="dots"),
        ):
            yield
    else:
        _console.print(f"{padding}{message}...", highlight=False)
        yield


class IndexProgressView:
    """Progress bar fed from IndexerProgress snapshots.

    Works the same whether snapshots come from an in-process tracker or
    from polling the daemon. In non-TTY mode it prints a line only when
    the processed/total/errors counts change.
    """

    def __init__(self, *, console: Console | None = None) -> None:
        self._console = console or _console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._last_counts: tuple[int, int, int] | None = None
        self._live = _is_tty()

    def update(self, snapshot: IndexerProgress) -> None:
        counts = (snapshot.processed, snapshot.total, snapshot.errors)
        if self._progress is not None and self._task_id is not None:
            self._progress.update(
                self._task_id,
                completed=snapshot.processed,
                total=snapshot.total or None,
                description=snapshot.phase,
                current=snapshot.current_file,
            )
        elif counts != self._last_counts and snapshot.running:
            self._console.print(
                f"  {snapshot.phase}: {snapshot.processed}/{snapshot.total}"
                f" ({pluralize(snapshot.errors, 'error')})",
                highlight=False,
            )
        self._last_counts = counts

    def __enter__(self) -> IndexProgressView:
        if self._live:
            _suppress_console_logs.active = True
            self._progress = Progress(
                SpinnerColumn(style="cyan"),
                TextColumn("{task.description:<9}"),
                BarColumn(bar_width=40, style="cyan", complete_style="cyan"),
                MofNCompleteColumn(),
                TimeRemainingColumn(),
                TextColumn("[dim]{task.fields[current]}[/dim]"),
                console=self._console,
                transient=True,
            )
            self._progress.__enter__()
            self._task_id = self._progress.add_task("scanning", total=None, current="")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task_id = None
        _suppress_console_logs.active = False
