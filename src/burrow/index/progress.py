"""Shared indexer run-state.

One ProgressTracker per process. The indexer mutates it through short
synchronous updates; pollers read copies. The lock is never held across
an await.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel

Phase = Literal["idle", "scanning", "embedding", "cleanup"]


class IndexerProgress(BaseModel):
    """Snapshot of the current or most recent indexing run."""

    running: bool = False
    phase: Phase = "idle"
    current_file: str = ""
    processed: int = 0
    total: int = 0
    errors: int = 0
    last_result: str = ""


class ProgressTracker:
    """Lock-guarded IndexerProgress cell."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = IndexerProgress()

    def update(self, fn: Callable[[IndexerProgress], None]) -> None:
        with self._lock:
            fn(self._state)

    def snapshot(self) -> IndexerProgress:
        with self._lock:
            return self._state.model_copy()

    @property
    def running(self) -> bool:
        with self._lock:
            return self._state.running

    def try_start(self) -> bool:
        """Claim the run slot and reset counters.

        Returns False without touching anything when a run is already in
        flight, so two concurrent callers can never both start.
        """
        with self._lock:
            if self._state.running:
                return False
            self._state.running = True
            self._state.phase = "scanning"
            self._state.current_file = ""
            self._state.processed = 0
            self._state.total = 0
            self._state.errors = 0
            return True

    def finish(self, summary: str) -> None:
        """Freeze the run: idle, not running, summary kept for later pollers."""
        with self._lock:
            self._state.running = False
            self._state.phase = "idle"
            self._state.current_file = ""
            self._state.last_result = summary
