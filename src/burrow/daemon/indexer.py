"""Background indexing runs owned by the daemon."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from burrow.daemon.models import IndexerStartResponse

if TYPE_CHECKING:
    from burrow.index.indexer import Indexer, IndexStats
    from burrow.index.progress import ProgressTracker

logger = structlog.get_logger()

MSG_ALREADY_RUNNING = "Indexer is already running"
MSG_FULL_STARTED = "Reindex started"
MSG_INCREMENTAL_STARTED = "Incremental update started"


class BackgroundIndexer:
    """Runs at most one Indexer pass at a time as an asyncio task.

    The run slot is claimed on the tracker before the task is created, so
    two near-simultaneous start requests cannot both start a run.
    """

    def __init__(self, indexer: Indexer) -> None:
        self.indexer = indexer
        self._task: asyncio.Task[IndexStats] | None = None

    @property
    def progress(self) -> ProgressTracker:
        return self.indexer.progress

    @property
    def running(self) -> bool:
        return self.progress.running

    def start(self, *, full: bool) -> IndexerStartResponse:
        if not self.progress.try_start():
            logger.info("indexer_start_ignored", reason="already_running")
            return IndexerStartResponse(started=False, message=MSG_ALREADY_RUNNING)

        run = self.indexer.run_full if full else self.indexer.run_incremental
        self._task = asyncio.get_running_loop().create_task(run(claimed=True))
        self._task.add_done_callback(self._on_done)
        message = MSG_FULL_STARTED if full else MSG_INCREMENTAL_STARTED
        logger.info("indexer_started", full=full)
        return IndexerStartResponse(started=True, message=message)

    def _on_done(self, task: asyncio.Task[IndexStats]) -> None:
        if task.cancelled():
            logger.info("indexer_run_cancelled")
            return
        if (exc := task.exception()) is not None:
            # The tracker is already frozen with the failure summary
            logger.error("indexer_run_errored", error=str(exc))

    async def wait(self) -> None:
        """Wait for the in-flight run, if any."""
        if self._task is not None:
            await asyncio.wait([self._task])

    async def stop(self) -> None:
        """Cancel the in-flight run, if any, and wait for it to unwind."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait([task])
