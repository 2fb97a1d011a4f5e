"""Self-contained periodic indexing loop for the desktop host.

Independent of the daemon: it owns its own Indexer (and therefore its
own ProgressTracker) and talks to nothing but the VectorStore.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from burrow.core.errors import IndexingError, StoreError

if TYPE_CHECKING:
    from burrow.index.indexer import Indexer

log = structlog.get_logger()


class PeriodicIndexer:
    """Run an incremental pass, sleep interval_hours, repeat until stopped."""

    def __init__(self, indexer: Indexer, *, interval_hours: float | None = None) -> None:
        self.indexer = indexer
        hours = interval_hours or indexer.config.indexer.interval_hours
        self.interval_sec = hours * 3600
        self._stop = asyncio.Event()
        self.runs = 0

    async def run(self) -> None:
        if not self.indexer.config.vector_search.enabled:
            log.info("periodic_indexer_disabled")
            return

        log.info("periodic_indexer_started", interval_sec=self.interval_sec)
        while not self._stop.is_set():
            try:
                stats = await self.indexer.run_incremental()
            except IndexingError as e:
                # Another caller holds this tracker; try again next period
                log.info("periodic_indexer_busy", error=e.message)
            except StoreError as e:
                log.error("periodic_indexer_run_failed", error=str(e))
            else:
                log.info(
                    "periodic_indexer_run",
                    indexed=stats.indexed,
                    skipped=stats.skipped,
                    removed=stats.removed,
                    errors=stats.errors,
                )
            self.runs += 1

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_sec)
            except TimeoutError:
                continue
        log.info("periodic_indexer_stopped", runs=self.runs)

    def stop(self) -> None:
        """End the loop after the current run or sleep."""
        self._stop.set()
