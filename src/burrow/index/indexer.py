"""File indexing pipeline: discover, filter stale, extract, embed, upsert, clean up.

Files are processed one at a time in discovery order. Extraction and
embedding failures are counted per file and never abort a run; store
failures do, after the progress tracker has been frozen.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from burrow.core.errors import IndexingError, StoreError
from burrow.index.discovery import collect_indexable_paths, file_mtime, is_file_modified
from burrow.index.extract import extract_text
from burrow.index.progress import IndexerProgress, ProgressTracker

if TYPE_CHECKING:
    from burrow.config.models import BurrowConfig
    from burrow.index.embedding import EmbeddingProvider
    from burrow.index.store import VectorStore

log = structlog.get_logger()

PREVIEW_CHARS = 200

Extractor = Callable[[Path, int], str]


@dataclass
class IndexStats:
    """Counts for one run."""

    indexed: int = 0
    skipped: int = 0
    removed: int = 0
    errors: int = 0
    error_messages: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"Indexed {self.indexed}, skipped {self.skipped}, "
            f"removed {self.removed}, {self.errors} errors"
        )


class Indexer:
    """Runs full and incremental indexing passes against one VectorStore.

    A run claims the ProgressTracker via try_start(). Callers that have
    already claimed it (the daemon, which claims before scheduling) pass
    claimed=True.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingProvider,
        config: BurrowConfig,
        progress: ProgressTracker | None = None,
        *,
        extractor: Extractor = extract_text,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.config = config
        self.progress = progress or ProgressTracker()
        self._extract = extractor

    def discover(self) -> list[Path]:
        """All indexable files under the configured roots."""
        vs = self.config.vector_search
        return collect_indexable_paths(
            vs.index_dirs,
            max_size=vs.max_file_size_bytes,
            extensions=self.config.indexer.file_extensions,
            exclude_patterns=vs.exclude_patterns,
        )

    async def index_file(self, path: Path) -> None:
        """Extract, embed and upsert one file.

        Raises:
            IndexingError: Extraction or embedding failed.
            StoreError: The upsert failed.
        """
        max_chars = self.config.indexer.max_content_chars
        text = await asyncio.to_thread(self._extract, path, max_chars)
        embedding = await self.embedder.embed(text)
        await asyncio.to_thread(
            self.store.upsert,
            str(path),
            text[:PREVIEW_CHARS],
            embedding,
            self.embedder.model,
            file_mtime(path),
        )

    async def run_full(self, *, claimed: bool = False) -> IndexStats:
        """Clear the store, then index every discoverable file."""
        return await self._run("full", claimed=claimed)

    async def run_incremental(self, *, claimed: bool = False) -> IndexStats:
        """Index new and changed files, then remove rows for vanished files."""
        return await self._run("incremental", claimed=claimed)

    async def _run(self, mode: str, *, claimed: bool) -> IndexStats:
        if not claimed and not self.progress.try_start():
            raise IndexingError.busy()

        stats = IndexStats()
        summary = "Indexing interrupted"
        start = time.monotonic()
        log.info("indexer_run_started", mode=mode)
        try:
            if mode == "full":
                await self._full(stats)
            else:
                await self._incremental(stats)
            summary = stats.summary()
        except StoreError as e:
            summary = f"Indexing failed: {e.message}"
            log.error("indexer_run_failed", mode=mode, error=str(e))
            raise
        finally:
            self.progress.finish(summary)

        log.info(
            "indexer_run_complete",
            mode=mode,
            indexed=stats.indexed,
            skipped=stats.skipped,
            removed=stats.removed,
            errors=stats.errors,
            elapsed_ms=round((time.monotonic() - start) * 1000),
        )
        return stats

    async def _full(self, stats: IndexStats) -> None:
        cleared = await asyncio.to_thread(self.store.clear)
        log.debug("vector_store_cleared", rows=cleared)

        paths = await asyncio.to_thread(self.discover)
        await self._embed_all(paths, stats)

    async def _incremental(self, stats: IndexStats) -> None:
        existing = await asyncio.to_thread(self.store.mtimes)
        candidates = await asyncio.to_thread(self.discover)

        to_index = [
            p for p in candidates if is_file_modified(file_mtime(p), existing.get(str(p)))
        ]
        stats.skipped = len(candidates) - len(to_index)
        await self._embed_all(to_index, stats)

        self.progress.update(lambda p: setattr(p, "phase", "cleanup"))
        stats.removed = await asyncio.to_thread(self._cleanup)

    async def _embed_all(self, paths: list[Path], stats: IndexStats) -> None:
        total = len(paths)

        def begin(p: IndexerProgress) -> None:
            p.phase = "embedding"
            p.total = total

        self.progress.update(begin)

        for path in paths:
            name = path.name
            self.progress.update(lambda p: setattr(p, "current_file", name))
            try:
                await self.index_file(path)
            except IndexingError as e:
                stats.errors += 1
                stats.error_messages.append(f"{path}: {e.message}")
                log.warning("index_file_failed", path=str(path), error=e.message)
            else:
                stats.indexed += 1

            processed = stats.indexed + stats.errors
            errors = stats.errors

            def advance(p: IndexerProgress) -> None:
                p.processed = processed
                p.errors = errors

            self.progress.update(advance)

    def _cleanup(self) -> int:
        """Delete rows whose file is gone or no longer under a configured root.

        Runs a fresh walk so rows for roots removed from config are dropped
        too. A failed delete is logged and skipped.
        """
        valid = {str(p) for p in self.discover()}
        removed = 0
        for stored in self.store.all_paths():
            if stored in valid and Path(stored).exists():
                continue
            try:
                self.store.delete(stored)
            except StoreError as e:
                log.warning("stale_entry_delete_failed", path=stored, error=str(e))
                continue
            removed += 1
        if removed:
            log.info("stale_entries_removed", count=removed)
        return removed
