"""Tests for index/indexer.py: full and incremental runs."""

from __future__ import annotations

import os
import shutil
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest

from burrow.config.models import BurrowConfig
from burrow.core.errors import IndexingError, StoreError
from burrow.index.indexer import PREVIEW_CHARS, Indexer, IndexStats
from burrow.index.store import VectorStore


def _write(path: Path, text: str, mtime: float = 1_700_000_000.0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def indexer(
    store: VectorStore, fake_embedder: object, make_config: Callable[..., BurrowConfig]
) -> Indexer:
    return Indexer(store, fake_embedder, make_config())  # type: ignore[arg-type]


class TestIndexStats:
    def test_summary_format(self) -> None:
        stats = IndexStats(indexed=3, skipped=2, removed=1, errors=4)

        assert stats.summary() == "Indexed 3, skipped 2, removed 1, 4 errors"


class TestIndexFile:
    @pytest.mark.asyncio
    async def test_stores_preview_and_mtime(
        self, indexer: Indexer, store: VectorStore, docs_dir: Path
    ) -> None:
        path = _write(docs_dir / "long.md", "alpha " + "x" * 500, mtime=1234.0)

        await indexer.index_file(path)

        assert store.get_mtime(str(path)) == 1234.0
        hit = store.search([6.0, 1.0, 1.0, 0.5], top_k=1, min_score=-1.0)[0]
        assert hit.path == str(path)
        assert len(hit.preview) == PREVIEW_CHARS

    @pytest.mark.asyncio
    async def test_extraction_error_propagates(self, indexer: Indexer, docs_dir: Path) -> None:
        path = _write(docs_dir / "blank.md", "   ")

        with pytest.raises(IndexingError, match="no text content"):
            await indexer.index_file(path)


class TestFullRun:
    @pytest.mark.asyncio
    async def test_indexes_every_file(
        self, indexer: Indexer, store: VectorStore, docs_dir: Path
    ) -> None:
        _write(docs_dir / "a.md", "apples")
        _write(docs_dir / "sub" / "b.txt", "bananas")

        stats = await indexer.run_full()

        assert (stats.indexed, stats.skipped, stats.removed, stats.errors) == (2, 0, 0, 0)
        assert sorted(store.all_paths()) == [
            str(docs_dir / "a.md"),
            str(docs_dir / "sub" / "b.txt"),
        ]

    @pytest.mark.asyncio
    async def test_clears_rows_for_files_outside_roots(
        self, indexer: Indexer, store: VectorStore, docs_dir: Path
    ) -> None:
        store.upsert("/elsewhere/old.md", "old", [1.0, 1.0, 1.0, 1.0], "fake-embed", 1.0)
        _write(docs_dir / "a.md", "apples")

        await indexer.run_full()

        assert store.all_paths() == [str(docs_dir / "a.md")]

    @pytest.mark.asyncio
    async def test_reembeds_unchanged_files(
        self, indexer: Indexer, fake_embedder: object, docs_dir: Path
    ) -> None:
        _write(docs_dir / "a.md", "apples")
        await indexer.run_full()

        stats = await indexer.run_full()

        assert stats.indexed == 1
        assert fake_embedder.calls == ["apples", "apples"]  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_progress_frozen_with_summary(self, indexer: Indexer, docs_dir: Path) -> None:
        _write(docs_dir / "a.md", "apples")

        await indexer.run_full()

        snap = indexer.progress.snapshot()
        assert not snap.running
        assert snap.phase == "idle"
        assert (snap.processed, snap.total, snap.errors) == (1, 1, 0)
        assert snap.last_result == "Indexed 1, skipped 0, removed 0, 0 errors"


class TestIncrementalRun:
    @pytest.mark.asyncio
    async def test_skips_unchanged_files(
        self, indexer: Indexer, fake_embedder: object, docs_dir: Path
    ) -> None:
        _write(docs_dir / "a.md", "apples")
        _write(docs_dir / "b.md", "bananas")
        await indexer.run_incremental()

        stats = await indexer.run_incremental()

        assert (stats.indexed, stats.skipped, stats.removed) == (0, 2, 0)
        assert len(fake_embedder.calls) == 2  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_reindexes_modified_file(
        self, indexer: Indexer, store: VectorStore, docs_dir: Path
    ) -> None:
        path = _write(docs_dir / "a.md", "apples", mtime=1000.0)
        _write(docs_dir / "b.md", "bananas", mtime=1000.0)
        await indexer.run_incremental()

        _write(path, "avocados", mtime=1010.0)
        stats = await indexer.run_incremental()

        assert (stats.indexed, stats.skipped) == (1, 1)
        assert store.get_mtime(str(path)) == 1010.0

    @pytest.mark.asyncio
    async def test_sub_second_mtime_change_is_unchanged(
        self, indexer: Indexer, docs_dir: Path
    ) -> None:
        path = _write(docs_dir / "a.md", "apples", mtime=1000.0)
        await indexer.run_incremental()

        os.utime(path, (1000.5, 1000.5))
        stats = await indexer.run_incremental()

        assert (stats.indexed, stats.skipped) == (0, 1)

    @pytest.mark.asyncio
    async def test_removes_deleted_files(
        self, indexer: Indexer, store: VectorStore, docs_dir: Path
    ) -> None:
        _write(docs_dir / "a.md", "apples")
        gone = _write(docs_dir / "b.md", "bananas")
        await indexer.run_incremental()

        gone.unlink()
        stats = await indexer.run_incremental()

        assert stats.removed == 1
        assert store.all_paths() == [str(docs_dir / "a.md")]

    @pytest.mark.asyncio
    async def test_removes_rows_for_dropped_root(
        self,
        store: VectorStore,
        fake_embedder: object,
        make_config: Callable[..., BurrowConfig],
        docs_dir: Path,
        tmp_path: Path,
    ) -> None:
        other = tmp_path / "other"
        _write(other / "x.md", "xylophone")
        _write(docs_dir / "a.md", "apples")
        both = make_config(vector_search={"index_dirs": [str(docs_dir), str(other)]})
        await Indexer(store, fake_embedder, both).run_incremental()  # type: ignore[arg-type]

        stats = await Indexer(store, fake_embedder, make_config()).run_incremental()  # type: ignore[arg-type]

        assert stats.removed == 1
        assert store.all_paths() == [str(docs_dir / "a.md")]

    @pytest.mark.asyncio
    async def test_removes_rows_for_excluded_directory(
        self, indexer: Indexer, store: VectorStore, docs_dir: Path
    ) -> None:
        _write(docs_dir / "a.md", "apples")
        store.upsert(
            str(docs_dir / "node_modules" / "x.md"), "x", [1.0, 1.0, 1.0, 1.0], "fake-embed", 1.0
        )

        stats = await indexer.run_incremental()

        assert stats.removed == 1

    @pytest.mark.asyncio
    async def test_root_deleted_entirely(
        self, indexer: Indexer, store: VectorStore, docs_dir: Path
    ) -> None:
        _write(docs_dir / "a.md", "apples")
        await indexer.run_incremental()

        shutil.rmtree(docs_dir)
        stats = await indexer.run_incremental()

        assert stats.removed == 1
        assert store.count() == 0


class TestErrors:
    @pytest.mark.asyncio
    async def test_per_file_errors_do_not_abort(
        self,
        store: VectorStore,
        embedder_factory: type,
        make_config: Callable[..., BurrowConfig],
        docs_dir: Path,
    ) -> None:
        _write(docs_dir / "a.md", "apples")
        bad = _write(docs_dir / "b.md", "poison pill")
        _write(docs_dir / "c.md", "cherries")
        _write(docs_dir / "d.md", "  \n")
        indexer = Indexer(store, embedder_factory(fail_on=["poison"]), make_config())

        stats = await indexer.run_incremental()

        assert (stats.indexed, stats.errors) == (2, 2)
        assert any(m.startswith(f"{bad}: ") for m in stats.error_messages)
        snap = indexer.progress.snapshot()
        assert (snap.processed, snap.total, snap.errors) == (4, 4, 2)
        assert snap.last_result.endswith("2 errors")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("damage", ["encrypted", "deflate"])
    async def test_damaged_document_does_not_abort(
        self,
        indexer: Indexer,
        store: VectorStore,
        docs_dir: Path,
        make_docx: Callable[..., Path],
        damage: str,
    ) -> None:
        _write(docs_dir / "a.md", "apples")
        broken = make_docx(docs_dir / "broken.docx", ["quarterly report"], damage=damage)
        _write(docs_dir / "z.md", "zucchini")
        store.upsert(str(docs_dir / "vanished.md"), "v", [1.0, 1.0, 1.0, 1.0], "fake-embed", 1.0)

        stats = await indexer.run_incremental()

        assert (stats.indexed, stats.errors, stats.removed) == (2, 1, 1)
        assert stats.error_messages[0].startswith(f"{broken}: Failed to extract text")
        assert sorted(store.all_paths()) == [str(docs_dir / "a.md"), str(docs_dir / "z.md")]
        assert indexer.progress.snapshot().last_result == (
            "Indexed 2, skipped 0, removed 1, 1 errors"
        )

    @pytest.mark.asyncio
    async def test_failed_file_retried_next_run(
        self,
        store: VectorStore,
        embedder_factory: type,
        make_config: Callable[..., BurrowConfig],
        docs_dir: Path,
    ) -> None:
        _write(docs_dir / "a.md", "poison")
        embedder = embedder_factory(fail_on=["poison"])
        indexer = Indexer(store, embedder, make_config())
        await indexer.run_incremental()

        embedder.fail_on = ()
        stats = await indexer.run_incremental()

        assert stats.indexed == 1

    @pytest.mark.asyncio
    async def test_busy_when_tracker_claimed(self, indexer: Indexer) -> None:
        assert indexer.progress.try_start()

        with pytest.raises(IndexingError) as exc_info:
            await indexer.run_incremental()

        assert exc_info.value.message == "Indexer is already running"

    @pytest.mark.asyncio
    async def test_claimed_run_proceeds(self, indexer: Indexer, docs_dir: Path) -> None:
        _write(docs_dir / "a.md", "apples")
        assert indexer.progress.try_start()

        stats = await indexer.run_incremental(claimed=True)

        assert stats.indexed == 1
        assert not indexer.progress.running

    @pytest.mark.asyncio
    async def test_store_error_aborts_and_freezes_progress(
        self, indexer: Indexer, store: VectorStore, docs_dir: Path
    ) -> None:
        _write(docs_dir / "a.md", "apples")
        failure = StoreError.query_failed("clear", "database is locked")

        with patch.object(store, "clear", side_effect=failure), pytest.raises(StoreError):
            await indexer.run_full()

        snap = indexer.progress.snapshot()
        assert not snap.running
        assert snap.last_result.startswith("Indexing failed: ")

    @pytest.mark.asyncio
    async def test_failed_stale_delete_is_skipped(
        self, indexer: Indexer, store: VectorStore, docs_dir: Path
    ) -> None:
        store.upsert("/gone/one.md", "x", [1.0, 1.0, 1.0, 1.0], "fake-embed", 1.0)
        store.upsert("/gone/two.md", "x", [1.0, 1.0, 1.0, 1.0], "fake-embed", 1.0)
        real_delete = store.delete

        def flaky_delete(path: str) -> None:
            if path == "/gone/one.md":
                raise StoreError.query_failed("delete", "locked")
            real_delete(path)

        with patch.object(store, "delete", side_effect=flaky_delete):
            stats = await indexer.run_incremental()

        assert stats.removed == 1
        assert store.all_paths() == ["/gone/one.md"]
