"""Tests for index/scheduler.py PeriodicIndexer."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from burrow.config.models import BurrowConfig
from burrow.index.indexer import Indexer
from burrow.index.scheduler import PeriodicIndexer
from burrow.index.store import VectorStore


async def _wait_for_runs(periodic: PeriodicIndexer, runs: int) -> None:
    async with asyncio.timeout(5):
        while periodic.runs < runs:
            await asyncio.sleep(0.01)


class TestPeriodicIndexer:
    def test_interval_defaults_to_config(
        self, store: VectorStore, fake_embedder: object, make_config: Callable[..., BurrowConfig]
    ) -> None:
        indexer = Indexer(store, fake_embedder, make_config(indexer={"interval_hours": 2}))  # type: ignore[arg-type]

        assert PeriodicIndexer(indexer).interval_sec == 7200

    @pytest.mark.asyncio
    async def test_disabled_returns_immediately(
        self, store: VectorStore, fake_embedder: object, make_config: Callable[..., BurrowConfig]
    ) -> None:
        config = make_config(vector_search={"enabled": False})
        periodic = PeriodicIndexer(Indexer(store, fake_embedder, config))  # type: ignore[arg-type]

        await asyncio.wait_for(periodic.run(), timeout=1)

        assert periodic.runs == 0

    @pytest.mark.asyncio
    async def test_runs_then_stops(
        self,
        store: VectorStore,
        fake_embedder: object,
        make_config: Callable[..., BurrowConfig],
        docs_dir: Path,
    ) -> None:
        (docs_dir / "a.md").write_text("apples")
        periodic = PeriodicIndexer(Indexer(store, fake_embedder, make_config()))  # type: ignore[arg-type]

        task = asyncio.create_task(periodic.run())
        await _wait_for_runs(periodic, 1)
        periodic.stop()
        await asyncio.wait_for(task, timeout=1)

        assert periodic.runs == 1
        assert store.all_paths() == [str(docs_dir / "a.md")]

    @pytest.mark.asyncio
    async def test_repeats_on_interval(
        self,
        store: VectorStore,
        fake_embedder: object,
        make_config: Callable[..., BurrowConfig],
    ) -> None:
        indexer = Indexer(store, fake_embedder, make_config())  # type: ignore[arg-type]
        periodic = PeriodicIndexer(indexer, interval_hours=0.01 / 3600)

        task = asyncio.create_task(periodic.run())
        await _wait_for_runs(periodic, 3)
        periodic.stop()
        await asyncio.wait_for(task, timeout=1)

        assert periodic.runs >= 3

    @pytest.mark.asyncio
    async def test_busy_tracker_is_skipped(
        self,
        store: VectorStore,
        fake_embedder: object,
        make_config: Callable[..., BurrowConfig],
    ) -> None:
        indexer = Indexer(store, fake_embedder, make_config())  # type: ignore[arg-type]
        indexer.progress.try_start()
        periodic = PeriodicIndexer(indexer)

        task = asyncio.create_task(periodic.run())
        await _wait_for_runs(periodic, 1)
        periodic.stop()
        await asyncio.wait_for(task, timeout=1)

        assert indexer.progress.running
