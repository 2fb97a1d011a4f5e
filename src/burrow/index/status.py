"""Health and statistics reports shared by the daemon and the CLI."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from burrow.config.models import BurrowConfig
    from burrow.index.embedding import OllamaEmbedder
    from burrow.index.store import VectorStore

log = structlog.get_logger()


class HealthStatus(BaseModel):
    ollama: bool
    vector_db: bool
    api_key: bool
    indexing: bool = False
    issues: list[str] = Field(default_factory=list)

    @property
    def core_ok(self) -> bool:
        """Ollama and the vector DB are required; the API key is optional."""
        return self.ollama and self.vector_db


class StatsReport(BaseModel):
    indexed_files: int
    launch_count: int
    last_indexed: str | None = None


def count_launches(history_db: Path) -> int:
    """Rows in the launcher's `launches` table; 0 when the history DB is absent."""
    if not history_db.exists():
        return 0
    engine = create_engine(f"sqlite:///{history_db}")
    try:
        with engine.connect() as conn:
            count = conn.execute(text("SELECT COUNT(*) FROM launches")).scalar_one()
    except SQLAlchemyError as e:
        log.warning("launch_history_unreadable", path=str(history_db), error=str(e))
        return 0
    finally:
        engine.dispose()
    return int(count)


def format_timestamp(epoch: float | None) -> str | None:
    if epoch is None:
        return None
    return datetime.fromtimestamp(epoch, tz=UTC).isoformat(timespec="seconds")


def collect_stats(store: VectorStore, history_db: Path) -> StatsReport:
    """Raises StoreError if the vector store cannot be queried."""
    return StatsReport(
        indexed_files=store.count(),
        launch_count=count_launches(history_db),
        last_indexed=format_timestamp(store.max_indexed_at()),
    )


async def check_health(
    config: BurrowConfig,
    store: VectorStore | None,
    embedder: OllamaEmbedder,
    *,
    indexing: bool = False,
) -> HealthStatus:
    """Ping Ollama and the vector DB and check the API key.

    store is None when it could not be opened; that counts as unhealthy.
    """
    issues: list[str] = []

    ollama = await embedder.ping()
    if not ollama:
        issues.append(f"Ollama: unreachable at {embedder.url}")

    vector_db = store is not None and await asyncio.to_thread(store.ping)
    if not vector_db:
        issues.append("Vector DB: query failed")

    api_key = bool(config.openrouter.api_key.strip())
    if not api_key:
        issues.append("OpenRouter API key not configured")

    return HealthStatus(
        ollama=ollama, vector_db=vector_db, api_key=api_key, indexing=indexing, issues=issues
    )
