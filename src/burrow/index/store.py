"""Persistent vector store over SQLite.

One row per file path holds the preview, the packed embedding and the
file mtime seen at index time. Every read and write goes through a
single process-wide lock; indexing throughput is bound by the embedding
provider, not by store access.

Usage::

    store = VectorStore(paths.vector_db_path())
    store.upsert("/home/me/notes.md", "first lines", [0.1, 0.2], "qwen3", 1700000000.0)
    hits = store.search([0.1, 0.2], top_k=10, min_score=0.3)
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple, TypeVar

import structlog
from sqlalchemy import delete, event, func, text
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, col, create_engine, select

from burrow.core.errors import StoreError
from burrow.index.embedding import cosine_similarity, deserialize_embedding, serialize_embedding
from burrow.index.models import IndexedDocument

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.sql import Executable

log = structlog.get_logger()

T = TypeVar("T")


class SearchHit(NamedTuple):
    score: float
    path: str
    preview: str


def _configure_pragmas(dbapi_conn: Any, _connection_record: Any) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


class VectorStore:
    """SQLite-backed store of file embeddings keyed by path."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self.engine = self._create_engine()
            SQLModel.metadata.create_all(self.engine, tables=[IndexedDocument.__table__])  # type: ignore[attr-defined]
        except (OSError, SQLAlchemyError) as e:
            raise StoreError.open_failed(str(db_path), str(e)) from e

    def _create_engine(self) -> Engine:
        engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
        )
        event.listen(engine, "connect", _configure_pragmas)
        return engine

    @contextmanager
    def _session(self, operation: str) -> Generator[Session, None, None]:
        """Locked read session; SQLAlchemy failures surface as StoreError."""
        with self._lock, Session(self.engine) as session:
            try:
                yield session
            except SQLAlchemyError as e:
                raise StoreError.query_failed(operation, str(e)) from e

    def _read(self, operation: str, fn: Callable[[Session], T]) -> T:
        with self._session(operation) as session:
            return fn(session)

    def _write(self, stmt: Executable, error: Callable[[str], StoreError]) -> int:
        """Run one DML statement in its own transaction. Returns rowcount."""
        with self._lock:
            try:
                with self.engine.begin() as conn:
                    return conn.execute(stmt).rowcount
            except SQLAlchemyError as e:
                raise error(str(e)) from e

    def upsert(
        self,
        path: str,
        preview: str,
        embedding: list[float],
        model: str,
        mtime: float,
    ) -> None:
        """Insert or replace the row for path in one statement."""
        values = {
            "file_path": path,
            "content_preview": preview,
            "embedding": serialize_embedding(embedding),
            "dimension": len(embedding),
            "model": model,
            "indexed_at": time.time(),
            "file_mtime": mtime,
        }
        stmt = insert(IndexedDocument).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["file_path"],
            set_={k: stmt.excluded[k] for k in values if k != "file_path"},
        )
        self._write(stmt, lambda reason: StoreError.write_failed(path, reason))

    def search(self, query: list[float], top_k: int, min_score: float) -> list[SearchHit]:
        """Rank stored files by cosine similarity to query.

        Scores below min_score are dropped; ties are ordered by path.
        """
        rows = self._read(
            "search",
            lambda s: s.exec(
                select(
                    IndexedDocument.file_path,
                    IndexedDocument.content_preview,
                    IndexedDocument.embedding,
                )
            ).all(),
        )

        hits: list[SearchHit] = []
        for path, preview, blob in rows:
            score = cosine_similarity(query, deserialize_embedding(blob))
            if score >= min_score:
                hits.append(SearchHit(score, path, preview))

        hits.sort(key=lambda h: (-h.score, h.path))
        return hits[:top_k]

    def delete(self, path: str) -> None:
        self._write(
            delete(IndexedDocument).where(col(IndexedDocument.file_path) == path),
            lambda reason: StoreError.query_failed("delete", reason),
        )

    def clear(self) -> int:
        """Delete every row. Returns the number removed."""
        return self._write(
            delete(IndexedDocument), lambda reason: StoreError.query_failed("clear", reason)
        )

    def all_paths(self) -> list[str]:
        return list(
            self._read("all_paths", lambda s: s.exec(select(IndexedDocument.file_path)).all())
        )

    def mtimes(self) -> dict[str, float]:
        """Map of path -> file_mtime recorded at index time."""
        rows = self._read(
            "mtimes",
            lambda s: s.exec(select(IndexedDocument.file_path, IndexedDocument.file_mtime)).all(),
        )
        return {path: mtime for path, mtime in rows}

    def get_mtime(self, path: str) -> float | None:
        return self._read(
            "get_mtime",
            lambda s: s.exec(
                select(IndexedDocument.file_mtime).where(col(IndexedDocument.file_path) == path)
            ).first(),
        )

    def count(self) -> int:
        return self._read(
            "count", lambda s: s.exec(select(func.count()).select_from(IndexedDocument)).one()
        )

    def max_indexed_at(self) -> float | None:
        """Epoch seconds of the most recent (re)index, or None when empty."""
        return self._read(
            "max_indexed_at", lambda s: s.exec(select(func.max(IndexedDocument.indexed_at))).one()
        )

    def ping(self) -> bool:
        """True if the database answers a trivial query."""
        try:
            with self._lock, self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            log.warning("vector_db_ping_failed", path=str(self.db_path), error=str(e))
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()
