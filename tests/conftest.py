"""Root conftest.py for test configuration.

Every test gets private config, data and runtime directories, and none
of the developer's BURROW__* overrides leak in.
"""

from __future__ import annotations

import os
import struct
import zipfile
from collections.abc import Callable, Generator, Iterable
from pathlib import Path
from typing import Any

import docx
import pytest

from burrow.config.models import BurrowConfig
from burrow.config.paths import CONFIG_DIR_ENV, DATA_DIR_ENV, RUNTIME_DIR_ENV
from burrow.core.errors import IndexingError
from burrow.index.store import VectorStore

_API_KEY_VARS = ("BURROW_OPENROUTER_API_KEY", "OPENROUTER_API_KEY")


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every burrow location at tmp_path."""
    monkeypatch.setenv(CONFIG_DIR_ENV, str(tmp_path / "config"))
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "data"))
    monkeypatch.setenv(RUNTIME_DIR_ENV, str(tmp_path / "run"))
    # Wide enough that Rich never wraps paths in captured output
    monkeypatch.setenv("COLUMNS", "400")
    for name in list(os.environ):
        if name.upper().startswith("BURROW__") or name in _API_KEY_VARS:
            monkeypatch.delenv(name)
    return tmp_path


class FakeEmbedder:
    """Deterministic in-memory embedding provider.

    Texts containing any of fail_on raise IndexingError, like a provider
    rejecting the request.
    """

    url = "http://ollama.test"

    def __init__(self, *, fail_on: Iterable[str] = (), reachable: bool = True) -> None:
        self.fail_on = tuple(fail_on)
        self.reachable = reachable
        self.calls: list[str] = []

    @property
    def model(self) -> str:
        return "fake-embed"

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise IndexingError.embedding_failed("provider rejected input")
        return vector_for(text)

    async def ping(self) -> bool:
        return self.reachable


def vector_for(text: str) -> list[float]:
    """Small stable vector; texts sharing a first word point the same way."""
    word = text.split()[0] if text.split() else ""
    return [float(len(word) % 5 + 1), float(sum(map(ord, word)) % 7 + 1), 1.0, 0.5]


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def store(tmp_path: Path) -> Generator[VectorStore, None, None]:
    vector_store = VectorStore(tmp_path / "data" / "vectors.db")
    yield vector_store
    vector_store.close()


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    path = tmp_path / "docs"
    path.mkdir()
    return path


@pytest.fixture
def make_config(docs_dir: Path) -> Callable[..., BurrowConfig]:
    """Build a config indexing docs_dir; keyword sections override defaults."""

    def _make(**sections: Any) -> BurrowConfig:
        vector_search = {"index_dirs": [str(docs_dir)], **sections.pop("vector_search", {})}
        return BurrowConfig.model_validate({"vector_search": vector_search, **sections})

    return _make


@pytest.fixture
def embedder_factory() -> type[FakeEmbedder]:
    """FakeEmbedder class, for tests that need a non-default instance."""
    return FakeEmbedder


def _damage_docx(path: Path, damage: str) -> None:
    """Corrupt every member of a saved .docx in place.

    "encrypted" sets the encryption flag in the central directory;
    "deflate" overwrites each compressed stream with an invalid block.
    """
    data = bytearray(path.read_bytes())
    if damage == "encrypted":
        offset = data.find(b"PK\x01\x02")
        while offset != -1:
            data[offset + 8] |= 0x01
            offset = data.find(b"PK\x01\x02", offset + 4)
    elif damage == "deflate":
        with zipfile.ZipFile(path) as archive:
            members = archive.infolist()
        for info in members:
            header = info.header_offset
            name_len, extra_len = struct.unpack("<HH", data[header + 26 : header + 30])
            start = header + 30 + name_len + extra_len
            data[start : start + info.compress_size] = b"\xff" * info.compress_size
    else:
        raise ValueError(f"unknown damage: {damage}")
    path.write_bytes(bytes(data))


@pytest.fixture
def make_docx() -> Callable[..., Path]:
    """Write a real .docx with the given paragraphs, optionally damaged."""

    def _make(path: Path, paragraphs: Iterable[str], *, damage: str | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        document = docx.Document()
        for text in paragraphs:
            document.add_paragraph(text)
        document.save(str(path))
        if damage is not None:
            _damage_docx(path, damage)
        return path

    return _make
