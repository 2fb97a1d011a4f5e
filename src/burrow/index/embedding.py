"""Embedding codec, cosine similarity and the embedding provider client.

Stored embeddings are little-endian float32 values packed back to back,
so a vector of dimension N occupies exactly 4 * N bytes. The provider is
a black box (text -> vector); OllamaEmbedder is the concrete client used
by the CLI and the daemon, and tests swap in a fake with the same shape.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import numpy as np
import structlog

from burrow.core.errors import IndexingError

log = structlog.get_logger()

_F32_LE = np.dtype("<f4")

# Health check budget; kept short so a dead Ollama never stalls /health
PING_TIMEOUT_SEC = 3.0


def serialize_embedding(embedding: list[float]) -> bytes:
    return np.asarray(embedding, dtype=_F32_LE).tobytes()


def deserialize_embedding(data: bytes) -> list[float]:
    """Decode packed float32 bytes. A length that is not a multiple of 4 yields []."""
    if len(data) % _F32_LE.itemsize != 0:
        log.warning("embedding_blob_invalid", length=len(data))
        return []
    return np.frombuffer(data, dtype=_F32_LE).tolist()


def cosine_similarity(a: list[float] | np.ndarray, b: list[float] | np.ndarray) -> float:
    """Cosine similarity in [-1, 1].

    Mismatched lengths, empty vectors and zero norms score 0.0.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.size == 0 or va.shape != vb.shape:
        return 0.0
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)


class EmbeddingProvider(Protocol):
    """Anything that turns text into a fixed-length vector."""

    @property
    def model(self) -> str: ...

    async def embed(self, text: str) -> list[float]: ...


class OllamaEmbedder:
    """Embedding client for an Ollama server (`POST /api/embed`).

    A fresh httpx client is opened per call; indexing throughput is bound
    by the model, not by connection setup.
    """

    def __init__(
        self,
        url: str,
        model: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._transport = transport

    @property
    def model(self) -> str:
        return self._model

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.url, timeout=timeout, transport=self._transport)

    async def embed(self, text: str) -> list[float]:
        """Embed one text.

        Raises:
            IndexingError: On transport failure, non-2xx status or a
                response without a usable vector.
        """
        try:
            async with self._client(self._timeout) as client:
                response = await client.post(
                    "/api/embed", json={"model": self._model, "input": text}
                )
                response.raise_for_status()
                payload: Any = response.json()
        except httpx.TimeoutException as e:
            raise IndexingError.embedding_failed(
                f"timed out after {self._timeout:g}s", retryable=True
            ) from e
        except httpx.HTTPStatusError as e:
            raise IndexingError.embedding_failed(
                f"Ollama returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise IndexingError.embedding_failed(str(e) or type(e).__name__, retryable=True) from e
        except ValueError as e:
            raise IndexingError.embedding_failed(f"invalid JSON: {e}") from e

        embeddings = payload.get("embeddings") if isinstance(payload, dict) else None
        if not embeddings or not isinstance(embeddings[0], list) or not embeddings[0]:
            raise IndexingError.embedding_failed("response contained no embedding")
        try:
            return [float(x) for x in embeddings[0]]
        except (TypeError, ValueError) as e:
            raise IndexingError.embedding_failed(f"non-numeric embedding value: {e}") from e

    async def ping(self) -> bool:
        """True if the server answers `GET /api/tags` with a 2xx."""
        try:
            async with self._client(PING_TIMEOUT_SEC) as client:
                response = await client.get("/api/tags")
        except httpx.HTTPError as e:
            log.debug("ollama_unreachable", url=self.url, error=str(e))
            return False
        return response.is_success
