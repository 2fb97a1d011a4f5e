"""Semantic file index: store, discovery, embedding and the indexing pipeline."""

from burrow.index.embedding import (
    EmbeddingProvider,
    OllamaEmbedder,
    cosine_similarity,
    deserialize_embedding,
    serialize_embedding,
)
from burrow.index.indexer import Indexer, IndexStats
from burrow.index.progress import IndexerProgress, ProgressTracker
from burrow.index.store import SearchHit, VectorStore

__all__ = [
    "EmbeddingProvider",
    "Indexer",
    "IndexStats",
    "IndexerProgress",
    "OllamaEmbedder",
    "ProgressTracker",
    "SearchHit",
    "VectorStore",
    "cosine_similarity",
    "deserialize_embedding",
    "serialize_embedding",
]
