"""Config module exports."""

from burrow.config.loader import load_config
from burrow.config.models import (
    BurrowConfig,
    DaemonConfig,
    IndexerConfig,
    LoggingConfig,
    OllamaConfig,
    VectorSearchConfig,
)

__all__ = [
    "load_config",
    "BurrowConfig",
    "DaemonConfig",
    "IndexerConfig",
    "LoggingConfig",
    "OllamaConfig",
    "VectorSearchConfig",
]
