"""Core module exports."""

from burrow.core.errors import (
    BurrowError,
    ConfigError,
    DaemonError,
    ErrorCode,
    IndexingError,
    InternalError,
    StoreError,
)
from burrow.core.logging import (
    clear_request_id,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)
from burrow.core.progress import spinner, status

__all__ = [
    # Errors
    "BurrowError",
    "ConfigError",
    "DaemonError",
    "ErrorCode",
    "IndexingError",
    "InternalError",
    "StoreError",
    # Logging
    "clear_request_id",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
    # Progress
    "spinner",
    "status",
]
