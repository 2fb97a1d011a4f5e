"""Burrow error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Vector store
- 4xxx: Daemon transport and singleton
- 5xxx: Indexing (extraction, embedding)
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Store (3xxx)
    STORE_OPEN_FAILED = 3001
    STORE_QUERY_FAILED = 3002
    STORE_WRITE_FAILED = 3003

    # Daemon (4xxx)
    DAEMON_CONNECT_FAILED = 4001
    DAEMON_TIMEOUT = 4002
    DAEMON_BAD_STATUS = 4003
    DAEMON_DECODE_FAILED = 4004
    DAEMON_UNREACHABLE = 4005
    DAEMON_ALREADY_RUNNING = 4006

    # Indexing (5xxx)
    EXTRACTION_FAILED = 5001
    UNSUPPORTED_FORMAT = 5002
    EMBEDDING_FAILED = 5003
    INDEXER_BUSY = 5004

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class BurrowError(Exception):
    """Base error with structured context for CLI output and daemon responses."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'STORE_QUERY_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(BurrowError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class StoreError(BurrowError):
    """Vector store open/query/write failures. Fatal for the operation in progress."""

    @classmethod
    def open_failed(cls, path: str, reason: str) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_OPEN_FAILED,
            message=f"Failed to open vector store at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def query_failed(cls, operation: str, reason: str) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_QUERY_FAILED,
            message=f"Vector store {operation} failed: {reason}",
            details={"operation": operation, "reason": reason},
        )

    @classmethod
    def write_failed(cls, path: str, reason: str) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_WRITE_FAILED,
            message=f"Failed to write vector for {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class DaemonError(BurrowError):
    """Transport and singleton errors. Always recoverable by the client."""

    @classmethod
    def connect_failed(cls, endpoint: str, reason: str) -> "DaemonError":
        return cls(
            code=ErrorCode.DAEMON_CONNECT_FAILED,
            message=f"Failed to connect to daemon at {endpoint}: {reason}",
            retryable=True,
            details={"endpoint": endpoint, "reason": reason},
        )

    @classmethod
    def timeout(cls, path: str, seconds: float) -> "DaemonError":
        return cls(
            code=ErrorCode.DAEMON_TIMEOUT,
            message=f"Daemon request {path} timed out after {seconds:g}s",
            retryable=True,
            details={"path": path, "timeout_sec": seconds},
        )

    @classmethod
    def bad_status(cls, path: str, status_code: int, body: str = "") -> "DaemonError":
        return cls(
            code=ErrorCode.DAEMON_BAD_STATUS,
            message=f"Daemon returned status {status_code} for {path}",
            details={"path": path, "status_code": status_code, "body": body[:500]},
        )

    @classmethod
    def decode_failed(cls, path: str, reason: str) -> "DaemonError":
        return cls(
            code=ErrorCode.DAEMON_DECODE_FAILED,
            message=f"Failed to parse daemon response for {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def unreachable(cls, attempts: int, reason: str) -> "DaemonError":
        return cls(
            code=ErrorCode.DAEMON_UNREACHABLE,
            message=f"Lost contact with daemon after {attempts} consecutive failures: {reason}",
            details={"attempts": attempts, "reason": reason},
        )

    @classmethod
    def already_running(cls, pid: int) -> "DaemonError":
        return cls(
            code=ErrorCode.DAEMON_ALREADY_RUNNING,
            message=f"Daemon already running (PID {pid})",
            details={"pid": pid},
        )

    @property
    def status_code(self) -> int | None:
        value = self.details.get("status_code")
        return value if isinstance(value, int) else None


class IndexingError(BurrowError):
    """Per-file indexing failures. Counted, never abort a run."""

    @classmethod
    def extraction_failed(cls, path: str, reason: str) -> "IndexingError":
        return cls(
            code=ErrorCode.EXTRACTION_FAILED,
            message=f"Failed to extract text from {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def unsupported_format(cls, path: str, extension: str) -> "IndexingError":
        return cls(
            code=ErrorCode.UNSUPPORTED_FORMAT,
            message=f"Unsupported format '{extension}': {path}",
            details={"path": path, "extension": extension},
        )

    @classmethod
    def embedding_failed(cls, reason: str, *, retryable: bool = False) -> "IndexingError":
        return cls(
            code=ErrorCode.EMBEDDING_FAILED,
            message=f"Embedding request failed: {reason}",
            retryable=retryable,
            details={"reason": reason},
        )

    @classmethod
    def busy(cls) -> "IndexingError":
        return cls(
            code=ErrorCode.INDEXER_BUSY,
            message="Indexer is already running",
        )


class InternalError(BurrowError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
