"""CLI utilities."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click
import structlog
from pydantic import BaseModel

from burrow.config import paths
from burrow.config.loader import load_config
from burrow.config.models import BurrowConfig
from burrow.core.errors import ConfigError, DaemonError, StoreError
from burrow.core.progress import status
from burrow.daemon.client import DaemonClient
from burrow.daemon.pidfile import is_daemon_running
from burrow.index.embedding import OllamaEmbedder
from burrow.index.store import VectorStore

logger = structlog.get_logger()

T = TypeVar("T")


def load_cli_config() -> BurrowConfig:
    """Load config, turning ConfigError into a one-line CLI failure."""
    try:
        return load_config()
    except ConfigError as e:
        raise click.ClickException(e.message) from e


def require_vector_search(config: BurrowConfig) -> None:
    if not config.vector_search.enabled:
        status("Vector search is disabled in config", style="error")
        raise SystemExit(1)


def running_daemon_pid() -> int | None:
    return is_daemon_running(paths.pid_path())


def daemon_client(config: BurrowConfig) -> DaemonClient:
    return DaemonClient(paths.socket_path(), timeout=config.daemon.request_timeout_sec)


def query_daemon(
    config: BurrowConfig, call: Callable[[DaemonClient], Awaitable[T]]
) -> T | None:
    """Run call against a live daemon.

    Returns None when no daemon is running or it did not answer, so the
    caller can compute the answer in-process instead.
    """
    if running_daemon_pid() is None:
        return None
    try:
        return asyncio.run(call(daemon_client(config)))
    except DaemonError as e:
        logger.debug("daemon_query_failed", error=str(e))
        status(f"Daemon not responding, answering locally ({e.message})", style="warning")
        return None


def open_store() -> VectorStore:
    try:
        return VectorStore(paths.vector_db_path())
    except StoreError as e:
        raise click.ClickException(e.message) from e


def make_embedder(config: BurrowConfig) -> OllamaEmbedder:
    return OllamaEmbedder(
        config.ollama.url,
        config.models.embedding.name,
        timeout=config.ollama.timeout_sec,
    )


def echo_json(data: BaseModel | dict[str, Any] | list[Any]) -> None:
    """Compact JSON on stdout."""
    if isinstance(data, BaseModel):
        click.echo(data.model_dump_json())
    else:
        click.echo(json.dumps(data, separators=(",", ":")))
