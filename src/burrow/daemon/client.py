"""Client for the daemon's Unix-socket protocol.

Every call opens a fresh connection; the configured timeout covers
connect plus round trip. Transport problems surface as DaemonError.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from burrow.core.errors import DaemonError
from burrow.daemon.models import (
    DaemonStatus,
    Empty,
    HealthStatus,
    IndexerProgress,
    IndexerStartRequest,
    IndexerStartResponse,
    StatsReport,
)

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

DEFAULT_TIMEOUT_SEC = 5.0

# Host is ignored by the Unix-socket transport but required by HTTP/1.1
_BASE_URL = "http://burrow"


class DaemonClient:
    """Typed wrapper over the daemon endpoints.

    Usage::

        client = DaemonClient(paths.socket_path())
        status = await client.status()
        started = await client.start_indexer(full=False)
    """

    def __init__(
        self,
        socket_path: Path,
        *,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.socket_path = socket_path
        self.timeout = timeout
        self._transport = transport

    def socket_exists(self) -> bool:
        return self.socket_path.exists()

    def _client(self) -> httpx.AsyncClient:
        transport = self._transport or httpx.AsyncHTTPTransport(uds=str(self.socket_path))
        return httpx.AsyncClient(base_url=_BASE_URL, transport=transport, timeout=self.timeout)

    async def _request(
        self,
        method: str,
        path: str,
        model: type[M],
        body: BaseModel | None = None,
    ) -> M:
        json_body: Any = body.model_dump() if body is not None else None
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json_body)
        except httpx.TimeoutException as e:
            raise DaemonError.timeout(path, self.timeout) from e
        except httpx.TransportError as e:
            reason = str(e) or type(e).__name__
            raise DaemonError.connect_failed(str(self.socket_path), reason) from e

        if not response.is_success:
            raise DaemonError.bad_status(path, response.status_code, response.text)
        try:
            return model.model_validate_json(response.content)
        except ValidationError as e:
            raise DaemonError.decode_failed(path, str(e)) from e

    async def status(self) -> DaemonStatus:
        return await self._request("GET", "/daemon/status", DaemonStatus)

    async def shutdown(self) -> None:
        await self._request("POST", "/daemon/shutdown", Empty)

    async def progress(self) -> IndexerProgress:
        return await self._request("GET", "/indexer/progress", IndexerProgress)

    async def start_indexer(self, full: bool) -> IndexerStartResponse:
        """Ask the daemon to start a run.

        started=False means a run was already in flight; that is an
        informational result, not an error.
        """
        return await self._request(
            "POST", "/indexer/start", IndexerStartResponse, IndexerStartRequest(full=full)
        )

    async def health(self) -> HealthStatus:
        return await self._request("GET", "/health", HealthStatus)

    async def stats(self) -> StatsReport:
        return await self._request("GET", "/stats", StatsReport)

    async def is_responsive(self) -> bool:
        try:
            await self.status()
        except DaemonError:
            return False
        return True


async def poll_progress(
    client: DaemonClient,
    *,
    interval: float = 0.2,
    max_failures: int = 10,
    on_update: Callable[[IndexerProgress], None] | None = None,
) -> IndexerProgress:
    """Poll /indexer/progress until running is false.

    on_update is called only when processed/total/errors change, and once
    more with the final snapshot. A transport error is retried at the
    poll interval; max_failures consecutive errors raise.

    Returns:
        The final snapshot.

    Raises:
        DaemonError: max_failures consecutive failures (unreachable).
    """
    failures = 0
    last_counts: tuple[int, int, int] | None = None
    while True:
        try:
            snapshot = await client.progress()
        except DaemonError as e:
            failures += 1
            logger.debug("progress_poll_failed", attempt=failures, error=str(e))
            if failures >= max_failures:
                raise DaemonError.unreachable(failures, e.message) from e
            await asyncio.sleep(interval)
            continue
        failures = 0

        counts = (snapshot.processed, snapshot.total, snapshot.errors)
        if on_update is not None and (counts != last_counts or not snapshot.running):
            on_update(snapshot)
        last_counts = counts

        if not snapshot.running:
            return snapshot
        await asyncio.sleep(interval)
