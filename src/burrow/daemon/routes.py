"""HTTP routes for the Burrow daemon."""

from __future__ import annotations

import asyncio
import importlib.metadata
import os
from typing import TYPE_CHECKING

from pydantic import ValidationError
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from burrow.daemon.models import DaemonStatus, IndexerStartRequest
from burrow.index.status import check_health, collect_stats

if TYPE_CHECKING:
    from burrow.daemon.lifecycle import ServerController


def _get_version() -> str:
    """Get package version from installed metadata."""
    try:
        return importlib.metadata.version("burrow")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def create_routes(controller: ServerController) -> list[Route]:
    """Create HTTP routes bound to the daemon controller."""
    version = _get_version()

    async def daemon_status(request: Request) -> JSONResponse:
        _ = request  # unused
        body = DaemonStatus(version=version, pid=os.getpid(), uptime_secs=controller.uptime_secs)
        return JSONResponse(body.model_dump())

    async def daemon_shutdown(request: Request) -> JSONResponse:
        """Reply first; the shutdown is signalled once the body is sent."""
        _ = request  # unused
        return JSONResponse({}, background=BackgroundTask(controller.request_shutdown))

    async def indexer_progress(request: Request) -> JSONResponse:
        _ = request  # unused
        return JSONResponse(controller.indexer.progress.snapshot().model_dump())

    async def indexer_start(request: Request) -> JSONResponse:
        raw = await request.body()
        try:
            payload = IndexerStartRequest.model_validate_json(raw) if raw else IndexerStartRequest()
        except ValidationError as e:
            return JSONResponse(
                {"error": "INVALID_REQUEST", "message": f"Invalid /indexer/start body: {e}"},
                status_code=400,
            )
        result = controller.indexer.start(full=payload.full)
        return JSONResponse(result.model_dump())

    async def health(request: Request) -> JSONResponse:
        _ = request  # unused
        status = await check_health(
            controller.config,
            controller.store,
            controller.embedder,
            indexing=controller.indexer.running,
        )
        return JSONResponse(status.model_dump())

    async def stats(request: Request) -> JSONResponse:
        _ = request  # unused
        report = await asyncio.to_thread(collect_stats, controller.store, controller.history_path)
        return JSONResponse(report.model_dump())

    return [
        Route("/daemon/status", daemon_status, methods=["GET"]),
        Route("/daemon/shutdown", daemon_shutdown, methods=["POST"]),
        Route("/indexer/progress", indexer_progress, methods=["GET"]),
        Route("/indexer/start", indexer_start, methods=["POST"]),
        Route("/health", health, methods=["GET"]),
        Route("/stats", stats, methods=["GET"]),
    ]
