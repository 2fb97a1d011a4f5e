"""Request and response bodies of the daemon protocol.

Endpoints (JSON over HTTP/1.1 on a Unix socket, one connection per request):

    GET  /daemon/status    -> DaemonStatus
    POST /daemon/shutdown  -> {}
    GET  /indexer/progress -> IndexerProgress
    POST /indexer/start    IndexerStartRequest -> IndexerStartResponse
    GET  /health           -> HealthStatus
    GET  /stats            -> StatsReport
"""

from pydantic import BaseModel

from burrow.index.progress import IndexerProgress
from burrow.index.status import HealthStatus, StatsReport


class DaemonStatus(BaseModel):
    version: str
    pid: int
    uptime_secs: int


class IndexerStartRequest(BaseModel):
    full: bool = False


class IndexerStartResponse(BaseModel):
    started: bool
    message: str


class Empty(BaseModel):
    pass


__all__ = [
    "DaemonStatus",
    "Empty",
    "HealthStatus",
    "IndexerProgress",
    "IndexerStartRequest",
    "IndexerStartResponse",
    "StatsReport",
]
