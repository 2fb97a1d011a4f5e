"""Shared CLI fixtures: config on disk and a fake daemon behind MockTransport."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from burrow.config import paths
from burrow.daemon.client import DaemonClient
from burrow.index.progress import IndexerProgress


@pytest.fixture
def write_config(docs_dir: Path) -> Callable[[str], Path]:
    """Write config.yaml indexing docs_dir, plus any extra YAML sections."""

    def _write(extra: str = "") -> Path:
        path = paths.config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            f"vector_search:\n  index_dirs: ['{docs_dir}']\n"
            "daemon:\n  poll_interval_sec: 0.01\n  max_poll_failures: 3\n"
            f"{extra}"
        )
        return path

    return _write


class FakeDaemon:
    """Scripted daemon endpoints served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, bytes]] = []
        self.start_response: dict[str, Any] = {"started": True, "message": "Reindex started"}
        self.progress: list[IndexerProgress] = [
            IndexerProgress(running=False, last_result="Indexed 3, skipped 1, removed 0, 0 errors")
        ]
        self.down: set[str] = set()

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path, request.content))
        if path in self.down or "*" in self.down:
            raise httpx.ConnectError("Connection refused", request=request)
        if path == "/indexer/start":
            return httpx.Response(200, json=self.start_response)
        if path == "/indexer/progress":
            snapshot = self.progress.pop(0) if len(self.progress) > 1 else self.progress[0]
            return httpx.Response(200, json=snapshot.model_dump())
        if path == "/daemon/status":
            return httpx.Response(200, json={"version": "0.1.0", "pid": 4242, "uptime_secs": 3725})
        if path == "/daemon/shutdown":
            return httpx.Response(200, json={})
        if path == "/health":
            return httpx.Response(
                200,
                json={"ollama": True, "vector_db": True, "api_key": True, "indexing": True},
            )
        if path == "/stats":
            return httpx.Response(
                200,
                json={
                    "indexed_files": 12,
                    "launch_count": 4,
                    "last_indexed": "2026-01-01T00:00:00+00:00",
                },
            )
        return httpx.Response(404)

    def client(self, config: Any = None) -> DaemonClient:
        return DaemonClient(paths.socket_path(), transport=httpx.MockTransport(self.handle))

    def paths_called(self) -> list[str]:
        return [path for _, path, _ in self.requests]


@pytest.fixture
def fake_daemon() -> FakeDaemon:
    return FakeDaemon()
