"""Starlette application factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.applications import Starlette

from burrow.daemon.middleware import RequestContextMiddleware
from burrow.daemon.routes import create_routes

if TYPE_CHECKING:
    from burrow.daemon.lifecycle import ServerController


def create_app(controller: ServerController) -> Starlette:
    """Create the daemon's Starlette application."""
    app = Starlette(routes=create_routes(controller))
    app.add_middleware(RequestContextMiddleware)
    app.state.controller = controller
    return app
