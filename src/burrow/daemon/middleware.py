"""HTTP middleware for request correlation and structured errors."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from burrow.core.errors import BurrowError, InternalError
from burrow.core.logging import clear_request_id, set_request_id

REQUEST_ID_HEADER = "X-Burrow-Request-Id"

# Type alias for the call_next function
CallNext = Callable[[Request], Awaitable[Response]]

logger = structlog.get_logger()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id per request and map errors to JSON bodies.

    BurrowError becomes its to_dict() body with status 500 (503 when
    retryable); anything else is logged and reported as INTERNAL_ERROR.
    """

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        rid = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        start = time.monotonic()
        try:
            response = await call_next(request)
        except BurrowError as e:
            logger.warning("request_failed", path=request.url.path, error=str(e))
            response = JSONResponse(e.to_dict(), status_code=503 if e.retryable else 500)
        except Exception as e:
            logger.exception("request_crashed", path=request.url.path)
            err = InternalError.unexpected(str(e), path=request.url.path)
            response = JSONResponse(err.to_dict(), status_code=500)
        finally:
            clear_request_id()

        response.headers[REQUEST_ID_HEADER] = rid
        logger.debug(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            request_id=rid,
            elapsed_ms=round((time.monotonic() - start) * 1000, 1),
        )
        return response
