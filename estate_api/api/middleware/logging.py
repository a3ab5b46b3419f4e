"""
Access log middleware.
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)

SKIP_PATHS = ("/health",)


class LoggingMiddleware(BaseHTTPMiddleware):
    """One structured line per request, with status and duration."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path.startswith(SKIP_PATHS):
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "request.completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
            client_ip=request.client.host if request.client else None,
        )
        return response
