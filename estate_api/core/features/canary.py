"""
Canary traffic splitting and canary request metrics.

The splitter is plain traffic shaping: one fresh random draw per request,
nothing sticky per user. Per-user decisions belong to flag targeting.

Usage:
    app.add_middleware(CanaryMetricsMiddleware, version=settings.app_version)
    app.add_middleware(
        CanaryTrafficSplitMiddleware,
        percentage=10,
        canary_mode=settings.features.canary_deployment,
        version=settings.app_version,
    )

The splitter must be added after the metrics tap so it runs first.
"""

import random
import time
from datetime import datetime, timezone
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from estate_api.core.errors import CanaryUnavailableError

logger = structlog.get_logger(__name__)

ROUTED_HEADER = "X-Canary-Routed"
VERSION_HEADER = "X-Canary-Version"


def is_canary_traffic(request: Request) -> bool:
    return getattr(request.state, "is_canary_traffic", False) is True


class CanaryTrafficSplitMiddleware(BaseHTTPMiddleware):
    """
    Keep ``percentage`` percent of traffic on this canary process.

    Only active when ``canary_mode`` is on. Requests outside the canary
    share get a 503 ``canaryStatus: bypassed`` with
    ``X-Canary-Routed: stable`` so the balancer retries them on stable.
    """

    def __init__(
        self,
        app,
        percentage: float = 10,
        canary_mode: bool = False,
        version: str = "unknown",
        random_source: Callable[[], float] = random.random,
        exclude_paths: tuple[str, ...] = ("/health",),
    ):
        super().__init__(app)
        self.percentage = percentage
        self.canary_mode = canary_mode
        self.version = version or "unknown"
        self.random_source = random_source
        self.exclude_paths = exclude_paths

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self.canary_mode or request.url.path.startswith(self.exclude_paths):
            return await call_next(request)

        draw = self.random_source() * 100

        if draw > self.percentage:
            error = CanaryUnavailableError(
                error="Service temporarily unavailable",
                message="Please retry your request",
                canary_status="bypassed",
            )
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_dict(),
                headers={ROUTED_HEADER: "stable"},
            )

        request.state.is_canary_traffic = True
        response = await call_next(request)
        response.headers[ROUTED_HEADER] = "canary"
        response.headers[VERSION_HEADER] = self.version
        return response


class CanaryMetricsMiddleware(BaseHTTPMiddleware):
    """Log latency and outcome of canary-routed requests. Never blocks."""

    def __init__(self, app, version: str = "unknown"):
        super().__init__(app)
        self.version = version or "unknown"

    async def dispatch(self, request: Request, call_next) -> Response:
        if not is_canary_traffic(request):
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "canary.request",
            path=request.url.path,
            method=request.method,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
            version=self.version,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        return response
