"""Middleware package."""

from estate_api.api.middleware.request_id import RequestIdMiddleware, get_request_id
from estate_api.api.middleware.logging import LoggingMiddleware

__all__ = [
    "RequestIdMiddleware",
    "get_request_id",
    "LoggingMiddleware",
]
