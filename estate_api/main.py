"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from estate_api.core.config import settings
from estate_api.core.errors import ApiError
from estate_api.core.logging import configure_logging
from estate_api.core.features import (
    CanaryMetricsMiddleware,
    CanaryTrafficSplitMiddleware,
)
from estate_api.api.routes import router as api_router
from estate_api.api.middleware import LoggingMiddleware, RequestIdMiddleware

logger = structlog.get_logger(__name__)


async def seed_flags() -> None:
    """Create the default flags in the configured backend."""
    from estate_api.core.features import FeatureService, DatabaseFeatureBackend
    from estate_api.core.features.dependencies import get_memory_backend
    from estate_api.core.features.seed import seed_default_flags
    from estate_api.models.database import async_session_factory

    if settings.features.backend == "memory":
        await seed_default_flags(FeatureService(get_memory_backend()))
        return

    async with async_session_factory() as session:
        await seed_default_flags(FeatureService(DatabaseFeatureBackend(session)))
        await session.commit()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    configure_logging(settings.log_level, settings.log_format)

    if settings.is_development and settings.features.backend == "database":
        from estate_api.models.database import init_db
        await init_db()

    if settings.features.seed_defaults:
        await seed_flags()

    logger.info(
        "app.startup",
        version=settings.app_version,
        canary=settings.features.canary_deployment,
    )
    yield
    logger.info("app.shutdown")


def error_body(message: str, status_code: int) -> dict:
    return {
        "success": False,
        "error": {"message": message, "statusCode": status_code},
    }


def register_exception_handlers(app: FastAPI) -> None:
    """Translate errors into ``{success, error: {message, statusCode}}``."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        message = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
            for err in exc.errors()
        )
        return JSONResponse(status_code=400, content=error_body(message, 400))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("request.unhandled_error", path=request.url.path)
        message = str(exc) if settings.debug else "An error occurred"
        return JSONResponse(status_code=500, content=error_body(message, 500))


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Middleware (last added is outermost). The splitter must wrap the
    # metrics tap so canary marking happens before the tap looks for it.
    app.add_middleware(CanaryMetricsMiddleware, version=settings.app_version)
    app.add_middleware(
        CanaryTrafficSplitMiddleware,
        percentage=settings.features.canary_percentage,
        canary_mode=settings.features.canary_deployment,
        version=settings.app_version,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router, prefix="/api")

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Quick health check endpoint (for load balancers)."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "canary": settings.features.canary_deployment,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "estate_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        workers=settings.workers,
    )
