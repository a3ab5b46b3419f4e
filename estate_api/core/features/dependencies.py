"""
FastAPI dependencies for feature flags.

Usage:
    from estate_api.core.features import Feature, UserFeature

    @router.get("/dashboard")
    async def dashboard(feature: UserFeature):
        if await feature.is_enabled("new-dashboard"):
            return new_dashboard()
        return old_dashboard()
"""

from typing import Annotated, Awaitable, Callable

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from estate_api.core.config import settings
from estate_api.api.dependencies.database import get_db
from estate_api.core.auth import get_current_user_optional

from .interfaces import EvaluationContext, EvaluationResult, FeatureBackend
from .service import FeatureService
from .backends.database import DatabaseFeatureBackend
from .backends.memory import MemoryFeatureBackend


# ============================================================
# BACKEND FACTORY
# ============================================================

# In-memory backend singleton (for development)
_memory_backend: MemoryFeatureBackend | None = None


def get_memory_backend() -> MemoryFeatureBackend:
    """Get or create memory backend singleton."""
    global _memory_backend
    if _memory_backend is None:
        _memory_backend = MemoryFeatureBackend()
    return _memory_backend


async def get_memory_feature_backend() -> FeatureBackend:
    """In-memory backend; needs no database session."""
    return get_memory_backend()


async def get_database_feature_backend(
    db: AsyncSession = Depends(get_db),
) -> FeatureBackend:
    """SQL backend bound to the request's session."""
    return DatabaseFeatureBackend(db)


BACKEND_DEPENDENCIES: dict[str, Callable[..., Awaitable[FeatureBackend]]] = {
    "database": get_database_feature_backend,
    "memory": get_memory_feature_backend,
}


def select_feature_backend(backend: str) -> Callable[..., Awaitable[FeatureBackend]]:
    """
    Pick the backend dependency for a FEATURE_BACKEND value.

    - "database": SQL database (default, production)
    - "memory": In-memory (development/testing)

    Only the database dependency pulls in ``get_db``.
    """
    return BACKEND_DEPENDENCIES[backend]


get_feature_backend = select_feature_backend(settings.features.backend)


# ============================================================
# FEATURE SERVICE DEPENDENCY
# ============================================================

async def get_feature_service(
    backend: FeatureBackend = Depends(get_feature_backend),
) -> FeatureService:
    """Get feature service instance."""
    return FeatureService(backend)


# Type alias for cleaner injection
Feature = Annotated[FeatureService, Depends(get_feature_service)]


async def get_evaluation_context(
    user=Depends(get_current_user_optional),
) -> EvaluationContext | None:
    """Evaluation context for the caller; None when anonymous."""
    return EvaluationContext.from_user(user)


# ============================================================
# USER-AWARE FEATURE SERVICE
# ============================================================

class UserFeatureService:
    """
    Feature service bound to the caller's evaluation context.
    """

    def __init__(self, service: FeatureService, ctx: EvaluationContext | None):
        self._service = service
        self._ctx = ctx

    @property
    def context(self) -> EvaluationContext | None:
        return self._ctx

    async def is_enabled(self, key: str) -> bool:
        """Check if feature is enabled for the caller (fail-closed)."""
        return await self._service.is_enabled(key, self._ctx)

    async def evaluate(self, key: str) -> EvaluationResult:
        """Evaluate feature with detailed result."""
        return await self._service.evaluate(key, self._ctx)

    async def check(self, key: str) -> EvaluationResult:
        """Like ``evaluate`` but fail-closed."""
        return await self._service.check(key, self._ctx)

    async def get_all(self) -> dict[str, bool]:
        """Get all flags for the caller."""
        return await self._service.get_all_flags(self._ctx)

    @property
    def service(self) -> FeatureService:
        return self._service


async def get_user_feature_service(
    service: FeatureService = Depends(get_feature_service),
    ctx: EvaluationContext | None = Depends(get_evaluation_context),
) -> UserFeatureService:
    """Get feature service bound to current user."""
    return UserFeatureService(service, ctx)


# Type alias
UserFeature = Annotated[UserFeatureService, Depends(get_user_feature_service)]
