"""
Database backend for feature flags.

Uses SQLAlchemy async sessions (PostgreSQL in production).
"""

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from estate_api.core.errors import FlagConflictError, FlagNotFoundError

from ..interfaces import FeatureFlag, FeatureBackend, Targeting
from ..models import FeatureFlagModel


class DatabaseFeatureBackend(FeatureBackend):
    """
    SQL-backed feature flag storage.

    The unique index on ``key`` is the uniqueness guarantee; there is no
    version column, so concurrent saves are last-write-wins.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============================================================
    # FLAG OPERATIONS
    # ============================================================

    async def get_flag(self, key: str) -> FeatureFlag | None:
        """Get a feature flag by key."""
        model = await self._get_model(key)
        if not model:
            return None
        return self._model_to_flag(model)

    async def list_flags(self) -> list[FeatureFlag]:
        """List all feature flags, newest first."""
        query = select(FeatureFlagModel).order_by(
            FeatureFlagModel.created_at.desc(),
            FeatureFlagModel.key,
        )
        result = await self.db.execute(query)
        models = result.scalars().all()

        return [self._model_to_flag(m) for m in models]

    async def create_flag(self, flag: FeatureFlag) -> FeatureFlag:
        """Create a new feature flag."""
        if await self._get_model(flag.key):
            raise FlagConflictError(flag.key)

        model = FeatureFlagModel(
            key=flag.key,
            name=flag.name,
            description=flag.description,
            enabled=flag.enabled,
            targeting=flag.targeting.to_dict(),
            created_by=flag.created_by,
            updated_by=flag.updated_by,
            last_toggled_at=flag.last_toggled_at,
        )
        self.db.add(model)

        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race with another insert of the same key
            await self.db.rollback()
            raise FlagConflictError(flag.key)

        await self.db.refresh(model)
        return self._model_to_flag(model)

    async def save_flag(self, flag: FeatureFlag) -> FeatureFlag:
        """Write every mutable column of ``flag`` back to its row."""
        model = await self._get_model(flag.key)
        if not model:
            raise FlagNotFoundError(flag.key)

        model.name = flag.name
        model.description = flag.description
        model.enabled = flag.enabled
        model.targeting = flag.targeting.to_dict()
        model.updated_by = flag.updated_by
        model.last_toggled_at = flag.last_toggled_at

        await self.db.flush()
        await self.db.refresh(model)

        return self._model_to_flag(model)

    async def delete_flag(self, key: str) -> FeatureFlag | None:
        """Delete a feature flag."""
        model = await self._get_model(key)
        if not model:
            return None

        flag = self._model_to_flag(model)
        await self.db.delete(model)
        await self.db.flush()

        return flag

    async def clear(self) -> int:
        """Delete every feature flag."""
        result = await self.db.execute(delete(FeatureFlagModel))
        await self.db.flush()
        return result.rowcount or 0

    # ============================================================
    # HELPERS
    # ============================================================

    async def _get_model(self, key: str) -> FeatureFlagModel | None:
        query = select(FeatureFlagModel).where(FeatureFlagModel.key == key)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    def _model_to_flag(self, model: FeatureFlagModel) -> FeatureFlag:
        """Convert SQLAlchemy model to dataclass."""
        return FeatureFlag(
            key=model.key,
            name=model.name,
            description=model.description or "",
            enabled=model.enabled,
            targeting=Targeting.from_dict(model.targeting),
            created_by=model.created_by,
            updated_by=model.updated_by,
            last_toggled_at=model.last_toggled_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
