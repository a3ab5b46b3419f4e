"""
Feature Flag Service - registry over flag records.

Reads and writes go through a FeatureBackend; decisions go through the
pure functions in ``evaluator``. Mutations are logged as structured
audit events and stamp ``updated_by`` (``created_by`` on create).
"""

import re
from datetime import datetime, timezone
from typing import Any, Iterable

import structlog

from estate_api.core.errors import FlagNotFoundError, FlagValidationError

from . import evaluator
from .interfaces import (
    EvaluationContext,
    EvaluationResult,
    FeatureBackend,
    FeatureFlag,
    Targeting,
)

logger = structlog.get_logger(__name__)

KEY_RE = re.compile(r"^[a-z0-9_-]+$")


def actor_id(actor: Any | None) -> str | None:
    """Identity reference for an acting user (object with ``id`` or raw id)."""
    if actor is None:
        return None
    return str(getattr(actor, "id", actor))


def validate_flag(flag: FeatureFlag) -> FeatureFlag:
    """
    Reject records the HTTP schemas would have refused.

    Raises:
        FlagValidationError: Bad key, empty name or percentage outside 0-100
    """
    if not KEY_RE.match(flag.key or ""):
        raise FlagValidationError(
            f"Invalid flag key '{flag.key}': use lowercase letters, digits, '-' and '_'"
        )
    if not flag.name or not flag.name.strip():
        raise FlagValidationError("Flag name is required")
    if not 0 <= flag.targeting.percentage <= 100:
        raise FlagValidationError("Rollout percentage must be between 0 and 100")
    return flag


class FeatureService:
    """
    Feature flag registry.

    ``is_enabled`` is fail-closed and never raises; every other method
    surfaces backend errors and raises FlagNotFoundError for unknown keys.
    """

    def __init__(self, backend: FeatureBackend):
        self.backend = backend

    # ============================================================
    # EVALUATION
    # ============================================================

    async def is_enabled(self, key: str, ctx: EvaluationContext | None = None) -> bool:
        """
        Check if a feature is on for ``ctx``.

        Unknown flags are off. Any failure while reading or evaluating
        is logged and reported as off.
        """
        return (await self.check(key, ctx)).enabled

    async def check(self, key: str, ctx: EvaluationContext | None = None) -> EvaluationResult:
        """Fail-closed ``evaluate``: errors become a "no" result."""
        try:
            return await self.evaluate(key, ctx)
        except Exception:
            logger.exception("feature_flag.check_failed", key=key)
            return EvaluationResult.no(key, "Evaluation failed", ctx.user_id if ctx else None)

    async def evaluate(self, key: str, ctx: EvaluationContext | None = None) -> EvaluationResult:
        """Evaluate a flag with the reason behind the decision. May raise."""
        user_id = ctx.user_id if ctx else None
        flag = await self.backend.get_flag(key)
        if flag is None:
            return EvaluationResult.no(key, "Flag not found", user_id)
        return evaluator.explain(flag, ctx)

    async def get_all_flags(self, ctx: EvaluationContext | None = None) -> dict[str, bool]:
        """
        Get all flags and their status for ``ctx``.

        Useful for sending to frontend.
        """
        flags = await self.backend.list_flags()
        return {flag.key: evaluator.is_active(flag, ctx) for flag in flags}

    # ============================================================
    # READS
    # ============================================================

    async def list_flags(self) -> list[FeatureFlag]:
        """List all feature flags, newest first."""
        return await self.backend.list_flags()

    async def get_flag(self, key: str) -> FeatureFlag | None:
        """Get a feature flag."""
        return await self.backend.get_flag(key)

    async def require_flag(self, key: str) -> FeatureFlag:
        """Get a feature flag or raise FlagNotFoundError."""
        flag = await self.backend.get_flag(key)
        if flag is None:
            raise FlagNotFoundError(key)
        return flag

    # ============================================================
    # MUTATIONS
    # ============================================================

    async def create_flag(self, data: dict[str, Any], actor: Any | None) -> FeatureFlag:
        """Create a new feature flag stamped with its creator."""
        who = actor_id(actor)
        try:
            targeting = evaluator.merge_targeting(Targeting(), data.get("targeting") or {})
        except ValueError as e:
            raise FlagValidationError(f"Invalid targeting: {e}") from e

        flag = validate_flag(FeatureFlag(
            key=data["key"],
            name=data["name"],
            description=data.get("description") or "",
            enabled=bool(data.get("enabled", False)),
            targeting=targeting,
            created_by=who,
            updated_by=who,
        ))
        created = await self.backend.create_flag(flag)

        logger.info(
            "feature_flag.created",
            key=created.key,
            enabled=created.enabled,
            actor_id=who,
        )
        return created

    async def update_flag(self, key: str, patch: dict[str, Any], actor: Any | None) -> FeatureFlag:
        """Apply a partial update; ``targeting`` is merged field-wise."""
        flag = await self.require_flag(key)
        try:
            changed = evaluator.apply_update(flag, patch, actor_id(actor))
        except ValueError as e:
            raise FlagValidationError(f"Invalid targeting: {e}") from e

        updated = await self.backend.save_flag(validate_flag(changed))

        logger.info(
            "feature_flag.updated",
            key=key,
            fields=sorted(k for k, v in patch.items() if v is not None),
            actor_id=actor_id(actor),
        )
        return updated

    async def toggle_flag(self, key: str, actor: Any | None) -> FeatureFlag:
        """Flip ``enabled`` and stamp ``last_toggled_at``."""
        flag = await self.require_flag(key)
        now = datetime.now(timezone.utc)
        updated = await self.backend.save_flag(
            evaluator.toggled(flag, actor_id(actor), now)
        )

        logger.info(
            "feature_flag.toggled",
            key=key,
            enabled=updated.enabled,
            actor_id=actor_id(actor),
        )
        return updated

    async def delete_flag(self, key: str, actor: Any | None = None) -> FeatureFlag:
        """Delete a feature flag and return the removed record."""
        deleted = await self.backend.delete_flag(key)
        if deleted is None:
            raise FlagNotFoundError(key)

        logger.info("feature_flag.deleted", key=key, actor_id=actor_id(actor))
        return deleted

    async def add_to_whitelist(
        self,
        key: str,
        emails: Iterable[str] = (),
        user_ids: Iterable[str] = (),
        actor: Any | None = None,
    ) -> FeatureFlag:
        """Whitelist emails/user ids. Already-present entries are no-ops."""
        emails, user_ids = list(emails), list(user_ids)
        flag = await self.require_flag(key)
        updated = await self.backend.save_flag(
            evaluator.with_whitelist_added(flag, emails, user_ids, actor_id(actor))
        )

        logger.info(
            "feature_flag.whitelist_added",
            key=key,
            emails=len(emails),
            user_ids=len(user_ids),
            actor_id=actor_id(actor),
        )
        return updated

    async def remove_from_whitelist(
        self,
        key: str,
        emails: Iterable[str] = (),
        user_ids: Iterable[str] = (),
        actor: Any | None = None,
    ) -> FeatureFlag:
        """Drop emails/user ids from the whitelist. Missing entries are no-ops."""
        emails, user_ids = list(emails), list(user_ids)
        flag = await self.require_flag(key)
        updated = await self.backend.save_flag(
            evaluator.with_whitelist_removed(flag, emails, user_ids, actor_id(actor))
        )

        logger.info(
            "feature_flag.whitelist_removed",
            key=key,
            emails=len(emails),
            user_ids=len(user_ids),
            actor_id=actor_id(actor),
        )
        return updated
