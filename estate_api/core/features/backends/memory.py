"""
In-memory backend for feature flags.

For development and testing. Data is lost on restart.
"""

from copy import deepcopy
from datetime import datetime, timezone

from estate_api.core.errors import FlagConflictError, FlagNotFoundError

from ..interfaces import FeatureFlag, FeatureBackend


class MemoryFeatureBackend(FeatureBackend):
    """
    In-memory feature flag storage.

    Records are copied on the way in and out, so callers never hold a
    reference into the stored state.
    """

    def __init__(self):
        self._flags: dict[str, FeatureFlag] = {}

    async def get_flag(self, key: str) -> FeatureFlag | None:
        flag = self._flags.get(key)
        return deepcopy(flag) if flag else None

    async def list_flags(self) -> list[FeatureFlag]:
        flags = sorted(
            self._flags.values(),
            key=lambda f: f.created_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        return [deepcopy(f) for f in flags]

    async def create_flag(self, flag: FeatureFlag) -> FeatureFlag:
        if flag.key in self._flags:
            raise FlagConflictError(flag.key)

        stored = deepcopy(flag)
        now = datetime.now(timezone.utc)
        stored.created_at = now
        stored.updated_at = now
        self._flags[stored.key] = stored
        return deepcopy(stored)

    async def save_flag(self, flag: FeatureFlag) -> FeatureFlag:
        if flag.key not in self._flags:
            raise FlagNotFoundError(flag.key)

        stored = deepcopy(flag)
        stored.updated_at = datetime.now(timezone.utc)
        self._flags[stored.key] = stored
        return deepcopy(stored)

    async def delete_flag(self, key: str) -> FeatureFlag | None:
        return self._flags.pop(key, None)

    async def clear(self) -> int:
        count = len(self._flags)
        self._flags.clear()
        return count

    # ============================================================
    # TEST HELPERS
    # ============================================================

    def seed(self, flags: list[FeatureFlag]) -> None:
        """Seed with initial flags. Useful for testing."""
        for flag in flags:
            self._flags[flag.key] = deepcopy(flag)
