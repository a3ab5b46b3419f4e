"""
Feature Flag Interfaces - Core abstractions.

These define the flag record, the evaluation context and the storage
contract. Evaluation itself lives in ``evaluator.py`` as plain functions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Roles a flag can target."""
    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"


@dataclass
class Targeting:
    """
    Targeting rules for an enabled flag.

    Rules are OR-ed: matching any one of them admits the context.
    An empty rule set means the flag is open to everyone.

    Attributes:
        user_ids: Identity references admitted explicitly
        emails: Lowercase email addresses admitted explicitly
        roles: Roles admitted as a whole
        percentage: Deterministic rollout share (0-100)
    """
    user_ids: list[str] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)
    roles: list[Role] = field(default_factory=list)
    percentage: int = 0

    def is_empty(self) -> bool:
        """No ids, emails or roles, and no percentage rollout."""
        return (
            not self.user_ids
            and not self.emails
            and not self.roles
            and self.percentage == 0
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_ids": list(self.user_ids),
            "emails": list(self.emails),
            "roles": [Role(r).value for r in self.roles],
            "percentage": self.percentage,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Targeting":
        data = data or {}
        return cls(
            user_ids=[str(u) for u in data.get("user_ids", [])],
            emails=[e.strip().lower() for e in data.get("emails", [])],
            roles=[Role(r) for r in data.get("roles", [])],
            percentage=int(data.get("percentage", 0)),
        )


@dataclass
class FeatureFlag:
    """
    Feature flag definition.

    Attributes:
        key: Unique identifier (e.g., "beta-search"), immutable
        name: Human-readable name
        description: What this flag controls
        enabled: Global kill-switch
        targeting: Who sees the flag while it is enabled
        created_by / updated_by: Identity of the last admin actors
        last_toggled_at: Set only by toggling
    """
    key: str
    name: str
    description: str = ""
    enabled: bool = False
    targeting: Targeting = field(default_factory=Targeting)
    created_by: str | None = None
    updated_by: str | None = None
    last_toggled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class EvaluationContext:
    """
    Who a flag is being evaluated for.

    ``None`` in place of a context means an anonymous caller.
    """
    user_id: str | None = None
    email: str | None = None
    role: str | None = None

    @classmethod
    def from_user(cls, user: Any | None) -> "EvaluationContext | None":
        """Build a context from an authenticated user, or None if absent."""
        if user is None:
            return None
        user_id = getattr(user, "id", None)
        return cls(
            user_id=str(user_id) if user_id is not None else None,
            email=getattr(user, "email", None),
            role=getattr(user, "role", None),
        )


@dataclass
class EvaluationResult:
    """
    Result of feature flag evaluation.

    Includes the decision and reason for debugging/logging.
    """
    enabled: bool
    reason: str
    flag_key: str
    user_id: str | None = None

    @classmethod
    def yes(cls, flag_key: str, reason: str, user_id: str | None = None) -> "EvaluationResult":
        return cls(enabled=True, reason=reason, flag_key=flag_key, user_id=user_id)

    @classmethod
    def no(cls, flag_key: str, reason: str, user_id: str | None = None) -> "EvaluationResult":
        return cls(enabled=False, reason=reason, flag_key=flag_key, user_id=user_id)


class FeatureBackend(ABC):
    """
    Abstract storage for flag records.

    Implementations:
    - MemoryFeatureBackend: In-memory (dev/testing)
    - DatabaseFeatureBackend: SQLAlchemy
    """

    @abstractmethod
    async def get_flag(self, key: str) -> FeatureFlag | None:
        """Get a feature flag by key."""
        pass

    @abstractmethod
    async def list_flags(self) -> list[FeatureFlag]:
        """List all feature flags, newest first."""
        pass

    @abstractmethod
    async def create_flag(self, flag: FeatureFlag) -> FeatureFlag:
        """
        Create a new feature flag.

        Raises:
            FlagConflictError: If the key is already taken
        """
        pass

    @abstractmethod
    async def save_flag(self, flag: FeatureFlag) -> FeatureFlag:
        """
        Persist a modified flag (matched by key). Last write wins.

        Raises:
            FlagNotFoundError: If no flag has this key
        """
        pass

    @abstractmethod
    async def delete_flag(self, key: str) -> FeatureFlag | None:
        """Delete a feature flag, returning the removed record."""
        pass

    @abstractmethod
    async def clear(self) -> int:
        """Delete every flag. Returns how many were removed."""
        pass
