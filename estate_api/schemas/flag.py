"""
Feature flag schemas.

Wire format is camelCase (``userIds``, ``lastToggledAt``); Python code
uses the snake_case field names.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from estate_api.core.features.interfaces import FeatureFlag, Role

KEY_PATTERN = r"^[a-z0-9_-]+$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TargetingIn(CamelModel):
    """Targeting rules in a create or update body. Omitted fields are left alone."""
    user_ids: list[str] | None = None
    emails: list[EmailStr] | None = None
    roles: list[Role] | None = None
    percentage: int | None = Field(default=None, ge=0, le=100)


class FlagCreate(CamelModel):
    """Create a new feature flag."""
    key: str = Field(..., min_length=1, max_length=100, pattern=KEY_PATTERN)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    enabled: bool = False
    targeting: TargetingIn | None = None

    @field_validator("key", mode="before")
    @classmethod
    def normalize_key(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class FlagUpdate(CamelModel):
    """Partial update. ``targeting`` is merged field-wise."""
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1)
    enabled: bool | None = None
    targeting: TargetingIn | None = None

    def to_patch(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class WhitelistRequest(CamelModel):
    """Emails and/or user ids to add to or remove from a whitelist."""
    emails: list[EmailStr] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)


class TargetingOut(CamelModel):
    user_ids: list[str]
    emails: list[str]
    roles: list[Role]
    percentage: int


class FlagResponse(CamelModel):
    """Feature flag response."""
    key: str
    name: str
    description: str
    enabled: bool
    targeting: TargetingOut
    created_by: str | None = None
    updated_by: str | None = None
    last_toggled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_flag(cls, flag: FeatureFlag) -> "FlagResponse":
        return cls(
            key=flag.key,
            name=flag.name,
            description=flag.description,
            enabled=flag.enabled,
            targeting=TargetingOut(
                user_ids=list(flag.targeting.user_ids),
                emails=list(flag.targeting.emails),
                roles=list(flag.targeting.roles),
                percentage=flag.targeting.percentage,
            ),
            created_by=flag.created_by,
            updated_by=flag.updated_by,
            last_toggled_at=flag.last_toggled_at,
            created_at=flag.created_at,
            updated_at=flag.updated_at,
        )


class FlagCheckResponse(BaseModel):
    """Flag decision for the caller."""
    key: str
    enabled: bool
    reason: str
