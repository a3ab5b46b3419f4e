"""
Feature flags API routes.
"""

from typing import Annotated

from fastapi import APIRouter, Path, status

from estate_api.core.auth import AdminUser, CurrentUser
from estate_api.core.features import Feature, UserFeature
from estate_api.schemas.flag import (
    KEY_PATTERN,
    FlagCheckResponse,
    FlagCreate,
    FlagResponse,
    FlagUpdate,
    WhitelistRequest,
)

router = APIRouter()

FlagKey = Annotated[str, Path(min_length=1, max_length=100, pattern=KEY_PATTERN)]


# ============================================================
# USER ENDPOINTS
# ============================================================

@router.get("/my-flags")
async def get_my_flags(
    feature: UserFeature,
    user: CurrentUser,
) -> dict[str, bool]:
    """
    Get all feature flags for the current user.

    Returns a dictionary of flag key -> enabled status.
    """
    return await feature.get_all()


@router.get("/{key}/check", response_model=FlagCheckResponse)
async def check_flag(
    key: FlagKey,
    feature: UserFeature,
    user: CurrentUser,
) -> FlagCheckResponse:
    """
    Check if a specific feature flag is enabled for the current user.
    """
    result = await feature.check(key)
    return FlagCheckResponse(key=key, enabled=result.enabled, reason=result.reason)


# ============================================================
# ADMIN ENDPOINTS
# ============================================================

@router.get("", response_model=list[FlagResponse])
async def list_flags(
    feature: Feature,
    admin: AdminUser,
) -> list[FlagResponse]:
    """
    List all feature flags, newest first.
    Admin only.
    """
    flags = await feature.list_flags()
    return [FlagResponse.from_flag(f) for f in flags]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=FlagResponse)
async def create_flag(
    data: FlagCreate,
    feature: Feature,
    admin: AdminUser,
) -> FlagResponse:
    """
    Create a new feature flag.
    Admin only.
    """
    flag = await feature.create_flag(data.model_dump(exclude_none=True), admin)
    return FlagResponse.from_flag(flag)


@router.get("/{key}", response_model=FlagResponse)
async def get_flag(
    key: FlagKey,
    feature: Feature,
    admin: AdminUser,
) -> FlagResponse:
    """
    Get a specific feature flag by key.
    Admin only.
    """
    flag = await feature.require_flag(key)
    return FlagResponse.from_flag(flag)


@router.put("/{key}", response_model=FlagResponse)
async def update_flag(
    key: FlagKey,
    data: FlagUpdate,
    feature: Feature,
    admin: AdminUser,
) -> FlagResponse:
    """
    Update a feature flag. ``targeting`` is merged, not replaced.
    Admin only.
    """
    flag = await feature.update_flag(key, data.to_patch(), admin)
    return FlagResponse.from_flag(flag)


@router.patch("/{key}/toggle", response_model=FlagResponse)
async def toggle_flag(
    key: FlagKey,
    feature: Feature,
    admin: AdminUser,
) -> FlagResponse:
    """
    Flip a feature flag on/off.
    Admin only.
    """
    flag = await feature.toggle_flag(key, admin)
    return FlagResponse.from_flag(flag)


@router.delete("/{key}", response_model=FlagResponse)
async def delete_flag(
    key: FlagKey,
    feature: Feature,
    admin: AdminUser,
) -> FlagResponse:
    """
    Delete a feature flag and return it.
    Admin only.
    """
    flag = await feature.delete_flag(key, admin)
    return FlagResponse.from_flag(flag)


@router.post("/{key}/whitelist", response_model=FlagResponse)
async def add_to_whitelist(
    key: FlagKey,
    data: WhitelistRequest,
    feature: Feature,
    admin: AdminUser,
) -> FlagResponse:
    """
    Add emails and/or user ids to a flag's whitelist.
    Admin only.
    """
    flag = await feature.add_to_whitelist(key, data.emails, data.user_ids, admin)
    return FlagResponse.from_flag(flag)


@router.delete("/{key}/whitelist", response_model=FlagResponse)
async def remove_from_whitelist(
    key: FlagKey,
    data: WhitelistRequest,
    feature: Feature,
    admin: AdminUser,
) -> FlagResponse:
    """
    Remove emails and/or user ids from a flag's whitelist.
    Admin only.
    """
    flag = await feature.remove_from_whitelist(key, data.emails, data.user_ids, admin)
    return FlagResponse.from_flag(flag)
