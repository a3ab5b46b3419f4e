"""
Admin panel routes.

Every route here sits behind the ``admin-panel`` flag: switching the flag
off closes the admin panel with a 403 without a deploy.
"""

from typing import Any

from fastapi import APIRouter, Depends

from estate_api.core.auth import AdminUser
from estate_api.core.features import Feature, require_flag

router = APIRouter(dependencies=[Depends(require_flag("admin-panel"))])


@router.get("/overview")
async def admin_overview(
    feature: Feature,
    admin: AdminUser,
) -> dict[str, Any]:
    """Flag counts for the admin dashboard."""
    flags = await feature.list_flags()
    enabled = sum(1 for f in flags if f.enabled)
    return {
        "flags": {
            "total": len(flags),
            "enabled": enabled,
            "disabled": len(flags) - enabled,
        },
    }
