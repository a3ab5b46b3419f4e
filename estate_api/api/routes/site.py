"""
Site configuration for the server-rendered frontend.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request

from estate_api.core.config import settings
from estate_api.core.features import attach_flags, is_flag_enabled

router = APIRouter()


@router.get("/config")
async def site_config(
    request: Request,
    flags: dict[str, bool] = Depends(attach_flags),
) -> dict[str, Any]:
    """Flags for the caller plus what the page templates switch on."""
    return {
        "version": settings.app_version,
        "flags": flags,
        "propertyForm": "new" if is_flag_enabled(request, "new-property-form") else "classic",
    }
