"""
API routes aggregation.
"""

from fastapi import APIRouter

from .admin import router as admin_router
from .auth import router as auth_router
from .flags import router as flags_router
from .search import router as search_router
from .site import router as site_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(flags_router, prefix="/flags", tags=["flags"])
router.include_router(admin_router, prefix="/admin", tags=["admin"])
router.include_router(search_router, prefix="/search", tags=["search"])
router.include_router(site_router, prefix="/site", tags=["site"])
