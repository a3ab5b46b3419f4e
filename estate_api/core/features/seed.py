"""
Default feature flags.

``admin-panel`` guards the admin routes; the other two ship disabled so
admins can roll them out from the flags API.
"""

from typing import Any

import structlog

from .service import FeatureService

logger = structlog.get_logger(__name__)

DEFAULT_FLAGS: list[dict[str, Any]] = [
    {
        "key": "admin-panel",
        "name": "Admin Panel",
        "description": (
            "Controls access to the admin panel and all admin routes. "
            "When disabled, admin routes return 403 Forbidden."
        ),
        "enabled": True,
        "targeting": {"roles": ["admin"]},
    },
    {
        "key": "new-property-form",
        "name": "New Property Form",
        "description": "New version of the property creation form with enhanced features",
        "enabled": False,
    },
    {
        "key": "advanced-search",
        "name": "Advanced Search",
        "description": "Advanced search functionality with filters and sorting",
        "enabled": False,
    },
]


async def seed_default_flags(service: FeatureService, actor: Any | None = None) -> list[str]:
    """Create any missing default flag. Returns the keys that were created."""
    created = []
    for data in DEFAULT_FLAGS:
        if await service.get_flag(data["key"]) is not None:
            continue
        await service.create_flag(data, actor)
        created.append(data["key"])

    logger.info("feature_flag.seeded", created=created)
    return created


async def clear_flags(service: FeatureService) -> int:
    """Remove every feature flag."""
    removed = await service.backend.clear()
    logger.info("feature_flag.cleared", removed=removed)
    return removed
