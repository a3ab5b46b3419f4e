"""
Property search routes.

Advanced search is shipped behind a canary flag: while
``advanced-search`` is off the route answers 503 so clients fall back
to basic search.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from estate_api.core.features import canary_guard

router = APIRouter()


@router.get("/advanced", dependencies=[Depends(canary_guard("advanced-search"))])
async def advanced_search(
    request: Request,
    q: str = Query(default="", max_length=200),
) -> dict[str, Any]:
    """Advanced search entry point."""
    return {
        "query": q,
        "mode": "advanced",
        "canaryEnabled": getattr(request.state, "canary_enabled", False),
    }
