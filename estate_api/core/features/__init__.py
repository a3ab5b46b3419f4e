"""
Feature Flag System.

Flags with targeting and canary delivery:
- Global kill-switch
- User id / email whitelists
- Role targeting
- Deterministic percentage rollouts (salted per flag)
- Canary traffic splitting

Usage:

Check in a handler:
    from estate_api.core.features import UserFeature

    @router.get("/search")
    async def search(feature: UserFeature):
        if await feature.is_enabled("advanced-search"):
            return advanced_results()
        return basic_results()

Hard gate (403 when off, fail-closed):
    @router.get("/admin", dependencies=[Depends(require_flag("admin-panel"))])

Canary gate (503 when off, fail-open):
    @router.get("/beta", dependencies=[Depends(canary_guard("beta-search"))])

Soft attach (never blocks):
    @router.get("/home")
    async def home(flags: dict[str, bool] = Depends(attach_flags)): ...

Management:
    await feature.create_flag(
        {"key": "beta-search", "name": "Beta Search", "enabled": True,
         "targeting": {"percentage": 10}},
        actor=admin,
    )
"""

from .interfaces import (
    EvaluationContext,
    EvaluationResult,
    FeatureBackend,
    FeatureFlag,
    Role,
    Targeting,
)

from .evaluator import bucket, explain, is_active, merge_targeting

from .service import FeatureService

from .dependencies import (
    Feature,
    UserFeature,
    UserFeatureService,
    get_feature_backend,
    get_feature_service,
    get_user_feature_service,
)

from .gates import (
    AttachFlags,
    CanaryGuard,
    FailurePolicy,
    FlagGate,
    RequireFlag,
    attach_flags,
    canary_guard,
    is_flag_enabled,
    require_flag,
)

from .canary import CanaryMetricsMiddleware, CanaryTrafficSplitMiddleware

from .backends import (
    DatabaseFeatureBackend,
    MemoryFeatureBackend,
)

__all__ = [
    # Interfaces
    "EvaluationContext",
    "EvaluationResult",
    "FeatureBackend",
    "FeatureFlag",
    "Role",
    "Targeting",
    # Evaluation
    "bucket",
    "explain",
    "is_active",
    "merge_targeting",
    # Service
    "FeatureService",
    # Dependencies
    "Feature",
    "UserFeature",
    "UserFeatureService",
    "get_feature_backend",
    "get_feature_service",
    "get_user_feature_service",
    # Gates
    "AttachFlags",
    "CanaryGuard",
    "FailurePolicy",
    "FlagGate",
    "RequireFlag",
    "attach_flags",
    "canary_guard",
    "is_flag_enabled",
    "require_flag",
    # Canary
    "CanaryMetricsMiddleware",
    "CanaryTrafficSplitMiddleware",
    # Backends
    "DatabaseFeatureBackend",
    "MemoryFeatureBackend",
]
