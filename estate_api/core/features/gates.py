"""
Request gates built on the feature service.

Each gate is a FastAPI dependency and carries an explicit failure policy:

    FAIL_CLOSED  an internal error blocks the request
    FAIL_OPEN    an internal error lets the request through

Usage:
    from fastapi import Depends
    from estate_api.core.features import require_flag, canary_guard, attach_flags

    @router.get("/admin/overview", dependencies=[Depends(require_flag("admin-panel"))])
    async def overview(): ...

    @router.get("/search/advanced", dependencies=[Depends(canary_guard("advanced-search"))])
    async def advanced_search(): ...

    @router.get("/features")
    async def features(flags: dict[str, bool] = Depends(attach_flags)):
        ...
"""

from enum import Enum

import structlog
from fastapi import Depends, Request

from estate_api.core.errors import CanaryUnavailableError, FeatureDisabledError

from .dependencies import UserFeatureService, get_user_feature_service

logger = structlog.get_logger(__name__)


class FailurePolicy(str, Enum):
    """What a gate does when the flag check itself fails."""
    FAIL_CLOSED = "fail_closed"
    FAIL_OPEN = "fail_open"


class FlagGate:
    """
    Base for request gates.

    Subclasses pick a ``policy``; ``admit_on_error`` turns it into the
    decision used when the flag check raises.
    """

    policy: FailurePolicy = FailurePolicy.FAIL_CLOSED

    def admit_on_error(self, event: str, **fields) -> bool:
        logger.exception(event, policy=self.policy.value, **fields)
        return self.policy is FailurePolicy.FAIL_OPEN


class RequireFlag(FlagGate):
    """
    Hard gate: 403 unless the flag is on for the caller.

    The service already turns store failures into "off", so an outage
    shows up here as a 403 as well.
    """

    policy = FailurePolicy.FAIL_CLOSED

    def __init__(self, key: str):
        self.key = key

    async def __call__(
        self,
        feature: UserFeatureService = Depends(get_user_feature_service),
    ) -> None:
        try:
            enabled = await feature.is_enabled(self.key)
        except Exception:
            enabled = self.admit_on_error("feature_gate.check_failed", key=self.key)

        if not enabled:
            raise FeatureDisabledError(self.key)


class CanaryGuard(FlagGate):
    """
    Canary flag gate: 503 ``canaryStatus: disabled`` while the flag is off.

    Admits the request if the check raises, and tags
    ``request.state.canary_enabled`` / ``feature_name`` when the flag is on.
    """

    policy = FailurePolicy.FAIL_OPEN

    def __init__(self, name: str):
        self.name = name

    async def __call__(
        self,
        request: Request,
        feature: UserFeatureService = Depends(get_user_feature_service),
    ) -> None:
        try:
            enabled = await feature.is_enabled(self.name)
        except Exception:
            if self.admit_on_error("canary_guard.check_failed", key=self.name):
                return
            enabled = False

        if not enabled:
            raise CanaryUnavailableError(
                error="Feature not available",
                message=f"Feature {self.name} is currently disabled",
                canary_status="disabled",
            )

        request.state.canary_enabled = True
        request.state.feature_name = self.name


class AttachFlags(FlagGate):
    """
    Soft attach: evaluate every flag for the caller.

    The map is returned and stored on ``request.state.feature_flags``.
    Anonymous callers get an empty map. On failure a fail-open gate
    attaches an empty map; a fail-closed one lets the error propagate.
    """

    policy = FailurePolicy.FAIL_OPEN

    async def __call__(
        self,
        request: Request,
        feature: UserFeatureService = Depends(get_user_feature_service),
    ) -> dict[str, bool]:
        flags: dict[str, bool] = {}
        if feature.context is not None:
            try:
                flags = await feature.get_all()
            except Exception:
                if not self.admit_on_error("feature_flags.attach_failed"):
                    raise
                flags = {}

        request.state.feature_flags = flags
        return flags


def require_flag(key: str) -> RequireFlag:
    """Hard gate dependency for ``key``."""
    return RequireFlag(key)


def canary_guard(name: str) -> CanaryGuard:
    """Canary flag gate dependency for ``name``."""
    return CanaryGuard(name)


attach_flags = AttachFlags()


def is_flag_enabled(request: Request, key: str) -> bool:
    """True only if ``attach_flags`` ran and marked ``key`` as on."""
    flags = getattr(request.state, "feature_flags", None) or {}
    return flags.get(key) is True
