"""
Flag evaluation and record transforms.

Everything here is pure: no I/O, no clocks unless passed in. The service
layer reads a record, hands it to these functions and persists the result.

Evaluation order (first decisive step wins):
1. Flag disabled -> off
2. No targeting rules -> on for everyone, anonymous included
3. Anonymous context -> off
4. User id whitelisted -> on
5. Email whitelisted (case-insensitive) -> on
6. Role targeted -> on
7. Percentage rollout -> on if bucket < percentage
8. Otherwise off
"""

import hashlib
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable

from .interfaces import (
    EvaluationContext,
    EvaluationResult,
    FeatureFlag,
    Role,
    Targeting,
)

# Fields a generic update may touch. ``key`` and ``created_by`` are fixed
# at creation; ``last_toggled_at`` belongs to toggling.
UPDATABLE_FIELDS = ("name", "description", "enabled")
TARGETING_FIELDS = ("user_ids", "emails", "roles", "percentage")


# ============================================================
# BUCKETING
# ============================================================

def bucket(flag_key: str, user_id: str) -> int:
    """
    Map (flag, user) to a stable bucket in [0, 100).

    The flag key salts the hash so two flags at the same percentage
    admit different cohorts. Raising a flag's percentage only moves the
    threshold, so every admitted user stays admitted.
    """
    digest = hashlib.md5(f"{flag_key}:{user_id}".encode()).digest()
    return int.from_bytes(digest[:4], "big") % 100


# ============================================================
# EVALUATION
# ============================================================

def explain(flag: FeatureFlag, ctx: EvaluationContext | None) -> EvaluationResult:
    """Evaluate a flag and report which rule decided."""
    key = flag.key
    user_id = ctx.user_id if ctx else None
    targeting = flag.targeting

    if not flag.enabled:
        return EvaluationResult.no(key, "Flag disabled globally", user_id)

    if targeting.is_empty():
        return EvaluationResult.yes(key, "No targeting rules", user_id)

    if ctx is None:
        return EvaluationResult.no(key, "Anonymous context", user_id)

    if user_id and user_id in targeting.user_ids:
        return EvaluationResult.yes(key, "User id whitelisted", user_id)

    if ctx.email and ctx.email.strip().lower() in targeting.emails:
        return EvaluationResult.yes(key, "Email whitelisted", user_id)

    if ctx.role and ctx.role in targeting.roles:
        return EvaluationResult.yes(key, f"Role '{ctx.role}' targeted", user_id)

    if targeting.percentage > 0 and user_id:
        user_bucket = bucket(key, user_id)
        if user_bucket < targeting.percentage:
            return EvaluationResult.yes(
                key,
                f"Inside {targeting.percentage}% rollout",
                user_id,
            )
        return EvaluationResult.no(
            key,
            f"Outside {targeting.percentage}% rollout",
            user_id,
        )

    return EvaluationResult.no(key, "No targeting rule matched", user_id)


def is_active(flag: FeatureFlag, ctx: EvaluationContext | None) -> bool:
    """Decide whether ``flag`` is on for ``ctx``."""
    return explain(flag, ctx).enabled


# ============================================================
# RECORD TRANSFORMS
# ============================================================

def normalize_email(email: str) -> str:
    return email.strip().lower()


def _unique(values: Iterable[Any]) -> list[Any]:
    seen: list[Any] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def merge_targeting(current: Targeting, patch: dict[str, Any]) -> Targeting:
    """
    Merge a partial targeting update into ``current``.

    Only the sub-fields present in ``patch`` change; siblings are kept.
    """
    merged = {
        "user_ids": list(current.user_ids),
        "emails": list(current.emails),
        "roles": list(current.roles),
        "percentage": current.percentage,
    }

    for name in TARGETING_FIELDS:
        if name not in patch or patch[name] is None:
            continue
        value = patch[name]
        if name == "user_ids":
            merged[name] = _unique(str(v) for v in value)
        elif name == "emails":
            merged[name] = _unique(normalize_email(v) for v in value)
        elif name == "roles":
            merged[name] = _unique(Role(v) for v in value)
        else:
            merged[name] = int(value)

    return Targeting(**merged)


def apply_update(
    flag: FeatureFlag,
    patch: dict[str, Any],
    actor: str | None,
) -> FeatureFlag:
    """
    Return a copy of ``flag`` with ``patch`` applied.

    ``None`` values are treated as absent. ``targeting`` is merged
    field-wise instead of replaced.
    """
    changes: dict[str, Any] = {
        name: patch[name]
        for name in UPDATABLE_FIELDS
        if patch.get(name) is not None
    }

    if patch.get("targeting") is not None:
        changes["targeting"] = merge_targeting(flag.targeting, patch["targeting"])

    return replace(flag, **changes, updated_by=actor)


def toggled(flag: FeatureFlag, actor: str | None, now: datetime) -> FeatureFlag:
    """Flip the kill-switch and stamp the toggle time."""
    return replace(
        flag,
        enabled=not flag.enabled,
        last_toggled_at=now,
        updated_by=actor,
    )


def with_whitelist_added(
    flag: FeatureFlag,
    emails: Iterable[str],
    user_ids: Iterable[str],
    actor: str | None,
) -> FeatureFlag:
    """Add emails/user ids to the whitelist. Existing entries are kept once."""
    targeting = replace(
        flag.targeting,
        emails=_unique([*flag.targeting.emails, *(normalize_email(e) for e in emails)]),
        user_ids=_unique([*flag.targeting.user_ids, *(str(u) for u in user_ids)]),
    )
    return replace(flag, targeting=targeting, updated_by=actor)


def with_whitelist_removed(
    flag: FeatureFlag,
    emails: Iterable[str],
    user_ids: Iterable[str],
    actor: str | None,
) -> FeatureFlag:
    """Remove emails/user ids from the whitelist. Missing entries are ignored."""
    drop_emails = {normalize_email(e) for e in emails}
    drop_ids = {str(u) for u in user_ids}
    targeting = replace(
        flag.targeting,
        emails=[e for e in flag.targeting.emails if e not in drop_emails],
        user_ids=[u for u in flag.targeting.user_ids if u not in drop_ids],
    )
    return replace(flag, targeting=targeting, updated_by=actor)
