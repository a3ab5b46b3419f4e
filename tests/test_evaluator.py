"""
Tests for flag evaluation and the pure record transforms.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from estate_api.core.features.evaluator import (
    apply_update,
    bucket,
    explain,
    is_active,
    merge_targeting,
    toggled,
    with_whitelist_added,
    with_whitelist_removed,
)
from estate_api.core.features.interfaces import (
    EvaluationContext,
    FeatureFlag,
    Role,
    Targeting,
)


def make_flag(key: str = "beta-search", enabled: bool = True, **targeting) -> FeatureFlag:
    return FeatureFlag(
        key=key,
        name=key.replace("-", " ").title(),
        description="test flag",
        enabled=enabled,
        targeting=Targeting(**targeting),
    )


def synthetic_ids(n: int = 1000) -> list[str]:
    return [f"user-{i:05d}" for i in range(n)]


EVERYTHING_CTX = EvaluationContext(user_id="u-1", email="vip@example.com", role="admin")


# ============ Kill-switch and empty targeting ============


@pytest.mark.parametrize(
    "ctx",
    [
        None,
        EvaluationContext(),
        EVERYTHING_CTX,
    ],
)
def test_disabled_flag_is_off_for_every_context(ctx):
    flag = make_flag(
        enabled=False,
        user_ids=["u-1"],
        emails=["vip@example.com"],
        roles=[Role.ADMIN],
        percentage=100,
    )
    assert is_active(flag, ctx) is False
    assert explain(flag, ctx).reason == "Flag disabled globally"


@pytest.mark.parametrize(
    "ctx",
    [
        None,
        EvaluationContext(),
        EvaluationContext(user_id="someone"),
        EVERYTHING_CTX,
    ],
)
def test_enabled_flag_without_targeting_is_open_to_all(ctx):
    assert is_active(make_flag(), ctx) is True


def test_anonymous_context_cannot_match_targeting():
    flag = make_flag(user_ids=["u-1"], emails=["vip@example.com"], percentage=100)
    assert is_active(flag, None) is False


def test_context_without_id_skips_percentage():
    flag = make_flag(percentage=100)
    assert is_active(flag, EvaluationContext(email="a@example.com")) is False


# ============ Individual rules ============


def test_user_id_whitelist():
    flag = make_flag(user_ids=["u-1"])
    assert is_active(flag, EvaluationContext(user_id="u-1")) is True
    assert is_active(flag, EvaluationContext(user_id="u-2")) is False


def test_email_match_is_case_insensitive():
    flag = make_flag(emails=["vip@example.com"])
    assert is_active(flag, EvaluationContext(email="VIP@Example.COM")) is True
    assert is_active(flag, EvaluationContext(email="other@example.com")) is False


def test_admin_panel_role_scenario():
    flag = make_flag(key="admin-panel", roles=[Role.ADMIN])
    assert is_active(flag, EvaluationContext(role="user")) is False
    assert is_active(flag, EvaluationContext(role="admin")) is True
    assert is_active(flag, None) is False


def test_whitelist_beats_percentage_bucket():
    flag_key = "beta-search"
    # An id the 10% rollout leaves out
    outsider = next(uid for uid in synthetic_ids() if bucket(flag_key, uid) >= 10)
    flag = make_flag(key=flag_key, percentage=10)
    assert is_active(flag, EvaluationContext(user_id=outsider)) is False

    whitelisted = with_whitelist_added(flag, [], [outsider], actor="admin-1")
    assert is_active(whitelisted, EvaluationContext(user_id=outsider)) is True

    by_email = with_whitelist_added(flag, ["Out@Example.com"], [], actor="admin-1")
    ctx = EvaluationContext(user_id=outsider, email="out@example.com")
    assert is_active(by_email, ctx) is True


# ============ Percentage rollout ============


def test_bucket_is_deterministic_and_in_range():
    for uid in synthetic_ids(200):
        first = bucket("beta-search", uid)
        assert 0 <= first < 100
        assert bucket("beta-search", uid) == first


def test_repeated_evaluation_is_stable():
    flag = make_flag(percentage=37)
    ctx = EvaluationContext(user_id=str(uuid4()))
    results = {is_active(flag, ctx) for _ in range(20)}
    assert len(results) == 1


def test_percentage_rollout_is_monotonic():
    ids = synthetic_ids(300)
    previous: set[str] = set()
    for percentage in range(0, 101, 5):
        flag = make_flag(user_ids=[] if percentage else ["nobody"], percentage=percentage)
        admitted = {uid for uid in ids if is_active(flag, EvaluationContext(user_id=uid))}
        assert previous <= admitted
        previous = admitted
    assert previous == set(ids)


def test_fifty_percent_rollout_converges():
    ids = synthetic_ids(1000)
    half = make_flag(key="beta-search", percentage=50)
    admitted = {uid for uid in ids if is_active(half, EvaluationContext(user_id=uid))}

    assert 0.43 <= len(admitted) / len(ids) <= 0.57

    full = make_flag(key="beta-search", percentage=100)
    assert all(is_active(full, EvaluationContext(user_id=uid)) for uid in admitted)


def test_flags_at_same_percentage_admit_different_cohorts():
    # Buckets are salted with the flag key, so cohorts are not shared.
    ids = synthetic_ids(1000)
    a = make_flag(key="beta-search", percentage=50)
    b = make_flag(key="new-property-form", percentage=50)

    cohort_a = {uid for uid in ids if is_active(a, EvaluationContext(user_id=uid))}
    cohort_b = {uid for uid in ids if is_active(b, EvaluationContext(user_id=uid))}

    assert cohort_a != cohort_b
    overlap = len(cohort_a & cohort_b) / len(ids)
    assert 0.15 <= overlap <= 0.35


# ============ Transforms ============


def test_merge_targeting_keeps_sibling_fields():
    current = Targeting(user_ids=["u-1"], emails=["a@example.com"], roles=[Role.ADMIN], percentage=5)
    merged = merge_targeting(current, {"percentage": 25})

    assert merged.percentage == 25
    assert merged.user_ids == ["u-1"]
    assert merged.emails == ["a@example.com"]
    assert merged.roles == [Role.ADMIN]
    assert current.percentage == 5


def test_apply_update_merges_and_stamps():
    flag = make_flag(user_ids=["u-1"], percentage=10)
    flag.created_by = "creator"

    updated = apply_update(
        flag,
        {"name": "Renamed", "enabled": None, "targeting": {"roles": ["moderator"]}, "key": "x"},
        actor="editor",
    )

    assert updated.key == flag.key
    assert updated.name == "Renamed"
    assert updated.enabled is True
    assert updated.targeting.user_ids == ["u-1"]
    assert updated.targeting.roles == [Role.MODERATOR]
    assert updated.targeting.percentage == 10
    assert updated.created_by == "creator"
    assert updated.updated_by == "editor"
    assert updated.last_toggled_at is None


def test_toggled_flips_and_stamps_time():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    flag = make_flag(enabled=True)

    off = toggled(flag, "admin-1", now)

    assert off.enabled is False
    assert off.last_toggled_at == now
    assert off.updated_by == "admin-1"
    assert toggled(off, "admin-1", now).enabled is True


def test_whitelist_add_is_idempotent():
    flag = make_flag(emails=["a@example.com"], user_ids=["u-1"])

    once = with_whitelist_added(flag, [" A@Example.com ", "b@example.com"], ["u-1", "u-2"], "x")
    twice = with_whitelist_added(once, ["b@example.com"], ["u-2"], "x")

    assert twice.targeting.emails == ["a@example.com", "b@example.com"]
    assert twice.targeting.user_ids == ["u-1", "u-2"]


def test_whitelist_remove_missing_entry_is_noop():
    flag = make_flag(emails=["a@example.com"], user_ids=["u-1"])

    removed = with_whitelist_removed(flag, ["missing@example.com"], ["nope"], "x")
    assert removed.targeting.emails == ["a@example.com"]
    assert removed.targeting.user_ids == ["u-1"]

    removed = with_whitelist_removed(flag, ["A@EXAMPLE.COM"], ["u-1"], "x")
    assert removed.targeting.emails == []
    assert removed.targeting.user_ids == []
