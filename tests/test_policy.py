import json

import pytest

from geofix.config import (
    FULL_POLICY,
    QUICK_POLICY,
    AcquisitionMode,
    AcquisitionPolicy,
    load_policy,
    parse_policy,
    profile_for,
)


def test_canonical_profiles() -> None:
    assert FULL_POLICY.mode == AcquisitionMode.FULL
    assert FULL_POLICY.max_wait_seconds == 30.0
    assert FULL_POLICY.target_accuracy_meters == 20.0
    assert FULL_POLICY.hard_max_accuracy_meters == 80.0
    assert FULL_POLICY.fallback_timeout_seconds == 12.0
    assert FULL_POLICY.deadline_seconds == pytest.approx(30.5)

    assert QUICK_POLICY.mode == AcquisitionMode.QUICK
    assert QUICK_POLICY.max_wait_seconds == 5.0
    assert QUICK_POLICY.soft_threshold_meters == 100.0
    assert QUICK_POLICY.is_quick
    assert not FULL_POLICY.is_quick


def test_policy_rejects_hard_max_below_target() -> None:
    with pytest.raises(ValueError, match="hard_max_accuracy_meters"):
        AcquisitionPolicy(
            mode="full",
            max_wait_seconds=10.0,
            target_accuracy_meters=50.0,
            hard_max_accuracy_meters=20.0,
            fallback_timeout_seconds=5.0,
        )


@pytest.mark.parametrize(
    "field_name",
    ["max_wait_seconds", "fallback_timeout_seconds", "preflight_timeout_seconds"],
)
def test_policy_rejects_non_positive_durations(field_name: str) -> None:
    values = dict(
        mode="full",
        max_wait_seconds=10.0,
        target_accuracy_meters=20.0,
        hard_max_accuracy_meters=80.0,
        fallback_timeout_seconds=5.0,
    )
    values[field_name] = 0.0

    with pytest.raises(ValueError, match=field_name):
        AcquisitionPolicy(**values)


def test_policy_rejects_fallback_longer_than_max_wait() -> None:
    with pytest.raises(ValueError, match="fallback_timeout_seconds"):
        AcquisitionPolicy(
            mode="full",
            max_wait_seconds=5.0,
            target_accuracy_meters=20.0,
            hard_max_accuracy_meters=80.0,
            fallback_timeout_seconds=12.0,
        )


def test_single_shot_requires_quick_mode() -> None:
    with pytest.raises(ValueError, match="quick"):
        parse_policy({"mode": "full", "single_shot": True})

    assert parse_policy({"mode": "quick", "single_shot": True}).single_shot


def test_parse_policy_overrides_selected_profile() -> None:
    policy = parse_policy(
        {"mode": "QUICK", "max_wait_seconds": "8", "hard_max_accuracy_meters": 150}
    )

    assert policy.mode == AcquisitionMode.QUICK
    assert policy.max_wait_seconds == 8.0
    assert policy.hard_max_accuracy_meters == 150.0
    assert policy.fallback_timeout_seconds == QUICK_POLICY.fallback_timeout_seconds


def test_parse_policy_rejects_unknown_fields_and_modes() -> None:
    with pytest.raises(ValueError, match="Unknown policy field"):
        parse_policy({"max_wiat_seconds": 3})
    with pytest.raises(ValueError, match="Unknown acquisition mode"):
        profile_for("survey")
    with pytest.raises(ValueError, match="numeric"):
        parse_policy({"grace_seconds": True})


def test_load_policy_reads_policy_section(tmp_path) -> None:
    path = tmp_path / "geofix.json"
    path.write_text(
        json.dumps({"policy": {"mode": "full", "max_wait_seconds": 20, "fallback_timeout_seconds": 8}}),
        encoding="utf-8",
    )

    policy = load_policy(path)

    assert policy.max_wait_seconds == 20.0
    assert policy.fallback_timeout_seconds == 8.0
    assert policy.target_accuracy_meters == FULL_POLICY.target_accuracy_meters
