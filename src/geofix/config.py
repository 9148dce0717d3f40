from __future__ import annotations

from dataclasses import dataclass, fields, replace
import json
from pathlib import Path
from typing import Mapping, Optional, Union


class AcquisitionMode:
    FULL = "full"
    QUICK = "quick"

    ALL = frozenset({FULL, QUICK})


@dataclass(frozen=True)
class AcquisitionPolicy:
    """Thresholds and timeouts for one acquisition.

    Full mode fails hard when the best fix is worse than
    ``hard_max_accuracy_meters``. Quick mode treats that bound as a soft
    threshold and flags the result as coarse instead of failing.
    """

    mode: str
    max_wait_seconds: float
    target_accuracy_meters: float
    hard_max_accuracy_meters: float
    fallback_timeout_seconds: float
    preflight_timeout_seconds: float = 10.0
    grace_seconds: float = 0.5
    single_shot: bool = False
    single_shot_timeout_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.mode not in AcquisitionMode.ALL:
            raise ValueError(f"Unknown acquisition mode: {self.mode!r}.")
        for name in (
            "max_wait_seconds",
            "fallback_timeout_seconds",
            "preflight_timeout_seconds",
            "single_shot_timeout_seconds",
        ):
            if not getattr(self, name) > 0:
                raise ValueError(f"{name} must be greater than zero.")
        if self.grace_seconds < 0:
            raise ValueError("grace_seconds must be non-negative.")
        if self.target_accuracy_meters < 0:
            raise ValueError("target_accuracy_meters must be non-negative.")
        if self.hard_max_accuracy_meters < self.target_accuracy_meters:
            raise ValueError(
                "hard_max_accuracy_meters must be >= target_accuracy_meters."
            )
        if self.fallback_timeout_seconds > self.max_wait_seconds:
            raise ValueError("fallback_timeout_seconds must not exceed max_wait_seconds.")
        if self.single_shot and self.mode != AcquisitionMode.QUICK:
            raise ValueError("single_shot is only available in quick mode.")

    @property
    def is_quick(self) -> bool:
        return self.mode == AcquisitionMode.QUICK

    @property
    def soft_threshold_meters(self) -> float:
        return self.hard_max_accuracy_meters

    @property
    def deadline_seconds(self) -> float:
        return self.max_wait_seconds + self.grace_seconds

    @property
    def effective_fallback_timeout_seconds(self) -> float:
        return min(self.fallback_timeout_seconds, self.max_wait_seconds)


FULL_POLICY = AcquisitionPolicy(
    mode=AcquisitionMode.FULL,
    max_wait_seconds=30.0,
    target_accuracy_meters=20.0,
    hard_max_accuracy_meters=80.0,
    fallback_timeout_seconds=12.0,
)

QUICK_POLICY = AcquisitionPolicy(
    mode=AcquisitionMode.QUICK,
    max_wait_seconds=5.0,
    target_accuracy_meters=100.0,
    hard_max_accuracy_meters=100.0,
    fallback_timeout_seconds=5.0,
)

PROFILES: Mapping[str, AcquisitionPolicy] = {
    AcquisitionMode.FULL: FULL_POLICY,
    AcquisitionMode.QUICK: QUICK_POLICY,
}

_FLOAT_FIELDS = {
    "max_wait_seconds",
    "target_accuracy_meters",
    "hard_max_accuracy_meters",
    "fallback_timeout_seconds",
    "preflight_timeout_seconds",
    "grace_seconds",
    "single_shot_timeout_seconds",
}


def profile_for(mode: str) -> AcquisitionPolicy:
    try:
        return PROFILES[mode]
    except KeyError:
        raise ValueError(f"Unknown acquisition mode: {mode!r}.") from None


def parse_policy(
    payload: Mapping[str, object],
    base: Optional[AcquisitionPolicy] = None,
) -> AcquisitionPolicy:
    """Build a policy from a JSON mapping, overriding the selected profile."""
    mode = payload.get("mode")
    if mode is not None:
        mode = str(mode).lower()
        policy = profile_for(mode)
    else:
        policy = base or FULL_POLICY

    known = {item.name for item in fields(AcquisitionPolicy)}
    overrides: dict[str, object] = {}
    for key, value in payload.items():
        if key == "mode":
            continue
        if key not in known:
            raise ValueError(f"Unknown policy field: {key!r}.")
        if key in _FLOAT_FIELDS:
            overrides[key] = _require_float(value, f"policy.{key}")
        elif key == "single_shot":
            if not isinstance(value, bool):
                raise ValueError("policy.single_shot must be a boolean.")
            overrides[key] = value
    return replace(policy, **overrides)


def load_policy(
    source: Union[str, Path, Mapping[str, object]],
    base: Optional[AcquisitionPolicy] = None,
) -> AcquisitionPolicy:
    if isinstance(source, Mapping):
        return parse_policy(source, base=base)
    payload = load_config(Path(source))
    return parse_policy(_require_mapping(payload.get("policy", payload), "policy"), base=base)


def load_config(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"Config {path} must contain a JSON object.")
    return payload


def _require_mapping(value: object, label: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{label} must be an object.")
    return value


def _require_float(value: object, label: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{label} must be numeric.")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be numeric.")
