from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Optional

MISSING_ACCURACY_METERS = 99999.0


class PermissionState:
    UNKNOWN = "unknown"
    PROMPT = "prompt"
    GRANTED = "granted"
    DENIED = "denied"

    ALL = frozenset({UNKNOWN, PROMPT, GRANTED, DENIED})

    @classmethod
    def coerce(cls, value: object) -> str:
        """Normalize a platform-reported state; anything unrecognized is unknown."""
        if isinstance(value, str) and value.strip().lower() in cls.ALL:
            return value.strip().lower()
        return cls.UNKNOWN


@dataclass(frozen=True)
class Fix:
    latitude: float
    longitude: float
    accuracy_meters: float
    captured_at: float


def validate_fix(fix: Fix) -> None:
    if not math.isfinite(fix.latitude) or not -90.0 <= fix.latitude <= 90.0:
        raise ValueError("Fix latitude must be between -90 and 90.")
    if not math.isfinite(fix.longitude) or not -180.0 <= fix.longitude <= 180.0:
        raise ValueError("Fix longitude must be between -180 and 180.")
    if not math.isfinite(fix.accuracy_meters):
        raise ValueError("Fix accuracy_meters must be a finite number.")
    if fix.accuracy_meters < 0:
        raise ValueError("Fix accuracy_meters must be non-negative.")
    if fix.captured_at < 0:
        raise ValueError("Fix captured_at must be non-negative.")


def coerce_accuracy(value: Optional[object]) -> float:
    """Map an absent accuracy reading onto the worst-case sentinel."""
    if value is None:
        return MISSING_ACCURACY_METERS
    return float(value)
