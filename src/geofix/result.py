from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import Fix


@dataclass(eq=False)
class AcquisitionError(RuntimeError):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class PermissionDeniedError(AcquisitionError):
    message: str = (
        "Location permission denied. Allow location access in your settings, "
        "then try again."
    )


@dataclass(eq=False)
class CapabilityUnavailableError(AcquisitionError):
    message: str = "Location capability is not available on this device."


@dataclass(eq=False)
class SampleTimeoutError(AcquisitionError):
    message: str = "Timed out waiting for a location fix."


@dataclass(eq=False)
class NoSignalError(AcquisitionError):
    message: str = (
        "No GPS samples received. Move outdoors and enable precise location, "
        "then try again."
    )


@dataclass(eq=False)
class AccuracyTooLowError(AcquisitionError):
    best_accuracy_meters: float = float("inf")
    message: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = (
                f"GPS not accurate enough (best ±{round(self.best_accuracy_meters)} m). "
                "Please step outside, wait ~15s, ensure precise location is on, "
                "then try again."
            )


@dataclass(frozen=True)
class AcquisitionResult:
    """Outcome of one acquisition: a fix (possibly coarse) or an error."""

    fix: Optional[Fix] = None
    coarse: bool = False
    error: Optional[AcquisitionError] = None

    def __post_init__(self) -> None:
        if (self.fix is None) == (self.error is None):
            raise ValueError("AcquisitionResult needs exactly one of fix or error.")
        if self.error is not None and self.coarse:
            raise ValueError("A failed AcquisitionResult cannot be coarse.")

    @classmethod
    def success(cls, fix: Fix, coarse: bool = False) -> "AcquisitionResult":
        return cls(fix=fix, coarse=coarse)

    @classmethod
    def failure(cls, error: AcquisitionError) -> "AcquisitionResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Fix:
        if self.error is not None:
            raise self.error
        if self.fix is None:
            raise RuntimeError("AcquisitionResult holds neither a fix nor an error.")
        return self.fix
