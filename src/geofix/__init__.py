"""Best-effort GPS fix acquisition for field record capture."""

from .acquisition import (
    AcquisitionSession,
    AcquisitionState,
    AcquisitionStatus,
    FixAcquirer,
)
from .config import (
    FULL_POLICY,
    QUICK_POLICY,
    AcquisitionMode,
    AcquisitionPolicy,
    load_policy,
    parse_policy,
)
from .models import MISSING_ACCURACY_METERS, Fix, PermissionState, validate_fix
from .permission import DevicePermissionProber, PermissionProber
from .result import (
    AccuracyTooLowError,
    AcquisitionError,
    AcquisitionResult,
    CapabilityUnavailableError,
    NoSignalError,
    PermissionDeniedError,
    SampleTimeoutError,
)
from .selector import BestFixSelector, fold_best, select_best
from .submit import (
    InMemorySubmitSink,
    JsonLinesSubmitSink,
    RecordSubmission,
    SourceLabel,
    SubmitSink,
    capture_and_submit,
)

__all__ = [
    "AccuracyTooLowError",
    "AcquisitionError",
    "AcquisitionMode",
    "AcquisitionPolicy",
    "AcquisitionResult",
    "AcquisitionSession",
    "AcquisitionState",
    "AcquisitionStatus",
    "BestFixSelector",
    "CapabilityUnavailableError",
    "DevicePermissionProber",
    "FULL_POLICY",
    "Fix",
    "FixAcquirer",
    "InMemorySubmitSink",
    "JsonLinesSubmitSink",
    "MISSING_ACCURACY_METERS",
    "NoSignalError",
    "PermissionDeniedError",
    "PermissionProber",
    "PermissionState",
    "QUICK_POLICY",
    "RecordSubmission",
    "SampleTimeoutError",
    "SourceLabel",
    "SubmitSink",
    "capture_and_submit",
    "fold_best",
    "load_policy",
    "parse_policy",
    "select_best",
    "validate_fix",
]
