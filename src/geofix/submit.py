from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import IO, Dict, List, Protocol

from .acquisition import FixAcquirer
from .config import AcquisitionPolicy
from .models import Fix
from .result import AcquisitionResult

LOGGER = logging.getLogger(__name__)


class SourceLabel:
    GPS_FULL = "gps_full"
    GPS_QUICK = "gps_quick"
    GPS_QUICK_COARSE = "gps_quick_coarse"


@dataclass(frozen=True)
class RecordSubmission:
    """Location fields handed to the record store with a new record.

    ``source_label`` tells downstream storage which records still need a
    precision pass.
    """

    fix: Fix
    accuracy_meters: float
    source_label: str
    coarse: bool

    @classmethod
    def from_result(
        cls, result: AcquisitionResult, policy: AcquisitionPolicy
    ) -> "RecordSubmission":
        fix = result.unwrap()
        if not policy.is_quick:
            label = SourceLabel.GPS_FULL
        elif result.coarse:
            label = SourceLabel.GPS_QUICK_COARSE
        else:
            label = SourceLabel.GPS_QUICK
        return cls(
            fix=fix,
            accuracy_meters=fix.accuracy_meters,
            source_label=label,
            coarse=result.coarse,
        )

    def to_payload(self) -> Dict[str, object]:
        # EWKT points are lon/lat ordered.
        return {
            "location": f"SRID=4326;POINT({self.fix.longitude} {self.fix.latitude})",
            "location_accuracy_m": self.accuracy_meters,
            "location_source": self.source_label,
            "location_coarse": self.coarse,
            "location_captured_at": self.fix.captured_at,
        }


class SubmitSink(Protocol):
    def submit(self, submission: RecordSubmission) -> None: ...


class InMemorySubmitSink:
    def __init__(self) -> None:
        self.submissions: List[RecordSubmission] = []

    def submit(self, submission: RecordSubmission) -> None:
        self.submissions.append(submission)


class JsonLinesSubmitSink:
    """Write one JSON payload per submission to a text stream."""

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream

    def submit(self, submission: RecordSubmission) -> None:
        self._stream.write(json.dumps(submission.to_payload()) + "\n")
        self._stream.flush()


async def capture_and_submit(
    acquirer: FixAcquirer,
    policy: AcquisitionPolicy,
    sink: SubmitSink,
) -> RecordSubmission:
    """Acquire a fix and hand it to ``sink``.

    A failed acquisition raises its ``AcquisitionError`` and nothing is
    submitted; retrying is left to the caller.
    """
    result = await acquirer.acquire(policy)
    submission = RecordSubmission.from_result(result, policy)
    sink.submit(submission)
    LOGGER.info(
        "record_submitted",
        extra={
            "source_label": submission.source_label,
            "accuracy_meters": submission.accuracy_meters,
            "coarse": submission.coarse,
        },
    )
    return submission
