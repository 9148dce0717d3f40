import asyncio
from dataclasses import replace
import io
import json

import pytest

from geofix.acquisition import FixAcquirer
from geofix.config import FULL_POLICY, QUICK_POLICY
from geofix.models import Fix, PermissionState
from geofix.permission import PermissionProber
from geofix.result import AcquisitionResult, NoSignalError
from geofix.sources import build_scripted_source
from geofix.submit import (
    InMemorySubmitSink,
    JsonLinesSubmitSink,
    RecordSubmission,
    SourceLabel,
    capture_and_submit,
)


def _fix(accuracy: float) -> Fix:
    return Fix(latitude=52.615, longitude=-1.123, accuracy_meters=accuracy, captured_at=1700000000.0)


def test_source_labels_distinguish_modes() -> None:
    full = RecordSubmission.from_result(AcquisitionResult.success(_fix(12.0)), FULL_POLICY)
    quick = RecordSubmission.from_result(AcquisitionResult.success(_fix(40.0)), QUICK_POLICY)
    coarse = RecordSubmission.from_result(
        AcquisitionResult.success(_fix(150.0), coarse=True), QUICK_POLICY
    )

    assert full.source_label == SourceLabel.GPS_FULL
    assert quick.source_label == SourceLabel.GPS_QUICK
    assert coarse.source_label == SourceLabel.GPS_QUICK_COARSE
    assert coarse.coarse is True
    assert coarse.accuracy_meters == 150.0


def test_payload_uses_lon_lat_order() -> None:
    submission = RecordSubmission.from_result(AcquisitionResult.success(_fix(9.5)), FULL_POLICY)

    payload = submission.to_payload()

    assert payload == {
        "location": "SRID=4326;POINT(-1.123 52.615)",
        "location_accuracy_m": 9.5,
        "location_source": "gps_full",
        "location_coarse": False,
        "location_captured_at": 1700000000.0,
    }


def test_failed_result_cannot_be_submitted() -> None:
    with pytest.raises(NoSignalError):
        RecordSubmission.from_result(AcquisitionResult.failure(NoSignalError()), FULL_POLICY)


def test_result_requires_exactly_one_outcome() -> None:
    with pytest.raises(ValueError):
        AcquisitionResult()
    with pytest.raises(ValueError):
        AcquisitionResult(fix=_fix(1.0), error=NoSignalError())


def test_json_lines_sink_writes_one_line_per_submission() -> None:
    stream = io.StringIO()
    sink = JsonLinesSubmitSink(stream)
    submission = RecordSubmission.from_result(
        AcquisitionResult.success(_fix(150.0), coarse=True), QUICK_POLICY
    )

    sink.submit(submission)
    sink.submit(submission)

    lines = stream.getvalue().splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0])["location_source"] == "gps_quick_coarse"


def test_capture_and_submit_round_trip() -> None:
    source = build_scripted_source(
        {"stream": [{"delay_seconds": 0.01, "latitude": 52.6, "longitude": -1.1, "accuracy": 150}]}
    )
    acquirer = FixAcquirer(source, PermissionProber(PermissionState.GRANTED))
    policy = replace(QUICK_POLICY, max_wait_seconds=0.2, fallback_timeout_seconds=0.1)
    sink = InMemorySubmitSink()

    submission = asyncio.run(capture_and_submit(acquirer, policy, sink))

    assert sink.submissions == [submission]
    assert submission.source_label == SourceLabel.GPS_QUICK_COARSE


def test_capture_and_submit_propagates_failure_without_submitting() -> None:
    acquirer = FixAcquirer(build_scripted_source({}), PermissionProber(PermissionState.GRANTED))
    policy = replace(FULL_POLICY, max_wait_seconds=0.2, fallback_timeout_seconds=0.1)
    sink = InMemorySubmitSink()

    with pytest.raises(NoSignalError):
        asyncio.run(capture_and_submit(acquirer, policy, sink))

    assert sink.submissions == []
