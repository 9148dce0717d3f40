from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import time
from typing import AsyncIterator, List, Mapping, Optional, Sequence, Union

from ..models import Fix, coerce_accuracy, validate_fix
from .base import SampleDenied, SampleTimeout, SampleUnavailable


@dataclass(frozen=True)
class FixPayloadError(ValueError):
    message: str

    def __str__(self) -> str:
        return self.message


_ERRORS = {
    "timeout": SampleTimeout,
    "unavailable": SampleUnavailable,
    "denied": SampleDenied,
}


@dataclass(frozen=True)
class ScriptedStep:
    delay_seconds: float
    fix: Optional[Fix] = None
    error: Optional[str] = None

    def raise_error(self) -> None:
        if self.error is not None:
            raise _ERRORS[self.error]()


@dataclass(frozen=True)
class ScriptedSourceConfig:
    """Offline sample script: what the stream emits and how one-shots answer.

    ``one_shot`` answers one-shot calls in call order (a permission preflight,
    when one runs, consumes the first entry). Once exhausted, further calls
    wait out their timeout. The stream stays silent after its last step until
    its deadline.
    """

    stream: Sequence[Mapping[str, object]] = field(default_factory=tuple)
    one_shot: Sequence[Mapping[str, object]] = field(default_factory=tuple)
    available: bool = True


class ScriptedSampleSource:
    """Replay scripted samples with real delays; used for demos and tests."""

    def __init__(
        self,
        config: ScriptedSourceConfig,
        clock=time.time,
    ) -> None:
        self._config = config
        self._stream_steps = parse_steps(config.stream, "stream", clock)
        self._one_shot_steps = parse_steps(config.one_shot, "one_shot", clock)
        self.stream_calls = 0
        self.one_shot_calls = 0

    def is_available(self) -> bool:
        return self._config.available

    async def stream_samples(self, deadline_seconds: float) -> AsyncIterator[Fix]:
        self.stream_calls += 1
        loop = asyncio.get_running_loop()
        deadline = loop.time() + deadline_seconds
        for step in self._stream_steps:
            remaining = deadline - loop.time()
            if step.delay_seconds > remaining:
                await asyncio.sleep(max(remaining, 0.0))
                return
            await asyncio.sleep(step.delay_seconds)
            step.raise_error()
            if step.fix is not None:
                yield step.fix
        await asyncio.sleep(max(deadline - loop.time(), 0.0))

    async def one_shot_sample(self, timeout_seconds: float) -> Fix:
        index = self.one_shot_calls
        self.one_shot_calls += 1
        if index >= len(self._one_shot_steps):
            await asyncio.sleep(timeout_seconds)
            raise SampleTimeout()
        step = self._one_shot_steps[index]
        if step.delay_seconds > timeout_seconds:
            await asyncio.sleep(timeout_seconds)
            raise SampleTimeout()
        await asyncio.sleep(step.delay_seconds)
        step.raise_error()
        if step.fix is None:
            raise SampleTimeout()
        return step.fix


def parse_steps(
    payloads: Sequence[Mapping[str, object]],
    label: str,
    clock=time.time,
) -> List[ScriptedStep]:
    steps: List[ScriptedStep] = []
    for idx, payload in enumerate(payloads):
        if not isinstance(payload, Mapping):
            raise FixPayloadError(f"{label}[{idx}] must be a mapping.")
        delay = _optional_float(payload.get("delay_seconds"), "delay_seconds", label, idx) or 0.0
        if delay < 0:
            raise FixPayloadError(f"{label}[{idx}] delay_seconds must be non-negative.")
        error = payload.get("error")
        if error is not None:
            error = str(error).lower()
            if error not in _ERRORS:
                raise FixPayloadError(
                    f"{label}[{idx}] error must be one of {sorted(_ERRORS)}; received {error!r}."
                )
            steps.append(ScriptedStep(delay_seconds=delay, error=error))
            continue
        steps.append(
            ScriptedStep(delay_seconds=delay, fix=parse_fix_payload(payload, idx, label, clock))
        )
    return steps


def parse_fix_payload(
    payload: Mapping[str, object],
    idx: int = 0,
    label: str = "fix",
    clock=time.time,
) -> Fix:
    """Parse ``latitude``/``longitude``/``accuracy``/``timestamp`` into a Fix."""
    latitude = _require_float(payload.get("latitude"), "latitude", label, idx)
    longitude = _require_float(payload.get("longitude"), "longitude", label, idx)
    accuracy = payload.get("accuracy", payload.get("accuracy_meters"))
    try:
        accuracy_meters = coerce_accuracy(accuracy)
    except (TypeError, ValueError):
        raise FixPayloadError(
            f"{label}[{idx}] has invalid 'accuracy' field; received {accuracy!r}."
        ) from None
    captured_at = _optional_float(payload.get("timestamp"), "timestamp", label, idx)
    fix = Fix(
        latitude=latitude,
        longitude=longitude,
        accuracy_meters=accuracy_meters,
        captured_at=clock() if captured_at is None else captured_at,
    )
    try:
        validate_fix(fix)
    except ValueError as exc:
        raise FixPayloadError(f"{label}[{idx}] {exc}") from exc
    return fix


def _require_float(value: object, name: str, label: str, idx: int) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise FixPayloadError(
            f"{label}[{idx}] has invalid or missing '{name}' field; received {value!r}."
        ) from None


def _optional_float(value: object, name: str, label: str, idx: int) -> Optional[float]:
    if value is None:
        return None
    return _require_float(value, name, label, idx)


ScriptPayload = Union[ScriptedSourceConfig, Mapping[str, object]]


def build_scripted_source(payload: ScriptPayload) -> ScriptedSampleSource:
    if isinstance(payload, ScriptedSourceConfig):
        return ScriptedSampleSource(payload)
    stream = payload.get("stream", ())
    one_shot = payload.get("one_shot", ())
    for name, value in (("stream", stream), ("one_shot", one_shot)):
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
            raise FixPayloadError(f"{name} must be a list.")
    return ScriptedSampleSource(
        ScriptedSourceConfig(
            stream=tuple(stream),
            one_shot=tuple(one_shot),
            available=bool(payload.get("available", True)),
        )
    )
