"""Acquire one best-effort location fix under a Full or Quick policy.

The session races a continuous sample stream against a one-shot fallback
read and a deadline timer. Every outcome arrives as a typed event on one
queue and is folded by a single consumer, so the first event that satisfies
the early-accept rule or the deadline decides the result and everything
after it is discarded.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Callable, Dict, List, Optional, Set, Union

from .config import AcquisitionPolicy
from .models import Fix, PermissionState, validate_fix
from .permission import PermissionProber
from .result import (
    AccuracyTooLowError,
    AcquisitionError,
    AcquisitionResult,
    CapabilityUnavailableError,
    NoSignalError,
    PermissionDeniedError,
    SampleTimeoutError,
)
from .selector import BestFixSelector
from .sources.base import (
    SampleDenied,
    SampleError,
    SampleSource,
    SampleTimeout,
    SampleUnavailable,
)

LOGGER = logging.getLogger(__name__)

STREAM = "stream"
FALLBACK = "fallback"


class AcquisitionState:
    IDLE = "idle"
    PREFLIGHT = "preflight"
    SAMPLING = "sampling"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class AcquisitionStatus:
    state: str
    message: str
    samples: int = 0
    best_accuracy_meters: Optional[int] = None


@dataclass(frozen=True)
class SampleArrived:
    fix: Fix
    origin: str


@dataclass(frozen=True)
class SourceFailed:
    origin: str
    error: SampleError


@dataclass(frozen=True)
class SourceExhausted:
    origin: str


@dataclass(frozen=True)
class DeadlineReached:
    pass


AcquisitionEvent = Union[SampleArrived, SourceFailed, SourceExhausted, DeadlineReached]
ProgressCallback = Callable[[AcquisitionStatus], None]


def map_sample_error(error: SampleError) -> AcquisitionError:
    if isinstance(error, SampleDenied):
        return PermissionDeniedError()
    if isinstance(error, SampleTimeout):
        return SampleTimeoutError()
    return CapabilityUnavailableError()


class AcquisitionSession:
    """State for exactly one ``acquire`` call.

    ``handle_event`` is the only way samples and failures reach the selector
    and it becomes a no-op once a result is recorded.
    """

    def __init__(
        self,
        policy: AcquisitionPolicy,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.policy = policy
        self.state = AcquisitionState.IDLE
        self.selector = BestFixSelector()
        self.result: Optional[AcquisitionResult] = None
        self._progress = progress
        self._open_paths: Set[str] = set()
        self._started_paths: Set[str] = set()
        self._failures: Dict[str, SampleError] = {}
        self._tasks: List[asyncio.Task] = []

    @property
    def resolved(self) -> bool:
        return self.result is not None

    def begin_preflight(self) -> None:
        self._transition(AcquisitionState.PREFLIGHT)
        self._notify("Checking location permission…")

    def begin_sampling(self, paths: Optional[Set[str]] = None) -> None:
        self._transition(AcquisitionState.SAMPLING)
        self._started_paths = set(paths or ())
        self._open_paths = set(self._started_paths)
        self._notify("Capturing GPS…")

    def attach_tasks(self, tasks: List[asyncio.Task]) -> None:
        self._tasks.extend(tasks)
        if self.resolved:
            self.cancel_outstanding()

    def handle_event(self, event: AcquisitionEvent) -> Optional[AcquisitionResult]:
        if self.result is not None:
            LOGGER.debug(
                "Ignoring %s after resolution", type(event).__name__,
                extra={"mode": self.policy.mode},
            )
            return self.result
        if isinstance(event, SampleArrived):
            self._on_sample(event)
        elif isinstance(event, SourceFailed):
            LOGGER.warning(
                "Sample path %s failed: %s", event.origin, event.error,
                extra={"mode": self.policy.mode, "origin": event.origin},
            )
            self._failures[event.origin] = event.error
            self._close_path(event.origin)
        elif isinstance(event, SourceExhausted):
            self._close_path(event.origin)
        elif isinstance(event, DeadlineReached):
            self.resolve(self._evaluate_deadline())
        return self.result

    def finish_single_shot(self, fix: Fix) -> AcquisitionResult:
        validate_fix(fix)
        self.selector.update(fix)
        coarse = fix.accuracy_meters > self.policy.soft_threshold_meters
        return self.resolve(AcquisitionResult.success(fix, coarse=coarse))

    def resolve(self, result: AcquisitionResult) -> AcquisitionResult:
        if self.result is not None:
            return self.result
        self.result = result
        self.state = AcquisitionState.RESOLVED
        self.cancel_outstanding()
        fix = result.fix
        if fix is not None:
            LOGGER.info(
                "acquisition_resolved",
                extra={
                    "mode": self.policy.mode,
                    "outcome": "ok",
                    "accuracy_meters": fix.accuracy_meters,
                    "coarse": result.coarse,
                    "samples": self.selector.samples,
                },
            )
            self._notify(f"Best fix: ±{round(fix.accuracy_meters)} m")
        else:
            LOGGER.info(
                "acquisition_resolved",
                extra={
                    "mode": self.policy.mode,
                    "outcome": type(result.error).__name__,
                    "samples": self.selector.samples,
                },
            )
            self._notify(str(result.error))
        return result

    def cancel_outstanding(self) -> None:
        for task in self._tasks:
            if not task.done():
                task.cancel()

    def _on_sample(self, event: SampleArrived) -> None:
        try:
            validate_fix(event.fix)
        except ValueError as exc:
            LOGGER.warning("Discarding invalid %s sample: %s", event.origin, exc)
            return
        replaced = self.selector.update(event.fix)
        LOGGER.debug(
            "sample_folded",
            extra={
                "origin": event.origin,
                "accuracy_meters": event.fix.accuracy_meters,
                "best_accuracy_meters": self.selector.best_accuracy_meters,
                "samples": self.selector.samples,
            },
        )
        self._notify("Capturing GPS…")
        # A held fix within target has already resolved; only a new best can accept.
        if (
            replaced
            and not self.policy.is_quick
            and event.fix.accuracy_meters <= self.policy.target_accuracy_meters
        ):
            self.resolve(AcquisitionResult.success(event.fix, coarse=False))

    def _close_path(self, origin: str) -> None:
        self._open_paths.discard(origin)
        if self._started_paths and not self._open_paths:
            self.resolve(self._evaluate_deadline())

    def _evaluate_deadline(self) -> AcquisitionResult:
        best = self.selector.best
        if best is None:
            return AcquisitionResult.failure(self._no_sample_error())
        if self.policy.is_quick:
            coarse = best.accuracy_meters > self.policy.soft_threshold_meters
            return AcquisitionResult.success(best, coarse=coarse)
        if best.accuracy_meters <= self.policy.hard_max_accuracy_meters:
            return AcquisitionResult.success(best, coarse=False)
        return AcquisitionResult.failure(
            AccuracyTooLowError(best_accuracy_meters=best.accuracy_meters)
        )

    def _no_sample_error(self) -> AcquisitionError:
        failures = list(self._failures.values())
        if any(isinstance(error, SampleDenied) for error in failures):
            return PermissionDeniedError()
        if (
            self._started_paths
            and set(self._failures) == self._started_paths
            and all(isinstance(error, SampleUnavailable) for error in failures)
        ):
            return CapabilityUnavailableError()
        return NoSignalError()

    def _transition(self, state: str) -> None:
        if self.result is not None:
            raise RuntimeError("Acquisition already resolved.")
        self.state = state

    def _notify(self, message: str) -> None:
        if self._progress is None:
            return
        best = self.selector.best_accuracy_meters
        status = AcquisitionStatus(
            state=self.state,
            message=message,
            samples=self.selector.samples,
            best_accuracy_meters=None if best is None else round(best),
        )
        try:
            self._progress(status)
        except Exception:
            LOGGER.exception("Acquisition progress callback failed")


class FixAcquirer:
    """Drive the preflight → sampling → resolved protocol against one source.

    At most one ``acquire`` may be in flight per instance; callers serialize.
    """

    def __init__(
        self,
        source: SampleSource,
        prober: Optional[PermissionProber] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._source = source
        self._prober = prober or PermissionProber()
        self._progress = progress
        self.last_session: Optional[AcquisitionSession] = None

    def acquire_blocking(self, policy: AcquisitionPolicy) -> AcquisitionResult:
        return asyncio.run(self.acquire(policy))

    async def acquire(self, policy: AcquisitionPolicy) -> AcquisitionResult:
        session = AcquisitionSession(policy, progress=self._progress)
        self.last_session = session
        permission_state = self._prober.current_state()
        LOGGER.info(
            "acquisition_start",
            extra={
                "mode": policy.mode,
                "permission_state": permission_state,
                "single_shot": policy.single_shot,
            },
        )
        session.begin_preflight()
        if not self._source.is_available():
            return session.resolve(AcquisitionResult.failure(CapabilityUnavailableError()))
        if permission_state == PermissionState.PROMPT:
            denied = await self._preflight(policy)
            if denied:
                return session.resolve(AcquisitionResult.failure(PermissionDeniedError()))
        if policy.single_shot:
            return await self._single_shot(session)
        return await self._sample(session)

    async def _preflight(self, policy: AcquisitionPolicy) -> bool:
        """Trigger the platform permission prompt; only a denial matters."""
        try:
            await asyncio.wait_for(
                self._source.one_shot_sample(policy.preflight_timeout_seconds),
                policy.preflight_timeout_seconds + policy.grace_seconds,
            )
        except SampleDenied:
            return True
        except (SampleError, asyncio.TimeoutError) as exc:
            LOGGER.info("Permission preflight finished without a fix: %s", exc)
        return False

    async def _single_shot(self, session: AcquisitionSession) -> AcquisitionResult:
        policy = session.policy
        session.begin_sampling()
        try:
            fix = await asyncio.wait_for(
                self._source.one_shot_sample(policy.single_shot_timeout_seconds),
                policy.single_shot_timeout_seconds + policy.grace_seconds,
            )
        except asyncio.TimeoutError:
            return session.resolve(AcquisitionResult.failure(SampleTimeoutError()))
        except SampleError as exc:
            return session.resolve(AcquisitionResult.failure(map_sample_error(exc)))
        try:
            return session.finish_single_shot(fix)
        except ValueError as exc:
            LOGGER.warning("Single-shot sample rejected: %s", exc)
            return session.resolve(AcquisitionResult.failure(NoSignalError()))

    async def _sample(self, session: AcquisitionSession) -> AcquisitionResult:
        policy = session.policy
        queue: asyncio.Queue = asyncio.Queue()
        session.begin_sampling(paths={STREAM, FALLBACK})
        tasks = [
            asyncio.create_task(self._run_stream(policy, queue)),
            asyncio.create_task(self._run_fallback(policy, queue)),
            asyncio.create_task(self._run_deadline(policy, queue)),
        ]
        session.attach_tasks(tasks)
        result: Optional[AcquisitionResult] = None
        try:
            while result is None:
                result = session.handle_event(await queue.get())
        finally:
            session.cancel_outstanding()
            await asyncio.gather(*tasks, return_exceptions=True)
        return result

    async def _run_stream(self, policy: AcquisitionPolicy, queue: asyncio.Queue) -> None:
        try:
            async for fix in self._source.stream_samples(policy.max_wait_seconds):
                queue.put_nowait(SampleArrived(fix=fix, origin=STREAM))
        except SampleError as exc:
            queue.put_nowait(SourceFailed(origin=STREAM, error=exc))
        except Exception as exc:
            LOGGER.exception("Sample stream crashed")
            queue.put_nowait(SourceFailed(origin=STREAM, error=SampleUnavailable(str(exc))))
        else:
            queue.put_nowait(SourceExhausted(origin=STREAM))

    async def _run_fallback(self, policy: AcquisitionPolicy, queue: asyncio.Queue) -> None:
        try:
            fix = await self._source.one_shot_sample(policy.effective_fallback_timeout_seconds)
        except SampleError as exc:
            queue.put_nowait(SourceFailed(origin=FALLBACK, error=exc))
        except Exception as exc:
            LOGGER.exception("One-shot fallback crashed")
            queue.put_nowait(SourceFailed(origin=FALLBACK, error=SampleUnavailable(str(exc))))
        else:
            queue.put_nowait(SampleArrived(fix=fix, origin=FALLBACK))
            queue.put_nowait(SourceExhausted(origin=FALLBACK))

    async def _run_deadline(self, policy: AcquisitionPolicy, queue: asyncio.Queue) -> None:
        await asyncio.sleep(policy.deadline_seconds)
        queue.put_nowait(DeadlineReached())
