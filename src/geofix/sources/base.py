from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Protocol

from ..models import Fix


@dataclass(eq=False)
class SampleError(RuntimeError):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class SampleTimeout(SampleError):
    message: str = "Location sample timed out."


@dataclass(eq=False)
class SampleUnavailable(SampleError):
    message: str = "Location sensor unavailable."


@dataclass(eq=False)
class SampleDenied(SampleError):
    message: str = "Location access denied."


class SampleSource(Protocol):
    def is_available(self) -> bool: ...

    def stream_samples(self, deadline_seconds: float) -> AsyncIterator[Fix]: ...

    async def one_shot_sample(self, timeout_seconds: float) -> Fix: ...
