from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
import errno
import logging
import os
import time
from typing import IO, AsyncIterator, List, Optional, Set, Union

import serial
from serial.tools import list_ports

from ..models import MISSING_ACCURACY_METERS, Fix, validate_fix
from .base import SampleDenied, SampleError, SampleTimeout, SampleUnavailable
from .nmea import GgaSentence, GstSentence, NmeaError, parse_sentence

LOGGER = logging.getLogger(__name__)

_DENIED_ERRNOS = {errno.EACCES, errno.EPERM}


@dataclass(frozen=True)
class SerialGpsConfig:
    port: str
    baudrate: int = 9600
    timeout_seconds: float = 0.5
    uere_meters: float = 5.0
    wait_for_gst: bool = False
    idle_poll_seconds: float = 0.05
    clock_offset_seconds: float = 0.0


class SerialGpsSampleSource:
    """Read fixes from an NMEA 0183 GNSS receiver on a serial port.

    A single reader task owns the port and fans every fix out to each active
    subscriber, so ``stream_samples`` and ``one_shot_sample`` can run at the
    same time. The reader stops once the last subscriber leaves.
    """

    def __init__(
        self,
        config: SerialGpsConfig,
        stream: Optional[IO[str]] = None,
        clock=time.time,
    ) -> None:
        self._config = config
        self._stream = stream
        self._clock = clock
        self._serial = None
        self._subscribers: Set[asyncio.Queue] = set()
        self._reader: Optional[asyncio.Task] = None
        self._pending_read: Optional[asyncio.Task] = None
        self._last_gst: Optional[GstSentence] = None
        self._pending: Optional[GgaSentence] = None

    def is_available(self) -> bool:
        if self._stream is not None or self._serial is not None:
            return True
        return os.path.exists(self._config.port) or port_listed(self._config.port)

    async def stream_samples(self, deadline_seconds: float) -> AsyncIterator[Fix]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + deadline_seconds
        async with self._subscription() as queue:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return
                try:
                    item = await asyncio.wait_for(queue.get(), remaining)
                except asyncio.TimeoutError:
                    return
                yield _unwrap(item)

    async def one_shot_sample(self, timeout_seconds: float) -> Fix:
        async with self._subscription() as queue:
            try:
                item = await asyncio.wait_for(queue.get(), timeout_seconds)
            except asyncio.TimeoutError:
                raise SampleTimeout(
                    f"No GPS fix from {self._config.port} within {timeout_seconds:.1f}s."
                ) from None
        return _unwrap(item)

    def feed_line(self, raw_line: Union[str, bytes]) -> List[Fix]:
        """Parse one NMEA line and return the fixes it completes."""
        if isinstance(raw_line, bytes):
            raw_line = raw_line.decode("ascii", errors="replace")
        try:
            sentence = parse_sentence(raw_line)
        except NmeaError as exc:
            LOGGER.warning("Discarding NMEA line from %s: %s", self._config.port, exc)
            return []
        if isinstance(sentence, GstSentence):
            return self._handle_gst(sentence)
        if isinstance(sentence, GgaSentence):
            return self._handle_gga(sentence)
        return []

    def flush(self) -> List[Fix]:
        """Emit a GGA still waiting for its GST using HDOP accuracy."""
        if self._pending is None:
            return []
        pending, self._pending = self._pending, None
        return self._to_fixes(pending, None)

    def _handle_gst(self, sentence: GstSentence) -> List[Fix]:
        self._last_gst = sentence
        if self._pending is not None and _same_epoch(self._pending, sentence):
            pending, self._pending = self._pending, None
            return self._to_fixes(pending, sentence)
        return []

    def _handle_gga(self, sentence: GgaSentence) -> List[Fix]:
        if not sentence.has_fix:
            return []
        fixes = self.flush()
        if self._last_gst is not None and _same_epoch(sentence, self._last_gst):
            fixes.extend(self._to_fixes(sentence, self._last_gst))
        elif self._config.wait_for_gst:
            self._pending = sentence
        else:
            fixes.extend(self._to_fixes(sentence, None))
        return fixes

    def _to_fixes(self, gga: GgaSentence, gst: Optional[GstSentence]) -> List[Fix]:
        """Build the fix for one epoch; an implausible one is logged and dropped."""
        fix = Fix(
            latitude=gga.latitude,
            longitude=gga.longitude,
            accuracy_meters=self._accuracy(gga, gst),
            captured_at=self._clock() + self._config.clock_offset_seconds,
        )
        try:
            validate_fix(fix)
        except ValueError as exc:
            LOGGER.warning("Discarding GPS fix from %s: %s", self._config.port, exc)
            return []
        return [fix]

    def _accuracy(self, gga: GgaSentence, gst: Optional[GstSentence]) -> float:
        if gst is not None and gst.horizontal_error_m is not None:
            return gst.horizontal_error_m
        if gga.hdop is not None:
            return gga.hdop * self._config.uere_meters
        return MISSING_ACCURACY_METERS

    @asynccontextmanager
    async def _subscription(self) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        if self._reader is None or self._reader.done():
            self._reader = asyncio.create_task(self._read_loop())
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)
            if not self._subscribers and self._reader is not None:
                self._reader.cancel()
                self._reader = None

    async def _read_loop(self) -> None:
        try:
            stream = self._ensure_stream()
        except SampleError as exc:
            self._broadcast(exc)
            return
        while True:
            try:
                line = await self._next_line(stream)
            except (OSError, serial.SerialException) as exc:
                LOGGER.warning("Serial GPS read failed on %s: %s", self._config.port, exc)
                self._broadcast(SampleUnavailable(f"GPS read failed: {exc}"))
                return
            if not line:
                for fix in self.flush():
                    self._broadcast(fix)
                await asyncio.sleep(self._config.idle_poll_seconds)
                continue
            for fix in self.feed_line(line):
                LOGGER.debug(
                    "gps_sample",
                    extra={"port": self._config.port, "accuracy_meters": fix.accuracy_meters},
                )
                self._broadcast(fix)

    async def _next_line(self, stream: IO[str]) -> Union[str, bytes]:
        """Read one line on a worker thread.

        A cancelled reader leaves its blocked ``readline`` in flight; the next
        reader awaits that same read, so the port never has two readers and
        the line is not lost.
        """
        loop = asyncio.get_running_loop()
        pending = self._pending_read
        if pending is None or pending.get_loop() is not loop:
            pending = loop.create_task(asyncio.to_thread(stream.readline))
            self._pending_read = pending
        try:
            line = await asyncio.shield(pending)
        except (OSError, serial.SerialException):
            self._pending_read = None
            raise
        self._pending_read = None
        return line

    def _broadcast(self, item: Union[Fix, SampleError]) -> None:
        for queue in list(self._subscribers):
            queue.put_nowait(item)

    def _ensure_stream(self) -> IO[str]:
        if self._stream is not None:
            return self._stream
        if self._serial is None:
            try:
                self._serial = serial.Serial(
                    self._config.port,
                    baudrate=self._config.baudrate,
                    timeout=self._config.timeout_seconds,
                )
            except serial.SerialException as exc:
                if getattr(exc, "errno", None) in _DENIED_ERRNOS:
                    raise SampleDenied(f"Access to {self._config.port} denied: {exc}") from exc
                raise SampleUnavailable(f"Cannot open {self._config.port}: {exc}") from exc
        return self._serial

    def close(self) -> None:
        if self._serial is not None:
            self._serial.close()
            self._serial = None


def port_listed(port: str) -> bool:
    """Whether pyserial enumerates ``port``; covers ports with no device node (COM3)."""
    return any(info.device == port for info in list_ports.comports())


def _same_epoch(gga: GgaSentence, gst: GstSentence) -> bool:
    return gga.utc_time is not None and gga.utc_time == gst.utc_time


def _unwrap(item: Union[Fix, SampleError]) -> Fix:
    if isinstance(item, SampleError):
        raise item
    return item
