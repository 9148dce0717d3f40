"""Minimal NMEA 0183 parsing for GGA position and GST error sentences."""

from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
import math
from typing import Optional, Union


@dataclass(frozen=True)
class NmeaError(ValueError):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class GgaSentence:
    talker: str
    utc_time: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    fix_quality: int
    satellites_in_use: Optional[int]
    hdop: Optional[float]
    altitude_m: Optional[float]

    @property
    def has_fix(self) -> bool:
        return self.fix_quality > 0 and self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class GstSentence:
    talker: str
    utc_time: Optional[str]
    latitude_error_m: Optional[float]
    longitude_error_m: Optional[float]

    @property
    def horizontal_error_m(self) -> Optional[float]:
        if self.latitude_error_m is None or self.longitude_error_m is None:
            return None
        return math.hypot(self.latitude_error_m, self.longitude_error_m)


NmeaSentence = Union[GgaSentence, GstSentence]


def checksum(body: str) -> int:
    return reduce(lambda acc, char: acc ^ ord(char), body, 0)


def parse_sentence(line: str) -> Optional[NmeaSentence]:
    """Parse one NMEA line; returns None for sentence types we do not use."""
    line = line.strip()
    if not line:
        return None
    if not line.startswith("$"):
        raise NmeaError(f"NMEA sentence must start with '$': {line!r}.")
    body, _, provided = line[1:].partition("*")
    if provided:
        try:
            expected = int(provided[:2], 16)
        except ValueError:
            raise NmeaError(f"NMEA checksum is not hex: {provided!r}.") from None
        if checksum(body) != expected:
            raise NmeaError(f"NMEA checksum mismatch for {line!r}.")
    parts = body.split(",")
    if len(parts[0]) < 5:
        raise NmeaError(f"NMEA address field too short: {parts[0]!r}.")
    talker, kind = parts[0][:-3], parts[0][-3:]
    if kind == "GGA":
        return _parse_gga(talker, parts)
    if kind == "GST":
        return _parse_gst(talker, parts)
    return None


def _parse_gga(talker: str, parts: list[str]) -> GgaSentence:
    if len(parts) < 10:
        raise NmeaError(f"GGA sentence has {len(parts)} fields; expected at least 10.")
    return GgaSentence(
        talker=talker,
        utc_time=parts[1] or None,
        latitude=_parse_coordinate(parts[2], parts[3], degree_digits=2),
        longitude=_parse_coordinate(parts[4], parts[5], degree_digits=3),
        fix_quality=_optional_int(parts[6]) or 0,
        satellites_in_use=_optional_int(parts[7]),
        hdop=_optional_float(parts[8]),
        altitude_m=_optional_float(parts[9]),
    )


def _parse_gst(talker: str, parts: list[str]) -> GstSentence:
    if len(parts) < 8:
        raise NmeaError(f"GST sentence has {len(parts)} fields; expected at least 8.")
    return GstSentence(
        talker=talker,
        utc_time=parts[1] or None,
        latitude_error_m=_optional_float(parts[6]),
        longitude_error_m=_optional_float(parts[7]),
    )


def _parse_coordinate(value: str, hemisphere: str, degree_digits: int) -> Optional[float]:
    if not value:
        return None
    try:
        degrees = float(value[:degree_digits])
        minutes = float(value[degree_digits:])
    except ValueError:
        raise NmeaError(f"Invalid NMEA coordinate: {value!r}.") from None
    decimal = degrees + minutes / 60.0
    if hemisphere in {"S", "W"}:
        decimal = -decimal
    elif hemisphere not in {"N", "E"}:
        raise NmeaError(f"Invalid NMEA hemisphere: {hemisphere!r}.")
    return decimal


def _optional_float(value: str) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        raise NmeaError(f"Invalid NMEA numeric field: {value!r}.") from None


def _optional_int(value: str) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise NmeaError(f"Invalid NMEA integer field: {value!r}.") from None
