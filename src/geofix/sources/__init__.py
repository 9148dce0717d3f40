"""Sample source adapters for streaming and one-shot location reads."""

from .base import (
    SampleDenied,
    SampleError,
    SampleSource,
    SampleTimeout,
    SampleUnavailable,
)
from .nmea import GgaSentence, GstSentence, NmeaError, parse_sentence
from .scripted import (
    FixPayloadError,
    ScriptedSampleSource,
    ScriptedSourceConfig,
    build_scripted_source,
    parse_fix_payload,
)
from .serial_gps import SerialGpsConfig, SerialGpsSampleSource

__all__ = [
    "FixPayloadError",
    "GgaSentence",
    "GstSentence",
    "NmeaError",
    "SampleDenied",
    "SampleError",
    "SampleSource",
    "SampleTimeout",
    "SampleUnavailable",
    "ScriptedSampleSource",
    "ScriptedSourceConfig",
    "SerialGpsConfig",
    "SerialGpsSampleSource",
    "build_scripted_source",
    "parse_fix_payload",
    "parse_sentence",
]
