import math

import pytest

from geofix.sources.nmea import GgaSentence, GstSentence, NmeaError, checksum, parse_sentence


def _sentence(body: str) -> str:
    return f"${body}*{checksum(body):02X}"


_GGA = _sentence("GPGGA,123519.00,5236.900,N,00107.380,W,1,08,0.9,545.4,M,46.9,M,,")
_GGA_BAD_CHECKSUM = f"{_GGA[:-2]}{int(_GGA[-2:], 16) ^ 0xFF:02X}"


def test_parse_gga_position_and_hdop() -> None:
    sentence = parse_sentence(_GGA)

    assert isinstance(sentence, GgaSentence)
    assert sentence.talker == "GP"
    assert sentence.utc_time == "123519.00"
    assert math.isclose(sentence.latitude, 52.615, rel_tol=1e-9)
    assert math.isclose(sentence.longitude, -1.123, rel_tol=1e-9)
    assert sentence.fix_quality == 1
    assert sentence.satellites_in_use == 8
    assert sentence.hdop == 0.9
    assert sentence.altitude_m == 545.4
    assert sentence.has_fix


def test_gga_without_fix_has_no_position() -> None:
    sentence = parse_sentence(_sentence("GNGGA,000001.00,,,,,0,00,99.99,,,,,,"))

    assert isinstance(sentence, GgaSentence)
    assert sentence.latitude is None
    assert not sentence.has_fix


def test_parse_gst_horizontal_error() -> None:
    sentence = parse_sentence(_sentence("GPGST,123519.00,1.2,3.0,2.0,45.0,3.0,4.0,5.1"))

    assert isinstance(sentence, GstSentence)
    assert sentence.horizontal_error_m == pytest.approx(5.0)


def test_unused_sentences_and_blank_lines_are_ignored() -> None:
    assert parse_sentence(_sentence("GPGSV,3,1,11,03,03,111,00,04,15,270,00")) is None
    assert parse_sentence("   \r\n") is None


@pytest.mark.parametrize(
    "line",
    [
        _GGA_BAD_CHECKSUM,
        "GPGGA,123519.00,5236.900,N,00107.380,W,1,08,0.9,545.4,M,46.9,M,,",
        _sentence("GPGGA,123519.00,52x6.900,N,00107.380,W,1,08,0.9,545.4,M,46.9,M,,"),
        _sentence("GPGGA,123519.00,5236.900,Q,00107.380,W,1,08,0.9,545.4,M,46.9,M,,"),
        _sentence("GPGGA,123519.00,5236.900"),
    ],
)
def test_malformed_sentences_raise(line: str) -> None:
    with pytest.raises(NmeaError):
        parse_sentence(line)
