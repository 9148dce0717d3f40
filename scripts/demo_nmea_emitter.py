#!/usr/bin/env python3
"""Emit a short NMEA burst whose accuracy converges, for use with --nmea-file."""

from __future__ import annotations

from functools import reduce
import time


def _checksum(body: str) -> str:
    return f"{reduce(lambda acc, char: acc ^ ord(char), body, 0):02X}"


def _sentence(body: str) -> str:
    return f"${body}*{_checksum(body)}"


def _build_sentences() -> list[str]:
    start = time.gmtime()
    sentences = []
    for idx, (hdop, lat_sd, lon_sd) in enumerate(
        [(9.5, 40.0, 35.0), (4.2, 18.0, 16.0), (1.6, 6.0, 5.5), (0.8, 2.4, 2.1)]
    ):
        utc = f"{start.tm_hour:02d}{start.tm_min:02d}{(start.tm_sec + idx) % 60:02d}.00"
        sentences.append(
            _sentence(
                f"GPGGA,{utc},5236.900,N,00107.380,W,1,{6 + idx},{hdop},62.0,M,47.0,M,,"
            )
        )
        sentences.append(_sentence(f"GPGST,{utc},1.2,3.0,2.0,45.0,{lat_sd},{lon_sd},4.0"))
    return sentences


def main() -> None:
    print("\n".join(_build_sentences()))


if __name__ == "__main__":
    main()
