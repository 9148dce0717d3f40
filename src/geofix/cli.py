from __future__ import annotations

import argparse
import asyncio
from contextlib import ExitStack
import logging
from pathlib import Path
import sys
from typing import Mapping, Optional, Sequence, TextIO

from .acquisition import AcquisitionStatus, FixAcquirer
from .config import AcquisitionPolicy, load_config, parse_policy
from .models import PermissionState
from .permission import DevicePermissionProber, PermissionProber
from .result import AcquisitionError
from .sources import (
    FixPayloadError,
    SampleSource,
    SerialGpsConfig,
    SerialGpsSampleSource,
    build_scripted_source,
)
from .submit import JsonLinesSubmitSink, capture_and_submit

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_ACQUISITION_FAILED = 2


def _require_mapping(value: object, label: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{label} must be an object.")
    return value


def _require_int(value: object, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be an integer.")


def _build_policy(args: argparse.Namespace, config: Mapping[str, object]) -> AcquisitionPolicy:
    payload = dict(_require_mapping(config.get("policy", {}), "policy"))
    if args.mode:
        payload["mode"] = args.mode
    if args.single_shot:
        payload["single_shot"] = True
    return parse_policy(payload)


def _build_source(
    args: argparse.Namespace,
    config: Mapping[str, object],
    stack: ExitStack,
) -> tuple[SampleSource, Optional[str]]:
    """Return the sample source and, for real devices, the device path."""
    if args.replay:
        return build_scripted_source(load_config(Path(args.replay))), None

    source_payload = _require_mapping(config.get("source", {}), "source")
    source_type = str(source_payload.get("type", "serial")).lower()
    if source_type == "scripted" and not args.port and not args.nmea_file:
        return build_scripted_source(source_payload), None
    if source_type not in {"serial", "scripted"}:
        raise ValueError(f"Unknown source type: {source_type!r}.")

    port = args.port or source_payload.get("port")
    baudrate = args.baudrate or source_payload.get("baudrate", 9600)
    serial_config = SerialGpsConfig(
        port=str(args.nmea_file or port or ""),
        baudrate=_require_int(baudrate, "source.baudrate"),
        uere_meters=float(source_payload.get("uere_meters", 5.0)),
        wait_for_gst=bool(source_payload.get("wait_for_gst", False)),
    )
    if args.nmea_file:
        stream = stack.enter_context(Path(args.nmea_file).open("r", encoding="ascii"))
        return SerialGpsSampleSource(serial_config, stream=stream), None
    if not port:
        raise ValueError("A serial --port, --nmea-file or --replay file is required.")
    source = SerialGpsSampleSource(serial_config)
    stack.callback(source.close)
    return source, str(port)


def _build_prober(
    args: argparse.Namespace,
    config: Mapping[str, object],
    device_path: Optional[str],
) -> PermissionProber:
    if args.permission:
        return PermissionProber(args.permission)
    if "permission" in config:
        return PermissionProber(config["permission"])
    if device_path:
        return DevicePermissionProber(device_path)
    return PermissionProber(PermissionState.UNKNOWN)


def _log_progress(status: AcquisitionStatus) -> None:
    LOGGER.info(
        "%s (samples=%d, best=%s m)",
        status.message,
        status.samples,
        "?" if status.best_accuracy_meters is None else status.best_accuracy_meters,
    )


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[Sequence[str]] = None, stdout: Optional[TextIO] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Acquire one best-effort GPS fix and emit it as a record payload."
    )
    parser.add_argument(
        "--mode",
        choices=("full", "quick"),
        default=None,
        help="Acquisition profile (default: full, or the config's policy.mode).",
    )
    parser.add_argument(
        "--single-shot",
        action="store_true",
        help="Quick mode only: resolve from one one-shot read.",
    )
    parser.add_argument("--config", help="Path to a JSON configuration file.")
    parser.add_argument("--replay", help="Path to a scripted sample JSON file.")
    parser.add_argument("--port", help="Serial port of an NMEA GNSS receiver.")
    parser.add_argument("--baudrate", type=int, default=None, help="Serial baud rate.")
    parser.add_argument("--nmea-file", help="Read NMEA sentences from a file instead of a port.")
    parser.add_argument(
        "--permission",
        choices=sorted(PermissionState.ALL),
        default=None,
        help="Override the detected location permission state.",
    )
    parser.add_argument("--output", help="Append the JSON payload to this file (default: stdout).")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO).",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)
    stdout = stdout or sys.stdout

    with ExitStack() as stack:
        try:
            config: Mapping[str, object] = {}
            if args.config:
                config_path = Path(args.config)
                if not config_path.exists():
                    raise FileNotFoundError(f"Config not found: {config_path}")
                config = load_config(config_path)
            policy = _build_policy(args, config)
            source, device_path = _build_source(args, config, stack)
            prober = _build_prober(args, config, device_path)
        except (OSError, TypeError, ValueError, FixPayloadError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return EXIT_USAGE

        if args.output:
            output = stack.enter_context(Path(args.output).open("a", encoding="utf-8"))
        else:
            output = stdout
        acquirer = FixAcquirer(source, prober, progress=_log_progress)
        try:
            asyncio.run(capture_and_submit(acquirer, policy, JsonLinesSubmitSink(output)))
        except AcquisitionError as exc:
            print(f"Location capture failed: {exc}", file=sys.stderr)
            return EXIT_ACQUISITION_FAILED
        except KeyboardInterrupt:
            return EXIT_ACQUISITION_FAILED
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
