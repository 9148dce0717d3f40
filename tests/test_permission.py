import os

from geofix.models import PermissionState
from geofix.permission import DevicePermissionProber, PermissionProber


def test_unrecognized_state_is_unknown() -> None:
    assert PermissionProber("GRANTED").current_state() == PermissionState.GRANTED
    assert PermissionProber("maybe").current_state() == PermissionState.UNKNOWN
    assert PermissionProber(None).current_state() == PermissionState.UNKNOWN


def test_listeners_fire_only_on_transitions() -> None:
    prober = PermissionProber(PermissionState.PROMPT)
    seen = []
    prober.on_change(seen.append)

    prober.update("prompt")
    prober.update("granted")
    prober.update("granted")
    prober.update("denied")

    assert seen == [PermissionState.GRANTED, PermissionState.DENIED]
    assert prober.current_state() == PermissionState.DENIED


def test_unsubscribe_and_failing_listener() -> None:
    prober = PermissionProber()
    seen = []

    def _broken(state: str) -> None:
        raise RuntimeError("listener bug")

    prober.on_change(_broken)
    unsubscribe = prober.on_change(seen.append)
    prober.update(PermissionState.PROMPT)
    unsubscribe()
    prober.update(PermissionState.GRANTED)

    assert seen == [PermissionState.PROMPT]
    assert prober.current_state() == PermissionState.GRANTED


def test_device_prober_maps_access_bits() -> None:
    readable = DevicePermissionProber(
        "/dev/ttyACM0", access=lambda path, mode: True, exists=lambda path: True
    )
    blocked = DevicePermissionProber(
        "/dev/ttyACM0", access=lambda path, mode: False, exists=lambda path: True
    )
    missing = DevicePermissionProber(
        "/dev/ttyACM0",
        access=lambda path, mode: True,
        exists=lambda path: False,
        listed=lambda path: False,
    )

    assert readable.current_state() == PermissionState.GRANTED
    assert blocked.current_state() == PermissionState.DENIED
    assert missing.current_state() == PermissionState.UNKNOWN


def test_device_prober_query_failure_is_unknown_and_refresh_notifies() -> None:
    calls = {"fail": True}

    def _access(path: str, mode: int) -> bool:
        assert mode == os.R_OK
        if calls["fail"]:
            raise OSError("permission query unsupported")
        return True

    prober = DevicePermissionProber("/dev/gps0", access=_access, exists=lambda path: True)
    seen = []
    prober.on_change(seen.append)
    assert prober.current_state() == PermissionState.UNKNOWN

    calls["fail"] = False
    assert prober.refresh() == PermissionState.GRANTED
    assert seen == [PermissionState.GRANTED]


def test_device_prober_grants_enumerated_port_without_node() -> None:
    prober = DevicePermissionProber(
        "COM3",
        access=lambda path, mode: False,
        exists=lambda path: False,
        listed=lambda path: path == "COM3",
    )

    assert prober.current_state() == PermissionState.GRANTED
