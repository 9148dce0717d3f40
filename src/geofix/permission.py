from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Union

from .models import PermissionState
from .sources.serial_gps import port_listed

LOGGER = logging.getLogger(__name__)

PermissionListener = Callable[[str], None]


class PermissionProber:
    """Cache the platform's location permission and notify on transitions.

    The cached state is advisory. Acquisition reads it once at start and
    does not re-poll while sampling.
    """

    def __init__(self, initial_state: object = PermissionState.UNKNOWN) -> None:
        self._state = PermissionState.coerce(initial_state)
        self._listeners: List[PermissionListener] = []

    def current_state(self) -> str:
        return self._state

    def on_change(self, callback: PermissionListener) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def update(self, state: object) -> str:
        """Record a platform-reported state and fan out if it changed."""
        new_state = PermissionState.coerce(state)
        if new_state == self._state:
            return new_state
        previous, self._state = self._state, new_state
        LOGGER.info(
            "permission_state_changed",
            extra={"previous_state": previous, "permission_state": new_state},
        )
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                LOGGER.exception("Permission listener failed for state %s", new_state)
        return new_state


class DevicePermissionProber(PermissionProber):
    """Derive permission from the access bits of a serial device node.

    A readable node is granted, an unreadable one denied. Ports with no node
    that pyserial still enumerates (Windows ``COM3``) carry no access bits and
    are granted; anything else is unknown.
    """

    def __init__(
        self,
        device_path: Union[str, Path],
        access: Optional[Callable[[str, int], bool]] = None,
        exists: Optional[Callable[[str], bool]] = None,
        listed: Optional[Callable[[str], bool]] = None,
    ) -> None:
        self._device_path = str(device_path)
        self._access = access or os.access
        self._exists = exists or os.path.exists
        self._listed = listed or port_listed
        super().__init__(self._query())

    def refresh(self) -> str:
        return self.update(self._query())

    def _query(self) -> str:
        try:
            if not self._exists(self._device_path):
                if self._listed(self._device_path):
                    return PermissionState.GRANTED
                return PermissionState.UNKNOWN
            if self._access(self._device_path, os.R_OK):
                return PermissionState.GRANTED
            return PermissionState.DENIED
        except OSError as exc:
            LOGGER.warning("Permission query failed for %s: %s", self._device_path, exc)
            return PermissionState.UNKNOWN
