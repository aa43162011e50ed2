"""
Location resolution for the search origin.

Cascading policy:
    current -> ask the device, fall back to the default origin on denial,
               error or timeout
    anchor  -> the given coordinate, unchanged
    default -> the configured home region

resolve() never raises. The chosen source and the last coordinate are kept
so refills can reuse them without asking the device again.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from .config import DEFAULT_LOCATION_TIMEOUT, DEFAULT_ORIGIN
from .errors import LocationPermissionDenied
from .logger import StructuredLogger, get_logger
from .models import Coordinate, LocationSource, LocationSourceKind, PermissionState

DeviceLocator = Callable[[], Awaitable[Coordinate]]


def plan_origin(
    state: PermissionState,
    source: LocationSource,
    default: Coordinate,
) -> Optional[Coordinate]:
    """
    Decide the origin without any I/O.

    Returns the coordinate when it is known up front, or None when the
    device has to be asked.
    """
    if source.kind == LocationSourceKind.ANCHOR:
        return source.anchor if source.anchor is not None else default
    if source.kind == LocationSourceKind.DEFAULT:
        return default
    if state == PermissionState.DENIED:
        return default
    return None


class LocationResolver:
    def __init__(
        self,
        device_locator: Optional[DeviceLocator] = None,
        *,
        default_origin: Coordinate = DEFAULT_ORIGIN,
        timeout: float = DEFAULT_LOCATION_TIMEOUT,
        source: Optional[LocationSource] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self._device_locator = device_locator
        self.default_origin = default_origin
        self.timeout = timeout
        self.source = source or LocationSource.current()
        self.permission = PermissionState.NOT_ASKED
        self.last_origin: Optional[Coordinate] = None
        self._logger = logger or get_logger()

    def remembered_origin(self) -> Optional[Coordinate]:
        return self.last_origin

    def reset_permission(self) -> None:
        """Forget a previous answer so the next `current` resolve asks again."""
        self.permission = PermissionState.NOT_ASKED

    async def resolve(self, source: Optional[LocationSource] = None) -> Coordinate:
        if source is not None:
            self.source = source

        planned = plan_origin(self.permission, self.source, self.default_origin)
        if planned is not None:
            self.last_origin = planned
            return planned

        if self._device_locator is None:
            self._fallback("No device locator configured", "LocationUnavailable")
            return self.last_origin

        self.permission = PermissionState.ASKED
        try:
            coordinate = await asyncio.wait_for(self._device_locator(), timeout=self.timeout)
        except LocationPermissionDenied:
            self.permission = PermissionState.DENIED
            self._fallback("Location permission denied", "LocationPermissionDenied")
            return self.last_origin
        except asyncio.TimeoutError:
            self.permission = PermissionState.NOT_ASKED
            self._fallback("Device location timed out", "LocationTimeout", timeout=self.timeout)
            return self.last_origin
        except Exception as e:
            self.permission = PermissionState.NOT_ASKED
            self._fallback("Device location error", type(e).__name__, error=str(e))
            return self.last_origin

        self.permission = PermissionState.GRANTED
        self.last_origin = coordinate
        self._logger.debug("Resolved device location", lat=coordinate.lat, lng=coordinate.lng)
        return coordinate

    def _fallback(self, reason: str, error_type: str, **context) -> None:
        self.last_origin = self.default_origin
        self._logger.record_location_fallback(error_type)
        self._logger.warning(
            f"{reason}, using default location",
            lat=self.default_origin.lat,
            lng=self.default_origin.lng,
            **context,
        )
