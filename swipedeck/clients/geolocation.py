"""
Approximate "device" location from an IP geolocation endpoint.

There is no GPS on a server or terminal, so this stands in for the device
locator of a mobile client. It is awaited by the LocationResolver, which
falls back to the default origin whenever this raises.
"""

import asyncio
from typing import Any, Dict, Optional

from ..config import ApiConfig
from ..errors import LocationUnavailable
from ..logger import StructuredLogger, get_logger
from ..models import Coordinate
from .common import ApiRequestError, request_json


def parse_coordinate(body: Dict[str, Any]) -> Coordinate:
    """Accepts both `latitude/longitude` and `lat/lon` (or `lat/lng`) shapes."""
    if not isinstance(body, dict):
        raise LocationUnavailable("Geolocation response is not an object")
    if body.get("error"):
        raise LocationUnavailable(f"Geolocation error: {body.get('reason') or body.get('error')}")

    lat = body.get("latitude", body.get("lat"))
    lng = body.get("longitude", body.get("lon", body.get("lng")))
    if lat is None or lng is None:
        raise LocationUnavailable("Geolocation response has no coordinates")
    try:
        return Coordinate(lat=float(lat), lng=float(lng))
    except (TypeError, ValueError) as e:
        raise LocationUnavailable(f"Geolocation coordinates are not numbers: {lat}, {lng}") from e


class IpGeolocator:
    def __init__(self, config: Optional[ApiConfig] = None, *, logger: Optional[StructuredLogger] = None):
        self.config = config or ApiConfig.from_env()
        self._logger = logger or get_logger()

    def locate(self) -> Coordinate:
        try:
            body = request_json(
                "GET",
                self.config.geolocation_url,
                config=self.config,
                service="Geolocation",
                retry=True,
                authenticated=False,
                logger=self._logger,
            )
        except ApiRequestError as e:
            raise LocationUnavailable(str(e)) from e
        return parse_coordinate(body)

    async def __call__(self) -> Coordinate:
        return await asyncio.to_thread(self.locate)
