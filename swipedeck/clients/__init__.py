"""HTTP adapters for the external collaborators (discovery, swipes, geolocation)."""

from .common import ApiRequestError
from .discovery import DiscoveryClient
from .geolocation import IpGeolocator
from .swipes import SwipeClient

__all__ = [
    "ApiRequestError",
    "DiscoveryClient",
    "IpGeolocator",
    "SwipeClient",
]
