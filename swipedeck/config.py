"""
Engine and API configuration.

Defaults live here as module constants; `from_env()` lets a deployment
override them with SWIPEDECK_* variables (a .env file is honoured).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .env import env_float, env_int, load_env
from .models import Coordinate

MAX_PENDING = 5
REFILL_THRESHOLD = 3
MIN_REFETCH_INTERVAL = 1.0  # seconds between refill fetch starts
DEFAULT_PAGE_LIMIT = 20
DEFAULT_LOCATION_TIMEOUT = 10.0

# Home region used whenever the device location is unavailable
DEFAULT_ORIGIN = Coordinate(lat=10.7769, lng=106.7009)

DEFAULT_API_BASE_URL = "https://capkeosportnestjs-production.up.railway.app/api/v1"
DEFAULT_API_TIMEOUT = 10.0
DEFAULT_GEOLOCATION_URL = "https://ipapi.co/json/"


@dataclass(frozen=True)
class EngineConfig:
    max_pending: int = MAX_PENDING
    refill_threshold: int = REFILL_THRESHOLD
    min_refetch_interval: float = MIN_REFETCH_INTERVAL
    page_limit: int = DEFAULT_PAGE_LIMIT
    location_timeout: float = DEFAULT_LOCATION_TIMEOUT
    default_origin: Coordinate = DEFAULT_ORIGIN

    def __post_init__(self):
        if self.max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        if self.refill_threshold < 0:
            raise ValueError("refill_threshold cannot be negative")
        if self.page_limit < 1:
            raise ValueError("page_limit must be at least 1")

    @classmethod
    def from_env(cls) -> EngineConfig:
        load_env()
        return cls(
            max_pending=env_int("SWIPEDECK_MAX_PENDING", MAX_PENDING),
            refill_threshold=env_int("SWIPEDECK_REFILL_THRESHOLD", REFILL_THRESHOLD),
            min_refetch_interval=env_float("SWIPEDECK_MIN_REFETCH_INTERVAL", MIN_REFETCH_INTERVAL),
            page_limit=env_int("SWIPEDECK_PAGE_LIMIT", DEFAULT_PAGE_LIMIT),
            location_timeout=env_float("SWIPEDECK_LOCATION_TIMEOUT", DEFAULT_LOCATION_TIMEOUT),
            default_origin=Coordinate(
                lat=env_float("SWIPEDECK_DEFAULT_LAT", DEFAULT_ORIGIN.lat),
                lng=env_float("SWIPEDECK_DEFAULT_LNG", DEFAULT_ORIGIN.lng),
            ),
        )


@dataclass(frozen=True)
class ApiConfig:
    base_url: str = DEFAULT_API_BASE_URL
    token: Optional[str] = None
    timeout: float = DEFAULT_API_TIMEOUT
    geolocation_url: str = DEFAULT_GEOLOCATION_URL

    @classmethod
    def from_env(cls) -> ApiConfig:
        load_env()
        return cls(
            base_url=os.getenv("SWIPEDECK_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
            token=os.getenv("SWIPEDECK_API_TOKEN") or None,
            timeout=env_float("SWIPEDECK_API_TIMEOUT", DEFAULT_API_TIMEOUT),
            geolocation_url=os.getenv("SWIPEDECK_GEOLOCATION_URL", DEFAULT_GEOLOCATION_URL),
        )
