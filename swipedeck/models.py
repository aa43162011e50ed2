"""
Domain models for the discovery engine.

Plain dataclasses and enums only: no I/O, no engine state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class SwipeDirection(str, Enum):
    LIKE = "like"
    PASS = "pass"


class LocationSourceKind(str, Enum):
    CURRENT = "current"
    ANCHOR = "anchor"
    DEFAULT = "default"


class PermissionState(str, Enum):
    """Device location permission as seen by one session."""
    NOT_ASKED = "not_asked"
    ASKED = "asked"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float

    def as_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class LocationSource:
    """
    Where the search origin comes from.

    `anchor` is only meaningful for LocationSourceKind.ANCHOR.
    """
    kind: LocationSourceKind
    anchor: Optional[Coordinate] = None

    @classmethod
    def current(cls) -> LocationSource:
        return cls(LocationSourceKind.CURRENT)

    @classmethod
    def anchored(cls, coordinate: Coordinate) -> LocationSource:
        return cls(LocationSourceKind.ANCHOR, coordinate)

    @classmethod
    def default(cls) -> LocationSource:
        return cls(LocationSourceKind.DEFAULT)

    @classmethod
    def parse(cls, kind: str, anchor: Optional[Coordinate] = None) -> LocationSource:
        source_kind = LocationSourceKind(kind)
        if source_kind == LocationSourceKind.ANCHOR:
            if anchor is None:
                raise ValueError("An anchor location source requires a coordinate")
            return cls.anchored(anchor)
        return cls(source_kind)


@dataclass(frozen=True)
class SearchFilters:
    """User-facing search filters. `origin` is filled in by the location resolver."""
    origin: Optional[Coordinate] = None
    radius_km: float = 10.0
    levels: Tuple[str, ...] = ()
    genders: Tuple[str, ...] = ()
    sort_by: str = "distance"  # distance | compatibility | quality | activity
    sort_order: str = "ASC"
    exclude_id: Optional[str] = None  # usually the swiper's own id


@dataclass(frozen=True)
class Candidate:
    """
    A ranked counterpart returned by the candidate provider.

    The engine only relies on `id` and `distance_km`; everything else the
    provider sends is kept untouched in `attributes`.
    """
    id: str
    distance_km: float
    attributes: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Candidate:
        if not payload.get("id"):
            raise ValueError("Candidate payload is missing 'id'")
        attributes = {k: v for k, v in payload.items() if k not in ("id", "distance")}
        return cls(
            id=str(payload["id"]),
            distance_km=float(payload.get("distance") or 0.0),
            attributes=attributes,
        )

    @property
    def name(self) -> str:
        return str(self.attributes.get("name", self.id))


@dataclass(frozen=True)
class CandidateQuery:
    """Input of one candidate provider call, tagged with the session generation."""
    origin: Coordinate
    radius_km: float
    limit: int
    generation: int
    levels: Tuple[str, ...] = ()
    genders: Tuple[str, ...] = ()
    sort_by: str = "distance"
    sort_order: str = "ASC"
    exclude_id: Optional[str] = None
    exclude_ids: Tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        filters: SearchFilters,
        origin: Coordinate,
        *,
        limit: int,
        generation: int,
        exclude_ids: Tuple[str, ...] = (),
    ) -> CandidateQuery:
        return cls(
            origin=origin,
            radius_km=filters.radius_km,
            limit=limit,
            generation=generation,
            levels=tuple(filters.levels),
            genders=tuple(filters.genders),
            sort_by=filters.sort_by,
            sort_order=filters.sort_order,
            exclude_id=filters.exclude_id,
            exclude_ids=exclude_ids,
        )


@dataclass(frozen=True)
class CandidatePage:
    candidates: List[Candidate]
    total: Optional[int] = None


@dataclass(frozen=True)
class SwipeIntent:
    candidate_id: str
    direction: SwipeDirection
    enqueued_at: float
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class SwipeRequest:
    """Input of one Swipe Submit call."""
    swiper_id: str
    target_id: str
    action: SwipeDirection
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class SwipeOutcome:
    candidate_id: str
    is_match: bool
    match_ref: Optional[str] = None
    accepted: bool = True


@dataclass(frozen=True)
class MatchEvent:
    """Published once per mutual like. `candidate` is None if it left the deck."""
    match_ref: Optional[str]
    candidate: Optional[Candidate] = None
