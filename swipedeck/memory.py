"""
In-memory collaborators: a candidate provider and a swipe submitter that
live entirely in the process.

Used by the CLI offline mode, the simulation script and the tests. They
honour the same contracts as the HTTP adapters, including raising the
engine's typed errors.
"""

import asyncio
import json
import math
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, List, Set, Union

from .errors import CandidateFetchFailed, SwipeSubmitFailed
from .models import (
    Candidate,
    CandidatePage,
    CandidateQuery,
    Coordinate,
    SwipeDirection,
    SwipeOutcome,
    SwipeRequest,
)

EARTH_RADIUS_KM = 6371.0

Latency = Union[float, Callable[[SwipeRequest], float]]


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def load_candidates(path: Path) -> List[Candidate]:
    """Read candidates from a JSON file: a list of team objects or {"teams": [...]}."""
    with Path(path).open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("teams", [])
    return [Candidate.from_payload(item) for item in data]


def _matches(candidate: Candidate, key: str, accepted: Iterable[str]) -> bool:
    accepted = tuple(accepted)
    if not accepted:
        return True
    return candidate.attributes.get(key) in accepted


def _sort_key(sort_by: str):
    if sort_by == "distance":
        return lambda c: c.distance_km
    score_key = f"{sort_by}Score"
    return lambda c: c.attributes.get(score_key) or 0


class InMemoryCandidateProvider:
    """
    Filters by radius, level, gender and exclusions, sorts by the requested
    key and returns at most `limit` candidates.

    If a candidate has a `location: {lat, lng}` attribute its distance is
    recomputed from the query origin; otherwise its stored distance is used.
    """

    def __init__(self, candidates: Iterable[Candidate], *, latency: float = 0.0, fail_next: int = 0):
        self._candidates = list(candidates)
        self.latency = latency
        self.fail_next = fail_next
        self.calls: List[CandidateQuery] = []

    async def fetch_candidates(self, query: CandidateQuery) -> CandidatePage:
        self.calls.append(query)
        if self.latency:
            await asyncio.sleep(self.latency)
        if self.fail_next > 0:
            self.fail_next -= 1
            raise CandidateFetchFailed("Simulated discovery outage")

        eligible = [
            c for c in (self._locate(c, query.origin) for c in self._candidates)
            if c.id != query.exclude_id
            and c.distance_km <= query.radius_km
            and _matches(c, "level", query.levels)
            and _matches(c, "gender", query.genders)
        ]
        eligible.sort(key=_sort_key(query.sort_by), reverse=query.sort_order.upper() == "DESC")

        excluded = set(query.exclude_ids)
        page = [c for c in eligible if c.id not in excluded][:query.limit]
        return CandidatePage(candidates=page, total=len(eligible))

    @staticmethod
    def _locate(candidate: Candidate, origin: Coordinate) -> Candidate:
        location = candidate.attributes.get("location")
        if not isinstance(location, dict) or "lat" not in location or "lng" not in location:
            return candidate
        distance = haversine_km(origin, Coordinate(float(location["lat"]), float(location["lng"])))
        return replace(candidate, distance_km=round(distance, 2))


class InMemorySwipeSubmitter:
    """
    Records every submission in arrival order. A like is a match when the
    target is in `liked_by` (it already liked the swiper).
    """

    def __init__(
        self,
        liked_by: Iterable[str] = (),
        *,
        latency: Latency = 0.0,
        fail_ids: Iterable[str] = (),
    ):
        self.liked_by: Set[str] = set(liked_by)
        self.latency = latency
        self.fail_ids: Set[str] = set(fail_ids)
        self.submissions: List[SwipeRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def submit_swipe(self, request: SwipeRequest) -> SwipeOutcome:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.latency(request) if callable(self.latency) else self.latency
            if delay:
                await asyncio.sleep(delay)
            self.submissions.append(request)

            if request.target_id in self.fail_ids:
                raise SwipeSubmitFailed("Simulated swipe failure", candidate_id=request.target_id)

            is_match = request.action == SwipeDirection.LIKE and request.target_id in self.liked_by
            return SwipeOutcome(
                candidate_id=request.target_id,
                is_match=is_match,
                match_ref=f"match-{request.swiper_id}-{request.target_id}" if is_match else None,
            )
        finally:
            self.in_flight -= 1
