"""
Tests for memory.py - in-process provider and submitter.
"""

import asyncio

import pytest

from swipedeck.errors import CandidateFetchFailed, SwipeSubmitFailed
from swipedeck.memory import (
    InMemoryCandidateProvider,
    InMemorySwipeSubmitter,
    haversine_km,
    load_candidates,
)
from swipedeck.models import Candidate, CandidateQuery, Coordinate, SwipeDirection, SwipeRequest

ORIGIN = Coordinate(10.7769, 106.7009)


def query(**kwargs) -> CandidateQuery:
    kwargs.setdefault("origin", ORIGIN)
    kwargs.setdefault("radius_km", 10.0)
    kwargs.setdefault("limit", 20)
    kwargs.setdefault("generation", 1)
    return CandidateQuery(**kwargs)


class TestHaversine:
    def test_same_point(self):
        assert haversine_km(ORIGIN, ORIGIN) == 0

    def test_known_distance(self):
        """Ho Chi Minh City to Hanoi is a little over 1100 km as the crow flies."""
        hanoi = Coordinate(21.0285, 105.8542)

        assert 1130 < haversine_km(ORIGIN, hanoi) < 1160


class TestLoadCandidates:
    def test_list_file(self, teams_file):
        candidates = load_candidates(teams_file)

        assert [c.id for c in candidates] == ["t1", "t2", "t3"]
        assert candidates[0].distance_km == 1.2
        assert candidates[0].name == "Saigon Strikers"
        assert "distance" not in candidates[0].attributes

    def test_envelope_file(self, tmp_path):
        path = tmp_path / "teams.json"
        path.write_text('{"teams": [{"id": "x", "distance": 2}]}')

        assert load_candidates(path)[0].id == "x"


class TestInMemoryCandidateProvider:
    """Test filtering, sorting and paging."""

    def test_filters_radius_and_swiper(self, teams_file):
        provider = InMemoryCandidateProvider(load_candidates(teams_file))

        page = asyncio.run(provider.fetch_candidates(query(exclude_id="t1")))

        assert [c.id for c in page.candidates] == ["t2"]
        assert page.total == 1

    def test_filters_level_and_gender(self, teams_file):
        provider = InMemoryCandidateProvider(load_candidates(teams_file))

        page = asyncio.run(provider.fetch_candidates(query(radius_km=50, levels=("beginner", "advanced"), genders=("female",))))

        assert [c.id for c in page.candidates] == ["t3"]

    def test_sort_descending_by_score(self):
        candidates = [
            Candidate("a", 1.0, {"qualityScore": 10}),
            Candidate("b", 2.0, {"qualityScore": 90}),
            Candidate("c", 3.0, {"qualityScore": 50}),
        ]
        provider = InMemoryCandidateProvider(candidates)

        page = asyncio.run(provider.fetch_candidates(query(sort_by="quality", sort_order="DESC")))

        assert [c.id for c in page.candidates] == ["b", "c", "a"]

    def test_limit_and_exclusions(self):
        candidates = [Candidate(str(i), float(i)) for i in range(8)]
        provider = InMemoryCandidateProvider(candidates)

        page = asyncio.run(provider.fetch_candidates(query(limit=3, exclude_ids=("0", "1"))))

        assert [c.id for c in page.candidates] == ["2", "3", "4"]
        # total counts everything eligible, already-seen ids included
        assert page.total == 8

    def test_distance_recomputed_from_location(self):
        nearby = Candidate("near", 99.0, {"location": {"lat": 10.78, "lng": 106.70}})
        provider = InMemoryCandidateProvider([nearby])

        page = asyncio.run(provider.fetch_candidates(query()))

        assert page.candidates[0].distance_km < 1.0

    def test_fail_next(self):
        provider = InMemoryCandidateProvider([], fail_next=1)

        with pytest.raises(CandidateFetchFailed):
            asyncio.run(provider.fetch_candidates(query()))
        assert asyncio.run(provider.fetch_candidates(query())).total == 0
        assert len(provider.calls) == 2


class TestInMemorySwipeSubmitter:
    """Test match detection and failure injection."""

    def request(self, target: str, action=SwipeDirection.LIKE) -> SwipeRequest:
        return SwipeRequest(swiper_id="me", target_id=target, action=action)

    def test_mutual_like_matches(self):
        submitter = InMemorySwipeSubmitter(liked_by=["t1"])

        outcome = asyncio.run(submitter.submit_swipe(self.request("t1")))

        assert outcome.is_match
        assert outcome.match_ref == "match-me-t1"

    def test_pass_never_matches(self):
        submitter = InMemorySwipeSubmitter(liked_by=["t1"])

        outcome = asyncio.run(submitter.submit_swipe(self.request("t1", SwipeDirection.PASS)))

        assert not outcome.is_match
        assert outcome.match_ref is None

    def test_fail_ids(self):
        submitter = InMemorySwipeSubmitter(fail_ids=["t2"])

        with pytest.raises(SwipeSubmitFailed) as exc_info:
            asyncio.run(submitter.submit_swipe(self.request("t2")))

        assert exc_info.value.candidate_id == "t2"
        assert submitter.in_flight == 0
        assert len(submitter.submissions) == 1
