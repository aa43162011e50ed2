"""
Pytest configuration and shared fixtures.
"""

import asyncio
import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from swipedeck.errors import CandidateFetchFailed
from swipedeck.logger import StructuredLogger, reset_logger
from swipedeck.models import Candidate, CandidatePage, CandidateQuery, SwipeOutcome, SwipeRequest


def make_candidates(*ids: str, start_distance: float = 0.5) -> List[Candidate]:
    """Candidates in the given order, each a little further away than the last."""
    return [
        Candidate(id=cid, distance_km=start_distance + i, attributes={"name": f"Team {cid}"})
        for i, cid in enumerate(ids)
    ]


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedProvider:
    """
    Candidate provider that serves pre-arranged pages in call order.

    Each entry in `pages` is a CandidatePage or an exception to raise.
    `gates` maps a call index to an event that call waits on before
    answering, so tests can decide when a given fetch resolves.
    """

    def __init__(self, pages, gates: Optional[Dict[int, asyncio.Event]] = None):
        self.pages = list(pages)
        self.gates = gates or {}
        self.calls: List[CandidateQuery] = []

    async def fetch_candidates(self, query: CandidateQuery) -> CandidatePage:
        self.calls.append(query)
        index = len(self.calls) - 1
        if index in self.gates:
            await self.gates[index].wait()
        if index >= len(self.pages):
            return CandidatePage(candidates=[], total=0)
        page = self.pages[index]
        if isinstance(page, Exception):
            raise page
        return page


class ControlledSubmitter:
    """
    Swipe submitter whose calls finish only when the test releases them.

    `release(target_id)` resolves that submission; `fail(target_id)` makes
    it raise. Tracks how many submissions overlap.
    """

    def __init__(self, matches: Dict[str, str] = None):
        self.matches = matches or {}
        self.started: List[SwipeRequest] = []
        self.finished: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._events: Dict[str, asyncio.Event] = {}
        self._errors: Dict[str, Exception] = {}

    def _event(self, target_id: str) -> asyncio.Event:
        if target_id not in self._events:
            self._events[target_id] = asyncio.Event()
        return self._events[target_id]

    def release(self, target_id: str) -> None:
        self._event(target_id).set()

    def fail(self, target_id: str, error: Exception) -> None:
        self._errors[target_id] = error
        self._event(target_id).set()

    async def submit_swipe(self, request: SwipeRequest) -> SwipeOutcome:
        self.started.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self._event(request.target_id).wait()
            if request.target_id in self._errors:
                raise self._errors[request.target_id]
            match_ref = self.matches.get(request.target_id)
            return SwipeOutcome(
                candidate_id=request.target_id,
                is_match=match_ref is not None,
                match_ref=match_ref,
            )
        finally:
            self.in_flight -= 1
            self.finished.append(request.target_id)


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run for a few loop iterations."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    """Logger with no handlers, so tests do not write log files."""
    return StructuredLogger(name="swipedeck-test", level="DEBUG", enable_file=False, enable_console=False)


@pytest.fixture(autouse=True)
def _isolated_global_logger():
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def five_candidates() -> List[Candidate]:
    return make_candidates("A", "B", "C", "D", "E")


@pytest.fixture
def provider_outage() -> CandidateFetchFailed:
    return CandidateFetchFailed("discovery unavailable")


@pytest.fixture
def teams_file(tmp_path) -> Path:
    """JSON file of teams in the shape the discovery API returns."""
    teams = [
        {"id": "t1", "name": "Saigon Strikers", "distance": 1.2, "level": "intermediate", "gender": "male"},
        {"id": "t2", "name": "District 7 FC", "distance": 4.8, "level": "advanced", "gender": "mixed"},
        {"id": "t3", "name": "Thu Duc United", "distance": 12.5, "level": "beginner", "gender": "female"},
    ]
    path = tmp_path / "teams.json"
    path.write_text(json.dumps(teams))
    return path
