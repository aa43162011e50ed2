"""
swipedeck: swipe-based discovery and matching engine.

Resolves a search origin, keeps a ranked deck of candidates, serializes
like/pass decisions through a bounded worker queue and refills the deck
in the background.
"""

__version__ = "0.1.0"

from .models import (
    Candidate,
    CandidatePage,
    CandidateQuery,
    Coordinate,
    LocationSource,
    MatchEvent,
    SearchFilters,
    SwipeDirection,
    SwipeIntent,
    SwipeOutcome,
    SwipeRequest,
)
from .session import DiscoverySession

__all__ = [
    "Candidate",
    "CandidatePage",
    "CandidateQuery",
    "Coordinate",
    "DiscoverySession",
    "LocationSource",
    "MatchEvent",
    "SearchFilters",
    "SwipeDirection",
    "SwipeIntent",
    "SwipeOutcome",
    "SwipeRequest",
]
