"""
Error taxonomy for the discovery engine.

Remote failures are converted into one of these at the adapter boundary,
so nothing else needs to know about requests or HTTP status codes.
"""

from typing import Optional


class DiscoveryError(Exception):
    """Base class for every engine error."""
    pass


class LocationUnavailable(DiscoveryError):
    """Device location could not be read. Recoverable: falls back to default."""
    pass


class LocationPermissionDenied(LocationUnavailable):
    """The user refused to share their location."""
    pass


class CandidateFetchFailed(DiscoveryError):
    """Candidate provider call failed. The deck is left unchanged."""
    pass


class SwipeSubmitFailed(DiscoveryError):
    """A single swipe could not be submitted. The queue keeps going."""

    def __init__(self, message: str, candidate_id: Optional[str] = None):
        super().__init__(message)
        self.candidate_id = candidate_id


class SwipeRejected(DiscoveryError):
    """swipe() refused the request without touching any state."""
    pass


class BackpressureRejected(SwipeRejected):
    """Too many swipes are still waiting for the server."""

    def __init__(self, pending: int, limit: int):
        super().__init__(f"{pending} swipes pending (limit {limit}); wait for them to resolve")
        self.pending = pending
        self.limit = limit


class NoCandidate(SwipeRejected):
    """There is no candidate under the cursor."""

    def __init__(self):
        super().__init__("No candidate to swipe on")


class StaleGenerationDiscarded(DiscoveryError):
    """A fetch finished after the deck was reset. Internal only."""

    def __init__(self, generation: int, current: int):
        super().__init__(f"Discarded fetch for generation {generation} (current {current})")
        self.generation = generation
        self.current = current
