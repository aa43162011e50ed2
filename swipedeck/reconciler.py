"""
Match reconciler: turns mutual-like outcomes into match events.
"""

from collections import deque
from typing import Callable, Deque, List, Optional

from .logger import StructuredLogger, get_logger
from .models import Candidate, MatchEvent, SwipeOutcome

CandidateLookup = Callable[[str], Optional[Candidate]]
MatchListener = Callable[[MatchEvent], None]


class MatchReconciler:
    """
    Publishes exactly one MatchEvent per outcome with `is_match` set.

    Events stay pending until dismissed; `match_event` is the oldest one.
    """

    def __init__(self, lookup: CandidateLookup, logger: Optional[StructuredLogger] = None):
        self._lookup = lookup
        self._logger = logger or get_logger()
        self._events: Deque[MatchEvent] = deque()
        self._listeners: List[MatchListener] = []

    @property
    def match_event(self) -> Optional[MatchEvent]:
        return self._events[0] if self._events else None

    def pending_events(self) -> List[MatchEvent]:
        return list(self._events)

    def subscribe(self, listener: MatchListener) -> None:
        self._listeners.append(listener)

    def reconcile(self, outcome: SwipeOutcome) -> Optional[MatchEvent]:
        if not outcome.is_match:
            return None

        candidate = self._find(outcome.candidate_id)
        event = MatchEvent(match_ref=outcome.match_ref, candidate=candidate)
        self._events.append(event)
        self._logger.info(
            "Match!",
            candidate_id=outcome.candidate_id,
            match_ref=outcome.match_ref,
            in_deck=candidate is not None,
        )

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                self._logger.error("Match listener failed", error=str(e))
        return event

    def dismiss(self) -> Optional[MatchEvent]:
        """Drop the current match event. Returns it, or None if there was none."""
        if not self._events:
            return None
        return self._events.popleft()

    def clear(self) -> None:
        self._events.clear()

    def _find(self, candidate_id: str) -> Optional[Candidate]:
        try:
            return self._lookup(candidate_id)
        except Exception as e:
            self._logger.debug("Match candidate lookup failed", candidate_id=candidate_id, error=str(e))
            return None
