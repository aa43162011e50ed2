"""
Deck state: the ordered candidate sequence plus a read cursor.

Entries before the cursor are never touched once appended; refills only
ever grow the tail. `total_available` stays 0 until the provider reports a
total.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from .models import Candidate


@dataclass
class Deck:
    candidates: List[Candidate] = field(default_factory=list)
    cursor: int = 0
    total_available: int = 0
    _ids: Set[str] = field(default_factory=set, repr=False)

    def __post_init__(self):
        self._ids = {candidate.id for candidate in self.candidates}
        self.cursor = max(0, min(self.cursor, len(self.candidates)))

    def __len__(self) -> int:
        return len(self.candidates)

    def current_candidate(self) -> Optional[Candidate]:
        if self.cursor < len(self.candidates):
            return self.candidates[self.cursor]
        return None

    def has_more(self) -> bool:
        return self.cursor < len(self.candidates)

    def remaining(self) -> int:
        return len(self.candidates) - self.cursor

    def advance(self) -> int:
        """Move the cursor forward by one, never past the tail. Returns the new cursor."""
        self.cursor = min(self.cursor + 1, len(self.candidates))
        return self.cursor

    def find(self, candidate_id: str) -> Optional[Candidate]:
        if candidate_id not in self._ids:
            return None
        for candidate in self.candidates:
            if candidate.id == candidate_id:
                return candidate
        return None

    def ids(self) -> List[str]:
        return [candidate.id for candidate in self.candidates]

    def append_unique(self, candidates: Iterable[Candidate], total: Optional[int] = None) -> List[Candidate]:
        """
        Append candidates after the tail, skipping ids already in the deck
        (and repeats inside `candidates` itself).

        Returns the candidates actually appended.
        """
        added: List[Candidate] = []
        for candidate in candidates:
            if candidate.id in self._ids:
                continue
            self._ids.add(candidate.id)
            self.candidates.append(candidate)
            added.append(candidate)

        if total is not None:
            self.total_available = max(total, len(self.candidates))
        return added

    def reset(self) -> None:
        self.candidates = []
        self._ids = set()
        self.cursor = 0
        self.total_available = 0
