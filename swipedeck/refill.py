"""
Refill scheduler: background deck top-ups before the user runs out.

State machine:
    IDLE --trigger--> LOADING --fetch resolved--> IDLE

A trigger fires when the deck still has cards, at most `threshold` remain,
no fetch is loading and at least `min_interval` seconds passed since the
last fetch started. The trigger is re-checked whenever a fetch completes
without error. Results are tagged with the generation current at start; if
the deck was reset in the meantime they are dropped. A refill that adds
nothing new marks its generation exhausted and no further refills run for it.
"""

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

from .config import MIN_REFETCH_INTERVAL, REFILL_THRESHOLD
from .deck import Deck
from .errors import CandidateFetchFailed, StaleGenerationDiscarded
from .logger import StructuredLogger, get_logger
from .models import CandidatePage

PageFetcher = Callable[[int], Awaitable[CandidatePage]]
ErrorHandler = Callable[[CandidateFetchFailed], None]


class RefillState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"


class RefillScheduler:
    def __init__(
        self,
        deck: Deck,
        fetch_page: PageFetcher,
        current_generation: Callable[[], int],
        *,
        threshold: int = REFILL_THRESHOLD,
        min_interval: float = MIN_REFETCH_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        on_error: Optional[ErrorHandler] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.deck = deck
        self._fetch_page = fetch_page
        self._current_generation = current_generation
        self.threshold = threshold
        self.min_interval = min_interval
        self._clock = clock
        self._on_error = on_error
        self._logger = logger or get_logger()

        self.state = RefillState.IDLE
        self.last_fetch_started: Optional[float] = None
        self.exhausted_generation: Optional[int] = None
        self._task: Optional[asyncio.Task] = None

    def should_refill(self) -> bool:
        if self.state != RefillState.IDLE:
            return False
        if not self.deck.has_more():
            return False
        if self.deck.remaining() > self.threshold:
            return False
        if self.exhausted_generation == self._current_generation():
            return False
        if self.last_fetch_started is not None:
            if self._clock() - self.last_fetch_started < self.min_interval:
                return False
        return True

    def check(self) -> Optional[asyncio.Task]:
        """
        Evaluate the trigger. Starts a background fetch and returns its task
        if it fires, otherwise returns None. Needs a running event loop.
        """
        if not self.should_refill():
            return None

        loop = asyncio.get_running_loop()
        generation = self._current_generation()
        self.state = RefillState.LOADING
        self.last_fetch_started = self._clock()
        self._logger.debug(
            "Refill triggered",
            generation=generation,
            remaining=self.deck.remaining(),
            deck_size=len(self.deck),
        )
        self._task = loop.create_task(self._refill(generation))
        return self._task

    async def wait_idle(self) -> None:
        while self._task is not None and not self._task.done():
            await self._task

    async def _refill(self, generation: int) -> None:
        recheck = False
        try:
            try:
                page = await self._fetch_page(generation)
            except CandidateFetchFailed as e:
                self._report(e)
                return
            except Exception as e:
                self._report(CandidateFetchFailed(f"Refill fetch error: {e}"))
                return

            recheck = True

            current = self._current_generation()
            if generation != current:
                stale = StaleGenerationDiscarded(generation, current)
                self._logger.record_fetch_discarded()
                self._logger.debug(str(stale), dropped=len(page.candidates))
                return

            added = self.deck.append_unique(page.candidates, page.total)
            if not added:
                self.exhausted_generation = generation
                self._logger.info("Provider has no more candidates", generation=generation)
                return
            self._logger.info(
                "Deck refilled",
                added=len(added),
                duplicates=len(page.candidates) - len(added),
                deck_size=len(self.deck),
                total_available=self.deck.total_available,
            )
        finally:
            self.state = RefillState.IDLE
            # failures wait for the next cursor change
            if recheck:
                self.check()

    def _report(self, error: CandidateFetchFailed) -> None:
        self._logger.record_fetch_failure(type(error).__name__)
        self._logger.warning("Refill fetch failed", error=str(error))
        if self._on_error is not None:
            self._on_error(error)
