"""
Discovery session: the one object a presentation layer talks to.

Owns every piece of mutable engine state for a single swiper: the deck,
the generation counter, the worker queue, the match reconciler, the
refill scheduler and the location resolver. Nothing is module-global, so
several sessions can run side by side on one event loop.

Flow:
    swipe() -> advance cursor (optimistic) -> enqueue intent
    worker  -> submit -> reconcile match -> journal (worker thread) -> release pending slot
    cursor / deck changes -> refill check -> background fetch -> append
"""

import asyncio
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Union

from .config import EngineConfig
from .deck import Deck
from .errors import (
    BackpressureRejected,
    CandidateFetchFailed,
    DiscoveryError,
    NoCandidate,
    StaleGenerationDiscarded,
    SwipeSubmitFailed,
)
from .location import DeviceLocator, LocationResolver
from .logger import StructuredLogger, get_logger
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
from .queue import SwipeWorkerQueue
from .reconciler import MatchReconciler
from .refill import RefillScheduler

# called once per resolved intent, in submission order, with either an outcome or an error
OutcomeListener = Callable[[SwipeIntent, Optional[SwipeOutcome], Optional[SwipeSubmitFailed]], None]


class DiscoverySession:
    """
    Args:
        swiper_id: id of the team/profile doing the swiping
        candidate_provider: object with `async fetch_candidates(CandidateQuery) -> CandidatePage`
        swipe_submitter: object with `async submit_swipe(SwipeRequest) -> SwipeOutcome`
        device_locator: zero-arg coroutine function returning the device Coordinate
        filters: initial search filters (origin is filled in on refresh)
        location_source: initial location source (default: current)
        config: engine tunables
        clock: monotonic clock in seconds, injectable for tests
        logger: StructuredLogger (default: global logger)
        journal: optional SwipeJournal that records every resolved swipe
    """

    def __init__(
        self,
        swiper_id: str,
        candidate_provider,
        swipe_submitter,
        *,
        device_locator: Optional[DeviceLocator] = None,
        filters: Optional[SearchFilters] = None,
        location_source: Optional[LocationSource] = None,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[StructuredLogger] = None,
        journal=None,
    ):
        self.swiper_id = swiper_id
        self.config = config or EngineConfig()
        self._provider = candidate_provider
        self._submitter = swipe_submitter
        self._clock = clock
        self._logger = logger or get_logger()
        self._journal = journal
        self._outcome_listeners: List[OutcomeListener] = []

        self.filters = filters or SearchFilters(exclude_id=swiper_id)
        self.deck = Deck()
        self.last_error: Optional[DiscoveryError] = None
        self.is_loading = False
        self._generation = 0

        self.location = LocationResolver(
            device_locator,
            default_origin=self.config.default_origin,
            timeout=self.config.location_timeout,
            source=location_source,
            logger=self._logger,
        )
        self.reconciler = MatchReconciler(self.deck.find, logger=self._logger)
        self.queue = SwipeWorkerQueue(
            self._submit_intent,
            on_outcome=self._apply_outcome,
            on_failure=self._apply_failure,
            capacity=self.config.max_pending,
            logger=self._logger,
        )
        self.refill = RefillScheduler(
            self.deck,
            self._fetch_refill_page,
            lambda: self._generation,
            threshold=self.config.refill_threshold,
            min_interval=self.config.min_refetch_interval,
            clock=self._clock,
            on_error=self._surface,
            logger=self._logger,
        )

    # --- Queries ---

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending_swipe_count(self) -> int:
        return self.queue.pending_count

    @property
    def can_swipe(self) -> bool:
        return self.queue.pending_count < self.config.max_pending

    @property
    def match_event(self) -> Optional[MatchEvent]:
        return self.reconciler.match_event

    @property
    def location_source(self) -> LocationSource:
        return self.location.source

    def current_candidate(self) -> Optional[Candidate]:
        return self.deck.current_candidate()

    def has_more(self) -> bool:
        return self.deck.has_more()

    # --- Commands ---

    async def start(self) -> int:
        return await self.refresh_deck()

    async def refresh_deck(self) -> int:
        """
        Reset the deck under a new generation and load the first page.

        Returns the number of candidates loaded (0 if a newer refresh
        overtook this one). Raises CandidateFetchFailed if the provider
        fails; the reset deck is left empty and the error is also kept in
        `last_error`.
        """
        self._generation += 1
        generation = self._generation
        self.deck.reset()
        self.is_loading = True
        self._logger.info("Refreshing deck", generation=generation)

        try:
            origin = await self.location.resolve()
            if generation != self._generation:
                self._discard(generation, 0)
                return 0

            self.filters = replace(self.filters, origin=origin)
            query = CandidateQuery.build(
                self.filters,
                origin,
                limit=self.config.page_limit,
                generation=generation,
            )
            try:
                page = await self._fetch(query)
            except CandidateFetchFailed as e:
                if generation != self._generation:
                    self._logger.debug("Ignoring failure of superseded fetch", generation=generation)
                    return 0
                self._logger.record_fetch_failure(type(e).__name__)
                self._surface(e)
                raise
        finally:
            if generation == self._generation:
                self.is_loading = False

        if generation != self._generation:
            self._discard(generation, len(page.candidates))
            return 0

        added = self.deck.append_unique(page.candidates, page.total)
        self._logger.info(
            "Deck loaded",
            generation=generation,
            loaded=len(added),
            total_available=self.deck.total_available,
            lat=origin.lat,
            lng=origin.lng,
        )
        self.refill.check()
        return len(added)

    async def set_location_source(
        self,
        source: Union[LocationSource, str],
        anchor: Optional[Coordinate] = None,
    ) -> int:
        """Switch where the origin comes from and reload the deck around it."""
        if not isinstance(source, LocationSource):
            source = LocationSource.parse(source, anchor)
        self.location.source = source
        return await self.refresh_deck()

    async def set_filters(self, filters: SearchFilters) -> int:
        if filters.exclude_id is None:
            filters = replace(filters, exclude_id=self.swiper_id)
        self.filters = filters
        return await self.refresh_deck()

    def swipe(
        self,
        direction: Union[SwipeDirection, str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SwipeIntent:
        """
        Like or pass the current candidate.

        The cursor moves immediately and never moves back; the decision is
        queued for the server. Raises NoCandidate or BackpressureRejected
        without changing anything. Must be called inside a running event loop.
        """
        direction = SwipeDirection(direction)
        asyncio.get_running_loop()

        candidate = self.deck.current_candidate()
        if candidate is None:
            self._logger.record_swipe_rejected("NoCandidate")
            raise NoCandidate()
        if self.queue.is_full:
            self._logger.record_swipe_rejected("BackpressureRejected")
            raise BackpressureRejected(self.queue.pending_count, self.queue.capacity)

        intent = SwipeIntent(
            candidate_id=candidate.id,
            direction=direction,
            enqueued_at=self._clock(),
            metadata=metadata,
        )
        self.deck.advance()
        self.queue.enqueue(intent)
        self._logger.record_swipe_enqueued()
        self._logger.debug(
            "Swipe queued",
            candidate_id=candidate.id,
            direction=direction.value,
            pending=self.queue.pending_count,
        )

        self.refill.check()
        return intent

    def subscribe_outcomes(self, listener: OutcomeListener) -> None:
        self._outcome_listeners.append(listener)

    def dismiss_match(self) -> Optional[MatchEvent]:
        return self.reconciler.dismiss()

    def dismiss_error(self) -> Optional[DiscoveryError]:
        error, self.last_error = self.last_error, None
        return error

    async def drain(self) -> None:
        """Wait for queued swipes and any running refill to settle."""
        await self.queue.drain()
        await self.refill.wait_idle()

    # --- Collaborator plumbing ---

    async def _fetch(self, query: CandidateQuery) -> CandidatePage:
        self._logger.record_fetch_attempt()
        try:
            return await self._provider.fetch_candidates(query)
        except CandidateFetchFailed:
            raise
        except Exception as e:
            raise CandidateFetchFailed(f"Candidate provider error: {e}") from e

    async def _fetch_refill_page(self, generation: int) -> CandidatePage:
        origin = self.location.remembered_origin() or self.filters.origin or self.config.default_origin
        query = CandidateQuery.build(
            self.filters,
            origin,
            limit=self.config.page_limit,
            generation=generation,
            exclude_ids=tuple(self.deck.ids()),
        )
        return await self._fetch(query)

    async def _submit_intent(self, intent: SwipeIntent) -> SwipeOutcome:
        request = SwipeRequest(
            swiper_id=self.swiper_id,
            target_id=intent.candidate_id,
            action=intent.direction,
            metadata=intent.metadata,
        )
        return await self._submitter.submit_swipe(request)

    async def _apply_outcome(self, intent: SwipeIntent, outcome: SwipeOutcome) -> None:
        if not outcome.accepted:
            await self._apply_failure(
                intent,
                SwipeSubmitFailed("Swipe was not accepted by the server", intent.candidate_id),
            )
            return

        self._logger.record_swipe_submitted(is_match=outcome.is_match)
        self.reconciler.reconcile(outcome)
        await self._record(
            intent,
            status="matched" if outcome.is_match else "accepted",
            match_ref=outcome.match_ref,
        )
        self._notify(intent, outcome, None)

    async def _apply_failure(self, intent: SwipeIntent, error: SwipeSubmitFailed) -> None:
        self._logger.record_swipe_failure(type(error).__name__)
        self._surface(error)
        await self._record(intent, status="failed")
        self._notify(intent, None, error)

    async def _record(self, intent: SwipeIntent, *, status: str, match_ref: Optional[str] = None) -> None:
        if self._journal is None:
            return
        # SQLite I/O stays off the loop thread
        try:
            await asyncio.to_thread(
                self._journal.record,
                self.swiper_id,
                intent.candidate_id,
                intent.direction,
                status=status,
                match_ref=match_ref,
            )
        except Exception as e:
            self._logger.error("Journal write failed", error=str(e), candidate_id=intent.candidate_id)

    def _notify(self, intent, outcome, error) -> None:
        for listener in self._outcome_listeners:
            try:
                listener(intent, outcome, error)
            except Exception as e:
                self._logger.error("Outcome listener failed", error=str(e), candidate_id=intent.candidate_id)

    def _surface(self, error: DiscoveryError) -> None:
        self.last_error = error
        self._logger.warning("Recoverable discovery error", error=str(error), error_type=type(error).__name__)

    def _discard(self, generation: int, dropped: int) -> None:
        stale = StaleGenerationDiscarded(generation, self._generation)
        self._logger.record_fetch_discarded()
        self._logger.debug(str(stale), dropped=dropped)
