"""
Swipe worker queue.

Bounded FIFO of swipe intents with a single active worker task:

    enqueue(intent) -> append to tail, start the worker if idle
    worker          -> pop head, submit, hand the outcome on, repeat

Exactly one submission is in flight at any time, so outcomes are handed
on in the order the intents were enqueued no matter how long each call
takes. Handlers may be coroutine functions; the worker awaits them before
it moves to the next intent. The pending count covers queued plus in-flight intents and is
released in a `finally` block, so a failing submit can never leak a slot.
"""

import asyncio
import inspect
from collections import deque
from typing import Awaitable, Callable, Deque, Optional, Union

from .config import MAX_PENDING
from .errors import BackpressureRejected, SwipeSubmitFailed
from .logger import StructuredLogger, get_logger
from .models import SwipeIntent, SwipeOutcome

Submitter = Callable[[SwipeIntent], Awaitable[SwipeOutcome]]
OutcomeHandler = Callable[[SwipeIntent, SwipeOutcome], Union[None, Awaitable[None]]]
FailureHandler = Callable[[SwipeIntent, SwipeSubmitFailed], Union[None, Awaitable[None]]]


class SwipeWorkerQueue:
    def __init__(
        self,
        submit: Submitter,
        *,
        on_outcome: Optional[OutcomeHandler] = None,
        on_failure: Optional[FailureHandler] = None,
        capacity: int = MAX_PENDING,
        logger: Optional[StructuredLogger] = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._submit = submit
        self._on_outcome = on_outcome
        self._on_failure = on_failure
        self.capacity = capacity
        self._logger = logger or get_logger()

        self._queue: Deque[SwipeIntent] = deque()
        self._pending_count = 0
        self._worker: Optional[asyncio.Task] = None

    # --- Queries ---

    @property
    def pending_count(self) -> int:
        return self._pending_count

    @property
    def is_full(self) -> bool:
        return self._pending_count >= self.capacity

    @property
    def is_active(self) -> bool:
        return self._worker is not None

    def queued(self) -> list:
        """Intents waiting behind the in-flight one, head first."""
        return list(self._queue)

    # --- Producer side ---

    def enqueue(self, intent: SwipeIntent) -> None:
        """
        Add an intent to the tail. Must be called from inside a running event loop.

        Raises BackpressureRejected when the queue is at capacity; nothing is
        changed in that case.
        """
        if self.is_full:
            raise BackpressureRejected(self._pending_count, self.capacity)

        loop = asyncio.get_running_loop()
        self._queue.append(intent)
        self._pending_count += 1

        if self._worker is None:
            self._worker = loop.create_task(self._run())

    async def drain(self) -> None:
        """Wait until every queued intent has been resolved."""
        while self._worker is not None:
            await self._worker

    # --- Consumer side ---

    async def _run(self) -> None:
        try:
            while self._queue:
                intent = self._queue.popleft()
                try:
                    await self._process(intent)
                finally:
                    self._pending_count -= 1
        finally:
            self._worker = None

    async def _process(self, intent: SwipeIntent) -> None:
        try:
            outcome = await self._submit(intent)
        except SwipeSubmitFailed as e:
            await self._fail(intent, e)
            return
        except Exception as e:
            await self._fail(intent, SwipeSubmitFailed(f"Swipe submit error: {e}", intent.candidate_id))
            return

        if self._on_outcome is None:
            return
        try:
            await _call(self._on_outcome, intent, outcome)
        except Exception as e:
            # the worker must keep draining even if a handler misbehaves
            self._logger.error(
                "Swipe outcome handler failed",
                candidate_id=intent.candidate_id,
                error=str(e),
            )

    async def _fail(self, intent: SwipeIntent, error: SwipeSubmitFailed) -> None:
        if error.candidate_id is None:
            error.candidate_id = intent.candidate_id
        self._logger.warning(
            "Swipe submission failed",
            candidate_id=intent.candidate_id,
            direction=intent.direction.value,
            error=str(error),
        )
        if self._on_failure is None:
            return
        try:
            await _call(self._on_failure, intent, error)
        except Exception as e:
            self._logger.error(
                "Swipe failure handler failed",
                candidate_id=intent.candidate_id,
                error=str(e),
            )


async def _call(handler, *args) -> None:
    result = handler(*args)
    if inspect.isawaitable(result):
        await result
