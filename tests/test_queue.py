"""
Tests for queue.py - ordered swipe submission with backpressure.
"""

import asyncio

import pytest

from swipedeck.errors import BackpressureRejected, SwipeSubmitFailed
from swipedeck.models import SwipeDirection, SwipeIntent, SwipeOutcome
from swipedeck.queue import SwipeWorkerQueue

from conftest import settle


def intent(candidate_id: str, direction: SwipeDirection = SwipeDirection.LIKE) -> SwipeIntent:
    return SwipeIntent(candidate_id=candidate_id, direction=direction, enqueued_at=0.0)


class Recorder:
    """Submit function with per-candidate delays, recording everything."""

    def __init__(self, delays=None, failures=()):
        self.delays = delays or {}
        self.failures = set(failures)
        self.started = []
        self.outcomes = []
        self.failed = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def submit(self, item: SwipeIntent) -> SwipeOutcome:
        self.started.append(item.candidate_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(item.candidate_id, 0))
            if item.candidate_id in self.failures:
                raise SwipeSubmitFailed("server said no")
            return SwipeOutcome(candidate_id=item.candidate_id, is_match=False)
        finally:
            self.in_flight -= 1

    def on_outcome(self, item, outcome):
        self.outcomes.append(outcome.candidate_id)

    def on_failure(self, item, error):
        self.failed.append((item.candidate_id, error))


def make_queue(recorder: Recorder, logger, capacity: int = 5) -> SwipeWorkerQueue:
    return SwipeWorkerQueue(
        recorder.submit,
        on_outcome=recorder.on_outcome,
        on_failure=recorder.on_failure,
        capacity=capacity,
        logger=logger,
    )


class TestOrdering:
    """Outcomes are handed on in enqueue order."""

    def test_slow_first_submission_still_resolves_first(self, quiet_logger):
        recorder = Recorder(delays={"A": 0.05, "B": 0.0, "C": 0.01})

        async def scenario():
            queue = make_queue(recorder, quiet_logger)
            for cid in ("A", "B", "C"):
                queue.enqueue(intent(cid))
            await queue.drain()
            return queue

        queue = asyncio.run(scenario())

        assert recorder.started == ["A", "B", "C"]
        assert recorder.outcomes == ["A", "B", "C"]
        assert queue.pending_count == 0

    def test_one_submission_in_flight(self, quiet_logger):
        recorder = Recorder(delays={"A": 0.01, "B": 0.01, "C": 0.01})

        async def scenario():
            queue = make_queue(recorder, quiet_logger)
            for cid in ("A", "B", "C"):
                queue.enqueue(intent(cid))
            await queue.drain()

        asyncio.run(scenario())

        assert recorder.max_in_flight == 1

    def test_worker_restarts_after_going_idle(self, quiet_logger):
        recorder = Recorder()

        async def scenario():
            queue = make_queue(recorder, quiet_logger)
            queue.enqueue(intent("A"))
            await queue.drain()
            assert not queue.is_active
            queue.enqueue(intent("B"))
            await queue.drain()

        asyncio.run(scenario())

        assert recorder.outcomes == ["A", "B"]


class TestBackpressure:
    """Capacity limits and pending count accounting."""

    def test_rejects_when_full(self, quiet_logger):
        recorder = Recorder(delays={cid: 0.01 for cid in "ABCDE"})

        async def scenario():
            queue = make_queue(recorder, quiet_logger, capacity=5)
            for cid in "ABCDE":
                queue.enqueue(intent(cid))
            assert queue.is_full

            with pytest.raises(BackpressureRejected) as exc_info:
                queue.enqueue(intent("F"))
            assert exc_info.value.pending == 5
            assert exc_info.value.limit == 5
            assert queue.pending_count == 5
            assert "F" not in [i.candidate_id for i in queue.queued()]

            await queue.drain()
            return queue

        queue = asyncio.run(scenario())

        assert recorder.outcomes == list("ABCDE")
        assert queue.pending_count == 0

    def test_pending_count_covers_in_flight(self, quiet_logger):
        recorder = Recorder(delays={"A": 0.05})

        async def scenario():
            queue = make_queue(recorder, quiet_logger)
            queue.enqueue(intent("A"))
            queue.enqueue(intent("B"))
            await settle()
            # A is in flight, B is waiting
            assert queue.pending_count == 2
            assert [i.candidate_id for i in queue.queued()] == ["B"]
            await queue.drain()
            assert queue.pending_count == 0

        asyncio.run(scenario())

    def test_capacity_must_be_positive(self, quiet_logger):
        with pytest.raises(ValueError):
            make_queue(Recorder(), quiet_logger, capacity=0)


class TestFailures:
    """A failing submission never stops the queue."""

    def test_failure_reported_and_queue_continues(self, quiet_logger):
        recorder = Recorder(failures={"B"})

        async def scenario():
            queue = make_queue(recorder, quiet_logger)
            for cid in ("A", "B", "C"):
                queue.enqueue(intent(cid))
            await queue.drain()
            return queue

        queue = asyncio.run(scenario())

        assert recorder.outcomes == ["A", "C"]
        assert len(recorder.failed) == 1
        failed_id, error = recorder.failed[0]
        assert failed_id == "B"
        assert error.candidate_id == "B"
        assert queue.pending_count == 0

    def test_unexpected_exception_becomes_submit_failure(self, quiet_logger):
        failures = []

        async def broken_submit(item):
            raise RuntimeError("socket closed")

        async def scenario():
            queue = SwipeWorkerQueue(
                broken_submit,
                on_failure=lambda item, error: failures.append(error),
                logger=quiet_logger,
            )
            queue.enqueue(intent("A"))
            await queue.drain()
            return queue

        queue = asyncio.run(scenario())

        assert isinstance(failures[0], SwipeSubmitFailed)
        assert failures[0].candidate_id == "A"
        assert queue.pending_count == 0

    def test_handler_error_does_not_stop_worker(self, quiet_logger):
        handled = []

        async def submit(item):
            return SwipeOutcome(candidate_id=item.candidate_id, is_match=False)

        def flaky_handler(item, outcome):
            handled.append(item.candidate_id)
            if item.candidate_id == "A":
                raise KeyError("boom")

        async def scenario():
            queue = SwipeWorkerQueue(submit, on_outcome=flaky_handler, logger=quiet_logger)
            queue.enqueue(intent("A"))
            queue.enqueue(intent("B"))
            await queue.drain()
            return queue

        queue = asyncio.run(scenario())

        assert handled == ["A", "B"]
        assert queue.pending_count == 0

    def test_async_handlers_awaited_in_order(self, quiet_logger):
        """The next submission starts only after the previous handler finished."""
        events = []
        delays = {"A": 0.03, "B": 0.0}

        async def submit(item):
            events.append(("submit", item.candidate_id))
            if item.candidate_id == "C":
                raise SwipeSubmitFailed("server said no")
            return SwipeOutcome(candidate_id=item.candidate_id, is_match=False)

        async def on_outcome(item, outcome):
            await asyncio.sleep(delays[item.candidate_id])
            events.append(("handled", item.candidate_id))

        async def on_failure(item, error):
            await asyncio.sleep(0)
            events.append(("failed", item.candidate_id))

        async def scenario():
            queue = SwipeWorkerQueue(submit, on_outcome=on_outcome, on_failure=on_failure, logger=quiet_logger)
            for cid in ("A", "B", "C"):
                queue.enqueue(intent(cid))
            await settle()
            assert queue.pending_count == 3
            await queue.drain()
            return queue

        queue = asyncio.run(scenario())

        assert events == [
            ("submit", "A"),
            ("handled", "A"),
            ("submit", "B"),
            ("handled", "B"),
            ("submit", "C"),
            ("failed", "C"),
        ]
        assert queue.pending_count == 0

    def test_enqueue_needs_running_loop(self, quiet_logger):
        queue = make_queue(Recorder(), quiet_logger)

        with pytest.raises(RuntimeError):
            queue.enqueue(intent("A"))

        assert queue.pending_count == 0
