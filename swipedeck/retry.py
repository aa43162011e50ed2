"""
Retry and circuit-breaking helpers for the HTTP adapters.

Read-only calls (candidate discovery, IP geolocation) retry transient
transport failures with exponential backoff. Swipe submission never
retries. The circuit breaker stops refills from hammering a discovery
endpoint that keeps failing.
"""

import functools
import time
from enum import Enum
from typing import Callable, Iterator, Optional, Tuple, Type

from .logger import StructuredLogger, get_logger

# 408 Request Timeout, 429 Too Many Requests and the 5xx gateway family
RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


class RetryError(Exception):
    """Raised when every attempt failed. The last failure is the __cause__."""

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"Failed after {attempts} attempts: {last_error}")
        self.attempts = attempts


class CircuitOpenError(Exception):
    """Raised instead of calling through while the circuit is open."""

    def __init__(self, service: str, retry_after: float):
        super().__init__(f"{service} circuit is OPEN, retry after {retry_after:.0f}s")
        self.service = service
        self.retry_after = retry_after


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUSES


def backoff_delays(base_delay: float, factor: float, max_delay: float) -> Iterator[float]:
    """Endless sleep intervals: base, base*factor, ... each capped at max_delay.

    With base 0.5, factor 2 and cap 1.5 the sequence is 0.5, 1.0, 1.5, 1.5, ...
    """
    delay = base_delay
    while True:
        yield min(delay, max_delay)
        delay *= factor


def exponential_backoff(
    max_retries: int = 2,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
    factor: float = 2.0,
    retry_on: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Decorator that re-runs a blocking call when it raises one of `retry_on`.

    Args:
        max_retries: Extra attempts after the first one (0 disables retrying)
        base_delay: Seconds to sleep before the first retry
        max_delay: Upper bound for any single sleep
        factor: Multiplier applied to the delay after every retry
        retry_on: Exception types worth another attempt; anything else propagates
        on_retry: Called as on_retry(attempt, error, delay) before each sleep

    Raises:
        RetryError: once max_retries + 1 attempts have failed
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delays = backoff_delays(base_delay, factor, max_delay)
            attempt = 0
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    if attempt > max_retries:
                        raise RetryError(attempt, e) from e
                    delay = next(delays)
                    if on_retry is not None:
                        on_retry(attempt, e, delay)
                    time.sleep(delay)

        return wrapper
    return decorator


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Fails fast once a service keeps erroring.

    CLOSED counts consecutive failures of `expected_exception`; reaching
    `failure_threshold` opens the circuit. While OPEN every call raises
    CircuitOpenError without touching the service. After `recovery_timeout`
    seconds one trial call goes through (HALF_OPEN): success closes the
    circuit, failure opens it again for another full timeout.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
        expected_exception: Type[Exception] = Exception,
        *,
        service: str = "service",
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            failure_threshold: Consecutive failures that open the circuit
            recovery_timeout: Seconds the circuit stays open before a trial call
            expected_exception: Failure type that counts; others pass through untouched
            service: Name used in errors and log lines
            clock: Monotonic clock in seconds, injectable for tests
            logger: StructuredLogger (default: global logger)
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.service = service
        self._clock = clock
        self._logger = logger or get_logger()

        self.state = BreakerState.CLOSED
        self.failure_count = 0
        self.opened_at: Optional[float] = None

    def retry_after(self) -> float:
        """Seconds until a trial call is allowed (0 unless the circuit is open)."""
        if self.state != BreakerState.OPEN or self.opened_at is None:
            return 0.0
        return max(0.0, self.recovery_timeout - (self._clock() - self.opened_at))

    def call(self, func: Callable, *args, **kwargs):
        """
        Run func(*args, **kwargs) unless the circuit is open.

        Raises:
            CircuitOpenError: while open and the recovery timeout has not passed
            expected_exception: re-raised after being counted
        """
        if self.state == BreakerState.OPEN:
            wait = self.retry_after()
            if wait > 0:
                raise CircuitOpenError(self.service, wait)
            self._move_to(BreakerState.HALF_OPEN)

        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._record_failure()
            raise

        if self.state != BreakerState.CLOSED or self.failure_count:
            self.reset()
        return result

    def reset(self) -> None:
        """Close the circuit and forget past failures."""
        self.failure_count = 0
        self.opened_at = None
        self._move_to(BreakerState.CLOSED)

    def _record_failure(self) -> None:
        self.failure_count += 1
        if self.state == BreakerState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.opened_at = self._clock()
            self._move_to(BreakerState.OPEN)

    def _move_to(self, state: BreakerState) -> None:
        if state == self.state:
            return
        log = self._logger.warning if state == BreakerState.OPEN else self._logger.info
        log(
            "Circuit breaker state change",
            service=self.service,
            old_state=self.state.value,
            new_state=state.value,
            failures=self.failure_count,
        )
        self.state = state
