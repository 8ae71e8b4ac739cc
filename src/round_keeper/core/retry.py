"""Retry-with-backoff helper shared by the transaction submitter and price feeder.

Both agents retry a small async operation a bounded number of times with a
delay between attempts. The policy decides how many attempts and how long to
wait; a predicate decides which exceptions are worth another try. Anything the
predicate rejects propagates immediately.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class RetryExhaustedError(Exception):
    """Raise when every allowed attempt failed with a retryable error.

    Args:
        attempts: Number of attempts made.
        last_error: Exception raised by the final attempt.

    """

    def __init__(self, attempts: int, last_error: Exception) -> None:
        """Initialize the error with the attempt count and final cause."""
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry schedule.

    The delay before attempt ``n + 1`` is
    ``base_delay * backoff_factor ** (n - 1)``, optionally capped at
    ``max_delay``. A factor of 1 gives a flat delay; a base of 0 retries
    immediately.

    Args:
        max_attempts: Total attempts including the first one (at least 1).
        base_delay: Delay in seconds after the first failure.
        backoff_factor: Multiplier applied to the delay after each failure.
        max_delay: Optional upper bound on any single delay.

    """

    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 1.0
    max_delay: float | None = None

    def __post_init__(self) -> None:
        """Validate the schedule."""
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)
        if self.base_delay < 0:
            msg = f"base_delay must be non-negative, got {self.base_delay}"
            raise ValueError(msg)
        if self.backoff_factor < 1:
            msg = f"backoff_factor must be at least 1, got {self.backoff_factor}"
            raise ValueError(msg)

    def delay_for(self, attempt: int) -> float:
        """Return the delay to wait after the given failed attempt (1-based)."""
        delay = self.base_delay * self.backoff_factor ** (attempt - 1)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay


def _always(_exc: Exception) -> bool:
    return True


async def retry_async[T](
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: Callable[[Exception], bool] = _always,
    on_retry: Callable[[int, Exception, float], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Args:
        operation: Async callable receiving the 1-based attempt number.
        policy: Attempt bound and delay schedule.
        retry_on: Predicate selecting retryable exceptions. Others are
            re-raised unchanged on the attempt that produced them.
        on_retry: Optional hook called with ``(attempt, error, delay)``
            before sleeping for the next attempt.
        sleep: Awaitable sleep function, injectable for tests.

    Returns:
        The value returned by the first successful attempt.

    Raises:
        RetryExhaustedError: When the final allowed attempt fails with a
            retryable error. The last error is chained as the cause.

    """
    attempt = 1
    while True:
        try:
            return await operation(attempt)
        except Exception as exc:
            if not retry_on(exc):
                raise
            if attempt >= policy.max_attempts:
                raise RetryExhaustedError(attempt, exc) from exc
            delay = policy.delay_for(attempt)
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            else:
                logger.debug("Attempt %d failed (%s), retrying in %.1fs", attempt, exc, delay)
            if delay > 0:
                await sleep(delay)
            attempt += 1
