"""Retry with exponential backoff for payment operations.

``retry_with_backoff`` runs an async operation up to ``max_attempts``
times. Every failure is classified first; only failures the classifier
marks as retryable are attempted again, after a delay of
``base_delay_ms * 2 ** (attempt - 1)`` capped at ``max_delay_ms``
(1s, 2s, 4s, 8s, 8s...). There is no jitter.

Attempts are strictly sequential and an in-flight attempt is never
cancelled: the engine always runs to a terminal outcome (success,
non-retryable failure, or no attempts left).
"""

import asyncio
import functools
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from .errors import ErrorRecord, classify, is_retryable

logger = logging.getLogger("checkout.retry")

T = TypeVar("T")

MAX_ATTEMPTS = 3
BASE_DELAY_MS = 1000
MAX_DELAY_MS = 8000

OnRetry = Callable[[int, ErrorRecord], Any]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Terminal result of a retried operation.

    Attributes:
        success: Whether an attempt succeeded.
        data: Value returned by the successful attempt.
        error: Classified error of the last failed attempt.
        attempts: Number of attempts actually made (>= 1).
        elapsed_ms: Wall time spent, including backoff sleeps.
        exhausted: True when the last error was retryable but the
            attempts ran out; False for successes and non-retryable errors.
    """

    success: bool
    attempts: int
    elapsed_ms: int
    data: Optional[T] = None
    error: Optional[ErrorRecord] = None
    exhausted: bool = False


def calculate_backoff_delay(
    attempt: int,
    base_delay_ms: int = BASE_DELAY_MS,
    max_delay_ms: int = MAX_DELAY_MS,
) -> int:
    """Delay in milliseconds to wait after failed ``attempt`` (1-based)."""
    return min(base_delay_ms * 2 ** (attempt - 1), max_delay_ms)


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.monotonic() - started) * 1000))


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = MAX_ATTEMPTS,
    base_delay_ms: int = BASE_DELAY_MS,
    max_delay_ms: int = MAX_DELAY_MS,
    on_retry: Optional[OnRetry] = None,
    sleep: Sleep = asyncio.sleep,
) -> RetryOutcome[T]:
    """Run ``operation`` with bounded retries and exponential backoff.

    Args:
        operation: Zero-argument callable returning an awaitable.
        max_attempts: Total attempts allowed, including the first.
        base_delay_ms: Delay after the first failure.
        max_delay_ms: Upper bound for any single delay.
        on_retry: Called as ``on_retry(attempt, error)`` after a retryable
            failure and before the backoff sleep. May be a coroutine
            function.
        sleep: Awaitable sleep taking seconds.

    Returns:
        RetryOutcome: Success with the data, or failure with the last
        classified error.

    Raises:
        ValueError: ``INVALID_MAX_ATTEMPTS`` when ``max_attempts`` < 1.
    """
    if max_attempts < 1:
        raise ValueError("INVALID_MAX_ATTEMPTS")

    started = time.monotonic()
    record: Optional[ErrorRecord] = None

    for attempt in range(1, max_attempts + 1):
        logger.info("attempt %s/%s", attempt, max_attempts)
        try:
            data = await operation()
        except Exception as exc:
            record = classify(exc)
        else:
            elapsed = _elapsed_ms(started)
            logger.info("succeeded on attempt %s (%sms)", attempt, elapsed)
            return RetryOutcome(success=True, data=data, attempts=attempt, elapsed_ms=elapsed)

        logger.warning(
            "attempt %s failed: %s/%s",
            attempt,
            record.kind.value,
            record.code,
        )

        if not is_retryable(record):
            logger.info("error not retryable, stopping")
            return RetryOutcome(
                success=False, error=record, attempts=attempt, elapsed_ms=_elapsed_ms(started)
            )

        if attempt == max_attempts:
            logger.warning("max attempts reached")
            return RetryOutcome(
                success=False,
                error=record,
                attempts=attempt,
                elapsed_ms=_elapsed_ms(started),
                exhausted=True,
            )

        delay = calculate_backoff_delay(attempt, base_delay_ms, max_delay_ms)
        if on_retry is not None:
            ret = on_retry(attempt, record)
            if inspect.isawaitable(ret):
                await ret
        logger.info("waiting %sms before next attempt", delay)
        await sleep(delay / 1000)

    raise AssertionError("unreachable")


def with_retry(fn: Callable[..., Awaitable[T]], **options) -> Callable[..., Awaitable[RetryOutcome[T]]]:
    """Wrap an async function so each call goes through ``retry_with_backoff``.

    Example:
        confirm = with_retry(payments.confirm, max_attempts=3)
        outcome = await confirm(client_secret, payment_method)
    """

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs) -> RetryOutcome[T]:
        return await retry_with_backoff(lambda: fn(*args, **kwargs), **options)

    return wrapper
