from __future__ import annotations

import logging
import random
import time
from typing import Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 408 and 429 are worth another try; other 4xx are the caller's fault
RETRYABLE_STATUS = {408, 429}


def is_retryable(exc: BaseException) -> bool:
    """Network failures and 5xx responses are transient."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return 500 <= status < 600 or status in RETRYABLE_STATUS
    return False


def backoff_delay(
    attempt: int,
    *,
    initial_delay: float,
    max_delay: float,
    multiplier: float,
    jitter: float = 0.25,
) -> float:
    """Exponential delay for a 1-based attempt, clamped to max_delay, +/- jitter."""
    delay = min(initial_delay * (multiplier ** (attempt - 1)), max_delay)
    spread = delay * jitter * (random.random() * 2 - 1)
    return max(0.0, delay + spread)


def retry(
    fn: Callable[[], T],
    *,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    multiplier: float = 2.0,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    on_retry: Callable[[BaseException, int], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn until it succeeds, retrying transient failures with exponential
    backoff and jitter.

    The last exception is re-raised once attempts run out or should_retry
    says the failure is permanent.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return fn()
        except Exception as exc:
            if attempt >= max_attempts or not should_retry(exc):
                raise
            delay = backoff_delay(
                attempt, initial_delay=initial_delay, max_delay=max_delay, multiplier=multiplier,
            )
            if on_retry is not None:
                on_retry(exc, attempt)
            logger.warning("Attempt %s failed (%s); retrying in %.2fs", attempt, exc, delay)
            sleep(delay)
    raise RuntimeError("retry() called with max_attempts < 1")
