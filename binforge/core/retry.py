"""Retry helpers: fixed-interval polling and rate-limit backoff."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from binforge.errors import PollingTimeoutError, RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NotReady(Exception):
    """Raised by a poll attempt whose condition does not hold yet."""


def poll(
    attempt: Callable[[], T],
    *,
    interval_seconds: float,
    max_attempts: int,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call *attempt* until it returns, sleeping a fixed interval between tries.

    An attempt fails by raising ``NotReady``; any other exception propagates
    immediately. Exhausting the budget raises ``PollingTimeoutError``.
    """
    last_error: Exception | None = None
    for number in range(1, max_attempts + 1):
        try:
            return attempt()
        except NotReady as exc:
            last_error = exc
            logger.debug("%s: attempt %d/%d not ready (%s)", description, number, max_attempts, exc)
        if number < max_attempts:
            sleep(interval_seconds)

    raise PollingTimeoutError(
        f"Timed out waiting for {description} after {max_attempts} attempts "
        f"({last_error})",
        attempts=max_attempts,
        last_error=last_error,
    )


def retry_with_backoff(
    operation: Callable[[], T],
    *,
    max_retries: int = 3,
    base_delay_seconds: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run *operation*, retrying only on ``RateLimitedError``.

    The n-th retry waits ``base_delay_seconds * 2**n``. Every other error is
    raised on the first occurrence.
    """
    retries = 0
    while True:
        try:
            return operation()
        except RateLimitedError:
            if retries >= max_retries:
                raise
            retries += 1
            delay = base_delay_seconds * (2**retries)
            logger.warning(
                "Rate limited, retrying in %.1fs (attempt %d/%d)", delay, retries, max_retries
            )
            sleep(delay)
