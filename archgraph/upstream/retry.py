"""Retry with capped exponential backoff for upstream calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from archgraph.core.exceptions import FetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")

BASE_DELAY_MS = 1000
MAX_DELAY_MS = 10000

RetryCallback = Callable[[Exception, int], None]


def backoff_delay_ms(attempt: int) -> int:
    """Delay before retry number ``attempt + 1``: ``min(1000 * 2**attempt, 10000)``."""
    return min(BASE_DELAY_MS * 2**attempt, MAX_DELAY_MS)


def is_retryable(error: Exception) -> bool:
    return isinstance(error, FetchError) and error.retryable


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    retries: int = 3,
    on_retry: RetryCallback | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation``, retrying network and 5xx failures up to ``retries`` times.

    Anything else (auth failures, other 4xx, configuration problems) is raised
    on the first occurrence.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e) or attempt >= retries:
                raise
            delay = backoff_delay_ms(attempt)
            logger.warning(
                "Upstream call failed (attempt %s/%s): %s. Retrying in %sms",
                attempt + 1,
                retries + 1,
                e,
                delay,
            )
            if on_retry is not None:
                on_retry(e, attempt + 1)
            await sleep(delay / 1000)
            attempt += 1
