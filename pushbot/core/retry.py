"""Fixed-backoff retry helper for async operations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pushbot.core.errors import RetryExhaustedError

T = TypeVar("T")

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    delay_s: float,
    sleep: Sleep = asyncio.sleep,
    on_failure: Callable[[int, Exception], None] | None = None,
) -> T:
    """Run ``operation`` until it succeeds or ``attempts`` calls have failed.

    ``delay_s`` is slept between failed attempts, never after the last one.
    ``on_failure`` receives the 1-based attempt number and the error.
    Cancellation is never retried.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")
    if delay_s < 0:
        raise ValueError(f"delay_s must be >= 0, got {delay_s}")

    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            last_error = exc
            if on_failure is not None:
                on_failure(attempt, exc)
            else:
                LOGGER.debug("Attempt %d/%d failed: %s", attempt, attempts, exc)
            if attempt < attempts:
                await sleep(delay_s)

    raise RetryExhaustedError(
        f"All {attempts} attempts failed: {last_error}", attempts
    ) from last_error
