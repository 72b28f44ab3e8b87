"""Retry with exponential backoff for read-only RPC calls."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


def backoff_delay(
    attempt: int,
    initial_delay: float,
    max_delay: float,
    multiplier: float = 2.0,
    jitter: bool = False,
) -> float:
    """Delay before retry number ``attempt`` (0-based), capped at ``max_delay``."""
    delay = initial_delay * multiplier**attempt
    if jitter:
        delay *= random.uniform(0.75, 1.25)
    return min(delay, max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int = 2,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    is_retryable: Callable[[BaseException], bool] | None = None,
    jitter: bool = False,
    description: str = "operation",
) -> T:
    """Await ``operation()``, retrying up to ``retries`` extra times.

    Only exceptions for which ``is_retryable`` returns True are retried; the
    last exception is re-raised once attempts run out. Never use this for
    transaction submission: a resubmitted write can double-spend.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= retries or (is_retryable is not None and not is_retryable(e)):
                raise
            delay = backoff_delay(attempt, initial_delay, max_delay, jitter=jitter)
            attempt += 1
            logger.warning(
                "retrying",
                operation=description,
                attempt=attempt,
                delay=delay,
                error=str(e),
            )
            await asyncio.sleep(delay)


__all__ = ["backoff_delay", "with_retry"]
