"""
Reliability Utilities.

Bounded retry for operations that raise ConcurrencyError.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from beerank.app.core.exceptions import ConcurrencyError

logger = logging.getLogger("beerank.reliability")

T = TypeVar("T")


async def retry_on_conflict(
    func: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base_delay: float = 0.05
) -> T:
    """
    Run ``func`` and retry it when it raises ConcurrencyError.

    Args:
        func: Zero-argument coroutine factory (called once per attempt)
        attempts: Total number of attempts, at least 1
        base_delay: Seconds to sleep after the first failure, doubled each time

    Returns:
        Result of the first successful attempt

    Raises:
        ConcurrencyError: If every attempt conflicted
    """
    attempts = max(1, attempts)
    delay = base_delay

    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except ConcurrencyError:
            if attempt == attempts:
                logger.warning("Giving up after %d conflicting attempts", attempts)
                raise
            logger.info("Conflict on attempt %d/%d, retrying in %.3fs", attempt, attempts, delay)
            await asyncio.sleep(delay)
            delay *= 2
