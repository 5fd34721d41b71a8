"""Reusable timing primitives: randomized pauses and deadline races.

Design rules:
  - All pauses between jobs are randomized via random_sleep().
  - Every wait on a page load goes through race_deadline(); nothing waits
    on a browser signal without a deadline.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable
from typing import Any

logger = logging.getLogger(__name__)


async def random_sleep(min_s: float, max_s: float) -> float:
    """Sleep for a random duration between min_s and max_s seconds.

    Floor enforcement: min_s is always respected as the absolute minimum.
    If max_s < min_s, max_s is raised to min_s.

    Returns the actual sleep duration (useful for testing).
    """
    floor = max(min_s, 0.0)
    ceiling = max(max_s, floor)
    duration = random.uniform(floor, ceiling)
    await asyncio.sleep(duration)
    return duration


async def race_deadline(signal: Awaitable[Any], timeout_s: float) -> bool:
    """Race a load signal against a deadline.

    Returns True if ``signal`` completed first, False if the deadline
    elapsed (the signal is cancelled). Errors raised by the signal itself
    propagate to the caller.
    """
    try:
        await asyncio.wait_for(signal, timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.debug("Deadline of %.1fs elapsed", timeout_s)
        return False
    return True
