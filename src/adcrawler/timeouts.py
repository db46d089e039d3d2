"""Deadline helpers for bounding crawl list items."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from adcrawler.exceptions import TargetTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Deadline:
    """
    A wall-clock budget that starts when it is created.

    The crawl loop creates one for the whole crawl list and races every item
    against whatever is left of it.
    """

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self.expires_at = clock() + seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def renewed(self) -> "Deadline":
        """A new deadline with the same budget, starting now."""
        return Deadline(self.seconds, clock=self._clock)


async def run_with_deadline(
    work: Awaitable[T],
    deadline: Deadline,
    message: str,
) -> T:
    """
    Await work, or raise TargetTimeoutError once the deadline passes.

    The work is cancelled when the deadline wins; anything it had buffered is
    dropped along with it.

    Raises:
        TargetTimeoutError: If the deadline expires first (or already has)
    """
    remaining = deadline.remaining()
    if remaining <= 0:
        if asyncio.iscoroutine(work):
            work.close()
        raise TargetTimeoutError(message)

    try:
        return await asyncio.wait_for(work, timeout=remaining)
    except asyncio.TimeoutError:
        if deadline.expired:
            raise TargetTimeoutError(message) from None
        raise


async def sleep(seconds: Optional[float]) -> None:
    """asyncio.sleep that treats None and non-positive values as no-ops."""
    if seconds and seconds > 0:
        await asyncio.sleep(seconds)
