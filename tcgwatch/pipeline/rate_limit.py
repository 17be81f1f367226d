"""
TCG Watch — Outbound Rate Limiter

Enforces a minimum spacing between calls to the marketplace. One limiter
is shared by every caller of a client, so concurrent fetches (e.g. the
listing and sales fetches of scrape_all) queue behind each other.

The limiter owns its clock and sleep function so tests can drive it with
a fake clock.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

import structlog

from tcgwatch.config import settings

logger = structlog.get_logger(__name__)


class RateLimiter:
    """
    Minimum-interval throttle.

    Usage:
        limiter = RateLimiter()
        await limiter.acquire()   # returns once the interval has elapsed
        response = await client.get(...)
    """

    def __init__(
        self,
        interval_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if interval_seconds is None:
            interval_seconds = settings.RATE_LIMIT_INTERVAL_MS / 1000
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be non-negative")

        self._interval = interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock = asyncio.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def last_call(self) -> float | None:
        return self._last_call

    async def acquire(self) -> None:
        """
        Wait until a call may be issued, then claim the slot.

        The slot is stamped right after the wait, before the caller's
        request goes out. Waiters are serialized, so each one measures the
        elapsed time against the previous caller's stamp.
        """
        async with self._lock:
            if self._last_call is not None:
                elapsed = self._clock() - self._last_call
                if elapsed < self._interval:
                    delay = self._interval - elapsed
                    logger.debug("rate_limit_wait", delay_seconds=round(delay, 4))
                    await self._sleep(delay)
            self._last_call = self._clock()
