"""Shared rate limiter for one audit run.

The limiter is the only mutable state shared between workers. It is created
by the pipeline for a single run and passed by reference into the API client;
it is never a module-level global. Clock and sleep are injectable so the
window property can be checked with a deterministic fake clock.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Awaitable, Callable

from loguru import logger

from core.config import AppSettings

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]

# Float slack when comparing elapsed time with the interval.
_EPSILON = 1e-9


class RateLimiter:
    """Sliding-window permit gate: at most `permits` acquisitions per `interval` seconds."""

    def __init__(
        self,
        permits: int,
        interval: float,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if permits < 1:
            raise ValueError("permits must be positive")
        if interval < 0:
            raise ValueError("interval must be non-negative")
        self.permits = permits
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._recent: deque[float] = deque()
        self._lock = asyncio.Lock()
        self.acquired = 0

    @classmethod
    def from_settings(cls, settings: AppSettings, **kwargs) -> "RateLimiter":
        """One request every `60 / limit_per_minute + margin` seconds."""

        return cls(permits=1, interval=settings.request_interval_seconds, **kwargs)

    async def acquire(self) -> float:
        """Wait for a permit and return the clock value at which it was granted.

        The lock is held while waiting, so permits are granted strictly one at a
        time and in arrival order.
        """

        async with self._lock:
            while True:
                now = self._clock()
                while self._recent and now - self._recent[0] >= self.interval - _EPSILON:
                    self._recent.popleft()
                if len(self._recent) < self.permits:
                    self._recent.append(now)
                    self.acquired += 1
                    return now
                wait = self.interval - (now - self._recent[0])
                logger.debug("rate limiter: waiting {:.3f}s for a permit", wait)
                await self._sleep(wait)
