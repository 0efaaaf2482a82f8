"""Per-minute request budget for the classifier."""
from __future__ import annotations

from typing import Awaitable, Callable, Optional
import asyncio
import logging
import math
import time

LOGGER = logging.getLogger(__name__)


class MinuteRateLimiter:
    """Keeps request bursts below ``threshold * rpm`` within each wall-clock minute.

    Callers are admitted one at a time. Each admission waits until at least
    ``60 / rpm`` seconds have passed since the previous one, then counts one
    request in the current minute window. Once the counter reaches the
    threshold the admission sleeps until the next minute boundary; callers
    queued behind it see the fresh window instead of resetting it themselves.
    """

    def __init__(
        self,
        rpm: int,
        *,
        threshold: float = 0.9,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if rpm <= 0:
            raise ValueError("requests per minute must be positive")
        self._rpm = rpm
        self._limit = max(1, math.floor(rpm * threshold))
        self._clock = clock
        self._sleep = sleep
        self._window = self._minute(clock())
        self._count = 0
        self._next_slot: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self.boundary_sleeps = 0
        self.requests = 0

    @property
    def spacing(self) -> float:
        return 60.0 / self._rpm

    @property
    def count(self) -> int:
        return self._count

    @staticmethod
    def _minute(timestamp: float) -> int:
        return int(timestamp // 60)

    def _guard(self) -> asyncio.Lock:
        # classify() runs each batch in a fresh event loop.
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def _roll_window(self) -> None:
        minute = self._minute(self._clock())
        if minute > self._window:
            self._window = minute
            self._count = 0

    async def acquire(self) -> None:
        async with self._guard():
            if self._next_slot is not None:
                delay = self._next_slot - self._clock()
                if delay > 0:
                    await self._sleep(delay)

            self._roll_window()
            if self._count >= self._limit:
                wait = (self._window + 1) * 60 - self._clock()
                self.boundary_sleeps += 1
                LOGGER.info(
                    "Reached %d requests this minute, sleeping %.1fs until the next minute", self._count, wait
                )
                if wait > 0:
                    await self._sleep(wait)
                self._window = max(self._minute(self._clock()), self._window + 1)
                self._count = 0

            self._count += 1
            self.requests += 1
            self._next_slot = self._clock() + self.spacing


__all__ = ["MinuteRateLimiter"]
