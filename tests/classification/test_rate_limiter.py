from __future__ import annotations

import asyncio
from collections import Counter

import pytest

from eurowatch.classification import MinuteRateLimiter


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_requests_are_spaced_by_rpm():
    clock = FakeClock()
    limiter = MinuteRateLimiter(60, clock=clock, sleep=clock.sleep)

    async def run():
        for _ in range(3):
            await limiter.acquire()

    asyncio.run(run())

    assert limiter.spacing == pytest.approx(1.0)
    assert clock.sleeps == [1.0, 1.0]
    assert limiter.requests == 3


def test_threshold_forces_sleep_until_next_minute():
    clock = FakeClock()
    limiter = MinuteRateLimiter(10, clock=clock, sleep=clock.sleep)

    async def run():
        for _ in range(10):
            await limiter.acquire()

    asyncio.run(run())

    # nine requests fit below 90% of the budget, the tenth waits for minute two
    assert limiter.boundary_sleeps == 1
    assert clock.sleeps == pytest.approx([6.0] * 10)
    assert clock.now == pytest.approx(60.0)
    assert limiter.count == 1


def test_new_minute_resets_the_counter():
    clock = FakeClock()
    limiter = MinuteRateLimiter(10, clock=clock, sleep=clock.sleep)

    async def run():
        await limiter.acquire()
        clock.now = 125.0
        await limiter.acquire()

    asyncio.run(run())

    assert limiter.count == 1
    assert limiter.boundary_sleeps == 0


def test_rpm_must_be_positive():
    with pytest.raises(ValueError):
        MinuteRateLimiter(0)


def test_concurrent_waiters_share_one_window_and_spacing():
    clock = FakeClock()
    limiter = MinuteRateLimiter(10, clock=clock, sleep=clock.sleep)
    admitted = []

    async def one():
        await limiter.acquire()
        admitted.append(clock())

    async def run():
        await asyncio.gather(*(one() for _ in range(30)))

    asyncio.run(run())

    per_minute = Counter(int(stamp // 60) for stamp in admitted)
    gaps = [later - earlier for earlier, later in zip(admitted, admitted[1:])]
    assert len(admitted) == 30
    assert max(per_minute.values()) <= 9
    assert min(gaps) >= 6.0 - 1e-9
    assert limiter.requests == 30
    assert limiter.boundary_sleeps == 3


def test_limiter_can_be_reused_across_event_loops():
    clock = FakeClock()
    limiter = MinuteRateLimiter(60, clock=clock, sleep=clock.sleep)

    asyncio.run(limiter.acquire())
    asyncio.run(limiter.acquire())

    assert limiter.requests == 2
    assert clock.sleeps == [1.0]
