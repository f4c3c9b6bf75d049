"""Tests for the shared rate limiter."""

import asyncio

import pytest

from core.config import AppSettings
from core.services.rate_limiter import RateLimiter


def _max_in_window(stamps: list[float], interval: float) -> int:
    # Grants at exactly start + interval belong to the next window.
    end_slack = interval - 1e-6
    return max(sum(1 for other in stamps if start <= other < start + end_slack) for start in stamps)


class TestRateLimiter:
    async def test_no_more_than_n_permits_per_interval(self, fake_clock):
        limiter = RateLimiter(3, 1.0, clock=fake_clock, sleep=fake_clock.sleep)

        stamps = await asyncio.gather(*(limiter.acquire() for _ in range(10)))

        assert sorted(stamps) == [0.0, 0.0, 0.0, 1.0, 1.0, 1.0, 2.0, 2.0, 2.0, 3.0]
        assert _max_in_window(list(stamps), 1.0) <= 3
        assert limiter.acquired == 10

    async def test_window_property_with_uneven_arrivals(self, fake_clock):
        limiter = RateLimiter(2, 5.0, clock=fake_clock, sleep=fake_clock.sleep)
        stamps: list[float] = []

        async def worker(offset: float) -> None:
            for _ in range(4):
                stamps.append(await limiter.acquire())
                fake_clock.now += offset

        await asyncio.gather(worker(0.7), worker(1.9), worker(0.0))

        assert len(stamps) == 12
        assert _max_in_window(stamps, 5.0) <= 2

    async def test_single_permit_spaces_requests(self, fake_clock):
        limiter = RateLimiter(1, 20.0, clock=fake_clock, sleep=fake_clock.sleep)

        first = await limiter.acquire()
        second = await limiter.acquire()

        assert second - first == pytest.approx(20.0)
        assert fake_clock.sleeps == [pytest.approx(20.0)]

    async def test_zero_interval_never_waits(self, fake_clock):
        limiter = RateLimiter(1, 0.0, clock=fake_clock, sleep=fake_clock.sleep)

        for _ in range(5):
            await limiter.acquire()

        assert fake_clock.sleeps == []

    def test_from_settings_uses_limit_and_margin(self):
        settings = AppSettings(_env_file=None, limit_per_minute=3, margin_of_error_seconds=1.5)

        limiter = RateLimiter.from_settings(settings)

        assert limiter.permits == 1
        assert limiter.interval == pytest.approx(21.5)

    @pytest.mark.parametrize(("permits", "interval"), [(0, 1.0), (1, -1.0)])
    def test_rejects_bad_configuration(self, permits, interval):
        with pytest.raises(ValueError):
            RateLimiter(permits, interval)
