"""
Tests for UnifiedRateLimiter.
"""

from unittest.mock import AsyncMock, patch

import pytest

from soundprint.api.rate_limiter import UnifiedRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_burst_passes_without_waiting():
    clock = FakeClock()
    limiter = UnifiedRateLimiter(calls_per_second=2.0, clock=clock)

    with patch("soundprint.api.rate_limiter.asyncio.sleep", AsyncMock()) as sleep:
        for _ in range(limiter.burst_size):
            await limiter.wait_if_needed()

    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_waits_when_bucket_is_empty():
    clock = FakeClock()
    limiter = UnifiedRateLimiter(calls_per_second=2.0, burst_size=1, clock=clock)

    with patch("soundprint.api.rate_limiter.asyncio.sleep", AsyncMock()) as sleep:
        await limiter.wait_if_needed()
        await limiter.wait_if_needed()

    sleep.assert_awaited_once()
    assert sleep.await_args.args[0] == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_per_minute_window():
    clock = FakeClock()
    limiter = UnifiedRateLimiter(calls_per_minute=2, clock=clock)

    with patch("soundprint.api.rate_limiter.asyncio.sleep", AsyncMock()) as sleep:
        await limiter.wait_if_needed()
        clock.now = 10.0
        await limiter.wait_if_needed()
        clock.now = 20.0
        await limiter.wait_if_needed()

    assert sleep.await_args.args[0] == pytest.approx(40.0)
    assert limiter.get_current_usage()["calls_last_minute"] == 3


def test_per_second_only_keeps_no_history():
    limiter = UnifiedRateLimiter.for_reccobeats()
    assert limiter.calls_per_minute is None
    assert limiter.get_current_usage()["calls_last_minute"] is None


def test_reset_refills_bucket():
    clock = FakeClock()
    limiter = UnifiedRateLimiter(calls_per_second=1.0, clock=clock)
    limiter.tokens = 0.0
    limiter.reset()
    assert limiter.tokens == float(limiter.burst_size)
