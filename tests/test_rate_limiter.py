"""
tests/test_rate_limiter.py – Unit tests for the token-bucket rate limiter.

All tests run offline.  They verify:
  1. Degenerate configurations (burst 0, rate 0, rate inf).
  2. A wait longer than the deadline is refused without sleeping.
  3. A cancelled waiter hands its token back.
  4. Reconfiguration affects later waits.
  5. The blocking variant computes the same delays (fake clock).
"""

from __future__ import annotations

import asyncio
import math

import pytest

from poloniex_sdk.errors import RateLimitCancelled
from poloniex_sdk.rate_limiter import RateLimiter, SyncRateLimiter


class _FakeClock:
    def __init__(self) -> None:
        self.now    = 1000.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> _FakeClock:
    fake = _FakeClock()
    monkeypatch.setattr("poloniex_sdk.rate_limiter.time.monotonic", fake.monotonic)
    monkeypatch.setattr("poloniex_sdk.rate_limiter.time.sleep", fake.sleep)
    return fake


# ---------------------------------------------------------------------------
# Async limiter
# ---------------------------------------------------------------------------

class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_first_wait_within_burst_is_immediate(self) -> None:
        limiter = RateLimiter(rate=1, burst=3)
        for _ in range(3):
            assert await limiter.wait() == 0.0

    @pytest.mark.asyncio
    async def test_zero_burst_always_refuses(self) -> None:
        limiter = RateLimiter(rate=10, burst=0)
        with pytest.raises(RateLimitCancelled):
            await limiter.wait()

    @pytest.mark.asyncio
    async def test_infinite_rate_never_waits(self) -> None:
        limiter = RateLimiter(rate=math.inf, burst=0)
        for _ in range(100):
            assert await limiter.wait(timeout=0) == 0.0

    @pytest.mark.asyncio
    async def test_zero_rate_refuses_once_burst_spent(self) -> None:
        limiter = RateLimiter(rate=0, burst=1)
        await limiter.wait()
        with pytest.raises(RateLimitCancelled):
            await limiter.wait()

    @pytest.mark.asyncio
    async def test_second_wait_is_delayed(self) -> None:
        limiter = RateLimiter(rate=20, burst=1)
        await limiter.wait()
        delay = await limiter.wait()
        assert 0.0 < delay <= 0.05 + 1e-6

    @pytest.mark.asyncio
    async def test_deadline_refused_without_consuming(self) -> None:
        limiter = RateLimiter(rate=1, burst=1)
        await limiter.wait()
        before = limiter.tokens

        with pytest.raises(RateLimitCancelled):
            await limiter.wait(timeout=0.1)

        # Refill since `before` can only add tokens; the refused wait took none.
        assert limiter.tokens >= before

    @pytest.mark.asyncio
    async def test_cancelled_waiter_returns_token(self) -> None:
        limiter = RateLimiter(rate=1, burst=1)
        await limiter.wait()

        waiter = asyncio.create_task(limiter.wait())
        await asyncio.sleep(0.01)
        assert limiter.tokens < -0.5          # reservation outstanding

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert limiter.tokens > -0.5          # reservation handed back

    @pytest.mark.asyncio
    async def test_set_limit_applies_to_later_waits(self) -> None:
        limiter = RateLimiter(rate=0.001, burst=1)
        await limiter.wait()
        limiter.set_limit(math.inf)
        assert limiter.limit == math.inf
        assert await limiter.wait(timeout=0) == 0.0

    @pytest.mark.asyncio
    async def test_set_burst_caps_tokens(self) -> None:
        limiter = RateLimiter(rate=1, burst=5)
        limiter.set_burst(2)
        assert limiter.burst == 2
        assert limiter.tokens <= 2


# ---------------------------------------------------------------------------
# Blocking limiter
# ---------------------------------------------------------------------------

class TestSyncRateLimiter:
    def test_delays_follow_rate(self, clock: _FakeClock) -> None:
        limiter = SyncRateLimiter(rate=4, burst=1)
        assert limiter.wait() == 0.0
        assert limiter.wait() == pytest.approx(0.25)
        assert limiter.wait() == pytest.approx(0.25)
        assert clock.sleeps == [pytest.approx(0.25), pytest.approx(0.25)]

    def test_refill_after_idle(self, clock: _FakeClock) -> None:
        limiter = SyncRateLimiter(rate=2, burst=2)
        limiter.wait()
        limiter.wait()
        clock.now += 10.0
        assert limiter.tokens == pytest.approx(2.0)
        assert limiter.wait() == 0.0

    def test_deadline_refused_without_sleeping(self, clock: _FakeClock) -> None:
        limiter = SyncRateLimiter(rate=1, burst=1)
        limiter.wait()
        with pytest.raises(RateLimitCancelled):
            limiter.wait(timeout=0.5)
        assert clock.sleeps == []
        assert limiter.tokens == pytest.approx(0.0)

    def test_deadline_long_enough_is_honoured(self, clock: _FakeClock) -> None:
        limiter = SyncRateLimiter(rate=1, burst=1)
        limiter.wait()
        assert limiter.wait(timeout=1.0) == pytest.approx(1.0)

    def test_zero_burst_refuses(self, clock: _FakeClock) -> None:
        with pytest.raises(RateLimitCancelled):
            SyncRateLimiter(rate=5, burst=0).wait()
