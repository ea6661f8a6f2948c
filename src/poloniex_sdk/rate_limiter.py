"""
rate_limiter.py – Token bucket shared by every request a client issues.

Poloniex allows a handful of calls per second per IP across public and
trading endpoints combined, so a client puts both request paths behind one
limiter:

    limiter = RateLimiter(rate=6, burst=1)
    await limiter.wait(timeout=5.0)   # raises RateLimitCancelled on deadline
    response = await make_api_call()

Waiters *reserve* a token up front (the bucket may go negative) and then
sleep for as long as the reservation needs to mature.  A reservation that
would outlast the caller's timeout is refused immediately and leaves the
bucket untouched; a waiter cancelled mid-sleep hands its token back.

SyncRateLimiter is the same bucket with a blocking ``wait()`` for threads.
Both guard their state with a ``threading.Lock`` held only for the
bookkeeping, never across a sleep.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from typing import Optional

from .endpoints import DEFAULT_BURST, MAX_REQUESTS_PER_SECOND
from .errors import RateLimitCancelled

logger = logging.getLogger(__name__)


class _TokenBucket:
    def __init__(self, rate: float = MAX_REQUESTS_PER_SECOND, burst: int = DEFAULT_BURST) -> None:
        self._rate   = float(rate)
        self._burst  = int(burst)
        self._tokens = float(self._burst)
        self._last   = time.monotonic()
        self._lock   = threading.Lock()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def limit(self) -> float:
        return self._rate

    @property
    def burst(self) -> int:
        return self._burst

    @property
    def tokens(self) -> float:
        """Tokens currently available (negative while reservations are pending)."""
        with self._lock:
            self._advance(time.monotonic())
            return self._tokens

    def set_limit(self, rate: float) -> None:
        """Change the steady rate.  Only waits issued afterwards are affected."""
        with self._lock:
            self._advance(time.monotonic())
            self._rate = float(rate)

    def set_burst(self, burst: int) -> None:
        with self._lock:
            self._advance(time.monotonic())
            self._burst  = int(burst)
            self._tokens = min(self._tokens, float(self._burst))

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _advance(self, now: float) -> None:
        # caller holds self._lock
        elapsed = max(0.0, now - self._last)
        self._last = now
        if math.isinf(self._rate):
            self._tokens = float(self._burst)
        elif self._rate > 0:
            self._tokens = min(float(self._burst), self._tokens + elapsed * self._rate)

    def _reserve(self, timeout: Optional[float]) -> float:
        """Take one token and return how long the caller must sleep before using it."""
        with self._lock:
            if math.isinf(self._rate):
                return 0.0
            if self._burst <= 0:
                raise RateLimitCancelled(f"rate limiter burst is {self._burst}, no request can pass")

            self._advance(time.monotonic())
            remaining = self._tokens - 1.0
            if remaining >= 0:
                delay = 0.0
            elif self._rate > 0:
                delay = -remaining / self._rate
            else:
                raise RateLimitCancelled("rate limit is 0 and the burst is exhausted")

            if timeout is not None and delay > timeout:
                raise RateLimitCancelled(
                    f"would need to wait {delay:.3f} s for a token, deadline is {timeout:.3f} s"
                )

            self._tokens = remaining
            return delay

    def _release(self) -> None:
        with self._lock:
            self._advance(time.monotonic())
            self._tokens = min(float(self._burst), self._tokens + 1.0)


class RateLimiter(_TokenBucket):
    """
    Async token-bucket limiter.

    Parameters
    ----------
    rate  : steady refill rate in tokens per second (``math.inf`` disables limiting)
    burst : bucket capacity; 0 rejects every wait
    """

    async def wait(self, timeout: Optional[float] = None) -> float:
        """
        Wait until a token is available.

        Returns the time slept.  Raises RateLimitCancelled if no token can be
        granted within ``timeout`` seconds; task cancellation returns the
        reserved token and propagates.
        """
        delay = self._reserve(timeout)
        if delay > 0:
            logger.debug("Rate limiting: waiting %.3f s for a token", delay)
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self._release()
                raise
        return delay


class SyncRateLimiter(_TokenBucket):
    """Blocking token-bucket limiter for threaded callers."""

    def wait(self, timeout: Optional[float] = None) -> float:
        delay = self._reserve(timeout)
        if delay > 0:
            logger.debug("Rate limiting: waiting %.3f s for a token", delay)
            time.sleep(delay)
        return delay
