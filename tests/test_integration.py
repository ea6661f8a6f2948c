"""
tests/test_integration.py – Integration smoke tests against the live Poloniex API.

These tests make real network calls.  They are skipped unless run with the
--integration flag; the trading tests additionally need credentials.

HOW TO RUN
----------
    export POLONIEX_API_KEY="your_api_key"
    export POLONIEX_API_SECRET="your_api_secret"

    pytest tests/test_integration.py -v --integration

WHAT THESE TESTS VERIFY
-----------------------
  1. Ticker        – Public REST returns at least one market
  2. Order book    – Public REST returns levels with computed totals
  3. Balances      – Signed trading call is accepted (credentials required)
  4. Fee info      – Signed trading call decodes into FeeInfo
  5. WAMP feed     – Subscription delivers at least one event or error

Each test is independent: failures in earlier tests don't cascade.
"""

from __future__ import annotations

import asyncio
import os

import pytest

from poloniex_sdk import Credential, FeeInfo, PoloniexClient
from poloniex_sdk.types import calculate_total

# ---------------------------------------------------------------------------
# Credentials – read from environment
# ---------------------------------------------------------------------------

API_KEY    = os.environ.get("POLONIEX_API_KEY",    "")
API_SECRET = os.environ.get("POLONIEX_API_SECRET", "")

_CREDS_PRESENT = bool(API_KEY and API_SECRET)

PAIR = "BTC_ETH"


def _client() -> PoloniexClient:
    credentials = [Credential(API_KEY, API_SECRET)] if _CREDS_PRESENT else []
    return PoloniexClient(credentials, timeout=30.0)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

@pytest.mark.integration
@pytest.mark.asyncio
async def test_ticker() -> None:
    """Public REST: ticker lists markets."""
    async with _client() as client:
        ticker = await client.rest.ticker()
    assert ticker, "Ticker is empty"
    assert PAIR in ticker


@pytest.mark.integration
@pytest.mark.asyncio
async def test_order_book() -> None:
    """Public REST: order book levels carry rate × amount totals."""
    async with _client() as client:
        book = await client.rest.order_book(PAIR, depth=5)
    assert book.asks or book.bids, "Order book has no levels"
    level = (book.asks or book.bids)[0]
    assert level.total == calculate_total(level.rate, level.amount)


@pytest.mark.integration
@pytest.mark.skipif(not _CREDS_PRESENT, reason="Poloniex credentials not set in environment")
@pytest.mark.asyncio
async def test_balances() -> None:
    """Trading REST: the signed request is accepted."""
    async with _client() as client:
        balances = await client.rest.balances()
    assert isinstance(balances, dict)


@pytest.mark.integration
@pytest.mark.skipif(not _CREDS_PRESENT, reason="Poloniex credentials not set in environment")
@pytest.mark.asyncio
async def test_fee_info() -> None:
    """Trading REST: fee schedule decodes."""
    async with _client() as client:
        fees = await client.rest.fee_info()
    assert isinstance(fees, FeeInfo)
    assert fees.taker_fee >= 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_wamp_feed_delivers() -> None:
    """WAMP: a pair subscription yields an event or a decode error within 30 s."""
    async with _client() as client:
        await client.ws.connect()
        sub = await client.ws.subscribe_to_pair(PAIR)

        events = asyncio.create_task(sub.events.get())
        errors = asyncio.create_task(sub.errors.get())
        done, pending = await asyncio.wait({events, errors}, timeout=30.0, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()

    assert done, "No market message received within 30 s"
