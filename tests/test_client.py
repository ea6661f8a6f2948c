"""
tests/test_client.py – Unit tests for the PoloniexClient unified façade.

All tests run offline – no real network connections are made.
They verify:
  1. PoloniexClient constructs the async REST client and the WAMP client.
  2. Configuration is forwarded to the sub-clients.
  3. The async context manager calls close() on both sub-clients.
"""

from __future__ import annotations

import math

import pytest

from poloniex_sdk import Credential, PoloniexClient
from poloniex_sdk.endpoints import WAMP_REALM, WAMP_URL
from poloniex_sdk.rest import AsyncPoloniexRestClient
from poloniex_sdk.ws import PoloniexWampClient


class TestPoloniexClientConstruction:
    def test_rest_is_async_client(self) -> None:
        client = PoloniexClient([Credential("k", "s")])
        assert isinstance(client.rest, AsyncPoloniexRestClient)

    def test_ws_is_wamp_client(self) -> None:
        client = PoloniexClient()
        assert isinstance(client.ws, PoloniexWampClient)
        assert client.ws._url == WAMP_URL
        assert client.ws._realm == WAMP_REALM

    def test_credentials_forwarded(self) -> None:
        client = PoloniexClient([Credential("a", "s"), Credential("b", "s")])
        assert client.rest._pool.size == 2

    def test_rate_forwarded(self) -> None:
        client = PoloniexClient(rate=math.inf, burst=3)
        assert client.rest.limiter.limit == math.inf
        assert client.rest.limiter.burst == 3

    def test_timeout_forwarded_to_both(self) -> None:
        client = PoloniexClient(timeout=7.5)
        assert client.rest._timeout == 7.5
        assert client.ws._timeout == 7.5

    def test_ws_not_connected_until_asked(self) -> None:
        assert PoloniexClient().ws.closed


class TestPoloniexClientContextManager:
    @pytest.mark.asyncio
    async def test_aenter_returns_self(self) -> None:
        client = PoloniexClient()
        result = await client.__aenter__()
        assert result is client
        await client.close()

    @pytest.mark.asyncio
    async def test_aexit_calls_close(self) -> None:
        closed = []

        client = PoloniexClient()
        original_close = client.close

        async def tracking_close() -> None:
            closed.append(True)
            await original_close()

        client.close = tracking_close  # type: ignore[method-assign]

        async with client:
            pass

        assert closed == [True]

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        """Calling close() twice must not raise."""
        client = PoloniexClient()
        await client.close()
        await client.close()
