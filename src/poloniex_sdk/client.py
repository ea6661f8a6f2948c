"""
client.py – Unified PoloniexClient façade.

Single entry point that owns the async REST client and the real-time WAMP
client, so one ``async with`` block manages both connections.

Usage
-----
    import asyncio
    from poloniex_sdk import Credential, PoloniexClient

    async def main() -> None:
        async with PoloniexClient([Credential("key", "secret")]) as client:

            # Market data and trading via REST
            book     = await client.rest.order_book("BTC_ETH", depth=10)
            balances = await client.rest.balances()

            # Real-time market events via WAMP
            await client.ws.connect()
            sub = await client.ws.subscribe_to_pair("BTC_ETH")
            print(await sub.events.get())

    asyncio.run(main())
"""

from __future__ import annotations

from collections.abc import Iterable

from .auth import Credential
from .endpoints import DEFAULT_BURST, DEFAULT_TIMEOUT_S, MAX_REQUESTS_PER_SECOND, WAMP_REALM, WAMP_URL
from .rest import AsyncPoloniexRestClient
from .ws import PoloniexWampClient


class PoloniexClient:
    """
    Unified façade for the Poloniex SDK.

    Parameters
    ----------
    credentials  : API keys for trading calls; omit for market data only
    timeout      : REST request timeout and WAMP handshake/reply timeout, in seconds
    rate / burst : REST rate limit shared by public and trading calls
    wamp_url     : WAMP router URL
    realm        : WAMP realm

    The WAMP connection is opened lazily by ``client.ws.connect()`` so that
    REST-only users never open a socket.
    """

    def __init__(
        self,
        credentials: Iterable[Credential] = (),
        *,
        timeout:  float = DEFAULT_TIMEOUT_S,
        rate:     float = MAX_REQUESTS_PER_SECOND,
        burst:    int   = DEFAULT_BURST,
        wamp_url: str   = WAMP_URL,
        realm:    str   = WAMP_REALM,
    ) -> None:
        self.rest = AsyncPoloniexRestClient(credentials, timeout=timeout, rate=rate, burst=burst)
        self.ws   = PoloniexWampClient(wamp_url, realm, timeout=timeout)

    # ------------------------------------------------------------------
    # Async context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "PoloniexClient":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the REST session and the WAMP connection."""
        await self.rest.close()
        await self.ws.close()
