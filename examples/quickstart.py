"""
examples/quickstart.py – End-to-end demo of the Poloniex SDK.

Walks through the three API surfaces:
  1. Public market data over REST (ticker, order book)
  2. Signed account calls over REST (fees, balances, open orders)
  3. Live order-book and trade events over the WAMP feed

HOW TO RUN
----------
    export POLONIEX_API_KEY="your_api_key"        # optional – skips step 2 if unset
    export POLONIEX_API_SECRET="your_api_secret"
    python examples/quickstart.py
"""

from __future__ import annotations

import asyncio
import logging
import os

from poloniex_sdk import (
    Credential,
    MarketEventError,
    PoloniexAPIError,
    PoloniexRestClient,
    PoloniexWampClient,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s – %(message)s",
)
logger = logging.getLogger("quickstart")

# ---------------------------------------------------------------------------
# Config – read from environment variables
# ---------------------------------------------------------------------------

API_KEY    = os.environ.get("POLONIEX_API_KEY",    "")
API_SECRET = os.environ.get("POLONIEX_API_SECRET", "")

PAIR = "BTC_ETH"


# ---------------------------------------------------------------------------
# Part 1 – REST: market data + account
# ---------------------------------------------------------------------------

def rest_demo() -> None:
    logger.info("=== REST demo ===")

    credentials = [Credential(API_KEY, API_SECRET)] if API_KEY and API_SECRET else []
    with PoloniexRestClient(credentials) as client:

        # 1. Ticker (public)
        market = client.ticker()[PAIR]
        logger.info("%s last=%s  bid=%s  ask=%s", PAIR, market.last, market.highest_bid, market.lowest_ask)

        # 2. Order book (public)
        book = client.order_book(PAIR, depth=5)
        if book.bids and book.asks:
            logger.info(
                "Best bid: %s @ %s  |  Best ask: %s @ %s  (seq %d)",
                book.bids[0].amount, book.bids[0].rate,
                book.asks[0].amount, book.asks[0].rate,
                book.sequence,
            )

        if not credentials:
            logger.info("No credentials set – skipping trading calls")
            return

        # 3. Signed calls
        try:
            fees = client.fee_info()
            logger.info("Fees – maker=%s  taker=%s", fees.maker_fee, fees.taker_fee)

            balances = {cur: amt for cur, amt in client.balances().items() if amt}
            logger.info("Non-zero balances: %s", balances)

            logger.info("Open orders on %s: %d", PAIR, len(client.open_orders(PAIR)))
        except PoloniexAPIError as exc:
            logger.warning("Trading call rejected: %s", exc.message)


# ---------------------------------------------------------------------------
# Part 2 – WAMP: live market events
# ---------------------------------------------------------------------------

async def feed_demo(seconds: float = 15.0) -> None:
    logger.info("=== WAMP demo (runs for %.0f s) ===", seconds)

    async with PoloniexWampClient() as feed:
        sub = await feed.subscribe_to_pair(PAIR)

        async def print_events() -> None:
            while True:
                event = await sub.events.get()
                logger.info("[%s] seq=%d  %s", event.kind, event.sequence, event.rate)

        async def print_errors() -> None:
            while True:
                err: MarketEventError = await sub.errors.get()
                logger.warning("[error] %s", err)

        tasks = [asyncio.create_task(print_events()), asyncio.create_task(print_errors())]
        await asyncio.sleep(seconds)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    logger.info("WAMP demo complete")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    rest_demo()
    asyncio.run(feed_demo())


if __name__ == "__main__":
    main()
