"""
examples/book_tracker.py – Keep a local order book in sync with the feed.

Strategy
--------
Subscribes to a pair, then takes a REST snapshot of the full book.  Feed
events older than the snapshot's sequence number are discarded; newer ones
are applied in order:

  OrderModify  → set the level at ``rate`` to ``amount``
  OrderRemove  → delete the level at ``rate``
  NewTrade     → logged only

A jump in sequence numbers means messages were missed, so the book is
rebuilt from a fresh snapshot.  Decode errors are logged.

HOW TO RUN
----------
    python examples/book_tracker.py BTC_ETH
"""

from __future__ import annotations

import asyncio
import logging
import sys
from decimal import Decimal
from typing import Optional

from poloniex_sdk import (
    AsyncPoloniexRestClient,
    BookSide,
    MarketEventError,
    NewTrade,
    OrderModify,
    OrderRemove,
    PoloniexWampClient,
    Subscription,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s – %(message)s",
)
logger = logging.getLogger("book_tracker")


class LocalBook:
    def __init__(self) -> None:
        self.levels: dict[BookSide, dict[Decimal, Decimal]] = {BookSide.ASK: {}, BookSide.BID: {}}
        self.snapshot_seq = -1
        self.last_seq     = -1

    async def load(self, rest: AsyncPoloniexRestClient, pair: str) -> None:
        snapshot = await rest.order_book(pair, depth=10_000)
        self.levels[BookSide.ASK] = {e.rate: e.amount for e in snapshot.asks}
        self.levels[BookSide.BID] = {e.rate: e.amount for e in snapshot.bids}
        self.snapshot_seq = self.last_seq = snapshot.sequence
        logger.info("Snapshot loaded at seq %d (%d asks, %d bids)",
                    snapshot.sequence, len(snapshot.asks), len(snapshot.bids))

    def apply(self, event: OrderModify | OrderRemove) -> None:
        side = self.levels[event.side]
        if isinstance(event, OrderModify):
            side[event.rate] = event.amount
        else:
            side.pop(event.rate, None)

    def best(self) -> tuple[Optional[Decimal], Optional[Decimal]]:
        bids, asks = self.levels[BookSide.BID], self.levels[BookSide.ASK]
        return (max(bids) if bids else None, min(asks) if asks else None)


async def track(pair: str) -> None:
    book = LocalBook()

    async with AsyncPoloniexRestClient() as rest, PoloniexWampClient() as feed:
        sub: Subscription = await feed.subscribe_to_pair(pair)
        await book.load(rest, pair)

        async def watch_errors() -> None:
            while True:
                err: MarketEventError = await sub.errors.get()
                logger.warning("Decode error on %s: %s", pair, err)

        errors_task = asyncio.create_task(watch_errors())
        try:
            while True:
                event = await sub.events.get()
                if event.sequence <= book.snapshot_seq:
                    continue   # already in the snapshot

                # Events of one message share its sequence number, so only a
                # jump of more than one means a message was missed.
                if event.sequence > book.last_seq + 1:
                    logger.warning("Sequence gap on %s: expected %d, got %d – resyncing",
                                   pair, book.last_seq + 1, event.sequence)
                    await book.load(rest, pair)
                    continue

                if isinstance(event, NewTrade):
                    logger.info("[trade] %s %s @ %s", event.side.value, event.amount, event.rate)
                else:
                    book.apply(event)
                    bid, ask = book.best()
                    logger.info("[book ] seq=%d  bid=%s  ask=%s", event.sequence, bid, ask)
                book.last_seq = event.sequence
        finally:
            errors_task.cancel()


def main() -> None:
    pair = sys.argv[1] if len(sys.argv) > 1 else "BTC_ETH"
    try:
        asyncio.run(track(pair))
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
