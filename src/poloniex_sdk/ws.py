"""
ws.py – Async WAMP v2 client for the Poloniex real-time market feed.

Poloniex publishes market events through a WAMP router.  Messages are JSON
arrays whose first element is the message type:

  HELLO       [1, realm, details]
  WELCOME     [2, session_id, details]
  ABORT       [3, details, reason]
  GOODBYE     [6, details, reason]
  ERROR       [8, request_type, request_id, details, error_uri]
  SUBSCRIBE   [32, request_id, options, topic]
  SUBSCRIBED  [33, request_id, subscription_id]
  EVENT       [36, subscription_id, publication_id, details, args, kwargs]

The topic of a market subscription is the currency pair itself, e.g.
"BTC_ETH".  Every EVENT is run through that pair's MarketEventDecoder and
the results are put, in order, on the subscription's queues:

  subscription.events – OrderModify / OrderRemove / NewTrade
  subscription.errors – MarketEventError

Puts are awaited, so a full bounded queue pauses the receive loop until the
consumer catches up.  There is no automatic reconnect; when the connection
ends, subscriptions end with it.

Usage
-----
    from poloniex_sdk import PoloniexWampClient

    async with PoloniexWampClient() as feed:
        sub = await feed.subscribe_to_pair("BTC_ETH")
        while True:
            event = await sub.events.get()
            print(event.kind, event.rate)
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from .endpoints import DEFAULT_TIMEOUT_S, WAMP_REALM, WAMP_SUBPROTOCOL, WAMP_URL
from .errors import MarketEventError, WampError
from .events import MarketEventDecoder

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HELLO        = 1
WELCOME      = 2
ABORT        = 3
GOODBYE      = 6
ERROR        = 8
SUBSCRIBE    = 32
SUBSCRIBED   = 33
UNSUBSCRIBE  = 34
UNSUBSCRIBED = 35
EVENT        = 36

_CLOSE_REASON    = "wamp.close.normal"
_GOODBYE_REPLY   = "wamp.close.goodbye_and_out"
_PING_INTERVAL_S = 20
_PONG_TIMEOUT_S  = 10


# ---------------------------------------------------------------------------
# Subscription handle
# ---------------------------------------------------------------------------

@dataclass
class Subscription:
    pair:            str
    events:          asyncio.Queue
    errors:          asyncio.Queue
    decoder:         MarketEventDecoder = field(repr=False)
    subscription_id: Optional[int] = None


# ---------------------------------------------------------------------------
# WAMP client
# ---------------------------------------------------------------------------

class PoloniexWampClient:
    """
    Subscriber-only WAMP session over ``websockets``.

    Parameters
    ----------
    url     : router URL (wss://api.poloniex.com)
    realm   : WAMP realm to join
    timeout : seconds to wait for the handshake and for subscribe replies
    """

    def __init__(
        self,
        url:     str   = WAMP_URL,
        realm:   str   = WAMP_REALM,
        *,
        timeout: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._url           = url
        self._realm         = realm
        self._timeout       = timeout
        self._ws:           Optional[Any]             = None
        self._recv_task:    Optional[asyncio.Task]    = None
        self._closed        = True
        self._session_id:   Optional[int]             = None
        self._request_ids   = itertools.count(1)
        # request_id → (reply future, subscription being set up or torn down)
        self._pending:      dict[int, tuple[asyncio.Future, Optional[Subscription]]] = {}
        self._subscriptions: dict[int, Subscription] = {}   # subscription_id → handle

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "PoloniexWampClient":
        await self.connect()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def session_id(self) -> Optional[int]:
        return self._session_id

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the socket, join the realm and start the receive loop."""
        if self._ws is not None:
            if not self._closed:
                return
            await self.close()

        logger.info("Connecting to Poloniex WAMP router at %s", self._url)
        ws = await websockets.connect(
            self._url,
            subprotocols=[WAMP_SUBPROTOCOL],
            ping_interval=_PING_INTERVAL_S,
            ping_timeout=_PONG_TIMEOUT_S,
            open_timeout=self._timeout,
        )
        try:
            await ws.send(json.dumps([HELLO, self._realm, {"roles": {"subscriber": {}}}]))
            reply = json.loads(await asyncio.wait_for(ws.recv(), self._timeout))
        except BaseException:
            await ws.close()
            raise

        if isinstance(reply, list) and reply and reply[0] == ABORT:
            await ws.close()
            raise WampError(_reason(reply, 2, "abort"), _details(reply, 1))
        if not (isinstance(reply, list) and len(reply) >= 2 and reply[0] == WELCOME):
            await ws.close()
            raise WampError(f"expected WELCOME from router, got {reply!r}")

        self._ws         = ws
        self._closed     = False
        self._session_id = reply[1]
        self._recv_task  = asyncio.create_task(self._recv_loop(ws))
        logger.info("Joined realm %s (session %s)", self._realm, self._session_id)

    async def subscribe_to_pair(
        self,
        pair:   str,
        events: Optional[asyncio.Queue] = None,
        errors: Optional[asyncio.Queue] = None,
    ) -> Subscription:
        """
        Subscribe to market events for ``pair``.

        Parameters
        ----------
        pair   : currency pair, used verbatim as the WAMP topic
        events : queue receiving decoded events (unbounded if omitted)
        errors : queue receiving MarketEventError values (unbounded if omitted)
        """
        sub = Subscription(
            pair=pair,
            events=events if events is not None else asyncio.Queue(),
            errors=errors if errors is not None else asyncio.Queue(),
            decoder=MarketEventDecoder(pair),
        )
        request_id = next(self._request_ids)
        await self._request(request_id, [SUBSCRIBE, request_id, {}, pair], sub)
        logger.info("Subscribed to %s (subscription %s)", pair, sub.subscription_id)
        return sub

    async def unsubscribe(self, sub: Subscription) -> None:
        """Stop delivery to ``sub`` and tell the router."""
        if sub.subscription_id is None or self._subscriptions.pop(sub.subscription_id, None) is None:
            return
        request_id = next(self._request_ids)
        await self._request(request_id, [UNSUBSCRIBE, request_id, sub.subscription_id], None)
        logger.info("Unsubscribed from %s", sub.pair)

    async def close(self) -> None:
        """Leave the realm and close the socket.  Safe to call more than once."""
        ws, self._ws = self._ws, None
        if ws is None:
            return

        if not self._closed:
            self._closed = True
            try:
                await ws.send(json.dumps([GOODBYE, {}, _CLOSE_REASON]))
            except ConnectionClosed:
                pass
        await ws.close()

        if self._recv_task is not None:
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("WAMP receive loop failed")
            self._recv_task = None

        self._fail_pending(WampError("connection closed"))
        self._subscriptions.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _send(self, frame: list[Any]) -> None:
        if self._closed or self._ws is None:
            raise WampError("not connected")
        await self._ws.send(json.dumps(frame))

    async def _request(self, request_id: int, frame: list[Any], sub: Optional[Subscription]) -> Any:
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = (future, sub)
        try:
            await self._send(frame)
            return await asyncio.wait_for(future, self._timeout)
        finally:
            self._pending.pop(request_id, None)

    def _fail_pending(self, exc: WampError) -> None:
        for future, _ in self._pending.values():
            if not future.done():
                future.set_exception(exc)
        self._pending.clear()

    async def _recv_loop(self, ws: Any) -> None:
        """Receive frames until the connection ends."""
        try:
            async for raw in ws:
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning("Received non-JSON WAMP frame: %r", raw)
                    continue
                if not isinstance(msg, list) or not msg or not isinstance(msg[0], int):
                    logger.warning("Received malformed WAMP frame: %r", msg)
                    continue
                try:
                    await self._handle(msg)
                except ConnectionClosed:
                    raise
                except Exception:
                    logger.exception("Unhandled exception while handling WAMP frame: %r", msg)
        except ConnectionClosed as exc:
            logger.info("WAMP connection closed: %s", exc)
        finally:
            self._closed = True
            self._fail_pending(WampError("connection closed"))

    async def _handle(self, msg: list[Any]) -> None:
        code = msg[0]

        if code == EVENT:
            await self._on_event(msg)
        elif code in (SUBSCRIBED, UNSUBSCRIBED):
            await self._on_reply(msg)
        elif code == ERROR:
            self._on_error(msg)
        elif code in (GOODBYE, ABORT):
            reason = _reason(msg, 2, "closed by router")
            logger.info("Router ended the session: %s", reason)
            if code == GOODBYE and not self._closed:
                await self._send([GOODBYE, {}, _GOODBYE_REPLY])
            self._closed = True
            self._fail_pending(WampError(reason, _details(msg, 1)))
        else:
            logger.debug("Ignoring WAMP message type %s", code)

    async def _on_event(self, msg: list[Any]) -> None:
        if len(msg) < 4:
            logger.warning("Received malformed EVENT frame: %r", msg)
            return

        if not isinstance(msg[1], int):
            logger.warning("Received EVENT with invalid subscription id: %r", msg)
            return

        sub = self._subscriptions.get(msg[1])
        if sub is None:
            logger.debug("Dropping event for unknown subscription %s", msg[1])
            return

        args   = msg[4] if len(msg) > 4 else None
        kwargs = msg[5] if len(msg) > 5 else None
        for item in sub.decoder.decode(args, kwargs):
            if isinstance(item, MarketEventError):
                logger.warning("Market event decode error on %s: %s", sub.pair, item)
                await sub.errors.put(item)
            else:
                await sub.events.put(item)

    async def _on_reply(self, msg: list[Any]) -> None:
        entry = self._pending.pop(msg[1], None) if len(msg) >= 2 and isinstance(msg[1], int) else None
        if entry is None:
            if (
                msg[0] == SUBSCRIBED and len(msg) >= 3 and isinstance(msg[2], int)
                and msg[2] not in self._subscriptions and not self._closed
            ):
                # The caller gave up waiting; release the router-side subscription.
                logger.warning("Late SUBSCRIBED for request %s, unsubscribing %s", msg[1], msg[2])
                request_id = next(self._request_ids)
                await self._send([UNSUBSCRIBE, request_id, msg[2]])
            else:
                logger.debug("Ignoring reply for unknown request: %r", msg)
            return

        future, sub = entry
        result = None
        if msg[0] == SUBSCRIBED and sub is not None:
            if len(msg) < 3 or not isinstance(msg[2], int):
                if not future.done():
                    future.set_exception(WampError(f"malformed SUBSCRIBED reply: {msg!r}"))
                return
            # Register before resolving so no EVENT can slip past.
            sub.subscription_id = msg[2]
            self._subscriptions[msg[2]] = sub
            result = msg[2]
        if not future.done():
            future.set_result(result)

    def _on_error(self, msg: list[Any]) -> None:
        entry = self._pending.pop(msg[2], None) if len(msg) >= 3 and isinstance(msg[2], int) else None
        if entry is None:
            logger.warning("Received WAMP ERROR for unknown request: %r", msg)
            return

        future, _ = entry
        if not future.done():
            future.set_exception(WampError(_reason(msg, 4, "error"), _details(msg, 3)))


def _reason(msg: list[Any], index: int, default: str) -> str:
    return str(msg[index]) if len(msg) > index else default


def _details(msg: list[Any], index: int) -> Optional[dict[str, Any]]:
    value = msg[index] if len(msg) > index else None
    return value if isinstance(value, dict) else None
