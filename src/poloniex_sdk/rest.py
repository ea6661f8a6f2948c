"""
rest.py – REST clients (sync and async) for Poloniex.

Two surfaces share one rate limiter per client:

  public   GET  https://poloniex.com/public?command=<name>&...
  trading  POST https://poloniex.com/tradingApi   (form body, Key/Sign headers)

Every trading call runs the same pipeline (``invoke``):

  1. merge ``command`` and at most one parameter mapping into a flat form
  2. wait for a rate-limiter token – a refusal touches neither network nor keys
  3. lease a credential from the pool
  4. stamp the credential's next nonce into the form
  5. encode the form once and HMAC-SHA512 sign exactly those bytes
  6. POST it; the credential goes back to the pool whatever happens
  7. classify the response body (``classify_response``)

Transport failures (requests.RequestException, aiohttp.ClientError,
asyncio.TimeoutError) propagate unwrapped.  No retries are made.

Usage – sync
------------
    from poloniex_sdk import Credential, PoloniexRestClient

    client   = PoloniexRestClient([Credential("key", "secret")])
    book     = client.order_book("BTC_ETH")
    balances = client.balances()

Usage – async
-------------
    async with AsyncPoloniexRestClient([Credential("key", "secret")]) as client:
        book   = await client.order_book("BTC_ETH")
        placed = await client.buy("BTC_ETH", Decimal("0.08"), Decimal("1.5"))
"""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any, Optional, Union, get_origin

import requests
from pydantic import TypeAdapter, ValidationError

from .auth import Credential, CredentialPool, SyncCredentialPool
from .endpoints import (
    DEFAULT_BURST,
    DEFAULT_TIMEOUT_S,
    MAX_REQUESTS_PER_SECOND,
    PUBLIC_API_URL,
    TRADING_API_URL,
)
from .errors import DecodeError, PoloniexAPIError, TooManyArgumentSets
from .rate_limiter import RateLimiter, SyncRateLimiter
from .signing import build_headers, encode_form
from .types import (
    Candle,
    CancelOrderResponse,
    CompleteBalance,
    Currency,
    DepositsWithdrawals,
    FeeInfo,
    MoveOrderResponse,
    NewAddressResponse,
    OrderBook,
    OwnOrder,
    PlacedOrder,
    Ticker,
    Trade,
    UpdatedOrder,
    WithdrawResponse,
)

logger = logging.getLogger(__name__)

Params = Mapping[str, Any]

Volume24h = dict[str, Union[dict[str, Decimal], Decimal]]


# ---------------------------------------------------------------------------
# Response classification (shared by sync and async clients)
# ---------------------------------------------------------------------------

@functools.lru_cache(maxsize=None)
def _adapter(result_type: Any) -> TypeAdapter:
    return TypeAdapter(result_type)


def _empty_result(result_type: Any) -> Any:
    origin = get_origin(result_type) or result_type
    if origin is dict:
        return {}
    if origin is list:
        return []
    return None


def classify_response(body: bytes, result_type: Any, status_code: Optional[int] = None) -> Any:
    """
    Turn a raw response body into ``result_type`` or raise.

    * ``{"error": "..."}``  → PoloniexAPIError, checked before any attempt to
      decode into ``result_type``
    * ``[]``                → success with nothing to report; returns ``{}``
      or ``[]`` for mapping/list result types and ``None`` otherwise
    * anything else         → validated into ``result_type``; a mismatch is a
      DecodeError carrying the original bytes
    """
    try:
        payload = json.loads(body, parse_float=Decimal)
    except ValueError as exc:
        raise DecodeError(f"response is not valid JSON: {exc}", body) from exc

    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        raise PoloniexAPIError(payload["error"], status_code=status_code)

    if isinstance(payload, list) and not payload:
        return _empty_result(result_type)

    try:
        return _adapter(result_type).validate_python(payload)
    except ValidationError as exc:
        raise DecodeError(f"cannot decode response into {result_type!r}: {exc}", body) from exc


# ---------------------------------------------------------------------------
# Request building helpers
# ---------------------------------------------------------------------------

def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def merge_params(command: str, *params: Optional[Params]) -> dict[str, str]:
    """Flatten ``command`` plus at most one parameter mapping into string form fields."""
    if len(params) > 1:
        raise TooManyArgumentSets(len(params))

    form = {"command": command}
    if params and params[0]:
        form.update({name: _stringify(value) for name, value in params[0].items()})
    return form


def _book_params(pair: str, depth: Optional[int]) -> dict[str, Any]:
    params: dict[str, Any] = {"currencyPair": pair}
    if depth:
        params["depth"] = depth
    return params


def _range_params(start: int = 0, end: int = 0, **extra: Any) -> dict[str, Any]:
    params = {name: value for name, value in extra.items() if value is not None}
    if start > 0:
        params["start"] = start
    if end > 0:
        params["end"] = end
    return params


def _order_params(pair: str, rate: Decimal, amount: Decimal, fill_or_kill: bool = False) -> dict[str, Any]:
    params: dict[str, Any] = {"currencyPair": pair, "rate": rate, "amount": amount}
    if fill_or_kill:
        params["fillOrKill"] = True
    return params


def _move_params(order_number: int, rate: Decimal, amount: Optional[Decimal]) -> dict[str, Any]:
    params: dict[str, Any] = {"orderNumber": order_number, "rate": rate}
    if amount is not None and amount > 0:
        params["amount"] = amount
    return params


def _stamp_pair(trades: list[Trade], pair: str) -> list[Trade]:
    for trade in trades:
        trade.currency_pair = pair
    return trades


def _stamp_pairs(trades: dict[str, list[Trade]]) -> dict[str, list[Trade]]:
    for pair, pair_trades in trades.items():
        _stamp_pair(pair_trades, pair)
    return trades


def _stamp_order(trades: list[Trade], order_number: int) -> list[Trade]:
    for trade in trades:
        trade.order_number = order_number
    return trades


def _new_address_result(currency: str, result: Optional[NewAddressResponse]) -> str:
    if result is None or not result.success:
        response = result.response if result is not None else ""
        raise PoloniexAPIError(f"generateNewAddress for {currency} was not successful: {response}")
    return result.response


def _move_order_result(order_number: int, result: Optional[MoveOrderResponse]) -> UpdatedOrder:
    if result is None or not result.success:
        raise PoloniexAPIError(f"moveOrder for order {order_number} was not successful")
    return UpdatedOrder(order_number=result.order_number, resulting_trades=result.resulting_trades)


# ---------------------------------------------------------------------------
# Synchronous client
# ---------------------------------------------------------------------------

class PoloniexRestClient:
    """
    Synchronous REST client (requests-based).

    The credential pool and rate limiter may be shared across threads; the
    underlying ``requests.Session`` is not guaranteed thread-safe, so give
    each thread its own client, passing a shared ``limiter``.

    Parameters
    ----------
    credentials        : API keys to rotate across trading calls; may be empty
                         for public-only use
    timeout            : HTTP timeout in seconds
    rate / burst       : token bucket applied to every public and trading call
    limiter            : share an existing SyncRateLimiter instead
    rate_limit_timeout : longest time to wait for a token before raising
                         RateLimitCancelled; None waits as long as needed
    """

    def __init__(
        self,
        credentials: Iterable[Credential] = (),
        *,
        timeout:            float = DEFAULT_TIMEOUT_S,
        rate:               float = MAX_REQUESTS_PER_SECOND,
        burst:              int   = DEFAULT_BURST,
        limiter:            Optional[SyncRateLimiter] = None,
        rate_limit_timeout: Optional[float] = None,
    ) -> None:
        self._pool               = SyncCredentialPool(credentials)
        self._limiter            = limiter if limiter is not None else SyncRateLimiter(rate, burst)
        self._timeout            = timeout
        self._rate_limit_timeout = rate_limit_timeout
        self._session            = requests.Session()

    def __enter__(self) -> "PoloniexRestClient":
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def limiter(self) -> SyncRateLimiter:
        return self._limiter

    def set_timeout(self, timeout: float) -> None:
        self._timeout = timeout

    def set_transport(self, adapter: requests.adapters.BaseAdapter) -> None:
        """Route all requests through ``adapter`` (proxies, test doubles, custom TLS)."""
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def set_request_rate_limit(self, rate: float) -> None:
        self._limiter.set_limit(rate)

    # ------------------------------------------------------------------
    # Request pipeline
    # ------------------------------------------------------------------

    def public_request(self, result_type: Any, command: str, *params: Optional[Params]) -> Any:
        """GET a public command and decode the body into ``result_type``."""
        query = merge_params(command, *params)
        self._limiter.wait(self._rate_limit_timeout)

        logger.debug("GET %s  command=%s", PUBLIC_API_URL, command)
        resp = self._session.get(PUBLIC_API_URL, params=query, timeout=self._timeout)
        return classify_response(resp.content, result_type, resp.status_code)

    def invoke(self, command: str, *params: Optional[Params]) -> bytes:
        """Run the authenticated pipeline for ``command`` and return the raw body."""
        return self._invoke(command, *params)[1]

    def trading_request(self, result_type: Any, command: str, *params: Optional[Params]) -> Any:
        """Run ``command`` through the authenticated pipeline and decode the body."""
        status, body = self._invoke(command, *params)
        return classify_response(body, result_type, status)

    def _invoke(self, command: str, *params: Optional[Params]) -> tuple[int, bytes]:
        form = merge_params(command, *params)
        self._limiter.wait(self._rate_limit_timeout)

        if self._pool.size == 0:
            logger.warning("Trading command %s issued with no credentials configured – waiting forever", command)

        with self._pool.lease() as credential:
            form["nonce"] = str(credential.next_nonce())
            body    = encode_form(form)
            headers = build_headers(credential, body)

            logger.debug("POST %s  command=%s  key=%s", TRADING_API_URL, command, credential.key)
            resp = self._session.post(
                TRADING_API_URL,
                data=body.encode("ascii"),
                headers=headers,
                timeout=self._timeout,
            )
        return resp.status_code, resp.content

    # ------------------------------------------------------------------
    # Market data (public)
    # ------------------------------------------------------------------

    def ticker(self) -> Ticker:
        return self.public_request(Ticker, "returnTicker")

    def volume_24h(self) -> Volume24h:
        return self.public_request(Volume24h, "return24hVolume")

    def order_book(self, pair: str, depth: Optional[int] = None) -> OrderBook:
        return self.public_request(OrderBook, "returnOrderBook", _book_params(pair, depth))

    def order_book_all(self, depth: Optional[int] = None) -> dict[str, OrderBook]:
        return self.public_request(dict[str, OrderBook], "returnOrderBook", _book_params("all", depth))

    def currencies(self) -> dict[str, Currency]:
        return self.public_request(dict[str, Currency], "returnCurrencies")

    def market_trade_history(self, pair: str, start: int = 0, end: int = 0) -> list[Trade]:
        trades = self.public_request(list[Trade], "returnTradeHistory", _range_params(start, end, currencyPair=pair))
        return _stamp_pair(trades, pair)

    def chart_data(self, pair: str, start: int, end: int, period: int = 300) -> list[Candle]:
        return self.public_request(list[Candle], "returnChartData", _range_params(start, end, currencyPair=pair, period=period))

    # ------------------------------------------------------------------
    # Account (trading)
    # ------------------------------------------------------------------

    def fee_info(self) -> FeeInfo:
        return self.trading_request(FeeInfo, "returnFeeInfo")

    def balances(self) -> dict[str, Decimal]:
        return self.trading_request(dict[str, Decimal], "returnBalances")

    def complete_balances(self) -> dict[str, CompleteBalance]:
        return self.trading_request(dict[str, CompleteBalance], "returnCompleteBalances")

    def deposit_addresses(self) -> dict[str, str]:
        return self.trading_request(dict[str, str], "returnDepositAddresses")

    def new_address(self, currency: str) -> str:
        result = self.trading_request(NewAddressResponse, "generateNewAddress", {"currency": currency})
        return _new_address_result(currency, result)

    def deposits_withdrawals(self, start: int = 0, end: int = 0) -> DepositsWithdrawals:
        result = self.trading_request(DepositsWithdrawals, "returnDepositsWithdrawals", _range_params(start, end))
        return result if result is not None else DepositsWithdrawals()

    def withdraw(self, currency: str, address: str, amount: Decimal) -> str:
        result = self.trading_request(
            WithdrawResponse, "withdraw",
            {"currency": currency, "address": address, "amount": amount},
        )
        return result.response if result is not None else ""

    # ------------------------------------------------------------------
    # Trades and orders (trading)
    # ------------------------------------------------------------------

    def trade_history(self, pair: str, start: int = 0, end: int = 0) -> list[Trade]:
        trades = self.trading_request(list[Trade], "returnTradeHistory", _range_params(start, end, currencyPair=pair))
        return _stamp_pair(trades, pair)

    def trade_history_all(self, start: int = 0, end: int = 0) -> dict[str, list[Trade]]:
        trades = self.trading_request(dict[str, list[Trade]], "returnTradeHistory", _range_params(start, end, currencyPair="all"))
        return _stamp_pairs(trades)

    def order_trades(self, order_number: int) -> list[Trade]:
        trades = self.trading_request(list[Trade], "returnOrderTrades", {"orderNumber": order_number})
        return _stamp_order(trades, order_number)

    def open_orders(self, pair: str) -> list[OwnOrder]:
        return self.trading_request(list[OwnOrder], "returnOpenOrders", {"currencyPair": pair})

    def open_orders_all(self) -> dict[str, list[OwnOrder]]:
        return self.trading_request(dict[str, list[OwnOrder]], "returnOpenOrders", {"currencyPair": "all"})

    def buy(self, pair: str, rate: Decimal, amount: Decimal) -> PlacedOrder:
        return self.trading_request(PlacedOrder, "buy", _order_params(pair, rate, amount))

    def sell(self, pair: str, rate: Decimal, amount: Decimal) -> PlacedOrder:
        return self.trading_request(PlacedOrder, "sell", _order_params(pair, rate, amount))

    def buy_fok(self, pair: str, rate: Decimal, amount: Decimal) -> PlacedOrder:
        """Buy with fill-or-kill: the order is cancelled unless it fills completely at once."""
        return self.trading_request(PlacedOrder, "buy", _order_params(pair, rate, amount, fill_or_kill=True))

    def sell_fok(self, pair: str, rate: Decimal, amount: Decimal) -> PlacedOrder:
        """Sell with fill-or-kill."""
        return self.trading_request(PlacedOrder, "sell", _order_params(pair, rate, amount, fill_or_kill=True))

    def cancel_order(self, order_number: int) -> bool:
        result = self.trading_request(CancelOrderResponse, "cancelOrder", {"orderNumber": order_number})
        return result is not None and result.success

    def move_order(self, order_number: int, rate: Decimal, amount: Optional[Decimal] = None) -> UpdatedOrder:
        """Cancel-and-replace an order at a new rate (and optionally a new amount)."""
        result = self.trading_request(MoveOrderResponse, "moveOrder", _move_params(order_number, rate, amount))
        return _move_order_result(order_number, result)


# ---------------------------------------------------------------------------
# Async client
# ---------------------------------------------------------------------------

class AsyncPoloniexRestClient:
    """
    Async REST client for Poloniex (aiohttp-based).

    Same parameters as PoloniexRestClient, plus ``connector`` – an
    ``aiohttp.BaseConnector`` used as the transport.  Concurrent coroutines
    share the credential pool and the rate limiter.

    Usage
    -----
        async with AsyncPoloniexRestClient(credentials) as client:
            fees = await client.fee_info()
    """

    def __init__(
        self,
        credentials: Iterable[Credential] = (),
        *,
        timeout:            float = DEFAULT_TIMEOUT_S,
        rate:               float = MAX_REQUESTS_PER_SECOND,
        burst:              int   = DEFAULT_BURST,
        limiter:            Optional[RateLimiter] = None,
        rate_limit_timeout: Optional[float] = None,
        connector:          Any = None,
    ) -> None:
        self._pool               = CredentialPool(credentials)
        self._limiter            = limiter if limiter is not None else RateLimiter(rate, burst)
        self._timeout            = timeout
        self._rate_limit_timeout = rate_limit_timeout
        self._connector          = connector
        self._session: Any       = None   # aiohttp.ClientSession, created on first use

    async def __aenter__(self) -> "AsyncPoloniexRestClient":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    def set_timeout(self, timeout: float) -> None:
        self._timeout = timeout

    async def set_transport(self, connector: Any) -> None:
        """Use ``connector`` for all future requests; the current session is closed."""
        await self.close()
        self._connector = connector

    def set_request_rate_limit(self, rate: float) -> None:
        self._limiter.set_limit(rate)

    # ------------------------------------------------------------------
    # Request pipeline
    # ------------------------------------------------------------------

    def _get_session(self) -> Any:
        import aiohttp

        if self._session is None or self._session.closed:
            if self._connector is not None:
                self._session = aiohttp.ClientSession(connector=self._connector, connector_owner=False)
            else:
                self._session = aiohttp.ClientSession()
        return self._session

    def _client_timeout(self) -> Any:
        import aiohttp

        return aiohttp.ClientTimeout(total=self._timeout)

    async def public_request(self, result_type: Any, command: str, *params: Optional[Params]) -> Any:
        query = merge_params(command, *params)
        await self._limiter.wait(self._rate_limit_timeout)

        session = self._get_session()
        logger.debug("GET %s  command=%s", PUBLIC_API_URL, command)
        async with session.get(PUBLIC_API_URL, params=query, timeout=self._client_timeout()) as resp:
            status = resp.status
            body   = await resp.read()
        return classify_response(body, result_type, status)

    async def invoke(self, command: str, *params: Optional[Params]) -> bytes:
        status, body = await self._invoke(command, *params)
        return body

    async def trading_request(self, result_type: Any, command: str, *params: Optional[Params]) -> Any:
        status, body = await self._invoke(command, *params)
        return classify_response(body, result_type, status)

    async def _invoke(self, command: str, *params: Optional[Params]) -> tuple[int, bytes]:
        form = merge_params(command, *params)
        await self._limiter.wait(self._rate_limit_timeout)

        if self._pool.size == 0:
            logger.warning("Trading command %s issued with no credentials configured – waiting forever", command)

        session = self._get_session()
        async with self._pool.lease() as credential:
            form["nonce"] = str(credential.next_nonce())
            body    = encode_form(form)
            headers = build_headers(credential, body)

            logger.debug("POST %s  command=%s  key=%s", TRADING_API_URL, command, credential.key)
            async with session.post(
                TRADING_API_URL,
                data=body.encode("ascii"),
                headers=headers,
                timeout=self._client_timeout(),
            ) as resp:
                return resp.status, await resp.read()

    # ------------------------------------------------------------------
    # Market data (public)
    # ------------------------------------------------------------------

    async def ticker(self) -> Ticker:
        return await self.public_request(Ticker, "returnTicker")

    async def volume_24h(self) -> Volume24h:
        return await self.public_request(Volume24h, "return24hVolume")

    async def order_book(self, pair: str, depth: Optional[int] = None) -> OrderBook:
        return await self.public_request(OrderBook, "returnOrderBook", _book_params(pair, depth))

    async def order_book_all(self, depth: Optional[int] = None) -> dict[str, OrderBook]:
        return await self.public_request(dict[str, OrderBook], "returnOrderBook", _book_params("all", depth))

    async def currencies(self) -> dict[str, Currency]:
        return await self.public_request(dict[str, Currency], "returnCurrencies")

    async def market_trade_history(self, pair: str, start: int = 0, end: int = 0) -> list[Trade]:
        trades = await self.public_request(list[Trade], "returnTradeHistory", _range_params(start, end, currencyPair=pair))
        return _stamp_pair(trades, pair)

    async def chart_data(self, pair: str, start: int, end: int, period: int = 300) -> list[Candle]:
        return await self.public_request(list[Candle], "returnChartData", _range_params(start, end, currencyPair=pair, period=period))

    # ------------------------------------------------------------------
    # Account (trading)
    # ------------------------------------------------------------------

    async def fee_info(self) -> FeeInfo:
        return await self.trading_request(FeeInfo, "returnFeeInfo")

    async def balances(self) -> dict[str, Decimal]:
        return await self.trading_request(dict[str, Decimal], "returnBalances")

    async def complete_balances(self) -> dict[str, CompleteBalance]:
        return await self.trading_request(dict[str, CompleteBalance], "returnCompleteBalances")

    async def deposit_addresses(self) -> dict[str, str]:
        return await self.trading_request(dict[str, str], "returnDepositAddresses")

    async def new_address(self, currency: str) -> str:
        result = await self.trading_request(NewAddressResponse, "generateNewAddress", {"currency": currency})
        return _new_address_result(currency, result)

    async def deposits_withdrawals(self, start: int = 0, end: int = 0) -> DepositsWithdrawals:
        result = await self.trading_request(DepositsWithdrawals, "returnDepositsWithdrawals", _range_params(start, end))
        return result if result is not None else DepositsWithdrawals()

    async def withdraw(self, currency: str, address: str, amount: Decimal) -> str:
        result = await self.trading_request(
            WithdrawResponse, "withdraw",
            {"currency": currency, "address": address, "amount": amount},
        )
        return result.response if result is not None else ""

    # ------------------------------------------------------------------
    # Trades and orders (trading)
    # ------------------------------------------------------------------

    async def trade_history(self, pair: str, start: int = 0, end: int = 0) -> list[Trade]:
        trades = await self.trading_request(list[Trade], "returnTradeHistory", _range_params(start, end, currencyPair=pair))
        return _stamp_pair(trades, pair)

    async def trade_history_all(self, start: int = 0, end: int = 0) -> dict[str, list[Trade]]:
        trades = await self.trading_request(dict[str, list[Trade]], "returnTradeHistory", _range_params(start, end, currencyPair="all"))
        return _stamp_pairs(trades)

    async def order_trades(self, order_number: int) -> list[Trade]:
        trades = await self.trading_request(list[Trade], "returnOrderTrades", {"orderNumber": order_number})
        return _stamp_order(trades, order_number)

    async def open_orders(self, pair: str) -> list[OwnOrder]:
        return await self.trading_request(list[OwnOrder], "returnOpenOrders", {"currencyPair": pair})

    async def open_orders_all(self) -> dict[str, list[OwnOrder]]:
        return await self.trading_request(dict[str, list[OwnOrder]], "returnOpenOrders", {"currencyPair": "all"})

    async def buy(self, pair: str, rate: Decimal, amount: Decimal) -> PlacedOrder:
        return await self.trading_request(PlacedOrder, "buy", _order_params(pair, rate, amount))

    async def sell(self, pair: str, rate: Decimal, amount: Decimal) -> PlacedOrder:
        return await self.trading_request(PlacedOrder, "sell", _order_params(pair, rate, amount))

    async def buy_fok(self, pair: str, rate: Decimal, amount: Decimal) -> PlacedOrder:
        return await self.trading_request(PlacedOrder, "buy", _order_params(pair, rate, amount, fill_or_kill=True))

    async def sell_fok(self, pair: str, rate: Decimal, amount: Decimal) -> PlacedOrder:
        return await self.trading_request(PlacedOrder, "sell", _order_params(pair, rate, amount, fill_or_kill=True))

    async def cancel_order(self, order_number: int) -> bool:
        result = await self.trading_request(CancelOrderResponse, "cancelOrder", {"orderNumber": order_number})
        return result is not None and result.success

    async def move_order(self, order_number: int, rate: Decimal, amount: Optional[Decimal] = None) -> UpdatedOrder:
        result = await self.trading_request(MoveOrderResponse, "moveOrder", _move_params(order_number, rate, amount))
        return _move_order_result(order_number, result)
