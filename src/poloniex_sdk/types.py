"""
types.py – Pydantic v2 models for Poloniex API responses and feed events.

Wire names are camelCase; models expose snake_case attributes and accept
either spelling (``populate_by_name``).  Monetary values are Decimal.  The
REST client parses JSON with ``parse_float=Decimal`` so no float rounding
creeps in before validation.

Loosely typed scalars (``"isFrozen": 0`` vs ``"frozen": "0"``, quoted vs
bare trade IDs) are declared with the coercing types from scalars.py.

Deserialisation
---------------
    book   = OrderBook.model_validate(raw)
    ticker = TypeAdapter(Ticker).validate_python(raw)

Real-time events
----------------
OrderModify, OrderRemove and NewTrade form a closed union discriminated on
``kind``; ``MarketEvent`` is the annotated union type.  Events are frozen.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum, unique
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .scalars import ConvertibleBool, ConvertibleUint

# Totals are rounded to the exchange's 8 decimal places.
TOTAL_PLACES    = 8
_TOTAL_QUANTUM  = Decimal(1).scaleb(-TOTAL_PLACES)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

@unique
class BookSide(str, Enum):
    ASK = "ask"
    BID = "bid"


@unique
class TradeSide(str, Enum):
    BUY  = "buy"
    SELL = "sell"


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def to_decimal(value: Any, field: str = "value") -> Decimal:
    """Parse a finite decimal from a wire value (str, int or Decimal)."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field} {value!r} is not a decimal number")
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"{field} {value!r} is not a decimal number") from None
    if not parsed.is_finite():
        raise ValueError(f"{field} {value!r} is not a finite decimal number")
    return parsed


def calculate_total(rate: Decimal, amount: Decimal) -> Decimal:
    """rate × amount, rounded half-up to TOTAL_PLACES decimals."""
    return (rate * amount).quantize(_TOTAL_QUANTUM, rounding=ROUND_HALF_UP)


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Market data (public endpoints)
# ---------------------------------------------------------------------------

class Market(_WireModel):
    """One entry of returnTicker."""
    id:             int               = 0
    last:           Decimal
    lowest_ask:     Decimal           = Field(alias="lowestAsk")
    highest_bid:    Decimal           = Field(alias="highestBid")
    percent_change: Decimal           = Field(alias="percentChange")
    base_volume:    Decimal           = Field(alias="baseVolume")
    quote_volume:   Decimal           = Field(alias="quoteVolume")
    is_frozen:      ConvertibleBool   = Field(default=False, alias="isFrozen")
    high_24hr:      Optional[Decimal] = Field(default=None, alias="high24hr")
    low_24hr:       Optional[Decimal] = Field(default=None, alias="low24hr")


Ticker = dict[str, Market]


class OrderBookEntry(_WireModel):
    """
    A single order-book level.

    On the wire a level is a ``[rate, amount]`` pair; ``total`` is always
    computed here, never read from the exchange.
    """
    rate:   Decimal
    amount: Decimal
    total:  Decimal

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, data: Any) -> Any:
        if isinstance(data, (list, tuple)):
            if len(data) != 2:
                raise ValueError(f"order book level must be [rate, amount], got {len(data)} values")
            rate   = to_decimal(data[0], "rate")
            amount = to_decimal(data[1], "amount")
            return {"rate": rate, "amount": amount, "total": calculate_total(rate, amount)}
        if isinstance(data, dict) and "rate" in data and "amount" in data:
            rate   = to_decimal(data["rate"], "rate")
            amount = to_decimal(data["amount"], "amount")
            return {**data, "rate": rate, "amount": amount, "total": calculate_total(rate, amount)}
        return data


class OrderBook(_WireModel):
    """returnOrderBook for a single pair."""
    asks:      list[OrderBookEntry] = []
    bids:      list[OrderBookEntry] = []
    is_frozen: ConvertibleBool      = Field(default=False, alias="isFrozen")
    sequence:  int                  = Field(default=0, alias="seq")


class Currency(_WireModel):
    """One entry of returnCurrencies."""
    id:              int
    name:            str
    tx_fee:          Decimal         = Field(alias="txFee")
    min_conf:        int             = Field(alias="minConf")
    deposit_address: Optional[str]   = Field(default=None, alias="depositAddress")
    disabled:        ConvertibleBool = False
    delisted:        ConvertibleBool = False
    frozen:          ConvertibleBool = False


class Candle(_WireModel):
    """One returnChartData candlestick."""
    date:             int
    high:             Decimal
    low:              Decimal
    open:             Decimal
    close:            Decimal
    volume:           Decimal
    quote_volume:     Decimal = Field(alias="quoteVolume")
    weighted_average: Decimal = Field(alias="weightedAverage")


# ---------------------------------------------------------------------------
# Trades and orders
# ---------------------------------------------------------------------------

class Trade(_WireModel):
    """
    A trade print – public market history, own trade history, or a fill
    attached to a placed order.

    ``currency_pair`` / ``order_number`` are stamped by the client when the
    exchange leaves them implicit in the request.
    """
    global_trade_id: Optional[int]   = Field(default=None, alias="globalTradeID")
    trade_id:        ConvertibleUint = Field(alias="tradeID")
    order_number:    Optional[int]   = Field(default=None, alias="orderNumber")
    currency_pair:   str             = Field(default="", alias="currencyPair")
    side:            TradeSide       = Field(alias="type")
    rate:            Decimal
    amount:          Decimal
    total:           Decimal
    fee:             Decimal         = Decimal(0)
    date:            str             = ""
    category:        Optional[str]   = None


class OwnOrder(_WireModel):
    """An open order belonging to the account."""
    order_number: int       = Field(alias="orderNumber")
    side:         TradeSide = Field(alias="type")
    rate:         Decimal
    amount:       Decimal
    total:        Decimal
    date:         str       = ""


class PlacedOrder(_WireModel):
    order_number:     ConvertibleUint = Field(alias="orderNumber")
    resulting_trades: list[Trade]     = Field(default_factory=list, alias="resultingTrades")


class UpdatedOrder(_WireModel):
    order_number:     ConvertibleUint        = Field(alias="orderNumber")
    resulting_trades: dict[str, list[Trade]] = Field(default_factory=dict, alias="resultingTrades")


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------

class FeeInfo(_WireModel):
    maker_fee:         Decimal = Field(alias="makerFee")
    taker_fee:         Decimal = Field(alias="takerFee")
    thirty_day_volume: Decimal = Field(alias="thirtyDayVolume")
    next_tier:         Decimal = Field(alias="nextTier")


class CompleteBalance(_WireModel):
    available: Decimal
    on_orders: Decimal = Field(alias="onOrders")
    btc_value: Decimal = Field(alias="btcValue")


class Deposit(_WireModel):
    deposit_number: Optional[int] = Field(default=None, alias="depositNumber")
    currency:       str
    address:        str
    amount:         Decimal
    confirmations:  int           = 0
    txid:           str           = ""
    timestamp:      int
    status:         str


class Withdrawal(_WireModel):
    withdrawal_number: int           = Field(alias="withdrawalNumber")
    currency:          str
    address:           str
    amount:            Decimal
    fee:               Decimal       = Decimal(0)
    timestamp:         int
    status:            str
    ip_address:        str           = Field(default="", alias="ipAddress")
    payment_id:        Optional[str] = Field(default=None, alias="paymentID")


class DepositsWithdrawals(_WireModel):
    deposits:    list[Deposit]    = []
    withdrawals: list[Withdrawal] = []


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------

class NewAddressResponse(_WireModel):
    success:  ConvertibleBool
    response: str = ""


class CancelOrderResponse(_WireModel):
    success: ConvertibleBool
    message: Optional[str] = None


class MoveOrderResponse(UpdatedOrder):
    success: ConvertibleBool


class WithdrawResponse(_WireModel):
    response: str = ""


# ---------------------------------------------------------------------------
# Real-time market events
# ---------------------------------------------------------------------------

class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class OrderModify(_Event):
    """An order-book level was inserted or changed."""
    kind:     Literal["orderBookModify"] = "orderBookModify"
    sequence: int
    side:     BookSide
    rate:     Decimal
    amount:   Decimal
    total:    Decimal


class OrderRemove(_Event):
    """An order-book level was removed entirely."""
    kind:     Literal["orderBookRemove"] = "orderBookRemove"
    sequence: int
    side:     BookSide
    rate:     Decimal


class NewTrade(_Event):
    """A trade print on the subscribed pair."""
    kind:      Literal["newTrade"] = "newTrade"
    sequence:  int
    trade_id:  int
    side:      TradeSide
    rate:      Decimal
    amount:    Decimal
    total:     Decimal
    timestamp: str
    pair:      str


MarketEvent = Annotated[Union[OrderModify, OrderRemove, NewTrade], Field(discriminator="kind")]
