"""
Poloniex SDK – Python client for the Poloniex exchange.

Provides:
  - Unified façade                     (client.py       → PoloniexClient)
  - Credentials, nonces, key rotation  (auth.py         → Credential, CredentialPool)
  - HMAC-SHA512 request signing        (signing.py      → build_headers)
  - Shared token-bucket limiter        (rate_limiter.py → RateLimiter)
  - Typed Pydantic v2 models           (types.py)
  - Synchronous REST client            (rest.py         → PoloniexRestClient)
  - Async REST client                  (rest.py         → AsyncPoloniexRestClient)
  - Real-time market event decoding    (events.py       → MarketEventDecoder)
  - Async WAMP feed client             (ws.py           → PoloniexWampClient)

Quickstart
----------
    from poloniex_sdk import Credential, PoloniexRestClient

    with PoloniexRestClient([Credential("key", "secret")]) as client:
        print(client.ticker()["BTC_ETH"].last)
        print(client.balances())
"""

from .types import (
    # Enums
    BookSide,
    TradeSide,
    # Market data
    Market,
    Ticker,
    OrderBookEntry,
    OrderBook,
    Currency,
    Candle,
    # Trades and orders
    Trade,
    OwnOrder,
    PlacedOrder,
    UpdatedOrder,
    # Account
    FeeInfo,
    CompleteBalance,
    Deposit,
    Withdrawal,
    DepositsWithdrawals,
    # Real-time events
    OrderModify,
    OrderRemove,
    NewTrade,
    MarketEvent,
)
from .errors import (
    PoloniexError,
    TooManyArgumentSets,
    RateLimitCancelled,
    PoloniexAPIError,
    DecodeError,
    MalformedScalar,
    MarketEventError,
    SequenceError,
    SequenceMissing,
    SequenceTypeMismatch,
    UnknownEventType,
    WampError,
)
from .scalars import ConvertibleBool, ConvertibleUint, coerce_bool, coerce_uint
from .auth import Credential, CredentialPool, SyncCredentialPool
from .rate_limiter import RateLimiter, SyncRateLimiter
from .signing import build_headers, encode_form, sign_body
from .rest import PoloniexRestClient, AsyncPoloniexRestClient, classify_response, merge_params
from .events import MarketEventDecoder, parse_sequence
from .ws import PoloniexWampClient, Subscription
from .client import PoloniexClient

__all__ = [
    # Enums
    "BookSide",
    "TradeSide",
    # Market data
    "Market",
    "Ticker",
    "OrderBookEntry",
    "OrderBook",
    "Currency",
    "Candle",
    # Trades and orders
    "Trade",
    "OwnOrder",
    "PlacedOrder",
    "UpdatedOrder",
    # Account
    "FeeInfo",
    "CompleteBalance",
    "Deposit",
    "Withdrawal",
    "DepositsWithdrawals",
    # Real-time events
    "OrderModify",
    "OrderRemove",
    "NewTrade",
    "MarketEvent",
    # Errors
    "PoloniexError",
    "TooManyArgumentSets",
    "RateLimitCancelled",
    "PoloniexAPIError",
    "DecodeError",
    "MalformedScalar",
    "MarketEventError",
    "SequenceError",
    "SequenceMissing",
    "SequenceTypeMismatch",
    "UnknownEventType",
    "WampError",
    # Scalars
    "ConvertibleBool",
    "ConvertibleUint",
    "coerce_bool",
    "coerce_uint",
    # Auth
    "Credential",
    "CredentialPool",
    "SyncCredentialPool",
    # Rate limiting
    "RateLimiter",
    "SyncRateLimiter",
    # Signing
    "build_headers",
    "encode_form",
    "sign_body",
    # REST
    "PoloniexRestClient",
    "AsyncPoloniexRestClient",
    "classify_response",
    "merge_params",
    # Real-time feed
    "MarketEventDecoder",
    "parse_sequence",
    "PoloniexWampClient",
    "Subscription",
    # Unified façade
    "PoloniexClient",
]

__version__ = "0.1.0"
