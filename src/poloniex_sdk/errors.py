"""
errors.py – Exception taxonomy for the Poloniex SDK.

Request-path errors are raised to the immediate caller.  Real-time decode
errors are never raised out of the feed; they are delivered as values on a
subscription's error queue (see events.py).

Transport failures (requests.RequestException, aiohttp.ClientError,
asyncio.TimeoutError) are *not* part of this hierarchy – they
propagate unwrapped.
"""

from __future__ import annotations

from typing import Any, Optional


class PoloniexError(Exception):
    """Base class for every error raised by this SDK."""


# ---------------------------------------------------------------------------
# Request pipeline
# ---------------------------------------------------------------------------

class TooManyArgumentSets(PoloniexError, TypeError):
    """More than one parameter mapping was passed to a request helper."""

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f"expected at most one parameter set, got {count}")


class RateLimitCancelled(PoloniexError):
    """The rate limiter could not grant a token before the deadline."""


class PoloniexAPIError(PoloniexError):
    """Raised when Poloniex answers with an explicit ``{"error": "..."}`` body."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message     = message
        self.status_code = status_code
        status = f" [{status_code}]" if status_code is not None else ""
        super().__init__(f"Poloniex API error{status}: {message}")


class DecodeError(PoloniexError):
    """A response body did not match the expected shape.  ``body`` holds the raw bytes."""

    def __init__(self, message: str, body: bytes) -> None:
        self.message = message
        self.body    = body
        preview = body[:500].decode("utf-8", errors="replace")
        super().__init__(f"{message}\nServer response: {preview}")


class MalformedScalar(PoloniexError, ValueError):
    """A loosely typed scalar carried a literal that cannot be coerced."""

    def __init__(self, kind: str, text: str) -> None:
        self.kind = kind
        self.text = text
        super().__init__(f"{kind} unmarshal error: invalid input {text!r}")


# ---------------------------------------------------------------------------
# Real-time feed
# ---------------------------------------------------------------------------

class MarketEventError(PoloniexError):
    """A real-time message or data item could not be decoded."""

    def __init__(
        self,
        message:  str,
        *,
        pair:     str = "",
        sequence: Optional[int] = None,
        item:     Any = None,
    ) -> None:
        self.message  = message
        self.pair     = pair
        self.sequence = sequence
        self.item     = item
        super().__init__(message)


class SequenceError(MarketEventError):
    """The message metadata did not carry a usable sequence number."""


class SequenceMissing(SequenceError):
    """No ``seq`` key in the message metadata."""


class SequenceTypeMismatch(SequenceError):
    """``seq`` was present but not numeric."""


class UnknownEventType(MarketEventError):
    """A data item carried a type tag outside the known event variants."""

    def __init__(self, event_type: Any, **kwargs: Any) -> None:
        self.event_type = event_type
        super().__init__(f"unknown market event type {event_type!r}", **kwargs)


class WampError(PoloniexError):
    """The WAMP router aborted the session or rejected a request."""

    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None) -> None:
        self.reason  = reason
        self.details = details or {}
        super().__init__(f"WAMP error: {reason}")
