"""
events.py – Decoding of real-time market messages.

Each publication on a pair's topic carries:

    args   : [{"type": "orderBookModify", "data": {"type": "bid", "rate": "0.0852", "amount": "5"}}, ...]
    kwargs : {"seq": 1234}

The sequence number lives in the message metadata and applies to every item
in ``args``.  ``MarketEventDecoder.decode`` turns one publication into an
ordered stream of results – a typed event per item, or a MarketEventError
for an item that could not be decoded.  A message without a usable sequence
number yields exactly one error and nothing else.

Item types outside the three known variants are reported as
UnknownEventType rather than dropped, so protocol changes stay visible to
the consumer.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Iterator, Mapping
from decimal import Decimal
from typing import Any, Optional, TypeVar, Union

from .errors import (
    MarketEventError,
    SequenceError,
    SequenceMissing,
    SequenceTypeMismatch,
    UnknownEventType,
)
from .scalars import coerce_uint
from .types import (
    BookSide,
    NewTrade,
    OrderModify,
    OrderRemove,
    TradeSide,
    calculate_total,
    to_decimal,
)

MESSAGE_TYPE_ORDER_BOOK_MODIFY = "orderBookModify"
MESSAGE_TYPE_ORDER_BOOK_REMOVE = "orderBookRemove"
MESSAGE_TYPE_NEW_TRADE         = "newTrade"

DecodedItem = Union[OrderModify, OrderRemove, NewTrade, MarketEventError]

_T = TypeVar("_T")


def parse_sequence(kwargs: Optional[Mapping[str, Any]], pair: str = "") -> int:
    """Extract the message-level sequence number from publication metadata."""
    if kwargs is not None and not isinstance(kwargs, Mapping):
        raise SequenceTypeMismatch(
            f"message metadata {kwargs!r} is {type(kwargs).__name__}, expected an object",
            pair=pair,
        )
    if not kwargs or "seq" not in kwargs:
        raise SequenceMissing(
            f"sequence missing: key 'seq' was not found in message metadata {kwargs!r}",
            pair=pair,
        )

    seq = kwargs["seq"]
    if isinstance(seq, bool) or not isinstance(seq, (int, float, Decimal)):
        raise SequenceTypeMismatch(
            f"sequence value {seq!r} is {type(seq).__name__}, expected a number",
            pair=pair,
        )
    if (isinstance(seq, float) and not math.isfinite(seq)) or (isinstance(seq, Decimal) and not seq.is_finite()):
        raise SequenceTypeMismatch(f"sequence value {seq!r} is not finite", pair=pair)
    if seq < 0 or seq != int(seq):
        raise SequenceTypeMismatch(
            f"sequence value {seq!r} is not a non-negative integer",
            pair=pair,
        )
    return int(seq)


class MarketEventDecoder:
    """
    Decoder bound to one subscribed pair.

    Stateless apart from the pair, so one instance can serve a subscription
    for its whole lifetime.
    """

    def __init__(self, pair: str) -> None:
        self.pair = pair

    def decode(
        self,
        args:   Optional[Iterable[Any]],
        kwargs: Optional[Mapping[str, Any]],
    ) -> Iterator[DecodedItem]:
        """Yield one event or error per item, in the order the items arrived."""
        try:
            sequence = parse_sequence(kwargs, self.pair)
        except SequenceError as exc:
            yield exc
            return

        if args is not None and not isinstance(args, (list, tuple)):
            yield self._error(f"message arguments must be a list, got {type(args).__name__}", sequence, args)
            return

        for item in args or ():
            try:
                yield self.decode_item(sequence, item)
            except MarketEventError as exc:
                yield exc

    def decode_item(self, sequence: int, item: Any) -> Union[OrderModify, OrderRemove, NewTrade]:
        """Decode one ``{"type": ..., "data": {...}}`` item; raises MarketEventError."""
        if not isinstance(item, Mapping):
            raise self._error(f"market message must be an object, got {type(item).__name__}", sequence, item)

        event_type = item.get("type")

        if event_type == MESSAGE_TYPE_ORDER_BOOK_MODIFY:
            data   = self._data(sequence, item)
            rate   = self._field(sequence, item, data, "rate", to_decimal)
            amount = self._field(sequence, item, data, "amount", to_decimal)
            return OrderModify(
                sequence=sequence,
                side=self._field(sequence, item, data, "type", BookSide),
                rate=rate,
                amount=amount,
                total=calculate_total(rate, amount),
            )

        if event_type == MESSAGE_TYPE_ORDER_BOOK_REMOVE:
            data = self._data(sequence, item)
            return OrderRemove(
                sequence=sequence,
                side=self._field(sequence, item, data, "type", BookSide),
                rate=self._field(sequence, item, data, "rate", to_decimal),
            )

        if event_type == MESSAGE_TYPE_NEW_TRADE:
            data = self._data(sequence, item)
            return NewTrade(
                sequence=sequence,
                trade_id=self._field(sequence, item, data, "tradeID", coerce_uint),
                side=self._field(sequence, item, data, "type", TradeSide),
                rate=self._field(sequence, item, data, "rate", to_decimal),
                amount=self._field(sequence, item, data, "amount", to_decimal),
                total=self._field(sequence, item, data, "total", to_decimal),
                timestamp=str(data.get("date", "")),
                pair=self.pair,
            )

        raise UnknownEventType(event_type, pair=self.pair, sequence=sequence, item=item)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _error(self, message: str, sequence: int, item: Any) -> MarketEventError:
        return MarketEventError(message, pair=self.pair, sequence=sequence, item=item)

    def _data(self, sequence: int, item: Mapping[str, Any]) -> Mapping[str, Any]:
        data = item.get("data")
        if not isinstance(data, Mapping):
            raise self._error(f"{item.get('type')}: 'data' must be an object, got {data!r}", sequence, item)
        return data

    def _field(
        self,
        sequence: int,
        item:     Mapping[str, Any],
        data:     Mapping[str, Any],
        name:     str,
        parse:    Callable[[Any], _T],
    ) -> _T:
        if name not in data:
            raise self._error(f"{item.get('type')}: missing field {name!r}", sequence, item)
        try:
            return parse(data[name])
        except ValueError as exc:
            raise self._error(f"{item.get('type')}, {name}: {exc}", sequence, item) from exc
