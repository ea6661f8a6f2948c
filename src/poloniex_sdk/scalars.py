"""
scalars.py – Coercion of loosely typed JSON scalars.

Poloniex is inconsistent about scalar encoding: the same boolean can arrive
as ``0``, ``"0"``, ``"false"`` or ``false`` depending on the endpoint, and
integer identifiers come both quoted and bare.  The helpers here normalise
those to strict Python values; the Annotated aliases plug them into pydantic
models:

    class Currency(BaseModel):
        frozen: ConvertibleBool
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BeforeValidator

from .errors import MalformedScalar

_TRUE_LITERALS  = {"1", "true"}
_FALSE_LITERALS = {"0", "false"}


def _unquote(value: Any) -> str:
    return str(value).strip().strip('"')


def coerce_bool(value: Any) -> bool:
    """Map ``1``/``"true"`` → True and ``0``/``"false"`` → False, quoted or not."""
    if isinstance(value, bool):
        return value
    text = _unquote(value)
    if text in _TRUE_LITERALS:
        return True
    if text in _FALSE_LITERALS:
        return False
    raise MalformedScalar("boolean", text)


def coerce_uint(value: Any) -> int:
    """Parse a base-10 unsigned integer that may arrive quoted."""
    if isinstance(value, bool):
        raise MalformedScalar("unsigned integer", str(value))
    if isinstance(value, int):
        text = str(value)
    else:
        text = _unquote(value)
    if not (text.isascii() and text.isdigit()):
        raise MalformedScalar("unsigned integer", text)
    return int(text)


ConvertibleBool = Annotated[bool, BeforeValidator(coerce_bool)]
ConvertibleUint = Annotated[int, BeforeValidator(coerce_uint)]
