"""
signing.py – HMAC-SHA512 request signing for the Poloniex trading API.

Every trading call is a form-encoded POST.  Poloniex authenticates it with
two headers:

    Key  : the API key
    Sign : hex(HMAC-SHA512(secret, <exact form body>))

The signature covers the body byte-for-byte, so the body must be encoded
once and the same string both signed and sent.  ``encode_form`` fixes the
encoding (keys sorted by name) and the client never lets the HTTP library
re-encode it.

    body    = encode_form({"command": "returnBalances", "nonce": "1"})
    headers = build_headers(credential, body)
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping
from urllib.parse import urlencode

from .auth import Credential

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def encode_form(form: Mapping[str, str]) -> str:
    """URL-encode a flat form body with keys in sorted order."""
    return urlencode(sorted(form.items()))


def sign_body(secret: str, body: str) -> str:
    """Return the lowercase hex HMAC-SHA512 of ``body`` keyed by ``secret``."""
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha512).hexdigest()


def build_headers(credential: Credential, body: str) -> dict[str, str]:
    """Headers authenticating ``body`` with ``credential``."""
    return {
        "Key":          credential.key,
        "Sign":         sign_body(credential.secret, body),
        "Content-Type": FORM_CONTENT_TYPE,
    }
