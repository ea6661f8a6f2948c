"""
tests/test_signing.py – Unit tests for HMAC-SHA512 request signing.

These tests run entirely offline.  They verify that:
  1. The form body is encoded with keys in sorted order.
  2. sign_body() matches a known HMAC-SHA512 vector.
  3. Signing is deterministic and sensitive to every byte.
  4. build_headers() carries Key, Sign and the form content type.
"""

from __future__ import annotations

from poloniex_sdk.auth import Credential
from poloniex_sdk.signing import FORM_CONTENT_TYPE, build_headers, encode_form, sign_body

# hex(HMAC-SHA512("secret", "command=returnBalances&nonce=1"))
KNOWN_SIGNATURE = (
    "c288f881a6808d0e78827ec6ca9d6b9c34ec1667077163030d6d7abb2b225456"
    "31176f528347ab0fd6671ec53aec1f7d3b6de8b8e3ccc23de62fd59452d70db5"
)

# hex(HMAC-SHA512("secret", ""))
EMPTY_BODY_SIGNATURE = (
    "b0e9650c5faf9cd8ae02276671545424104589b3656731ec193b25d01b07561c"
    "27637c2d4d68389d6cf5007a8632c26ec89ba80a01c77a6cdd389ec28db43901"
)


# ---------------------------------------------------------------------------
# encode_form
# ---------------------------------------------------------------------------

class TestEncodeForm:
    def test_keys_sorted(self) -> None:
        body = encode_form({"nonce": "1", "command": "returnBalances"})
        assert body == "command=returnBalances&nonce=1"

    def test_values_url_encoded(self) -> None:
        body = encode_form({"address": "a b&c", "command": "withdraw"})
        assert body == "address=a+b%26c&command=withdraw"

    def test_same_form_same_body(self) -> None:
        form = {"currencyPair": "BTC_ETH", "rate": "0.1", "amount": "2", "command": "buy"}
        assert encode_form(form) == encode_form(dict(reversed(list(form.items()))))


# ---------------------------------------------------------------------------
# sign_body
# ---------------------------------------------------------------------------

class TestSignBody:
    def test_known_vector(self) -> None:
        assert sign_body("secret", "command=returnBalances&nonce=1") == KNOWN_SIGNATURE

    def test_empty_body(self) -> None:
        assert sign_body("secret", "") == EMPTY_BODY_SIGNATURE

    def test_lowercase_hex_128_chars(self) -> None:
        sig = sign_body("k", "body")
        assert len(sig) == 128
        assert sig == sig.lower()
        int(sig, 16)

    def test_deterministic(self) -> None:
        assert sign_body("s", "command=x&nonce=2") == sign_body("s", "command=x&nonce=2")

    def test_body_change_changes_signature(self) -> None:
        assert sign_body("s", "command=x&nonce=2") != sign_body("s", "command=x&nonce=3")

    def test_secret_change_changes_signature(self) -> None:
        assert sign_body("s1", "command=x") != sign_body("s2", "command=x")


# ---------------------------------------------------------------------------
# build_headers
# ---------------------------------------------------------------------------

class TestBuildHeaders:
    def test_headers(self) -> None:
        cred    = Credential("my-key", "secret")
        headers = build_headers(cred, "command=returnBalances&nonce=1")
        assert headers == {
            "Key":          "my-key",
            "Sign":         KNOWN_SIGNATURE,
            "Content-Type": FORM_CONTENT_TYPE,
        }

    def test_secret_not_in_headers(self) -> None:
        headers = build_headers(Credential("k", "very-secret"), "command=x")
        assert "very-secret" not in "".join(headers.values())
