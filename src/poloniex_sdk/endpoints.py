"""
endpoints.py – Fixed Poloniex endpoints and client defaults.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# REST
# ---------------------------------------------------------------------------

PUBLIC_API_URL  = "https://poloniex.com/public"
TRADING_API_URL = "https://poloniex.com/tradingApi"

# ---------------------------------------------------------------------------
# Real-time feed (WAMP v2 over WebSocket)
# ---------------------------------------------------------------------------

WAMP_URL         = "wss://api.poloniex.com"
WAMP_REALM       = "realm1"
WAMP_SUBPROTOCOL = "wamp.2.json"

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_TIMEOUT_S         = 130.0
MAX_REQUESTS_PER_SECOND   = 6.0
DEFAULT_BURST             = 1
