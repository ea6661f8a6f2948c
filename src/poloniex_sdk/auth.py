"""
auth.py – API credentials and the shared credential pool.

Poloniex tracks nonce state per API key, and a key may only have one request
in flight if its nonces are to stay strictly increasing.  Clients therefore
hold their keys in a pool: each authenticated request checks one key out,
uses it exclusively, and checks it back in when the request is done –
whatever the outcome.

Usage
-----
    from poloniex_sdk import Credential, CredentialPool

    pool = CredentialPool([Credential("key-1", "secret-1"), Credential("key-2", "secret-2")])

    async with pool.lease() as credential:
        nonce = credential.next_nonce()
        ...

``SyncCredentialPool`` is the thread-based equivalent used by the
synchronous REST client.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import queue
import threading
import time
from collections.abc import AsyncIterator, Iterable, Iterator
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Credential
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Credential:
    """
    One Poloniex API key/secret pair.

    Parameters
    ----------
    key    : API key, sent in the ``Key`` header
    secret : API secret, used only to sign request bodies (never logged)

    Nonces
    ------
    ``next_nonce()`` returns a value strictly greater than every nonce
    previously issued for this key.  It follows the wall clock in
    nanoseconds, but never repeats or steps back when two calls land in
    the same clock tick or the clock is adjusted.
    """

    key:    str
    secret: str = field(repr=False)

    _last_nonce: int            = field(default=0, init=False, repr=False)
    _lock:       threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("API key is required")
        if not self.secret:
            raise ValueError("API secret is required")

    def next_nonce(self) -> int:
        with self._lock:
            self._last_nonce = max(self._last_nonce + 1, time.time_ns())
            return self._last_nonce

    @property
    def last_nonce(self) -> int:
        return self._last_nonce


# ---------------------------------------------------------------------------
# Async pool
# ---------------------------------------------------------------------------

class CredentialPool:
    """
    Bounded asyncio pool of credentials.

    ``checkout()`` waits while every credential is in flight;
    ``checkin()`` never blocks.  The pool is filled once at construction and
    never grows or shrinks.  An empty pool makes ``checkout()`` wait forever –
    that is a configuration error, not something the pool reports.
    """

    def __init__(self, credentials: Iterable[Credential]) -> None:
        creds = list(credentials)
        self._size = len(creds)
        self._queue: asyncio.Queue[Credential] = asyncio.Queue(maxsize=self._size)
        for cred in creds:
            self._queue.put_nowait(cred)

    @property
    def size(self) -> int:
        return self._size

    @property
    def available(self) -> int:
        return self._queue.qsize()

    async def checkout(self) -> Credential:
        return await self._queue.get()

    def checkin(self, credential: Credential) -> None:
        self._queue.put_nowait(credential)

    @contextlib.asynccontextmanager
    async def lease(self) -> AsyncIterator[Credential]:
        """Check a credential out for the duration of the block."""
        credential = await self.checkout()
        try:
            logger.debug("Credential %s checked out (%d left)", credential.key, self.available)
            yield credential
        finally:
            self.checkin(credential)


# ---------------------------------------------------------------------------
# Thread pool
# ---------------------------------------------------------------------------

class SyncCredentialPool:
    """Thread-safe counterpart of CredentialPool for the synchronous client."""

    def __init__(self, credentials: Iterable[Credential]) -> None:
        creds = list(credentials)
        self._size = len(creds)
        self._queue: queue.Queue[Credential] = queue.Queue(maxsize=self._size)
        for cred in creds:
            self._queue.put_nowait(cred)

    @property
    def size(self) -> int:
        return self._size

    @property
    def available(self) -> int:
        return self._queue.qsize()

    def checkout(self) -> Credential:
        return self._queue.get()

    def checkin(self, credential: Credential) -> None:
        self._queue.put_nowait(credential)

    @contextlib.contextmanager
    def lease(self) -> Iterator[Credential]:
        credential = self.checkout()
        try:
            logger.debug("Credential %s checked out (%d left)", credential.key, self.available)
            yield credential
        finally:
            self.checkin(credential)
