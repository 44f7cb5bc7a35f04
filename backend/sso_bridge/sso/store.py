"""Expiring, single-use key/value stores backing the SSO token exchange.

Two implementations share one interface:

- ``InMemoryTokenStore`` for single-process deployments and tests.
- ``RedisTokenStore`` for multi-worker deployments; expiry is enforced by
  Redis itself and ``take`` maps onto the atomic ``GETDEL`` command.

Values are opaque strings; serialization is the caller's concern.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

import redis
from redis.exceptions import RedisError

from sso_bridge.core.config import Settings
from sso_bridge.models.enums import TokenStoreBackend
from sso_bridge.sso.errors import TokenStoreError

log = logging.getLogger(__name__)


class TokenStore(Protocol):
    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` until ``ttl_seconds`` elapse, replacing any prior value."""

    def get(self, key: str) -> str | None:
        """Return the unexpired value for ``key`` or ``None``."""

    def delete(self, key: str) -> None:
        """Remove ``key``; no-op when absent."""

    def take(self, key: str) -> str | None:
        """Atomically return and remove the unexpired value for ``key``."""


class InMemoryTokenStore:
    """Thread-safe dict with per-entry deadlines.

    Route handlers run in a worker thread pool, so every operation holds the
    lock. Expired entries are dropped lazily on access and on each ``put``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._entries)

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            self._purge_expired()
            self._entries[key] = (value, self._clock() + ttl_seconds)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._live_value(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def take(self, key: str) -> str | None:
        with self._lock:
            value = self._live_value(key)
            self._entries.pop(key, None)
            return value

    def _live_value(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if self._clock() >= deadline:
            del self._entries[key]
            return None
        return value

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, (_, deadline) in self._entries.items() if now >= deadline]
        for key in expired:
            del self._entries[key]


class RedisTokenStore:
    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 2.0) -> RedisTokenStore:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            health_check_interval=30,
        )
        return cls(client)

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        try:
            self._client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise TokenStoreError(f"redis SET failed: {exc}") from exc

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except RedisError as exc:
            raise TokenStoreError(f"redis GET failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except RedisError as exc:
            raise TokenStoreError(f"redis DEL failed: {exc}") from exc

    def take(self, key: str) -> str | None:
        try:
            return self._client.getdel(key)
        except RedisError as exc:
            raise TokenStoreError(f"redis GETDEL failed: {exc}") from exc


def build_token_store(settings: Settings) -> TokenStore:
    backend = TokenStoreBackend(settings.token_store_backend)
    if backend == TokenStoreBackend.REDIS:
        log.info("Using Redis token store at %s", settings.redis_url.rsplit("@", 1)[-1])
        return RedisTokenStore.from_url(
            settings.redis_url, socket_timeout=settings.redis_socket_timeout_seconds
        )
    log.info("Using in-memory token store")
    return InMemoryTokenStore()
