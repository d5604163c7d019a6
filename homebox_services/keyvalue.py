"""
Secondary key-value store boundary.

The relational store is the source of truth.  This store only holds
rebuildable hints (for example which table a scanned identifier lives in),
so losing it, flushing it, or reading a stale value never changes an
answer, only how fast it is found.

Key layout
----------
    symbol-kind:<uuid>   ->  "Location" | "Container" | "Item"

Implementations
---------------
    MemoryKeyValueStore  -- in-process dict with TTLs.  Default.
    RedisKeyValueStore   -- redis-py client, shared between workers.

Transport failures surface as CacheUnavailableError.  Callers treat that as
a cache miss.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Protocol

import redis

from homebox_kernel.logging_config import get_logger

logger = get_logger("services.keyvalue")

SYMBOL_KIND_KEY_PREFIX = "symbol-kind:"
DEFAULT_TTL_SECONDS = 3600


def symbol_kind_key(entity_id: object) -> str:
    return f"{SYMBOL_KIND_KEY_PREFIX}{entity_id}"


class CacheUnavailableError(Exception):
    """The key-value store could not be reached.  Never shown to API clients."""

    code: str = "CACHE_UNAVAILABLE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Key-value store unavailable: {reason}")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl: int | None = None) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """
    Thread-safe in-process store with per-key expiry.

    Expired entries are swept every ``sweep_interval`` writes, and past
    ``max_entries`` the oldest writes are evicted, so hints for entities
    that are never looked up again cannot accumulate.
    """

    def __init__(
        self,
        default_ttl: int | None = DEFAULT_TTL_SECONDS,
        now: Callable[[], float] = time.monotonic,
        max_entries: int = 100_000,
        sweep_interval: int = 1024,
    ):
        if max_entries < 1 or sweep_interval < 1:
            raise ValueError("max_entries and sweep_interval must be positive")
        self._default_ttl = default_ttl
        self._now = now
        self._max_entries = max_entries
        self._sweep_interval = sweep_interval
        self._writes = 0
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= self._now():
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        ttl = ttl if ttl is not None else self._default_ttl
        expires_at = self._now() + ttl if ttl is not None else None
        with self._lock:
            # Re-insert so dict order stays oldest-write first.
            self._data.pop(key, None)
            self._data[key] = (value, expires_at)
            self._writes += 1
            if self._writes % self._sweep_interval == 0:
                self._sweep_expired()
            while len(self._data) > self._max_entries:
                del self._data[next(iter(self._data))]

    def _sweep_expired(self) -> None:
        now = self._now()
        expired = [
            key
            for key, (_, expires_at) in self._data.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._data[key]
        if expired:
            logger.debug("kv_expired_swept", extra={"count": len(expired)})

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class RedisKeyValueStore:
    """
    Redis-backed store.  Keys are namespaced with ``prefix`` so several
    deployments can share one Redis database.
    """

    def __init__(
        self,
        client: redis.Redis,
        prefix: str = "homebox:",
        default_ttl: int | None = DEFAULT_TTL_SECONDS,
    ):
        self._client = client
        self._prefix = prefix
        self._default_ttl = default_ttl

    @classmethod
    def from_url(cls, url: str, **kwargs) -> RedisKeyValueStore:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=1.0,
            socket_connect_timeout=1.0,
        )
        return cls(client, **kwargs)

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(self._prefix + key)
        except redis.RedisError as exc:
            raise CacheUnavailableError(str(exc)) from exc

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        ttl = ttl if ttl is not None else self._default_ttl
        try:
            self._client.set(self._prefix + key, value, ex=ttl)
        except redis.RedisError as exc:
            raise CacheUnavailableError(str(exc)) from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._prefix + key)
        except redis.RedisError as exc:
            raise CacheUnavailableError(str(exc)) from exc

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False


def create_key_value_store(
    url: str | None,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
) -> KeyValueStore:
    """``None`` or ``memory://`` -> MemoryKeyValueStore; ``redis://`` / ``rediss://`` -> Redis."""
    if url is None or url == "memory://":
        logger.info("key_value_store_selected", extra={"backend": "memory"})
        return MemoryKeyValueStore(default_ttl=ttl_seconds)
    if url.startswith(("redis://", "rediss://", "unix://")):
        logger.info("key_value_store_selected", extra={"backend": "redis"})
        return RedisKeyValueStore.from_url(url, default_ttl=ttl_seconds)
    raise ValueError(f"Unsupported cache URL: {url!r}")
