"""Key-value cache backends with tagged results.

Every operation returns a ``StoreResult`` instead of raising, so callers decide
whether a store fault aborts the request (session reads fail soft, the rate
limiter fails open). Two backends share the same surface:

- ``RedisKeyValueStore``: pooled redis client, used in deployed environments
- ``MemoryKeyValueStore``: in-process TTL dict, used when REDIS_URL is unset
  or ``memory://`` (dev and tests)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, TypeVar

import redis

from formweaver.core.redis_client import get_sync_redis_client

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreFailure(str, Enum):
    """Tagged failure of a store operation."""

    NOT_FOUND = "not_found"
    STORE_UNAVAILABLE = "store_unavailable"
    CONSTRAINT_VIOLATION = "constraint_violation"


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Either a value or a tagged failure."""

    value: T | None = None
    failure: StoreFailure | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T | None = None) -> "StoreResult[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, failure: StoreFailure, detail: str | None = None) -> "StoreResult[T]":
        return cls(failure=failure, detail=detail)


class RedisKeyValueStore:
    """Redis-backed store. Connection and command errors map to STORE_UNAVAILABLE."""

    def __init__(self, client):
        self._client = client

    def get(self, key: str) -> StoreResult[str]:
        try:
            value = self._client.get(key)
        except redis.RedisError as exc:
            logger.warning("KV get failed for %s: %s", key.split(":", 1)[0], exc)
            return StoreResult.fail(StoreFailure.STORE_UNAVAILABLE, str(exc))
        if value is None:
            return StoreResult.fail(StoreFailure.NOT_FOUND)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return StoreResult.success(value)

    def put(self, key: str, value: str, ttl_seconds: int | None = None) -> StoreResult[None]:
        try:
            if ttl_seconds:
                self._client.set(key, value, ex=max(1, int(ttl_seconds)))
            else:
                self._client.set(key, value)
        except redis.RedisError as exc:
            logger.warning("KV put failed for %s: %s", key.split(":", 1)[0], exc)
            return StoreResult.fail(StoreFailure.STORE_UNAVAILABLE, str(exc))
        return StoreResult.success()

    def delete(self, key: str) -> StoreResult[None]:
        try:
            self._client.delete(key)
        except redis.RedisError as exc:
            logger.warning("KV delete failed for %s: %s", key.split(":", 1)[0], exc)
            return StoreResult.fail(StoreFailure.STORE_UNAVAILABLE, str(exc))
        return StoreResult.success()


class MemoryKeyValueStore:
    """In-process store with per-key expiry. Not shared across workers."""

    def __init__(self, clock: Callable[[], float] | None = None):
        self._clock = clock or time.time
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> StoreResult[str]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return StoreResult.fail(StoreFailure.NOT_FOUND)
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._data[key]
                return StoreResult.fail(StoreFailure.NOT_FOUND)
            return StoreResult.success(value)

    def put(self, key: str, value: str, ttl_seconds: int | None = None) -> StoreResult[None]:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        with self._lock:
            self._data[key] = (value, expires_at)
        return StoreResult.success()

    def delete(self, key: str) -> StoreResult[None]:
        with self._lock:
            self._data.pop(key, None)
        return StoreResult.success()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


_memory_store: MemoryKeyValueStore | None = None


def get_kv_store():
    """
    Key-value store dependency.

    Returns a redis-backed store when REDIS_URL is configured, otherwise a
    process-wide in-memory store.
    """
    client = get_sync_redis_client()
    if client is not None:
        return RedisKeyValueStore(client)

    global _memory_store
    if _memory_store is None:
        _memory_store = MemoryKeyValueStore()
    return _memory_store
