"""Key/expiring-value cache used for aggregated statistics.

Two backends share the same operations (get, set with TTL, delete, incr):

- ``RedisCacheStore`` for deployments with ``REDIS_URL`` configured;
- ``InMemoryCacheStore`` for local runs and tests (single process only).

Values are JSON-serializable Python objects; they are stored as JSON text.
"""

from __future__ import annotations

import json
import threading
import time
from typing import Any, Dict, Optional, Protocol, Tuple

import redis

from tubestats.core.config import settings
from tubestats.core.logging import get_logger

log = get_logger("cache")


class CacheStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> bool: ...

    def incr(self, key: str) -> int: ...


class RedisCacheStore:
    """Redis-backed cache. Errors propagate; callers decide whether they are fatal."""

    def __init__(self, url: str, prefix: str = "tubestats"):
        self.prefix = prefix
        self.client: redis.Redis = redis.from_url(url, decode_responses=True)

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def get(self, key: str) -> Optional[Any]:
        raw = self.client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        payload = json.dumps(value)
        if ttl is None:
            self.client.set(self._key(key), payload)
        else:
            self.client.setex(self._key(key), ttl, payload)

    def delete(self, key: str) -> bool:
        deleted = self.client.delete(self._key(key))
        log.debug(f"Deleted cache key {key} (existed={bool(deleted)})")
        return bool(deleted)

    def incr(self, key: str) -> int:
        """Atomic counter; the key never expires unless it already had a TTL."""
        return int(self.client.incr(self._key(key)))


class InMemoryCacheStore:
    """Process-local cache with monotonic-clock expiry."""

    def __init__(self, clock=time.monotonic):  # noqa: ANN001
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[str, Optional[float]]] = {}

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            payload, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                return None
        return json.loads(payload)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._lock:
            self._entries[key] = (json.dumps(value), expires_at)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def incr(self, key: str) -> int:
        with self._lock:
            payload, expires_at = self._entries.get(key, ("0", None))
            if expires_at is not None and self._clock() >= expires_at:
                payload, expires_at = "0", None
            value = int(json.loads(payload)) + 1
            self._entries[key] = (json.dumps(value), expires_at)
            return value


_cache: Optional[CacheStore] = None


def init_cache(url: Optional[str] = None) -> CacheStore:
    """Create the process-wide cache from ``REDIS_URL`` (or in-process when unset)."""
    global _cache
    url = url if url is not None else settings.REDIS_URL
    if url:
        log.info("Using Redis rollup cache")
        _cache = RedisCacheStore(url)
    else:
        log.info("REDIS_URL not set; using in-process rollup cache")
        _cache = InMemoryCacheStore()
    return _cache


def get_cache() -> CacheStore:
    if _cache is None:
        return init_cache()
    return _cache
