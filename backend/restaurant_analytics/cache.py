"""
Response Cache
==============

Caches finished endpoint responses for a fixed TTL (5 minutes by default).

WHAT:
    - ResponseCache: the get / set / expire contract the routers depend on
    - InMemoryResponseCache: per-process dict with an injectable clock
    - RedisResponseCache: shared cache using SETEX with JSON values
    - make_cache_key: "<endpoint>:<json filters>"
    - cache_aside: read-through helper used by the routers

WHY:
    Dashboard widgets re-request the same aggregates every time the filter bar
    is touched. The clock is injected so tests can move time past the TTL
    instead of sleeping.

Only complete responses are cached; a failed request never writes.

RELATED FILES
-------------
- restaurant_analytics/state.py: builds the process-wide cache
- restaurant_analytics/routers/*: cache-aside around each cached endpoint
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Tuple

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


def make_cache_key(endpoint: str, filters: Optional[Mapping[str, Any]] = None) -> str:
    """
    Key for an endpoint response: endpoint name + JSON of the request filters.

    Keys are sorted so ``?store=1&period=7d`` and ``?period=7d&store=1`` share
    an entry.
    """
    payload = json.dumps(dict(filters or {}), sort_keys=True, default=str, ensure_ascii=False)
    return f"{endpoint}:{payload}"


class ResponseCache(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ...

    def expire(self, key: str) -> None:
        ...

    def clear(self) -> None:
        ...


class InMemoryResponseCache:
    """
    Per-process TTL cache.

    PARAMETERS:
        ttl_seconds: lifetime of an entry
        clock: monotonic seconds source (``time.monotonic`` in production)

    Expired entries are dropped lazily on read.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        lifetime = self.ttl_seconds if ttl is None else ttl
        self._entries[key] = (value, self._clock() + lifetime)

    def expire(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisResponseCache:
    """
    Redis-backed cache shared by every API process.

    Values are stored as JSON with SETEX. Redis failures are logged and
    treated as a miss so a cache outage never fails a dashboard request.
    """

    def __init__(self, client: Redis, ttl_seconds: int = DEFAULT_TTL_SECONDS, prefix: str = ""):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[Any]:
        try:
            cached = self.client.get(self._key(key))
        except RedisError as e:
            logger.warning(f"[CACHE] Redis read failed for {key}: {e}")
            return None
        if cached is None:
            return None
        return json.loads(cached)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        lifetime = self.ttl_seconds if ttl is None else ttl
        try:
            self.client.setex(self._key(key), lifetime, json.dumps(value, default=str))
        except RedisError as e:
            logger.warning(f"[CACHE] Redis write failed for {key}: {e}")

    def expire(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except RedisError as e:
            logger.warning(f"[CACHE] Redis delete failed for {key}: {e}")

    def clear(self) -> None:
        try:
            keys = list(self.client.scan_iter(match=f"{self.prefix}*"))
            if keys:
                self.client.delete(*keys)
        except RedisError as e:
            logger.warning(f"[CACHE] Redis clear failed: {e}")


async def cache_aside(cache: ResponseCache, key: str, compute: Callable[[], Awaitable[Any]]) -> Any:
    """
    Return the cached value for ``key`` or compute, store and return it.

    ``compute`` must return a JSON-serializable value. When it raises, the
    exception propagates and nothing is stored.
    """
    cached = cache.get(key)
    if cached is not None:
        logger.debug(f"[CACHE] Hit {key}")
        return cached

    value = await compute()
    cache.set(key, value)
    logger.debug(f"[CACHE] Stored {key}")
    return value
