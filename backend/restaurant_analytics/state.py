"""
Application State
=================

Process-wide singletons shared across requests.

WHAT it stores:
- engine: pooled async SQLAlchemy engine
- query_engine: QueryEngine wrapping the engine
- cache: the response cache (in-memory or Redis, per CACHE_BACKEND)
- redis_client: shared Redis client when CACHE_BACKEND=redis

WHERE it's used:
- restaurant_analytics/deps.py: FastAPI dependency providers
- restaurant_analytics/main.py: disposes everything on shutdown

Design:
- Simple module-level singleton pattern, created lazily so importing the app
  (tests, tooling) never opens connections
- Redis client has its own connection pool
"""

import logging
from typing import Optional

from redis import Redis
from sqlalchemy.ext.asyncio import AsyncEngine

from restaurant_analytics.cache import InMemoryResponseCache, RedisResponseCache, ResponseCache
from restaurant_analytics.database import SqlAlchemyQueryEngine, create_engine_from_settings
from restaurant_analytics.deps import get_settings

logger = logging.getLogger(__name__)

engine: Optional[AsyncEngine] = None
query_engine: Optional[SqlAlchemyQueryEngine] = None
cache: Optional[ResponseCache] = None
redis_client: Optional[Redis] = None


def get_query_engine() -> SqlAlchemyQueryEngine:
    global engine, query_engine
    if query_engine is None:
        engine = create_engine_from_settings(get_settings())
        query_engine = SqlAlchemyQueryEngine(engine)
        logger.info("[STATE] Async database engine initialized")
    return query_engine


def get_cache() -> ResponseCache:
    global cache, redis_client
    if cache is not None:
        return cache

    settings = get_settings()
    if settings.CACHE_BACKEND == "redis":
        redis_client = Redis.from_url(settings.REDIS_URL, max_connections=20)
        cache = RedisResponseCache(
            redis_client,
            ttl_seconds=settings.CACHE_TTL_SECONDS,
            prefix=settings.CACHE_KEY_PREFIX,
        )
        logger.info("[STATE] Redis response cache initialized")
    else:
        cache = InMemoryResponseCache(ttl_seconds=settings.CACHE_TTL_SECONDS)
        logger.info(f"[STATE] In-memory response cache initialized (ttl={settings.CACHE_TTL_SECONDS}s)")
    return cache


async def shutdown() -> None:
    """Dispose the engine and close Redis; safe to call when nothing was created."""
    global engine, query_engine, cache, redis_client
    if engine is not None:
        await engine.dispose()
        logger.info("[STATE] Database engine disposed")
    if redis_client is not None:
        redis_client.close()
    engine = query_engine = cache = redis_client = None
