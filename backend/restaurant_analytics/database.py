"""Database engine and query execution.

WHAT:
    Creates the async SQLAlchemy engine (asyncpg driver) and exposes a small
    QueryEngine that runs SQL with positional ``$1..$N`` placeholders.

WHY:
    - The filter compiler emits positional placeholders so its parameter list
      can be checked against the text (the Nth ``$N`` is the Nth value).
    - ``sqlalchemy.text()`` binds by name, so the engine rewrites ``$N`` to
      ``:pN`` right before execution.
    - Each query gets its own pooled connection, so independent aggregates
      can be awaited concurrently with ``asyncio.gather``.

ARCHITECTURE:
    ┌────────────────────┐
    │  routers / services │  fragment = compile_default(filters)
    └─────────┬──────────┘
              │ fetch_all(sql, params)
    ┌─────────▼──────────┐
    │ SqlAlchemyQueryEngine│  $N -> :pN, text(), one connection per call
    └─────────┬──────────┘
    ┌─────────▼──────────┐
    │  AsyncEngine        │  postgresql+asyncpg, pooled
    └────────────────────┘

USAGE:
    from restaurant_analytics.deps import get_query_engine

    @router.get("/example")
    async def example(engine: QueryEngine = Depends(get_query_engine)):
        return await engine.fetch_all("SELECT COUNT(*) AS n FROM sales s WHERE s.store_id = $1", [5])

REFERENCES:
    - https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html
    - restaurant_analytics/filters/builder.py (producer of the placeholders)
"""

import logging
import re
from typing import Any, Dict, List, Optional, Protocol, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .deps import Settings, get_settings
from .errors import QueryExecutionError

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\$(\d+)")


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

def _get_database_url(settings: Settings) -> str:
    """Get DATABASE_URL from settings.

    Raises:
        RuntimeError: If DATABASE_URL is not configured
    """
    if not settings.DATABASE_URL:
        raise RuntimeError(
            "DATABASE_URL is not set. "
            "Ensure backend/.env is loaded or env var is exported."
        )
    return settings.DATABASE_URL


def _get_async_database_url(sync_url: str) -> str:
    """Convert a plain PostgreSQL URL to the asyncpg driver format.

    Args:
        sync_url: Standard PostgreSQL URL (postgresql://)

    Returns:
        Async-compatible URL (postgresql+asyncpg://)
    """
    if sync_url.startswith("postgresql://"):
        return sync_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif sync_url.startswith("postgres://"):
        # Heroku-style URL
        return sync_url.replace("postgres://", "postgresql+asyncpg://", 1)
    return sync_url


def to_named_params(query: str, params: Sequence[Any]) -> tuple[str, Dict[str, Any]]:
    """
    Rewrite ``$N`` placeholders to ``:pN`` binds for ``sqlalchemy.text()``.

    Raises ValueError when the text references a placeholder with no value,
    which would mean the fragment and its parameter list are out of sync.

    Example:
        >>> to_named_params("WHERE st.id = $1 LIMIT $2", [5, 10])
        ('WHERE st.id = :p1 LIMIT :p2', {'p1': 5, 'p2': 10})
    """
    referenced = {int(n) for n in _PLACEHOLDER_RE.findall(query)}
    if referenced and max(referenced) > len(params):
        raise ValueError(
            f"Query references ${max(referenced)} but only {len(params)} parameter(s) were bound"
        )

    named_query = _PLACEHOLDER_RE.sub(lambda m: f":p{m.group(1)}", query)
    named_params = {f"p{index}": value for index, value in enumerate(params, start=1)}
    return named_query, named_params


# =============================================================================
# QUERY ENGINE
# =============================================================================

class QueryEngine(Protocol):
    """Anything that executes ``(query, positional params) -> rows``."""

    async def fetch_all(self, query: str, params: Sequence[Any] = (), endpoint: str = "") -> List[Dict[str, Any]]:
        ...

    async def fetch_one(self, query: str, params: Sequence[Any] = (), endpoint: str = "") -> Dict[str, Any]:
        ...


class SqlAlchemyQueryEngine:
    """QueryEngine on top of a SQLAlchemy AsyncEngine.

    Driver errors are logged with the endpoint name and re-raised as
    QueryExecutionError; nothing is retried.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def fetch_all(self, query: str, params: Sequence[Any] = (), endpoint: str = "") -> List[Dict[str, Any]]:
        named_query, named_params = to_named_params(query, params)
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text(named_query), named_params)
                return [dict(row) for row in result.mappings().all()]
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"[QUERY] {endpoint or 'query'} failed: {e}")
            raise QueryExecutionError(
                endpoint=endpoint,
                message="Erro ao consultar o banco de dados",
                details=str(getattr(e, "orig", None) or e),
            ) from e

    async def fetch_one(self, query: str, params: Sequence[Any] = (), endpoint: str = "") -> Dict[str, Any]:
        """First row, or an empty dict when the query returns nothing."""
        rows = await self.fetch_all(query, params, endpoint=endpoint)
        return rows[0] if rows else {}


# =============================================================================
# ENGINE LIFECYCLE
# =============================================================================

def create_engine_from_settings(settings: Optional[Settings] = None) -> AsyncEngine:
    """Create the pooled async engine.

    Pool settings mirror production needs:
    - pool_size / max_overflow: concurrent dashboard widgets fan out queries
    - pool_recycle: recreate connections after 1 hour
    - pool_pre_ping: validate connections before use
    """
    settings = settings or get_settings()
    url = _get_async_database_url(_get_database_url(settings))
    return create_async_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=3600,
        pool_pre_ping=True,
        echo=settings.DB_ECHO,
    )

