"""Dependency providers and settings management."""

from datetime import date
from functools import lru_cache
from typing import Callable, Optional

from fastapi import Request
from pydantic_settings import BaseSettings, SettingsConfigDict

from restaurant_analytics.filters import FilterSet


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_ECHO: bool = False

    # Comma-separated list; the Vite dev server runs on 5173
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Response cache: "memory" (per process) or "redis" (shared)
    CACHE_BACKEND: str = "memory"
    CACHE_TTL_SECONDS: int = 300
    CACHE_KEY_PREFIX: str = "restaurant-analytics:"
    REDIS_URL: str = "redis://localhost:6379/0"

    SENTRY_DSN: Optional[str] = None
    ENVIRONMENT: str = "development"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def get_query_engine():
    """Shared QueryEngine for the process (created on first use)."""
    from . import state
    return state.get_query_engine()


def get_cache():
    """Shared ResponseCache for the process (created on first use)."""
    from . import state
    return state.get_cache()


def get_today() -> Callable[[], date]:
    """Clock used for calendar windows. Overridden in tests to freeze "today"."""
    return date.today


def get_filters(request: Request) -> FilterSet:
    """Filter set from the request's query string (unknown keys ignored)."""
    return FilterSet.from_mapping(request.query_params)
