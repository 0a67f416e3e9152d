"""
Filter options router
---------------------
Purpose:
- Feed the dashboard's store / channel / sub-brand dropdowns.
Design choices:
- The option lists rarely change, so the response is cached like the widgets.
"""

from fastapi import APIRouter, Depends

from restaurant_analytics.cache import ResponseCache, cache_aside, make_cache_key
from restaurant_analytics.database import QueryEngine
from restaurant_analytics.deps import get_cache, get_query_engine
from restaurant_analytics.services.filter_options_service import FilterOptionsService

router = APIRouter(prefix="/api", tags=["filters"])


@router.get("/filter-options")
async def get_filter_options(
    engine: QueryEngine = Depends(get_query_engine),
    cache: ResponseCache = Depends(get_cache),
):
    """All stores, channels and sub-brands, each ordered by name."""
    service = FilterOptionsService(engine)
    return await cache_aside(cache, make_cache_key("filter-options"), service.get_filter_options)
