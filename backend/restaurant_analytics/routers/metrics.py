"""
Metrics router
--------------
Purpose:
- Serve the dashboard's headline metric cards in one call.
- Current-window aggregates plus growth vs the previous equal-length window.
Design choices:
- Responses are cached for the configured TTL, keyed by the selected filters.
- Filter validation happens in the compiler; invalid values surface as 400.
"""

import logging
from datetime import date
from typing import Callable

from fastapi import APIRouter, Depends

from restaurant_analytics.cache import ResponseCache, cache_aside, make_cache_key
from restaurant_analytics.database import QueryEngine
from restaurant_analytics.deps import get_cache, get_filters, get_query_engine, get_today
from restaurant_analytics.filters import FilterSet
from restaurant_analytics.schemas import MetricsResponse
from restaurant_analytics.services.metrics_service import MetricsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["metrics"])


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(
    filters: FilterSet = Depends(get_filters),
    engine: QueryEngine = Depends(get_query_engine),
    cache: ResponseCache = Depends(get_cache),
    today: Callable[[], date] = Depends(get_today),
):
    """
    Metric cards for the filtered sales.

    Query params: startDate, endDate, period, channel, channelType, store, subBrand.
    With no time filter both windows default to the trailing 30 days.
    """
    service = MetricsService(engine, today=today)

    async def compute():
        result = await service.get_metrics(filters)
        return result.model_dump()

    return await cache_aside(cache, make_cache_key("metrics", filters.selected()), compute)
