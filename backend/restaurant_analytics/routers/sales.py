"""
Sales router
------------
Purpose:
- Overview widgets: revenue timeline, channel mix, store ranking,
  hour-of-week heatmap, payment methods and coupons.
Design choices:
- Every endpoint here is cached (cache-aside, key = endpoint + selected filters).
- Cancelled sales are always excluded.
"""

from datetime import date
from typing import Callable

from fastapi import APIRouter, Depends

from restaurant_analytics.cache import ResponseCache, cache_aside, make_cache_key
from restaurant_analytics.database import QueryEngine
from restaurant_analytics.deps import get_cache, get_filters, get_query_engine, get_today
from restaurant_analytics.filters import FilterSet
from restaurant_analytics.services.sales_service import SalesService

router = APIRouter(prefix="/api", tags=["sales"])


def get_sales_service(
    engine: QueryEngine = Depends(get_query_engine),
    today: Callable[[], date] = Depends(get_today),
) -> SalesService:
    return SalesService(engine, today=today)


@router.get("/revenue-timeline")
async def revenue_timeline(
    filters: FilterSet = Depends(get_filters),
    service: SalesService = Depends(get_sales_service),
    cache: ResponseCache = Depends(get_cache),
):
    """Daily revenue and order count, oldest day first."""
    key = make_cache_key("revenue-timeline", filters.selected())
    return await cache_aside(cache, key, lambda: service.revenue_timeline(filters))


@router.get("/channel-distribution")
async def channel_distribution(
    filters: FilterSet = Depends(get_filters),
    service: SalesService = Depends(get_sales_service),
    cache: ResponseCache = Depends(get_cache),
):
    """Revenue per channel with its share of the total."""
    key = make_cache_key("channel-distribution", filters.selected())
    return await cache_aside(cache, key, lambda: service.channel_distribution(filters))


@router.get("/store-performance")
async def store_performance(
    filters: FilterSet = Depends(get_filters),
    service: SalesService = Depends(get_sales_service),
    cache: ResponseCache = Depends(get_cache),
):
    key = make_cache_key("store-performance", filters.selected())
    return await cache_aside(cache, key, lambda: service.store_performance(filters))


@router.get("/sales-by-hour")
async def sales_by_hour(
    filters: FilterSet = Depends(get_filters),
    service: SalesService = Depends(get_sales_service),
    cache: ResponseCache = Depends(get_cache),
):
    """Orders and revenue per weekday and hour (heatmap)."""
    key = make_cache_key("sales-by-hour", filters.selected())
    return await cache_aside(cache, key, lambda: service.sales_by_hour(filters))


@router.get("/payment-methods")
async def payment_methods(
    filters: FilterSet = Depends(get_filters),
    service: SalesService = Depends(get_sales_service),
    cache: ResponseCache = Depends(get_cache),
):
    key = make_cache_key("payment-methods", filters.selected())
    return await cache_aside(cache, key, lambda: service.payment_methods(filters))


@router.get("/coupon-performance")
async def coupon_performance(
    filters: FilterSet = Depends(get_filters),
    service: SalesService = Depends(get_sales_service),
    cache: ResponseCache = Depends(get_cache),
):
    """Top 20 coupons by number of uses."""
    key = make_cache_key("coupon-performance", filters.selected())
    return await cache_aside(cache, key, lambda: service.coupon_performance(filters))
