"""
Products router
---------------
Purpose:
- Product rankings, add-on items, category share, seasonality and
  frequently-bought-together pairs.
Design choices:
- top-products and top-items are cached; the deeper analyses are not.
- ``limit`` is validated here (1..100) and bound as a query parameter.
"""

from datetime import date
from typing import Callable

from fastapi import APIRouter, Depends, Query

from restaurant_analytics.cache import ResponseCache, cache_aside, make_cache_key
from restaurant_analytics.database import QueryEngine
from restaurant_analytics.deps import get_cache, get_filters, get_query_engine, get_today
from restaurant_analytics.filters import FilterSet
from restaurant_analytics.services.product_service import ProductService

router = APIRouter(prefix="/api", tags=["products"])

MAX_LIMIT = 100


def get_product_service(
    engine: QueryEngine = Depends(get_query_engine),
    today: Callable[[], date] = Depends(get_today),
) -> ProductService:
    return ProductService(engine, today=today)


@router.get("/top-products")
async def top_products(
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    filters: FilterSet = Depends(get_filters),
    service: ProductService = Depends(get_product_service),
    cache: ResponseCache = Depends(get_cache),
):
    """Products ranked by revenue."""
    key = make_cache_key("top-products", {**filters.selected(), "limit": limit})
    return await cache_aside(cache, key, lambda: service.top_products(filters, limit))


@router.get("/top-items")
async def top_items(
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    filters: FilterSet = Depends(get_filters),
    service: ProductService = Depends(get_product_service),
    cache: ResponseCache = Depends(get_cache),
):
    """Add-on items (extras, toppings) ranked by revenue."""
    key = make_cache_key("top-items", {**filters.selected(), "limit": limit})
    return await cache_aside(cache, key, lambda: service.top_items(filters, limit))


@router.get("/profitable-products")
async def profitable_products(
    limit: int = Query(20, ge=1, le=MAX_LIMIT),
    filters: FilterSet = Depends(get_filters),
    service: ProductService = Depends(get_product_service),
):
    return await service.profitable_products(filters, limit)


@router.get("/product-seasonality")
async def product_seasonality(
    filters: FilterSet = Depends(get_filters),
    service: ProductService = Depends(get_product_service),
):
    """Daily totals plus the products with the largest day-to-day swing."""
    return await service.product_seasonality(filters)


@router.get("/product-combinations")
async def product_combinations(
    limit: int = Query(15, ge=1, le=MAX_LIMIT),
    filters: FilterSet = Depends(get_filters),
    service: ProductService = Depends(get_product_service),
):
    return await service.product_combinations(filters, limit)


@router.get("/category-performance")
async def category_performance(
    filters: FilterSet = Depends(get_filters),
    service: ProductService = Depends(get_product_service),
):
    return await service.category_performance(filters)
