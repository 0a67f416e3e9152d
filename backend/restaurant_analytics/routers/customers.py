"""
Customers router
----------------
Purpose:
- Customer recency, best customers and frequency segmentation.
Design choices:
- Not cached.
"""

from datetime import date
from typing import Callable

from fastapi import APIRouter, Depends, Query

from restaurant_analytics.database import QueryEngine
from restaurant_analytics.deps import get_filters, get_query_engine, get_today
from restaurant_analytics.filters import FilterSet
from restaurant_analytics.services.customer_service import CustomerService

router = APIRouter(prefix="/api", tags=["customers"])


def get_customer_service(
    engine: QueryEngine = Depends(get_query_engine),
    today: Callable[[], date] = Depends(get_today),
) -> CustomerService:
    return CustomerService(engine, today=today)


@router.get("/customer-metrics")
async def customer_metrics(
    filters: FilterSet = Depends(get_filters),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.customer_metrics(filters)


@router.get("/top-customers")
async def top_customers(
    limit: int = Query(10, ge=1, le=100),
    filters: FilterSet = Depends(get_filters),
    service: CustomerService = Depends(get_customer_service),
):
    """Customers ranked by total spend, with days since their last purchase."""
    return await service.top_customers(filters, limit)


@router.get("/customer-segmentation")
async def customer_segmentation(
    filters: FilterSet = Depends(get_filters),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.customer_segmentation(filters)
