"""
Operations router
-----------------
Purpose:
- Kitchen/delivery performance and cancellation analysis.
Design choices:
- operational-metrics and cancellation-metrics keep cancelled sales in scope
  and default to the trailing 30 days (see OperationsService).
"""

from datetime import date
from typing import Callable

from fastapi import APIRouter, Depends

from restaurant_analytics.database import QueryEngine
from restaurant_analytics.deps import get_filters, get_query_engine, get_today
from restaurant_analytics.filters import FilterSet
from restaurant_analytics.services.operations_service import OperationsService

router = APIRouter(prefix="/api", tags=["operations"])


def get_operations_service(
    engine: QueryEngine = Depends(get_query_engine),
    today: Callable[[], date] = Depends(get_today),
) -> OperationsService:
    return OperationsService(engine, today=today)


@router.get("/operational-metrics")
async def operational_metrics(
    filters: FilterSet = Depends(get_filters),
    service: OperationsService = Depends(get_operations_service),
):
    return await service.operational_metrics(filters)


@router.get("/operational-by-hour")
async def operational_by_hour(
    filters: FilterSet = Depends(get_filters),
    service: OperationsService = Depends(get_operations_service),
):
    return await service.operational_by_hour(filters)


@router.get("/cancellation-metrics")
async def cancellation_metrics(
    filters: FilterSet = Depends(get_filters),
    service: OperationsService = Depends(get_operations_service),
):
    """Cancellation totals, top reasons and hourly breakdown."""
    return await service.cancellation_metrics(filters)
