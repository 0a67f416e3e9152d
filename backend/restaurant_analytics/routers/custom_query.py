"""
Custom query router
-------------------
Purpose:
- Back the dashboard's "metric by dimension" explorer.
Design choices:
- POST with a JSON body; filters use the same keys as the query-string
  endpoints.
- Unknown metric or dimension names are rejected with 400 before querying.
"""

from datetime import date
from typing import Callable, List

from fastapi import APIRouter, Depends

from restaurant_analytics.database import QueryEngine
from restaurant_analytics.deps import get_query_engine, get_today
from restaurant_analytics.schemas import CustomQueryRequest, CustomQueryRow
from restaurant_analytics.services.custom_query_service import CustomQueryService

router = APIRouter(prefix="/api", tags=["custom-query"])


@router.post("/custom-query", response_model=List[CustomQueryRow])
async def custom_query(
    payload: CustomQueryRequest,
    engine: QueryEngine = Depends(get_query_engine),
    today: Callable[[], date] = Depends(get_today),
):
    service = CustomQueryService(engine, today=today)
    return await service.run(payload.metric, payload.dimension, payload.filters)
