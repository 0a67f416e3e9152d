from datetime import date
from typing import Any, Callable, Dict, List, Sequence

from restaurant_analytics.database import QueryEngine
from restaurant_analytics.filters import FilterSet, PredicateFragment, compile_default, compile_including_cancelled


class AnalyticsService:
    """Shared wiring for the analytics services: a query engine and a clock."""

    def __init__(self, engine: QueryEngine, today: Callable[[], date] = date.today):
        self.engine = engine
        self.today = today

    def where(self, filters: FilterSet) -> PredicateFragment:
        """WHERE fragment excluding cancelled sales."""
        return compile_default(filters, today=self.today)

    def where_including_cancelled(self, filters: FilterSet) -> PredicateFragment:
        """WHERE fragment keeping cancelled sales (trailing 30 days by default)."""
        return compile_including_cancelled(filters, today=self.today)

    async def fetch_all(self, endpoint: str, query: str, params: Sequence[Any]) -> List[Dict[str, Any]]:
        return await self.engine.fetch_all(query, params, endpoint=endpoint)

    async def fetch_one(self, endpoint: str, query: str, params: Sequence[Any]) -> Dict[str, Any]:
        return await self.engine.fetch_one(query, params, endpoint=endpoint)
