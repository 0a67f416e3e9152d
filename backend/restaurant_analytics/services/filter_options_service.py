"""Stores, channels and sub-brands for the dashboard's filter dropdowns."""

import asyncio
import logging
from typing import Any, Dict, List

from restaurant_analytics.services.base import AnalyticsService

logger = logging.getLogger(__name__)

STORES_QUERY = "SELECT id, name, city, state, is_active FROM stores ORDER BY name"
CHANNELS_QUERY = "SELECT id, name, type FROM channels ORDER BY name"
SUB_BRANDS_QUERY = "SELECT id, name FROM sub_brands ORDER BY name"


class FilterOptionsService(AnalyticsService):

    async def get_filter_options(self) -> Dict[str, List[Dict[str, Any]]]:
        # lookups are independent, issue them together
        stores, channels, sub_brands = await asyncio.gather(
            self.fetch_all("filter-options", STORES_QUERY, ()),
            self.fetch_all("filter-options", CHANNELS_QUERY, ()),
            self.fetch_all("filter-options", SUB_BRANDS_QUERY, ()),
        )
        logger.info(
            f"[FILTERS] Options loaded: {len(stores)} stores, "
            f"{len(channels)} channels, {len(sub_brands)} sub-brands"
        )
        return {"stores": stores, "channels": channels, "subBrands": sub_brands}
