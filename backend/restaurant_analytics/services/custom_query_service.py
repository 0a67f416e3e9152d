"""
Custom Query Service
====================

"Metric by dimension" chart for the dashboard's free-form explorer.

WHAT: SELECT <dimension> AS label, <metric> AS value ... GROUP BY label,
      top 20 by value.
WHY:  Metric and dimension names come from the request body, so they are
      looked up in fixed allowlists and never interpolated directly. An
      unknown name fails with InvalidQueryError before any query runs.

Joins are added only when the metric or dimension needs them:

    product / category / items_sold -> product_sales ps, products p, categories cat
    payment_method                  -> payments pay, payment_types pt

References:
- restaurant_analytics/routers/custom_query.py: POST /api/custom-query
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from restaurant_analytics.errors import InvalidQueryError
from restaurant_analytics.filters import FilterSet
from restaurant_analytics.services.base import AnalyticsService
from restaurant_analytics.services.formatters import to_optional_float

logger = logging.getLogger(__name__)

METRICS = {
    "revenue": "SUM(s.total_amount)",
    "orders": "COUNT(DISTINCT s.id)",
    "avg_ticket": "AVG(s.total_amount)",
    "customers": "COUNT(DISTINCT s.customer_id)",
    "items_sold": "SUM(ps.quantity)",
    "production_time": "AVG(s.production_seconds)",
    "delivery_time": "AVG(s.delivery_seconds)",
}

DIMENSIONS = {
    "channel": "c.name",
    "store": "st.name",
    "product": "p.name",
    "category": "cat.name",
    "weekday": "EXTRACT(DOW FROM s.created_at)",
    "hour": "EXTRACT(HOUR FROM s.created_at)",
    "payment_method": "pt.description",
}

BASE_FROM = "FROM sales s JOIN channels c ON s.channel_id = c.id JOIN stores st ON s.store_id = st.id"

PRODUCT_JOINS = (
    " JOIN product_sales ps ON s.id = ps.sale_id"
    " JOIN products p ON ps.product_id = p.id"
    " LEFT JOIN categories cat ON p.category_id = cat.id"
)

PAYMENT_JOINS = (
    " JOIN payments pay ON s.id = pay.sale_id"
    " JOIN payment_types pt ON pay.payment_type_id = pt.id"
)

CUSTOM_QUERY = """
    SELECT
        {dimension} AS label,
        {metric} AS value
    {from_clause}
    {where}
    GROUP BY {dimension}
    ORDER BY value DESC NULLS LAST
    LIMIT 20
"""

INVALID_METRIC_OR_DIMENSION = "Métrica ou dimensão inválida"


def build_from_clause(metric: str, dimension: str) -> str:
    from_clause = BASE_FROM
    if dimension in ("product", "category") or metric == "items_sold":
        from_clause += PRODUCT_JOINS
    if dimension == "payment_method":
        from_clause += PAYMENT_JOINS
    return from_clause


class CustomQueryService(AnalyticsService):

    async def run(
        self,
        metric: str,
        dimension: str,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Top 20 ``dimension`` values by ``metric`` for the filtered sales.

        Raises:
            InvalidQueryError: metric or dimension is not in the allowlist
            InvalidFilterError: a filter value does not conform
        """
        if metric not in METRICS or dimension not in DIMENSIONS:
            logger.warning(f"[CUSTOM_QUERY] Rejected metric={metric!r} dimension={dimension!r}")
            raise InvalidQueryError(INVALID_METRIC_OR_DIMENSION)

        where = self.where(FilterSet.from_mapping(filters or {}))
        query = CUSTOM_QUERY.format(
            dimension=DIMENSIONS[dimension],
            metric=METRICS[metric],
            from_clause=build_from_clause(metric, dimension),
            where=where.text,
        )
        rows = await self.fetch_all("custom-query", query, where.params)
        return [{"label": row["label"], "value": to_optional_float(row["value"])} for row in rows]
