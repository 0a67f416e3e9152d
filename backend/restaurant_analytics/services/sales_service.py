"""
Sales Service
=============

Sales breakdowns for the overview widgets: daily revenue, channels, stores,
hour-of-week heatmap, payment methods and coupons.

All queries join ``sales s``, ``channels c`` and ``stores st`` so the filter
compiler's aliases resolve, and exclude cancelled sales.

References:
- restaurant_analytics/routers/sales.py: HTTP endpoints (cached)
"""

import logging
from typing import Any, Dict, List

from restaurant_analytics.filters import FilterSet
from restaurant_analytics.services.base import AnalyticsService
from restaurant_analytics.services.formatters import (
    format_day_month,
    share_percent,
    to_float,
    to_int,
    weekday_label,
)

logger = logging.getLogger(__name__)

SALES_JOINS = """
    FROM sales s
    JOIN channels c ON s.channel_id = c.id
    JOIN stores st ON s.store_id = st.id
"""

REVENUE_TIMELINE_QUERY = """
    SELECT
        DATE_TRUNC('day', s.created_at) AS date,
        SUM(s.total_amount) AS value,
        COUNT(*) AS pedidos
""" + SALES_JOINS + """
    {where}
    GROUP BY DATE_TRUNC('day', s.created_at)
    ORDER BY date ASC
"""

CHANNEL_DISTRIBUTION_QUERY = """
    SELECT
        c.name,
        c.type,
        COUNT(*) AS pedidos,
        SUM(s.total_amount) AS receita,
        AVG(s.total_amount) AS ticket_medio
""" + SALES_JOINS + """
    {where}
    GROUP BY c.id, c.name, c.type
    ORDER BY receita DESC
"""

STORE_PERFORMANCE_QUERY = """
    SELECT
        st.name,
        st.city,
        st.state,
        COUNT(*) AS pedidos,
        SUM(s.total_amount) AS receita,
        AVG(s.total_amount) AS ticket_medio,
        AVG(s.production_seconds) AS tempo_medio_producao
""" + SALES_JOINS + """
    {where}
    GROUP BY st.id, st.name, st.city, st.state
    ORDER BY receita DESC
"""

SALES_BY_HOUR_QUERY = """
    SELECT
        EXTRACT(DOW FROM s.created_at) AS dia_semana,
        EXTRACT(HOUR FROM s.created_at) AS hora,
        COUNT(*) AS pedidos,
        SUM(s.total_amount) AS receita
""" + SALES_JOINS + """
    {where}
    GROUP BY dia_semana, hora
    ORDER BY dia_semana, hora
"""

PAYMENT_METHODS_QUERY = """
    SELECT
        pt.description AS metodo,
        p.is_online,
        COUNT(DISTINCT p.sale_id) AS transacoes,
        SUM(p.value) AS valor_total
    FROM payments p
    JOIN payment_types pt ON p.payment_type_id = pt.id
    JOIN sales s ON p.sale_id = s.id
    JOIN channels c ON s.channel_id = c.id
    JOIN stores st ON s.store_id = st.id
    {where}
    GROUP BY pt.description, p.is_online
    ORDER BY valor_total DESC
"""

# coupons are aliased cp so c stays the channels alias used by the filters
COUPON_PERFORMANCE_QUERY = """
    SELECT
        cp.code,
        cp.discount_type,
        COUNT(DISTINCT cs.sale_id) AS usos,
        SUM(cs.value) AS desconto_total,
        AVG(s.total_amount) AS ticket_medio_com_cupom
    FROM coupon_sales cs
    JOIN coupons cp ON cs.coupon_id = cp.id
    JOIN sales s ON cs.sale_id = s.id
    JOIN channels c ON s.channel_id = c.id
    JOIN stores st ON s.store_id = st.id
    {where}
    GROUP BY cp.id, cp.code, cp.discount_type
    ORDER BY usos DESC
    LIMIT 20
"""

CHANNEL_TYPE_LABELS = {"P": "Presencial", "D": "Delivery"}


class SalesService(AnalyticsService):
    """Sales breakdowns over non-cancelled sales."""

    async def revenue_timeline(self, filters: FilterSet) -> List[Dict[str, Any]]:
        where = self.where(filters)
        rows = await self.fetch_all("revenue-timeline", REVENUE_TIMELINE_QUERY.format(where=where.text), where.params)
        return [
            {
                "date": format_day_month(row["date"]),
                "value": to_float(row["value"]),
                "pedidos": to_int(row["pedidos"]),
            }
            for row in rows
        ]

    async def channel_distribution(self, filters: FilterSet) -> List[Dict[str, Any]]:
        """Revenue per channel with each channel's share of the total (whole percent)."""
        where = self.where(filters)
        rows = await self.fetch_all(
            "channel-distribution", CHANNEL_DISTRIBUTION_QUERY.format(where=where.text), where.params
        )
        total = sum(to_float(row["receita"]) for row in rows)
        return [
            {
                "name": row["name"],
                "type": CHANNEL_TYPE_LABELS.get(row["type"], "Delivery"),
                "pedidos": to_int(row["pedidos"]),
                "receita": to_float(row["receita"]),
                "ticketMedio": to_float(row["ticket_medio"]),
                "percentual": share_percent(to_float(row["receita"]), total),
            }
            for row in rows
        ]

    async def store_performance(self, filters: FilterSet) -> List[Dict[str, Any]]:
        where = self.where(filters)
        rows = await self.fetch_all(
            "store-performance", STORE_PERFORMANCE_QUERY.format(where=where.text), where.params
        )
        return [
            {
                "name": row["name"],
                "city": row["city"],
                "state": row["state"],
                "pedidos": to_int(row["pedidos"]),
                "receita": to_float(row["receita"]),
                "ticketMedio": to_float(row["ticket_medio"]),
                "tempoMedioProducao": to_int(row["tempo_medio_producao"]),
            }
            for row in rows
        ]

    async def sales_by_hour(self, filters: FilterSet) -> List[Dict[str, Any]]:
        where = self.where(filters)
        rows = await self.fetch_all("sales-by-hour", SALES_BY_HOUR_QUERY.format(where=where.text), where.params)
        return [
            {
                "diaSemana": weekday_label(row["dia_semana"]),
                "hora": to_int(row["hora"]),
                "pedidos": to_int(row["pedidos"]),
                "receita": to_float(row["receita"]),
            }
            for row in rows
        ]

    async def payment_methods(self, filters: FilterSet) -> List[Dict[str, Any]]:
        where = self.where(filters)
        rows = await self.fetch_all("payment-methods", PAYMENT_METHODS_QUERY.format(where=where.text), where.params)
        return [
            {
                "metodo": row["metodo"],
                "online": row["is_online"],
                "transacoes": to_int(row["transacoes"]),
                "valor": to_float(row["valor_total"]),
            }
            for row in rows
        ]

    async def coupon_performance(self, filters: FilterSet) -> List[Dict[str, Any]]:
        where = self.where(filters)
        rows = await self.fetch_all(
            "coupon-performance", COUPON_PERFORMANCE_QUERY.format(where=where.text), where.params
        )
        return [
            {
                "code": row["code"],
                "tipo": "Percentual" if row["discount_type"] == "p" else "Fixo",
                "usos": to_int(row["usos"]),
                "descontoTotal": to_float(row["desconto_total"]),
                "ticketMedio": to_float(row["ticket_medio_com_cupom"]),
            }
            for row in rows
        ]
