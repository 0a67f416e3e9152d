"""
Customer Service
================

Customer recency buckets, best customers and frequency segmentation.

Customers are aliased ``cu`` so ``c`` stays the channels alias the filter
compiler emits (``c.name``, ``c.type``, ``c.id``).

Recency buckets (exclusive, by last purchase inside the filtered sales):

    clientes_ativos_7d   last purchase in the last 7 days
    clientes_ativos_15d  8..15 days ago
    clientes_ativos_30d  16..30 days ago
    clientes_ativos_90d  31..90 days ago
    clientes_inativos    more than 90 days ago
    clientes_ativos      any purchase in the last 30 days (overlaps the above)

References:
- restaurant_analytics/routers/customers.py: HTTP endpoints
"""

import logging
from typing import Any, Dict, List

from restaurant_analytics.filters import FilterSet
from restaurant_analytics.filters.compiler import CANCELLED_STATUS_SQL
from restaurant_analytics.services.base import AnalyticsService
from restaurant_analytics.services.formatters import days_since, to_float, to_int, to_iso

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER = "Cliente Não Identificado"

CUSTOMER_METRICS_QUERY = """
    WITH customer_last_purchase AS (
        SELECT
            cu.id,
            MAX(s.created_at) AS ultima_compra
        FROM customers cu
        JOIN sales s ON cu.id = s.customer_id
        JOIN channels c ON s.channel_id = c.id
        JOIN stores st ON s.store_id = st.id
        {where}
        GROUP BY cu.id
    )
    SELECT
        COUNT(DISTINCT clp.id) AS total_clientes,
        COUNT(DISTINCT CASE
            WHEN clp.ultima_compra >= NOW() - INTERVAL '7 days'
            THEN clp.id
        END) AS clientes_ativos_7d,
        COUNT(DISTINCT CASE
            WHEN clp.ultima_compra >= NOW() - INTERVAL '15 days'
             AND clp.ultima_compra < NOW() - INTERVAL '7 days'
            THEN clp.id
        END) AS clientes_ativos_15d,
        COUNT(DISTINCT CASE
            WHEN clp.ultima_compra >= NOW() - INTERVAL '30 days'
             AND clp.ultima_compra < NOW() - INTERVAL '15 days'
            THEN clp.id
        END) AS clientes_ativos_30d,
        COUNT(DISTINCT CASE
            WHEN clp.ultima_compra >= NOW() - INTERVAL '90 days'
             AND clp.ultima_compra < NOW() - INTERVAL '30 days'
            THEN clp.id
        END) AS clientes_ativos_90d,
        COUNT(DISTINCT CASE
            WHEN clp.ultima_compra < NOW() - INTERVAL '90 days'
            THEN clp.id
        END) AS clientes_inativos,
        COUNT(DISTINCT CASE
            WHEN clp.ultima_compra >= NOW() - INTERVAL '30 days'
            THEN clp.id
        END) AS clientes_ativos,
        AVG(sa.total_amount) AS ticket_medio_geral,
        CASE
            WHEN COUNT(DISTINCT clp.id) > 0
            THEN COUNT(DISTINCT sa.id)::decimal / COUNT(DISTINCT clp.id)
            ELSE 0
        END AS frequencia_media
    FROM customer_last_purchase clp
    LEFT JOIN sales sa ON clp.id = sa.customer_id
        AND sa.sale_status_desc NOT IN ({cancelled})
"""

TOP_CUSTOMERS_QUERY = """
    SELECT
        cu.id,
        cu.customer_name,
        cu.email,
        cu.phone_number,
        COUNT(DISTINCT s.id) AS total_pedidos,
        SUM(s.total_amount) AS total_gasto,
        AVG(s.total_amount) AS ticket_medio,
        MAX(s.created_at) AS ultima_compra,
        COUNT(DISTINCT st.id) AS lojas_frequentadas
    FROM customers cu
    JOIN sales s ON cu.id = s.customer_id
    JOIN channels c ON s.channel_id = c.id
    JOIN stores st ON s.store_id = st.id
    {where}
    GROUP BY cu.id, cu.customer_name, cu.email, cu.phone_number
    ORDER BY total_gasto DESC
    LIMIT {limit}
"""

CUSTOMER_SEGMENTATION_QUERY = """
    WITH customer_stats AS (
        SELECT
            cu.id,
            COUNT(DISTINCT s.id) AS total_pedidos,
            SUM(s.total_amount) AS total_gasto,
            CASE
                WHEN COUNT(DISTINCT s.id) >= 10 THEN 'VIP'
                WHEN COUNT(DISTINCT s.id) >= 5 THEN 'Frequente'
                WHEN COUNT(DISTINCT s.id) >= 2 THEN 'Ocasional'
                ELSE 'Novo'
            END AS segmento,
            CASE
                WHEN MAX(s.created_at) >= NOW() - INTERVAL '7 days' THEN 'Muito Ativo'
                WHEN MAX(s.created_at) >= NOW() - INTERVAL '15 days' THEN 'Ativo'
                WHEN MAX(s.created_at) >= NOW() - INTERVAL '30 days' THEN 'Inativo Recente'
                ELSE 'Inativo'
            END AS status_ativo
        FROM customers cu
        JOIN sales s ON cu.id = s.customer_id
        JOIN channels c ON s.channel_id = c.id
        JOIN stores st ON s.store_id = st.id
        {where}
        GROUP BY cu.id
    )
    SELECT
        segmento,
        status_ativo,
        COUNT(*) AS quantidade_clientes,
        AVG(total_pedidos) AS media_pedidos,
        AVG(total_gasto) AS media_gasto
    FROM customer_stats
    GROUP BY segmento, status_ativo
    ORDER BY segmento, status_ativo
"""

RECENCY_COUNTS = (
    "total_clientes",
    "clientes_ativos_7d",
    "clientes_ativos_15d",
    "clientes_ativos_30d",
    "clientes_ativos_90d",
    "clientes_inativos",
    "clientes_ativos",
)


class CustomerService(AnalyticsService):
    """Customer analytics over non-cancelled sales."""

    async def customer_metrics(self, filters: FilterSet) -> Dict[str, Any]:
        """
        Recency buckets for the customers with a purchase matching ``filters``.

        ``ticket_medio_geral`` and ``frequencia_media`` look at all of those
        customers' non-cancelled sales, not just the filtered ones.
        """
        where = self.where(filters)
        query = CUSTOMER_METRICS_QUERY.format(where=where.text, cancelled=CANCELLED_STATUS_SQL)
        row = await self.fetch_one("customer-metrics", query, where.params)

        result: Dict[str, Any] = {key: to_int(row.get(key)) for key in RECENCY_COUNTS}
        result["ticket_medio_geral"] = to_float(row.get("ticket_medio_geral"))
        result["frequencia_media"] = to_float(row.get("frequencia_media"))
        return result

    async def top_customers(self, filters: FilterSet, limit: int = 10) -> List[Dict[str, Any]]:
        where = self.where(filters)
        query = TOP_CUSTOMERS_QUERY.format(where=where.text, limit=where.placeholder())
        rows = await self.fetch_all("top-customers", query, [*where.params, limit])

        today = self.today()
        return [
            {
                "id": row["id"],
                "name": row["customer_name"] or UNKNOWN_CUSTOMER,
                "email": row["email"],
                "phone": row["phone_number"],
                "totalPedidos": to_int(row["total_pedidos"]),
                "totalGasto": to_float(row["total_gasto"]),
                "ticketMedio": to_float(row["ticket_medio"]),
                "ultimaCompra": to_iso(row["ultima_compra"]),
                "lojasFrequentadas": to_int(row["lojas_frequentadas"]),
                "diasDesdeUltimaCompra": days_since(row["ultima_compra"], today),
            }
            for row in rows
        ]

    async def customer_segmentation(self, filters: FilterSet) -> List[Dict[str, Any]]:
        """Customers bucketed by order count (VIP/Frequente/...) and recency."""
        where = self.where(filters)
        rows = await self.fetch_all(
            "customer-segmentation", CUSTOMER_SEGMENTATION_QUERY.format(where=where.text), where.params
        )
        return [
            {
                "segmento": row["segmento"],
                "status_ativo": row["status_ativo"],
                "quantidade_clientes": to_int(row["quantidade_clientes"]),
                "media_pedidos": to_float(row["media_pedidos"]),
                "media_gasto": to_float(row["media_gasto"]),
            }
            for row in rows
        ]
