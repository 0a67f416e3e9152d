"""
Operations Service
==================

Kitchen and delivery performance plus cancellation analysis.

WHAT: Production/delivery averages, throughput and cancellation rates.
WHY:  Cancellations are the subject here, so operational-metrics and
      cancellation-metrics compile their filters with the
      including-cancelled policy (trailing 30 calendar days by default).
      operational-by-hour uses the default compiler like every other
      widget, so its ``cancelamentos`` column is always 0.

Efficiency score (target production time of 20 minutes):

    eficiencia_geral = max(0, 1 - (avg_production - 1200) / 1200)
                       0.8 when there is no production time

References:
- restaurant_analytics/routers/operations.py: HTTP endpoints
"""

import json
import logging
from typing import Any, Dict, List

from restaurant_analytics.filters import FilterSet
from restaurant_analytics.filters.compiler import CANCELLED_STATUS_SQL
from restaurant_analytics.services.base import AnalyticsService
from restaurant_analytics.services.formatters import to_float, to_int

logger = logging.getLogger(__name__)

TARGET_PRODUCTION_SECONDS = 1200
DEFAULT_EFFICIENCY = 0.8

IS_CANCELLED = f"sale_status_desc IN ({CANCELLED_STATUS_SQL})"

OPERATIONAL_METRICS_QUERY = """
    SELECT
        AVG(s.production_seconds) AS tempo_medio_producao,
        AVG(s.delivery_seconds) AS tempo_medio_entrega,
        COUNT(CASE WHEN s.{is_cancelled} THEN 1 END)::decimal
            / NULLIF(COUNT(*), 0) AS taxa_cancelamento,
        COUNT(CASE WHEN s.{is_cancelled} THEN 1 END) AS total_cancelamentos,
        COUNT(*) / GREATEST(EXTRACT(EPOCH FROM (MAX(s.created_at) - MIN(s.created_at))) / 3600, 1)
            AS pedidos_por_hora,
        CASE
            WHEN AVG(s.production_seconds) > 0
            THEN GREATEST(0, 1 - (AVG(s.production_seconds) - {target}) / {target})
            ELSE {default_efficiency}
        END AS eficiencia_geral
    FROM sales s
    JOIN channels c ON s.channel_id = c.id
    JOIN stores st ON s.store_id = st.id
    {where}
"""

OPERATIONAL_BY_HOUR_QUERY = """
    SELECT
        EXTRACT(HOUR FROM s.created_at) AS hora,
        AVG(s.production_seconds) AS tempo_medio_producao,
        AVG(s.delivery_seconds) AS tempo_medio_entrega,
        COUNT(*) AS total_pedidos,
        COUNT(CASE WHEN s.{is_cancelled} THEN 1 END) AS cancelamentos
    FROM sales s
    JOIN channels c ON s.channel_id = c.id
    JOIN stores st ON s.store_id = st.id
    {where}
    GROUP BY EXTRACT(HOUR FROM s.created_at)
    ORDER BY hora
"""

CANCELLATION_METRICS_QUERY = """
    WITH base_data AS (
        SELECT s.created_at, s.sale_status_desc, s.discount_reason
        FROM sales s
        JOIN channels c ON s.channel_id = c.id
        JOIN stores st ON s.store_id = st.id
        {where}
    ),
    metricas_gerais AS (
        SELECT
            COUNT(*) AS total_pedidos,
            COUNT(CASE WHEN {is_cancelled} THEN 1 END) AS total_cancelamentos,
            COUNT(CASE WHEN {is_cancelled} THEN 1 END)::decimal
                / NULLIF(COUNT(*), 0) AS taxa_cancelamento_geral
        FROM base_data
    ),
    cancelamentos_por_motivo AS (
        SELECT
            COALESCE(discount_reason, 'Sem motivo informado') AS motivo,
            COUNT(*) AS quantidade
        FROM base_data
        WHERE {is_cancelled}
        GROUP BY discount_reason
        ORDER BY quantidade DESC
        LIMIT 10
    ),
    cancelamentos_por_hora AS (
        SELECT
            EXTRACT(HOUR FROM created_at)::integer AS hora,
            COUNT(*) AS total_hora,
            COUNT(CASE WHEN {is_cancelled} THEN 1 END) AS cancelamentos_hora,
            COUNT(CASE WHEN {is_cancelled} THEN 1 END)::decimal
                / NULLIF(COUNT(*), 0) AS taxa_cancelamento
        FROM base_data
        GROUP BY EXTRACT(HOUR FROM created_at)
        ORDER BY hora
    )
    SELECT
        mg.total_pedidos,
        mg.total_cancelamentos,
        mg.taxa_cancelamento_geral,
        COALESCE(
            (SELECT json_agg(json_build_object('motivo', motivo, 'quantidade', quantidade))
             FROM cancelamentos_por_motivo),
            '[]'::json
        ) AS cancelamentos_por_motivo,
        COALESCE(
            (SELECT json_agg(json_build_object(
                'hora', hora,
                'total_hora', total_hora,
                'cancelamentos_hora', cancelamentos_hora,
                'taxa_cancelamento', taxa_cancelamento
             ) ORDER BY hora)
             FROM cancelamentos_por_hora),
            '[]'::json
        ) AS cancelamentos_por_hora
    FROM metricas_gerais mg
"""


def json_list(value: Any) -> List[Dict[str, Any]]:
    """
    Decode a ``json_agg`` column.

    Untyped ``text()`` queries hand JSON back as the raw string on asyncpg,
    already decoded on other drivers.
    """
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return list(value)


class OperationsService(AnalyticsService):
    """Operational performance and cancellations."""

    async def operational_metrics(self, filters: FilterSet) -> Dict[str, Any]:
        where = self.where_including_cancelled(filters)
        query = OPERATIONAL_METRICS_QUERY.format(
            where=where.text,
            is_cancelled=IS_CANCELLED,
            target=TARGET_PRODUCTION_SECONDS,
            default_efficiency=DEFAULT_EFFICIENCY,
        )
        row = await self.fetch_one("operational-metrics", query, where.params)
        return {
            "tempo_medio_producao": to_float(row.get("tempo_medio_producao")),
            "tempo_medio_entrega": to_float(row.get("tempo_medio_entrega")),
            "taxa_cancelamento": to_float(row.get("taxa_cancelamento")),
            "total_cancelamentos": to_int(row.get("total_cancelamentos")),
            "pedidos_por_hora": to_float(row.get("pedidos_por_hora")),
            "eficiencia_geral": to_float(row.get("eficiencia_geral", DEFAULT_EFFICIENCY)),
        }

    async def operational_by_hour(self, filters: FilterSet) -> List[Dict[str, Any]]:
        where = self.where(filters)
        query = OPERATIONAL_BY_HOUR_QUERY.format(where=where.text, is_cancelled=IS_CANCELLED)
        rows = await self.fetch_all("operational-by-hour", query, where.params)
        return [
            {
                "hora": to_int(row["hora"]),
                "tempo_medio_producao": to_int(row["tempo_medio_producao"]),
                "tempo_medio_entrega": to_int(row["tempo_medio_entrega"]),
                "total_pedidos": to_int(row["total_pedidos"]),
                "cancelamentos": to_int(row["cancelamentos"]),
            }
            for row in rows
        ]

    async def cancellation_metrics(self, filters: FilterSet) -> Dict[str, Any]:
        """Totals, overall rate, top 10 reasons and the per-hour breakdown."""
        where = self.where_including_cancelled(filters)
        logger.debug(f"[OPERATIONS] Cancellation filters: {where.text} {where.params}")
        query = CANCELLATION_METRICS_QUERY.format(where=where.text, is_cancelled=IS_CANCELLED)
        row = await self.fetch_one("cancellation-metrics", query, where.params)
        return {
            "total_pedidos": to_int(row.get("total_pedidos")),
            "total_cancelamentos": to_int(row.get("total_cancelamentos")),
            "taxa_cancelamento_geral": to_float(row.get("taxa_cancelamento_geral")),
            "cancelamentos_por_motivo": [
                {"motivo": item["motivo"], "quantidade": to_int(item["quantidade"])}
                for item in json_list(row.get("cancelamentos_por_motivo"))
            ],
            "cancelamentos_por_hora": [
                {
                    "hora": to_int(item["hora"]),
                    "total_hora": to_int(item["total_hora"]),
                    "cancelamentos_hora": to_int(item["cancelamentos_hora"]),
                    "taxa_cancelamento": to_float(item["taxa_cancelamento"]),
                }
                for item in json_list(row.get("cancelamentos_por_hora"))
            ],
        }
