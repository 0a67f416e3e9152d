"""
Product Service
===============

Product-level analytics: rankings, add-on items, category share, day-by-day
seasonality and frequently-bought-together pairs.

Every query starts from ``product_sales ps`` and joins back to ``sales s``,
``channels c`` and ``stores st`` so the compiled filters apply unchanged.
Endpoints that take a ``limit`` bind it as the parameter right after the
filter parameters (``LIMIT $N``).

References:
- restaurant_analytics/routers/products.py: HTTP endpoints
"""

import asyncio
import logging
from typing import Any, Dict, List

from restaurant_analytics.filters import FilterSet
from restaurant_analytics.services.base import AnalyticsService
from restaurant_analytics.services.formatters import (
    format_br_date,
    to_float,
    to_int,
    to_optional_float,
)

logger = logging.getLogger(__name__)

PRODUCT_SALES_JOINS = """
    JOIN sales s ON ps.sale_id = s.id
    JOIN channels c ON s.channel_id = c.id
    JOIN stores st ON s.store_id = st.id
"""

TOP_PRODUCTS_QUERY = """
    SELECT
        p.name,
        cat.name AS categoria,
        COUNT(DISTINCT ps.sale_id) AS num_vendas,
        SUM(ps.quantity) AS quantidade_total,
        SUM(ps.total_price) AS receita_total,
        AVG(ps.total_price) AS preco_medio
    FROM product_sales ps
    JOIN products p ON ps.product_id = p.id
    LEFT JOIN categories cat ON p.category_id = cat.id
""" + PRODUCT_SALES_JOINS + """
    {where}
    GROUP BY p.id, p.name, cat.name
    ORDER BY receita_total DESC
    LIMIT {limit}
"""

TOP_ITEMS_QUERY = """
    SELECT
        i.name,
        og.name AS grupo_opcao,
        COUNT(*) AS vezes_adicionado,
        SUM(ips.quantity) AS quantidade_total,
        SUM(ips.price) AS receita_total
    FROM item_product_sales ips
    JOIN items i ON ips.item_id = i.id
    LEFT JOIN option_groups og ON ips.option_group_id = og.id
    JOIN product_sales ps ON ips.product_sale_id = ps.id
""" + PRODUCT_SALES_JOINS + """
    {where}
    GROUP BY i.id, i.name, og.name
    ORDER BY receita_total DESC
    LIMIT {limit}
"""

PROFITABLE_PRODUCTS_QUERY = """
    WITH produto_dados AS (
        SELECT
            p.id,
            p.name,
            COALESCE(cat.name, 'Sem Categoria') AS categoria,
            COUNT(DISTINCT ps.sale_id) AS vendas,
            SUM(ps.quantity) AS quantidade,
            SUM(ps.total_price) AS receita,
            AVG(ps.total_price) AS preco_medio
        FROM product_sales ps
        JOIN products p ON ps.product_id = p.id
        LEFT JOIN categories cat ON p.category_id = cat.id
""" + PRODUCT_SALES_JOINS + """
        {where}
        GROUP BY p.id, p.name, cat.name
    ),
    categoria_receitas AS (
        SELECT categoria, SUM(receita) AS receita_categoria
        FROM produto_dados
        GROUP BY categoria
    )
    SELECT
        pd.*,
        COALESCE(pd.receita / NULLIF(cr.receita_categoria, 0), 0) AS percentual_categoria,
        ROW_NUMBER() OVER (ORDER BY pd.receita DESC) AS ranking
    FROM produto_dados pd
    LEFT JOIN categoria_receitas cr ON pd.categoria = cr.categoria
    ORDER BY pd.receita DESC
    LIMIT {limit}
"""

SEASONALITY_TIME_SERIES_QUERY = """
    SELECT
        DATE_TRUNC('day', s.created_at) AS periodo,
        COUNT(DISTINCT ps.product_id) AS produtos_unicos,
        SUM(ps.quantity) AS quantidade_total,
        SUM(ps.total_price) AS receita_total,
        COUNT(DISTINCT ps.sale_id) AS total_pedidos
    FROM product_sales ps
    JOIN products p ON ps.product_id = p.id
""" + PRODUCT_SALES_JOINS + """
    {where}
    GROUP BY DATE_TRUNC('day', s.created_at)
    ORDER BY periodo
"""

# products whose daily quantity swings the most relative to their mean
SEASONAL_PRODUCTS_QUERY = """
    WITH produto_periodos AS (
        SELECT
            p.name AS nome,
            DATE_TRUNC('day', s.created_at) AS periodo,
            SUM(ps.quantity) AS quantidade
        FROM product_sales ps
        JOIN products p ON ps.product_id = p.id
""" + PRODUCT_SALES_JOINS + """
        {where}
        GROUP BY p.name, DATE_TRUNC('day', s.created_at)
    ),
    produto_stats AS (
        SELECT
            nome,
            AVG(quantidade) AS media,
            STDDEV(quantidade) AS desvio,
            MAX(quantidade) AS maximo,
            MIN(quantidade) AS minimo
        FROM produto_periodos
        GROUP BY nome
        HAVING COUNT(*) >= 2 AND STDDEV(quantidade) > 0
    )
    SELECT
        nome,
        COALESCE((maximo - minimo) / NULLIF(media, 0), 0) AS variacao
    FROM produto_stats
    WHERE media > 0
    ORDER BY variacao DESC
    LIMIT 10
"""

PRODUCT_COMBINATIONS_QUERY = """
    WITH pedidos_validos AS (
        SELECT DISTINCT s.id AS sale_id
        FROM sales s
        JOIN channels c ON s.channel_id = c.id
        JOIN stores st ON s.store_id = st.id
        {where}
    ),
    combinacoes AS (
        SELECT
            p1.name AS produto_principal,
            p2.name AS item_combinado,
            COUNT(DISTINCT ps1.sale_id) AS frequencia,
            SUM(ps1.total_price + ps2.total_price) AS receita_total,
            AVG(ps1.total_price + ps2.total_price) AS ticket_medio_combinacao
        FROM product_sales ps1
        JOIN products p1 ON ps1.product_id = p1.id
        JOIN product_sales ps2 ON ps1.sale_id = ps2.sale_id AND ps1.product_id < ps2.product_id
        JOIN products p2 ON ps2.product_id = p2.id
        JOIN pedidos_validos pv ON ps1.sale_id = pv.sale_id
        GROUP BY p1.name, p2.name
        HAVING COUNT(DISTINCT ps1.sale_id) > 1
    ),
    total_pedidos AS (
        SELECT COUNT(*) AS total FROM pedidos_validos
    ),
    produto_stats AS (
        SELECT
            p.name AS produto,
            AVG(ps.total_price) AS preco_medio_individual
        FROM product_sales ps
        JOIN products p ON ps.product_id = p.id
        JOIN pedidos_validos pv ON ps.sale_id = pv.sale_id
        GROUP BY p.name
    )
    SELECT
        cb.produto_principal,
        cb.item_combinado,
        cb.frequencia,
        COALESCE(cb.frequencia::decimal / NULLIF(tp.total, 0), 0) AS percentual_pedidos,
        cb.receita_total,
        cb.ticket_medio_combinacao,
        ps1.preco_medio_individual AS preco_medio_principal,
        ps2.preco_medio_individual AS preco_medio_combinado,
        (cb.ticket_medio_combinacao
            - COALESCE(ps1.preco_medio_individual, 0)
            - COALESCE(ps2.preco_medio_individual, 0)) AS incremento_ticket,
        (cb.frequencia * 0.6 + (cb.receita_total / 100) * 0.4) AS score_combinacao
    FROM combinacoes cb
    CROSS JOIN total_pedidos tp
    LEFT JOIN produto_stats ps1 ON cb.produto_principal = ps1.produto
    LEFT JOIN produto_stats ps2 ON cb.item_combinado = ps2.produto
    ORDER BY cb.receita_total DESC, cb.frequencia DESC
    LIMIT {limit}
"""

CATEGORY_PERFORMANCE_QUERY = """
    WITH categoria_dados AS (
        SELECT
            COALESCE(cat.name, 'Sem Categoria') AS categoria,
            COUNT(DISTINCT ps.product_id) AS produtos_unicos,
            SUM(ps.quantity) AS quantidade,
            COUNT(DISTINCT ps.sale_id) AS pedidos,
            SUM(ps.total_price) AS receita,
            AVG(ps.total_price) AS ticket_medio
        FROM product_sales ps
        JOIN products p ON ps.product_id = p.id
        LEFT JOIN categories cat ON p.category_id = cat.id
""" + PRODUCT_SALES_JOINS + """
        {where}
        GROUP BY cat.name
    ),
    receita_total AS (
        SELECT SUM(receita) AS total FROM categoria_dados
    )
    SELECT
        cd.*,
        COALESCE(cd.receita / NULLIF(rt.total, 0), 0) AS percentual_receita
    FROM categoria_dados cd
    CROSS JOIN receita_total rt
    ORDER BY cd.receita DESC
"""


class ProductService(AnalyticsService):
    """Product, add-on and category analytics over non-cancelled sales."""

    async def _fetch_limited(self, endpoint: str, template: str, filters: FilterSet, limit: int):
        where = self.where(filters)
        query = template.format(where=where.text, limit=where.placeholder())
        return await self.fetch_all(endpoint, query, [*where.params, limit])

    async def top_products(self, filters: FilterSet, limit: int = 10) -> List[Dict[str, Any]]:
        rows = await self._fetch_limited("top-products", TOP_PRODUCTS_QUERY, filters, limit)
        return [
            {
                "name": row["name"],
                "categoria": row["categoria"],
                "vendas": to_int(row["num_vendas"]),
                "quantidade": to_float(row["quantidade_total"]),
                "receita": to_float(row["receita_total"]),
                "precoMedio": to_float(row["preco_medio"]),
            }
            for row in rows
        ]

    async def top_items(self, filters: FilterSet, limit: int = 10) -> List[Dict[str, Any]]:
        """Most profitable add-ons (extra bacon, cheese...) attached to products."""
        rows = await self._fetch_limited("top-items", TOP_ITEMS_QUERY, filters, limit)
        return [
            {
                "name": row["name"],
                "grupo": row["grupo_opcao"],
                "vezesAdicionado": to_int(row["vezes_adicionado"]),
                "quantidade": to_float(row["quantidade_total"]),
                "receita": to_float(row["receita_total"]),
            }
            for row in rows
        ]

    async def profitable_products(self, filters: FilterSet, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Products ranked by revenue with their share of their category's revenue.

        ``id`` is the 1-based revenue rank, ``percentual_categoria`` a 0..1 ratio.
        """
        rows = await self._fetch_limited("profitable-products", PROFITABLE_PRODUCTS_QUERY, filters, limit)
        return [
            {
                "id": to_int(row["ranking"]),
                "name": row["name"],
                "categoria": row["categoria"],
                "vendas": to_int(row["vendas"]),
                "quantidade": to_float(row["quantidade"]),
                "receita": to_float(row["receita"]),
                "precoMedio": to_float(row["preco_medio"]),
                "percentual_categoria": to_float(row["percentual_categoria"]),
            }
            for row in rows
        ]

    async def product_seasonality(self, filters: FilterSet) -> Dict[str, List[Dict[str, Any]]]:
        """Daily product totals plus the ten products with the largest daily swing."""
        where = self.where(filters)
        time_series_rows, seasonal_rows = await asyncio.gather(
            self.fetch_all(
                "product-seasonality", SEASONALITY_TIME_SERIES_QUERY.format(where=where.text), where.params
            ),
            self.fetch_all(
                "product-seasonality", SEASONAL_PRODUCTS_QUERY.format(where=where.text), where.params
            ),
        )
        return {
            "timeSeries": [
                {
                    "periodo": format_br_date(row["periodo"]),
                    "produtos_unicos": to_int(row["produtos_unicos"]),
                    "quantidade": to_float(row["quantidade_total"]),
                    "receita": to_float(row["receita_total"]),
                    "vendas": to_int(row["total_pedidos"]),
                }
                for row in time_series_rows
            ],
            "top_sazonais": [
                {"nome": row["nome"], "variacao": to_float(row["variacao"])}
                for row in seasonal_rows
            ],
        }

    async def product_combinations(self, filters: FilterSet, limit: int = 15) -> List[Dict[str, Any]]:
        """
        Product pairs bought in the same sale more than once.

        ``incremento_ticket`` is the pair's average ticket minus both products'
        individual average prices; ``score`` weighs frequency 0.6 and revenue
        (per R$ 100) 0.4.
        """
        rows = await self._fetch_limited("product-combinations", PRODUCT_COMBINATIONS_QUERY, filters, limit)
        logger.info(f"[PRODUCTS] {len(rows)} product combinations found")
        return [
            {
                "produto_principal": row["produto_principal"],
                "item_combinado": row["item_combinado"],
                "frequencia": to_int(row["frequencia"]),
                "percentual_pedidos": to_float(row["percentual_pedidos"]),
                "receita_total": to_float(row["receita_total"]),
                "ticket_medio_combinacao": to_float(row["ticket_medio_combinacao"]),
                "preco_medio_principal": to_optional_float(row["preco_medio_principal"]),
                "preco_medio_combinado": to_optional_float(row["preco_medio_combinado"]),
                "incremento_ticket": to_float(row["incremento_ticket"]),
                "score": to_float(row["score_combinacao"]),
            }
            for row in rows
        ]

    async def category_performance(self, filters: FilterSet) -> List[Dict[str, Any]]:
        where = self.where(filters)
        rows = await self.fetch_all(
            "category-performance", CATEGORY_PERFORMANCE_QUERY.format(where=where.text), where.params
        )
        return [
            {
                "categoria": row["categoria"],
                "produtos_unicos": to_int(row["produtos_unicos"]),
                "quantidade": to_float(row["quantidade"]),
                "pedidos": to_int(row["pedidos"]),
                "receita": to_float(row["receita"]),
                "ticket_medio": to_float(row["ticket_medio"]),
                "percentual_receita": to_float(row["percentual_receita"]),
            }
            for row in rows
        ]
