"""
Metrics Service
===============

Headline metric cards with period-over-period growth.

WHAT: Aggregates the current window and the immediately preceding window of
      the same length, then reports revenue and order growth.
WHY:  The dashboard's top cards show "R$ 10.000 (+25%)"; both numbers must
      come from the same filters, differing only in the time window.

Comparison rules
----------------
Explicit dates (startDate / endDate, inclusive calendar days):

    current:  [start 00:00:00.000, end 23:59:59.999]
    previous: [start - D days 00:00:00.000, start - 1 day 23:59:59.999]
    D = (end - start).days + 1

    e.g. 2024-03-10..2024-03-19 (10 days) -> 2024-02-29..2024-03-09

Relative period ("30d"), half-open so the boundary instant is counted once:

    current:  [NOW() - 30 days, NOW()]
    previous: [NOW() - 60 days, NOW() - 30 days)

When the request names no window at all, the trailing 30 days are used for
both the current and the previous window.

Growth
------
    growth(curr, prev) = 0                                   if prev is 0 or NULL
                       = round((curr - prev) / prev * 100, 1) otherwise

Usage:
    >>> service = MetricsService(engine)
    >>> result = await service.get_metrics(FilterSet(period="30d"))
    >>> result.crescimento.faturamento
    25.0

References:
- restaurant_analytics/filters/compiler.py: WHERE fragments and validation
- restaurant_analytics/routers/metrics.py: HTTP endpoint + cache
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

from restaurant_analytics.errors import InvalidFilterError
from restaurant_analytics.filters import DEFAULT_POLICY, FilterCompiler, FilterSet, PredicateBuilder
from restaurant_analytics.filters.compiler import (
    end_of_day,
    parse_date_range,
    parse_period,
    start_of_day,
)
from restaurant_analytics.schemas import GrowthRates, MetricsResponse
from restaurant_analytics.services.base import AnalyticsService
from restaurant_analytics.services.formatters import to_float, to_int

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_DAYS = 30

SALES_FROM = """
    FROM sales s
    JOIN channels c ON s.channel_id = c.id
    JOIN stores st ON s.store_id = st.id
"""

CURRENT_PERIOD_QUERY = """
    SELECT
        COUNT(DISTINCT s.id) AS total_pedidos,
        SUM(s.total_amount) AS faturamento,
        AVG(s.total_amount) AS ticket_medio,
        COUNT(DISTINCT s.customer_id) AS total_clientes,
        SUM(s.delivery_fee) AS total_taxas_entrega,
        SUM(s.total_discount) AS total_descontos,
        AVG(s.production_seconds) AS tempo_medio_producao,
        AVG(s.delivery_seconds) AS tempo_medio_entrega
""" + SALES_FROM + "{where}"

PREVIOUS_PERIOD_QUERY = """
    SELECT
        COUNT(DISTINCT s.id) AS total_pedidos,
        SUM(s.total_amount) AS faturamento
""" + SALES_FROM + "{where}"


# =============================================================================
# PURE HELPERS
# =============================================================================

def growth(current: Any, previous: Any) -> float:
    """
    Percentage change from ``previous`` to ``current``, 1 decimal.

    A previous value of 0 or NULL yields 0 (no baseline to compare with);
    a NULL current value counts as 0. Ties round half up, so 0.25 -> 0.3.

    Example:
        >>> growth(100, 50)
        100.0
        >>> growth(50, 100)
        -50.0
        >>> growth(10, 0)
        0.0
    """
    if previous is None or previous == 0:
        return 0.0
    prev = float(previous)
    curr = to_float(current)
    change = Decimal((curr - prev) / prev * 100)
    return float(change.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class ComparisonWindow:
    """
    The previous period, either as absolute bounds or as relative day offsets.

    Absolute (explicit dates): ``start <= created_at <= end``.
    Relative (period):         ``NOW() - start_days_ago <= created_at < NOW() - end_days_ago``.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    start_days_ago: Optional[int] = None
    end_days_ago: Optional[int] = None

    @property
    def is_relative(self) -> bool:
        return self.start_days_ago is not None

    @property
    def length_days(self) -> float:
        if self.is_relative:
            return self.start_days_ago - self.end_days_ago
        # inclusive end at 23:59:59.999
        return (self.end - self.start + timedelta(milliseconds=1)) / timedelta(days=1)

    def apply(self, builder: PredicateBuilder) -> PredicateBuilder:
        """Append the window predicates after whatever the builder already holds."""
        if self.is_relative:
            builder.add("s.created_at >= NOW() - make_interval(days => {})", self.start_days_ago)
            builder.add("s.created_at < NOW() - make_interval(days => {})", self.end_days_ago)
        else:
            builder.add("s.created_at >= {}", self.start)
            builder.add("s.created_at <= {}", self.end)
        return builder


def with_default_window(filters: FilterSet) -> FilterSet:
    """Fill in the default trailing period when the request names no window."""
    if filters.has_date_range or filters.period:
        return filters
    return replace(filters, period=f"{DEFAULT_PERIOD_DAYS}d")


def previous_window(filters: FilterSet) -> ComparisonWindow:
    """
    Equal-length window immediately before the current one.

    Raises InvalidFilterError for an unparseable period or malformed dates.
    """
    date_range = parse_date_range(filters)
    if date_range:
        start_day, end_day = date_range
        duration_days = (end_day - start_day).days + 1
        try:
            previous_start = start_day - timedelta(days=duration_days)
        except OverflowError:
            raise InvalidFilterError(
                "startDate", filters.start_date, "o período anterior fica fora do calendário"
            )
        return ComparisonWindow(
            start=start_of_day(previous_start),
            end=end_of_day(start_day - timedelta(days=1)),
        )

    period_days = parse_period(filters.period, default=DEFAULT_PERIOD_DAYS)
    return ComparisonWindow(start_days_ago=period_days * 2, end_days_ago=period_days)


def build_metrics_response(current: Mapping[str, Any], previous: Mapping[str, Any]) -> MetricsResponse:
    """Coerce the two aggregate rows into the metric card payload."""
    return MetricsResponse(
        faturamento=to_float(current.get("faturamento")),
        pedidos=to_int(current.get("total_pedidos")),
        ticketMedio=to_float(current.get("ticket_medio")),
        clientes=to_int(current.get("total_clientes")),
        taxasEntrega=to_float(current.get("total_taxas_entrega")),
        descontos=to_float(current.get("total_descontos")),
        tempoMedioProducao=to_int(current.get("tempo_medio_producao")),
        tempoMedioEntrega=to_int(current.get("tempo_medio_entrega")),
        crescimento=GrowthRates(
            faturamento=growth(current.get("faturamento"), previous.get("faturamento")),
            pedidos=growth(current.get("total_pedidos"), previous.get("total_pedidos")),
        ),
    )


# =============================================================================
# SERVICE
# =============================================================================

class MetricsService(AnalyticsService):
    """Current vs previous period aggregates for the metric cards."""

    async def get_metrics(self, filters: FilterSet) -> MetricsResponse:
        """
        Compute the metric cards for ``filters``.

        Both windows are resolved (and validated) before any query is issued;
        the two aggregates are then awaited concurrently. If either query fails
        the whole request fails.
        """
        filters = with_default_window(filters)
        window = previous_window(filters)

        compiler = FilterCompiler(DEFAULT_POLICY, today=self.today)
        current = compiler.compile(filters)
        comparison = window.apply(compiler.build(filters.without_time_window())).render()

        logger.info(f"[METRICS] Filters: {filters.to_dict()}")
        logger.info(f"[METRICS] Previous window: {window}")

        current_row, previous_row = await asyncio.gather(
            self.engine.fetch_one(
                CURRENT_PERIOD_QUERY.format(where=current.text), current.params, endpoint="metrics"
            ),
            self.engine.fetch_one(
                PREVIOUS_PERIOD_QUERY.format(where=comparison.text), comparison.params, endpoint="metrics"
            ),
        )

        logger.info(f"[METRICS] Current totals: {current_row}")
        logger.info(f"[METRICS] Previous totals: {previous_row}")

        return build_metrics_response(current_row, previous_row)
