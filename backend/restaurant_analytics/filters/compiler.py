"""
Filter Compiler
===============

Translates a dashboard FilterSet into a SQL WHERE fragment plus positional
parameters, for queries over ``sales s JOIN channels c JOIN stores st``.

WHY THIS FILE EXISTS
--------------------
Every analytics endpoint filters the same sales rows by the same filter bar.
Two variants exist, and they differ on purpose:

    DEFAULT_POLICY
        - excludes cancelled sales (status CANCELADO / CANCELLED)
        - relative period as a literal ``NOW() - INTERVAL 'N days'``
        - no time filter when neither dates nor period are given
        - scalar vocabulary: channel, channelType, store, subBrand

    INCLUDING_CANCELLED_POLICY
        - keeps cancelled sales (cancellation dashboards need them)
        - relative period as absolute calendar bounds, today inclusive
        - defaults to the trailing 30 days when no window is given
        - id-list vocabulary: storeIds, channelIds

Both are the same compiler with a different CompilerPolicy, so the divergence
is a named choice rather than two copies of the same function.

VALIDATION
----------
All filter values are validated here, for every endpoint. A malformed
``period`` (anything but ``<integer>d`` or a bare integer), a bad date or a
non-numeric id raises InvalidFilterError before any SQL is produced.

RELATED FILES
-------------
- restaurant_analytics/filters/builder.py: placeholder numbering
- restaurant_analytics/filters/schema.py: FilterSet
- restaurant_analytics/services/metrics_service.py: period comparison
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from restaurant_analytics.errors import InvalidFilterError
from restaurant_analytics.filters.builder import PredicateBuilder, PredicateFragment
from restaurant_analytics.filters.schema import (
    ALL_CHANNEL_TYPES,
    ALL_CHANNELS,
    ALL_STORES,
    ALL_SUB_BRANDS,
    FilterSet,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

CANCELLED_STATUSES = ("CANCELADO", "CANCELLED")

CANCELLED_STATUS_SQL = ",".join(f"'{status}'" for status in CANCELLED_STATUSES)

EXCLUDE_CANCELLED = f"s.sale_status_desc NOT IN ({CANCELLED_STATUS_SQL})"

CHANNEL_TYPES = ("P", "D")

END_OF_DAY = time(23, 59, 59, 999000)

MAX_PERIOD_DAYS = 36500

_PERIOD_RE = re.compile(r"^(\d+)\s*d?$", re.IGNORECASE)


class WindowMode(Enum):
    """How a relative ``period`` becomes a time predicate."""
    INTERVAL = "interval"   # s.created_at >= NOW() - INTERVAL 'N days'
    CALENDAR = "calendar"   # [today-(N-1) 00:00:00.000, today 23:59:59.999]


class FilterVocabulary(Enum):
    """Which non-time filter keys the policy recognizes."""
    SCALAR = "scalar"       # channel, channelType, store, subBrand
    ID_LISTS = "id_lists"   # storeIds, channelIds


@dataclass(frozen=True)
class CompilerPolicy:
    include_cancelled: bool
    default_window_days: Optional[int]
    window_mode: WindowMode
    vocabulary: FilterVocabulary


DEFAULT_POLICY = CompilerPolicy(
    include_cancelled=False,
    default_window_days=None,
    window_mode=WindowMode.INTERVAL,
    vocabulary=FilterVocabulary.SCALAR,
)

INCLUDING_CANCELLED_POLICY = CompilerPolicy(
    include_cancelled=True,
    default_window_days=30,
    window_mode=WindowMode.CALENDAR,
    vocabulary=FilterVocabulary.ID_LISTS,
)

FiltersLike = Union[FilterSet, Mapping[str, Any], None]


# =============================================================================
# VALUE PARSING
# =============================================================================

def parse_period(value: Optional[str], default: Optional[int] = None) -> Optional[int]:
    """
    Parse a relative period such as ``"30d"`` into a day count.

    Returns ``default`` when the value is absent. Raises InvalidFilterError
    for anything that is not a positive integer with an optional ``d``, or
    that exceeds MAX_PERIOD_DAYS.

    Example:
        >>> parse_period("7d")
        7
        >>> parse_period(None, default=30)
        30
    """
    if value is None or str(value).strip() == "":
        return default

    match = _PERIOD_RE.match(str(value).strip())
    if not match:
        raise InvalidFilterError("period", value, "use o formato '<dias>d', ex.: '30d'")

    days = int(match.group(1))
    if days <= 0:
        raise InvalidFilterError("period", value, "o período deve ser maior que zero")
    if days > MAX_PERIOD_DAYS:
        raise InvalidFilterError("period", value, f"o período máximo é de {MAX_PERIOD_DAYS} dias")
    return days


def parse_date(field: str, value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidFilterError(field, value, "use o formato AAAA-MM-DD")


def parse_int(field: str, value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidFilterError(field, value, "deve ser um número inteiro")


def parse_id_list(field: str, value: str) -> List[int]:
    """Parse ``"1, 2,3"`` into ``[1, 2, 3]``; blank entries are skipped."""
    return [parse_int(field, part.strip()) for part in value.split(",") if part.strip()]


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, END_OF_DAY)


def parse_date_range(filters: FilterSet) -> Optional[Tuple[date, date]]:
    """Explicit [startDate, endDate] calendar range, or None when not both given."""
    if not filters.has_date_range:
        return None

    start = parse_date("startDate", filters.start_date)
    end = parse_date("endDate", filters.end_date)
    if start > end:
        raise InvalidFilterError("startDate", filters.start_date, "a data inicial é posterior à data final")
    return start, end


def as_filter_set(filters: FiltersLike) -> FilterSet:
    if isinstance(filters, FilterSet):
        return filters
    return FilterSet.from_mapping(filters)


# =============================================================================
# COMPILER
# =============================================================================

class FilterCompiler:
    """
    Compile FilterSets under one CompilerPolicy.

    PARAMETERS:
        policy: which variant to compile (see module docstring)
        today: clock for calendar windows, injectable for tests

    Usage:
        >>> compiler = FilterCompiler(DEFAULT_POLICY)
        >>> compiler.compile({"period": "7d"}).text
        "WHERE s.sale_status_desc NOT IN ('CANCELADO','CANCELLED') AND s.created_at >= NOW() - INTERVAL '7 days'"
    """

    def __init__(self, policy: CompilerPolicy, today: Callable[[], date] = date.today):
        self.policy = policy
        self._today = today

    def build(self, filters: FiltersLike) -> PredicateBuilder:
        """Predicates for ``filters``, still open for callers to append to."""
        filters = as_filter_set(filters)
        builder = PredicateBuilder()

        if not self.policy.include_cancelled:
            builder.add(EXCLUDE_CANCELLED)

        if self.policy.vocabulary is FilterVocabulary.ID_LISTS:
            self._add_id_lists(builder, filters)

        self._add_time_window(builder, filters)

        if self.policy.vocabulary is FilterVocabulary.SCALAR:
            self._add_scalar_filters(builder, filters)

        return builder

    def compile(self, filters: FiltersLike) -> PredicateFragment:
        fragment = self.build(filters).render()
        logger.debug(f"[FILTERS] WHERE: {fragment.text} params={fragment.params}")
        return fragment

    def _add_time_window(self, builder: PredicateBuilder, filters: FilterSet) -> None:
        date_range = parse_date_range(filters)
        if date_range:
            start, end = start_of_day(date_range[0]), end_of_day(date_range[1])
            if self.policy.window_mode is WindowMode.INTERVAL:
                builder.add("s.created_at BETWEEN {} AND {}", start, end)
            else:
                builder.add("s.created_at >= {}", start)
                builder.add("s.created_at <= {}", end)
            return

        days = parse_period(filters.period, default=self.policy.default_window_days)
        if days is None:
            return

        if self.policy.window_mode is WindowMode.INTERVAL:
            # days is a validated int, safe to inline
            builder.add(f"s.created_at >= NOW() - INTERVAL '{days} days'")
        else:
            today = self._today()
            try:
                first_day = today - timedelta(days=days - 1)
            except OverflowError:
                raise InvalidFilterError("period", filters.period, "o período fica fora do calendário")
            builder.add("s.created_at >= {}", start_of_day(first_day))
            builder.add("s.created_at <= {}", end_of_day(today))

    def _add_scalar_filters(self, builder: PredicateBuilder, filters: FilterSet) -> None:
        if filters.channel and filters.channel != ALL_CHANNELS:
            builder.add("c.name = {}", filters.channel)

        if filters.channel_type and filters.channel_type != ALL_CHANNEL_TYPES:
            if filters.channel_type not in CHANNEL_TYPES:
                raise InvalidFilterError("channelType", filters.channel_type, "use 'P', 'D' ou 'todos'")
            builder.add("c.type = {}", filters.channel_type)

        if filters.store and filters.store != ALL_STORES:
            builder.add("st.id = {}", parse_int("store", filters.store))

        if filters.sub_brand and filters.sub_brand != ALL_SUB_BRANDS:
            builder.add("s.sub_brand_id = {}", parse_int("subBrand", filters.sub_brand))

    def _add_id_lists(self, builder: PredicateBuilder, filters: FilterSet) -> None:
        if filters.store_ids:
            store_ids = parse_id_list("storeIds", filters.store_ids)
            if store_ids:
                builder.add("st.id = ANY({})", store_ids)

        if filters.channel_ids:
            channel_ids = parse_id_list("channelIds", filters.channel_ids)
            if channel_ids:
                builder.add("c.id = ANY({})", channel_ids)


# =============================================================================
# MODULE-LEVEL SHORTCUTS
# =============================================================================

def compile_default(filters: FiltersLike, today: Callable[[], date] = date.today) -> PredicateFragment:
    """WHERE fragment that excludes cancelled sales (most endpoints)."""
    return FilterCompiler(DEFAULT_POLICY, today=today).compile(filters)


def compile_including_cancelled(
    filters: FiltersLike,
    today: Callable[[], date] = date.today,
) -> PredicateFragment:
    """WHERE fragment that keeps cancelled sales (operations / cancellation endpoints)."""
    return FilterCompiler(INCLUDING_CANCELLED_POLICY, today=today).compile(filters)
