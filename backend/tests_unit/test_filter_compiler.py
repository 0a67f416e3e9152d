"""
Filter Compiler Tests (Unit)
============================

WHAT: WHERE fragments produced by the default and including-cancelled
      compiler policies, and filter validation.
WHY: Every analytics query is scoped by these fragments; a wrong placeholder
     or a dropped predicate silently changes every dashboard number.

REFERENCES:
- backend/restaurant_analytics/filters/compiler.py
"""

import re
from datetime import date, datetime

import pytest

from restaurant_analytics.errors import InvalidFilterError
from restaurant_analytics.filters import (
    FilterSet,
    compile_default,
    compile_including_cancelled,
    parse_period,
)
from restaurant_analytics.filters.compiler import MAX_PERIOD_DAYS

EXCLUDE_CANCELLED = "s.sale_status_desc NOT IN ('CANCELADO','CANCELLED')"

FROZEN_TODAY = date(2024, 3, 15)


def frozen_today() -> date:
    return FROZEN_TODAY


def placeholder_indexes(text: str):
    return [int(n) for n in re.findall(r"\$(\d+)", text)]


# =============================================================================
# DEFAULT POLICY
# =============================================================================

def test_empty_filters_only_exclude_cancelled() -> None:
    fragment = compile_default({})

    assert fragment.text == f"WHERE {EXCLUDE_CANCELLED}"
    assert fragment.params == []


def test_period_is_inlined_as_interval() -> None:
    fragment = compile_default({"period": "7d"})

    assert fragment.text == (
        "WHERE s.sale_status_desc NOT IN ('CANCELADO','CANCELLED') "
        "AND s.created_at >= NOW() - INTERVAL '7 days'"
    )
    assert fragment.params == []


def test_store_is_bound_as_int_and_all_channels_is_ignored() -> None:
    fragment = compile_default({"store": "5", "channel": "todos"})

    assert fragment.text == f"WHERE {EXCLUDE_CANCELLED} AND st.id = $1"
    assert fragment.params == [5]


def test_date_range_wins_over_period() -> None:
    fragment = compile_default({"startDate": "2024-03-10", "endDate": "2024-03-19", "period": "7d"})

    assert fragment.text == f"WHERE {EXCLUDE_CANCELLED} AND s.created_at BETWEEN $1 AND $2"
    assert "INTERVAL" not in fragment.text
    assert fragment.params == [
        datetime(2024, 3, 10, 0, 0, 0),
        datetime(2024, 3, 19, 23, 59, 59, 999000),
    ]


def test_start_date_alone_is_not_a_window() -> None:
    fragment = compile_default({"startDate": "2024-03-10"})

    assert fragment.text == f"WHERE {EXCLUDE_CANCELLED}"
    assert fragment.params == []


def test_all_scalar_filters_in_order() -> None:
    fragment = compile_default({
        "period": "30d",
        "channel": "iFood",
        "channelType": "D",
        "store": "5",
        "subBrand": "2",
    })

    assert fragment.text == (
        f"WHERE {EXCLUDE_CANCELLED} "
        "AND s.created_at >= NOW() - INTERVAL '30 days' "
        "AND c.name = $1 AND c.type = $2 AND st.id = $3 AND s.sub_brand_id = $4"
    )
    assert fragment.params == ["iFood", "D", 5, 2]


def test_all_sentinels_and_blanks_add_nothing() -> None:
    fragment = compile_default({
        "channel": "todos",
        "channelType": "todos",
        "store": "todas",
        "subBrand": "todas",
        "period": "",
    })

    assert fragment.text == f"WHERE {EXCLUDE_CANCELLED}"


def test_id_lists_are_not_part_of_default_vocabulary() -> None:
    fragment = compile_default({"storeIds": "1,2", "channelIds": "3"})

    assert "ANY" not in fragment.text
    assert fragment.params == []


@pytest.mark.parametrize("filters", [
    {},
    {"period": "7d", "store": "3"},
    {"startDate": "2024-01-01", "endDate": "2024-01-31", "channel": "Balcão", "subBrand": "1"},
    {"channelType": "P", "store": "9", "subBrand": "4"},
])
def test_default_placeholders_match_params(filters) -> None:
    fragment = compile_default(filters)

    assert placeholder_indexes(fragment.text) == list(range(1, len(fragment.params) + 1))


# =============================================================================
# INCLUDING-CANCELLED POLICY
# =============================================================================

def test_including_cancelled_defaults_to_trailing_30_calendar_days() -> None:
    fragment = compile_including_cancelled({}, today=frozen_today)

    assert fragment.text == "WHERE s.created_at >= $1 AND s.created_at <= $2"
    assert fragment.params == [
        datetime(2024, 2, 15, 0, 0, 0),
        datetime(2024, 3, 15, 23, 59, 59, 999000),
    ]


def test_including_cancelled_period_counts_today() -> None:
    fragment = compile_including_cancelled({"period": "7d"}, today=frozen_today)

    assert fragment.params == [
        datetime(2024, 3, 9, 0, 0, 0),
        datetime(2024, 3, 15, 23, 59, 59, 999000),
    ]


def test_including_cancelled_id_lists_come_first() -> None:
    fragment = compile_including_cancelled(
        {"storeIds": "1, 2", "channelIds": "3", "startDate": "2024-03-01", "endDate": "2024-03-02"},
        today=frozen_today,
    )

    assert fragment.text == (
        "WHERE st.id = ANY($1) AND c.id = ANY($2) "
        "AND s.created_at >= $3 AND s.created_at <= $4"
    )
    assert fragment.params == [
        [1, 2],
        [3],
        datetime(2024, 3, 1, 0, 0, 0),
        datetime(2024, 3, 2, 23, 59, 59, 999000),
    ]


def test_including_cancelled_ignores_scalar_filters() -> None:
    fragment = compile_including_cancelled({"store": "5", "channel": "iFood"}, today=frozen_today)

    assert "st.id" not in fragment.text
    assert "c.name" not in fragment.text
    assert "sale_status_desc" not in fragment.text


# =============================================================================
# VALIDATION
# =============================================================================

@pytest.mark.parametrize("value,expected", [("30d", 30), ("7", 7), ("90D", 90), (None, None), ("", None)])
def test_parse_period(value, expected) -> None:
    assert parse_period(value) == expected


def test_parse_period_default() -> None:
    assert parse_period(None, default=30) == 30


@pytest.mark.parametrize("filters,field", [
    ({"period": "abc"}, "period"),
    ({"period": "0d"}, "period"),
    ({"period": "-5d"}, "period"),
    ({"period": "1000000d"}, "period"),
    ({"store": "abc"}, "store"),
    ({"subBrand": "1.5"}, "subBrand"),
    ({"channelType": "X"}, "channelType"),
    ({"startDate": "2024-13-01", "endDate": "2024-03-01"}, "startDate"),
    ({"startDate": "2024-03-10", "endDate": "10/03/2024"}, "endDate"),
    ({"startDate": "2024-03-20", "endDate": "2024-03-10"}, "startDate"),
])
def test_invalid_filters_raise(filters, field) -> None:
    with pytest.raises(InvalidFilterError) as exc_info:
        compile_default(filters)

    assert exc_info.value.field == field
    assert exc_info.value.status_code == 400


def test_invalid_id_list_raises() -> None:
    with pytest.raises(InvalidFilterError):
        compile_including_cancelled({"storeIds": "1,x"}, today=frozen_today)


def test_filter_set_from_mapping_drops_blanks_and_unknown_keys() -> None:
    filters = FilterSet.from_mapping({"store": "", "period": "7d", "limit": "10", "storeIds": [1, 2]})

    assert filters == FilterSet(period="7d", store_ids="1,2")
    assert filters.to_dict() == {"period": "7d", "storeIds": "1,2"}


def test_period_above_the_cap_is_rejected() -> None:
    assert parse_period(f"{MAX_PERIOD_DAYS}d") == MAX_PERIOD_DAYS

    with pytest.raises(InvalidFilterError) as exc_info:
        compile_including_cancelled({"period": "1000000d"}, today=frozen_today)

    assert exc_info.value.field == "period"


def test_calendar_window_before_year_one_is_rejected() -> None:
    with pytest.raises(InvalidFilterError) as exc_info:
        compile_including_cancelled({"period": "30d"}, today=lambda: date(1, 1, 10))

    assert exc_info.value.field == "period"
    assert exc_info.value.status_code == 400


def test_selected_drops_all_sentinels() -> None:
    with_sentinels = FilterSet.from_mapping({"period": "7d", "store": "todas", "channel": "todos"})

    assert with_sentinels.selected() == {"period": "7d"}
    assert with_sentinels.selected() == FilterSet(period="7d").selected()
    assert FilterSet(store="5").selected() == {"store": "5"}
