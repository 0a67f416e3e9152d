"""
Predicate Builder Tests (Unit)
==============================

WHAT: Placeholder numbering and parameter alignment of PredicateBuilder.
WHY: A predicate inserted anywhere must never shift another predicate's
     ``$N`` away from its value.

NOTE:
These tests live outside `backend/restaurant_analytics/tests/` to avoid
loading the API `conftest.py`.

REFERENCES:
- backend/restaurant_analytics/filters/builder.py
"""

import pytest

from restaurant_analytics.filters import PredicateBuilder, PredicateFragment


def test_render_empty_builder_has_no_where() -> None:
    fragment = PredicateBuilder().render()

    assert fragment.text == ""
    assert fragment.params == []


def test_render_numbers_placeholders_in_order() -> None:
    builder = PredicateBuilder()
    builder.add("s.sale_status_desc NOT IN ('CANCELADO','CANCELLED')")
    builder.add("st.id = {}", 5)
    builder.add("s.created_at BETWEEN {} AND {}", "a", "b")

    fragment = builder.render()

    assert fragment.text == (
        "WHERE s.sale_status_desc NOT IN ('CANCELADO','CANCELLED') "
        "AND st.id = $1 AND s.created_at BETWEEN $2 AND $3"
    )
    assert fragment.params == [5, "a", "b"]


def test_literal_predicate_consumes_no_parameter() -> None:
    fragment = PredicateBuilder().add("c.name = {}", "iFood").add("s.created_at >= NOW()").render()

    assert fragment.text == "WHERE c.name = $1 AND s.created_at >= NOW()"
    assert fragment.params == ["iFood"]


def test_add_rejects_slot_value_mismatch() -> None:
    builder = PredicateBuilder()

    with pytest.raises(ValueError):
        builder.add("st.id = {}")
    with pytest.raises(ValueError):
        builder.add("st.id = {}", 1, 2)
    assert len(builder) == 0


def test_extend_renumbers_appended_predicates() -> None:
    first = PredicateBuilder().add("st.id = {}", 1)
    second = PredicateBuilder().add("c.id = {}", 2).add("s.sub_brand_id = {}", 3)

    fragment = first.extend(second).render()

    assert fragment.text == "WHERE st.id = $1 AND c.id = $2 AND s.sub_brand_id = $3"
    assert fragment.params == [1, 2, 3]


def test_fragment_placeholder_follows_own_params() -> None:
    fragment = PredicateFragment(text="WHERE st.id = $1 AND c.id = $2", params=[1, 2])

    assert fragment.placeholder() == "$3"
    assert fragment.placeholder(offset=2) == "$4"
    assert PredicateFragment(text="").placeholder() == "$1"
