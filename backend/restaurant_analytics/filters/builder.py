"""
Predicate Builder
=================

Accumulates WHERE-clause predicates together with the values they bind and
numbers the positional placeholders only when the fragment is rendered.

WHY THIS FILE EXISTS
--------------------
Hand-maintained ``paramCount`` counters break as soon as a predicate is
inserted out of order: every ``$N`` after it shifts. Here each predicate is a
template with one ``{}`` slot per bound value:

    builder = PredicateBuilder()
    builder.add("s.sale_status_desc NOT IN ('CANCELADO','CANCELLED')")
    builder.add("st.id = {}", 5)
    builder.add("s.created_at BETWEEN {} AND {}", start, end)
    fragment = builder.render()

    fragment.text   -> "WHERE s.sale_status_desc NOT IN (...) AND st.id = $1
                        AND s.created_at BETWEEN $2 AND $3"
    fragment.params -> [5, start, end]

The Nth placeholder in the text always refers to the Nth parameter.

RELATED FILES
-------------
- restaurant_analytics/filters/compiler.py: builds the dashboard predicates
- restaurant_analytics/services/metrics_service.py: appends comparison bounds
- restaurant_analytics/database.py: executes the rendered fragment
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Sequence, Tuple

SLOT = "{}"


@dataclass(frozen=True)
class PredicateFragment:
    """
    Rendered WHERE clause body and its positional parameters.

    ``text`` is either empty or starts with ``WHERE``.
    """

    text: str
    params: List[Any] = field(default_factory=list)

    def placeholder(self, offset: int = 1) -> str:
        """Placeholder for a value bound after this fragment's own params."""
        return f"${len(self.params) + offset}"


class PredicateBuilder:
    """Ordered ``(template, values)`` pairs rendered into a PredicateFragment."""

    def __init__(self) -> None:
        self._predicates: List[Tuple[str, Tuple[Any, ...]]] = []

    def add(self, template: str, *values: Any) -> "PredicateBuilder":
        """
        Append a predicate.

        ``template`` must contain exactly one ``{}`` slot per value. A template
        without slots is literal SQL and consumes no parameter.
        """
        slots = template.count(SLOT)
        if slots != len(values):
            raise ValueError(
                f"Predicate {template!r} has {slots} slot(s) but {len(values)} value(s)"
            )
        self._predicates.append((template, values))
        return self

    def extend(self, other: "PredicateBuilder") -> "PredicateBuilder":
        for template, values in other._predicates:
            self._predicates.append((template, values))
        return self

    def __len__(self) -> int:
        return len(self._predicates)

    @property
    def predicates(self) -> Sequence[Tuple[str, Tuple[Any, ...]]]:
        return tuple(self._predicates)

    def render(self) -> PredicateFragment:
        """Number placeholders ``$1..$N`` in one pass and join with AND."""
        conditions: List[str] = []
        params: List[Any] = []

        for template, values in self._predicates:
            placeholders = []
            for value in values:
                params.append(value)
                placeholders.append(f"${len(params)}")
            conditions.append(template.format(*placeholders) if values else template)

        if not conditions:
            return PredicateFragment(text="", params=[])
        return PredicateFragment(text="WHERE " + " AND ".join(conditions), params=params)
