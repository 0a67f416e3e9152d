"""
Filter layer: dashboard filter set -> SQL WHERE fragment.

Usage:
    from restaurant_analytics.filters import FilterSet, compile_default

    fragment = compile_default(FilterSet.from_mapping(request.query_params))
    rows = await engine.fetch_all(f"SELECT ... {fragment.text}", fragment.params)
"""

from restaurant_analytics.filters.builder import PredicateBuilder, PredicateFragment
from restaurant_analytics.filters.compiler import (
    CANCELLED_STATUSES,
    DEFAULT_POLICY,
    INCLUDING_CANCELLED_POLICY,
    CompilerPolicy,
    FilterCompiler,
    FilterVocabulary,
    WindowMode,
    compile_default,
    compile_including_cancelled,
    parse_period,
)
from restaurant_analytics.filters.schema import FilterSet

__all__ = [
    "CANCELLED_STATUSES",
    "DEFAULT_POLICY",
    "INCLUDING_CANCELLED_POLICY",
    "CompilerPolicy",
    "FilterCompiler",
    "FilterSet",
    "FilterVocabulary",
    "PredicateBuilder",
    "PredicateFragment",
    "WindowMode",
    "compile_default",
    "compile_including_cancelled",
    "parse_period",
]
