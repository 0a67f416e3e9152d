"""
Row value formatters.

Aggregates come back from the driver as Decimal, float, int or NULL. The
dashboard expects plain JSON numbers with NULL read as zero, so every
service converts through these helpers.
"""

from datetime import date, datetime
from typing import Any, Optional

WEEKDAY_LABELS = ["Dom", "Seg", "Ter", "Qua", "Qui", "Sex", "Sáb"]


def to_float(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


def to_int(value: Any) -> int:
    """NULL -> 0; fractional aggregates (AVG of seconds) truncate toward zero."""
    if value is None:
        return 0
    return int(value)


def to_optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def format_day_month(value: Any) -> str:
    """``2024-03-09`` -> ``09/03`` (pt-BR day/month)."""
    if isinstance(value, (date, datetime)):
        return value.strftime("%d/%m")
    return str(value)


def format_br_date(value: Any) -> str:
    """``2024-03-09`` -> ``09/03/2024``."""
    if isinstance(value, (date, datetime)):
        return value.strftime("%d/%m/%Y")
    return str(value)


def weekday_label(dow: Any) -> str:
    """PostgreSQL ``EXTRACT(DOW ...)`` (0 = Sunday) -> short pt-BR label."""
    return WEEKDAY_LABELS[to_int(dow) % 7]


def days_since(value: Any, today: date) -> Optional[int]:
    if value is None:
        return None
    day = value.date() if isinstance(value, datetime) else value
    return (today - day).days


def share_percent(part: float, total: float) -> int:
    """Rounded percentage of ``total``; 0 when the total is 0."""
    if not total:
        return 0
    return round(part / total * 100)


def to_iso(value: Any) -> Optional[str]:
    """Timestamp -> ISO 8601 string; NULL stays NULL."""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)
