"""
Dashboard filter set.

The dashboard sends its filter bar as loosely-typed query-string values
(``?period=30d&store=todas``) or, for the custom query endpoint, as a JSON
object. FilterSet holds those raw values under their wire names so the
compiler can validate them in one place.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional


ALL_CHANNELS = "todos"
ALL_STORES = "todas"
ALL_SUB_BRANDS = "todas"
ALL_CHANNEL_TYPES = "todos"

ALL_SENTINELS = {
    "channel": ALL_CHANNELS,
    "channelType": ALL_CHANNEL_TYPES,
    "store": ALL_STORES,
    "subBrand": ALL_SUB_BRANDS,
}

# python attribute -> wire name used by the dashboard
WIRE_NAMES = {
    "start_date": "startDate",
    "end_date": "endDate",
    "period": "period",
    "channel": "channel",
    "channel_type": "channelType",
    "store": "store",
    "sub_brand": "subBrand",
    "store_ids": "storeIds",
    "channel_ids": "channelIds",
}


@dataclass(frozen=True)
class FilterSet:
    """
    Raw filter selections, keyed by the recognized filter names.

    Values stay as strings until the compiler parses them. Empty strings are
    treated as absent because the dashboard sends ``store=`` when a select
    is cleared.
    """

    start_date: Optional[str] = None
    end_date: Optional[str] = None
    period: Optional[str] = None
    channel: Optional[str] = None
    channel_type: Optional[str] = None
    store: Optional[str] = None
    sub_brand: Optional[str] = None
    store_ids: Optional[str] = None
    channel_ids: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "FilterSet":
        """Build a FilterSet from query params or a JSON object; unknown keys are ignored."""
        if not data:
            return cls()

        values: Dict[str, Optional[str]] = {}
        for attr, wire in WIRE_NAMES.items():
            raw = data.get(wire)
            if raw is None:
                continue
            if isinstance(raw, (list, tuple)):
                raw = ",".join(str(item) for item in raw)
            text = str(raw).strip()
            if text:
                values[attr] = text
        return cls(**values)

    @property
    def has_date_range(self) -> bool:
        return bool(self.start_date and self.end_date)

    def without_time_window(self) -> "FilterSet":
        """Same selections with startDate, endDate and period removed."""
        return replace(self, start_date=None, end_date=None, period=None)

    def to_dict(self) -> Dict[str, str]:
        """Present values under their wire names."""
        return {
            WIRE_NAMES[f.name]: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    def selected(self) -> Dict[str, str]:
        """
        Like to_dict, without the "all" sentinels.

        ``store=todas`` and no ``store`` select the same sales, so both map to
        the same dict. Used for response cache keys.
        """
        return {
            wire: value
            for wire, value in self.to_dict().items()
            if ALL_SENTINELS.get(wire) != value
        }
