from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from salescore.datekeys import Period, to_date_key
from salescore.schema import DATE_POSITION_ATTRIBUTES

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 10

# SalesFilter field -> dimension attribute it constrains
FILTER_COLUMNS = {
    "store_locations": "store_location",
    "categories": "product_category",
    "product_types": "product_type",
    "products": "product_detail",
    "years": "year",
    "months": "month",
    "weekdays": "weekday",
    "hours": "hour",
    "parts_of_day": "part_of_day",
}
INT_FIELDS = {"years", "months", "weekdays", "hours"}


@dataclass(frozen=True)
class SalesFilter:
    """Conjunction of dimension-attribute constraints. Empty lists mean "no constraint".

    Integer fields may also hold unparseable raw values (e.g. "March"); those match no row.
    """

    store_locations: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    product_types: List[str] = field(default_factory=list)
    products: List[str] = field(default_factory=list)
    years: List[int] = field(default_factory=list)
    months: List[int] = field(default_factory=list)
    weekdays: List[int] = field(default_factory=list)
    hours: List[int] = field(default_factory=list)
    parts_of_day: List[str] = field(default_factory=list)
    date_from: Optional[int] = None
    date_to: Optional[int] = None
    attributes: Dict[str, List[Any]] = field(default_factory=dict)
    top_n: int = DEFAULT_TOP_N


def _as_int_list(values: Optional[Iterable[object]], name: str) -> List[Any]:
    """Integer values; anything that is not an integer is kept verbatim so it matches no row."""
    if not values:
        return []
    out: List[Any] = []
    for v in values:
        if v is None or str(v).strip() == "":
            continue
        try:
            out.append(int(v))
        except (TypeError, ValueError):
            logger.warning("Filter %s has non-integer value %r; it matches no rows", name, v)
            out.append(str(v))
    return out


def _as_list(value: object) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _as_date_key(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if s.isdigit() and len(s) == 8:
        return int(s)
    return to_date_key(pd.Timestamp(s))


def normalize_filters(raw: Optional[dict]) -> SalesFilter:
    raw = raw or {}
    values: Dict[str, Any] = {}
    for name in FILTER_COLUMNS:
        items = _as_list(raw.get(name))
        if name in INT_FIELDS:
            values[name] = _as_int_list(items, name)
        else:
            values[name] = [str(x).strip() for x in items if x is not None and str(x).strip()]

    attributes = {str(k): _as_list(v) for k, v in (raw.get("attributes") or {}).items()}

    top_n = raw.get("top_n", DEFAULT_TOP_N)
    try:
        top_n = int(top_n)
    except (TypeError, ValueError):
        top_n = DEFAULT_TOP_N
    top_n = max(1, min(200, top_n))

    return SalesFilter(
        date_from=_as_date_key(raw.get("date_from")),
        date_to=_as_date_key(raw.get("date_to")),
        attributes=attributes,
        top_n=top_n,
        **values,
    )


def resolve_filters(filters: "SalesFilter | dict | None") -> SalesFilter:
    if isinstance(filters, SalesFilter):
        return filters
    return normalize_filters(filters)


def with_period(filters: SalesFilter, period: Period) -> SalesFilter:
    """Restrict to a date period, replacing any calendar-position constraints."""
    attributes = {k: v for k, v in filters.attributes.items() if k not in DATE_POSITION_ATTRIBUTES}
    return replace(
        filters,
        years=[],
        months=[],
        date_from=period.start_key,
        date_to=period.end_key,
        attributes=attributes,
    )


def apply_filter(df: pd.DataFrame, filters: SalesFilter) -> pd.DataFrame:
    """Rows of the joined fact view matching every constraint.

    Unknown attributes or values match nothing.
    """
    if df.empty:
        return df
    mask = pd.Series(True, index=df.index)

    constraints = {FILTER_COLUMNS[name]: getattr(filters, name) for name in FILTER_COLUMNS}
    for col, allowed in filters.attributes.items():
        if not allowed:
            continue
        if constraints.get(col):
            allowed_set = set(allowed)
            constraints[col] = [v for v in constraints[col] if v in allowed_set]
            if not constraints[col]:
                return df.iloc[0:0]
        else:
            constraints[col] = allowed

    for col, allowed in constraints.items():
        if not allowed:
            continue
        if col not in df.columns:
            logger.warning("Filter references unknown attribute %r; no rows match", col)
            return df.iloc[0:0]
        mask &= df[col].isin(allowed)

    if filters.date_from is not None:
        mask &= df["date_key"] >= filters.date_from
    if filters.date_to is not None:
        mask &= df["date_key"] <= filters.date_to
    return df[mask]
