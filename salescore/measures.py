"""Aggregate queries over the star schema.

Every function is a pure read: it takes the immutable StarSchema and a filter
(SalesFilter, raw dict, or None for "everything") and returns plain values or
fresh DataFrames. Sums and counts are 0 on an empty match; ratios are None.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, Optional, Union

import pandas as pd

from salescore.datekeys import Period, shift_period
from salescore.filters import SalesFilter, apply_filter, resolve_filters, with_period
from salescore.schema import StarSchema

FilterArg = Union[SalesFilter, dict, None]
Metric = Callable[[StarSchema, FilterArg], Optional[float]]

# Attributes whose breakdowns read naturally in key order rather than by sales.
ORDERED_ATTRIBUTES = {"date_key", "date", "year", "quarter", "month", "day", "weekday", "hour", "time_key"}


def filtered_facts(schema: StarSchema, filters: FilterArg = None) -> pd.DataFrame:
    return apply_filter(schema.joined, resolve_filters(filters))


def total_sales(schema: StarSchema, filters: FilterArg = None) -> float:
    df = filtered_facts(schema, filters)
    if df.empty:
        return 0.0
    return float(df["line_total"].sum())


def total_transactions(schema: StarSchema, filters: FilterArg = None) -> int:
    df = filtered_facts(schema, filters)
    return int(df["transaction_id"].nunique())


def total_quantity(schema: StarSchema, filters: FilterArg = None) -> int:
    df = filtered_facts(schema, filters)
    if df.empty:
        return 0
    return int(df["quantity"].sum())


def average_transaction_value(schema: StarSchema, filters: FilterArg = None) -> Optional[float]:
    df = filtered_facts(schema, filters)
    transactions = df["transaction_id"].nunique()
    if not transactions:
        return None
    return float(df["line_total"].sum()) / transactions


class UnknownMeasureError(KeyError):
    pass


MEASURES: Dict[str, Metric] = {
    "total_sales": total_sales,
    "total_transactions": total_transactions,
    "total_quantity": total_quantity,
    "average_transaction_value": average_transaction_value,
}


def resolve_metric(metric: Union[str, Metric]) -> Metric:
    if callable(metric):
        return metric
    key = str(metric).strip().lower().replace("-", "_")
    if key not in MEASURES:
        raise UnknownMeasureError(f"unknown measure {metric!r}; expected one of {sorted(MEASURES)}")
    return MEASURES[key]


def top_products(schema: StarSchema, filters: FilterArg = None, n: Optional[int] = None) -> pd.DataFrame:
    """Products by total sales, dense ranked, keeping every product with rank <= n.

    Ties share a rank and the next value takes rank + 1, so ties at the cutoff
    can return more than n rows.
    """
    filt = resolve_filters(filters)
    n = filt.top_n if n is None else int(n)
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")

    columns = ["rank", "product_detail", "product_category", "product_type", "total_sales", "quantity", "transactions"]
    df = apply_filter(schema.joined, filt)
    if df.empty:
        return pd.DataFrame(columns=columns)

    grouped = (
        df.groupby("product_detail")
        .agg(
            product_category=("product_category", "first"),
            product_type=("product_type", "first"),
            total_sales=("line_total", "sum"),
            quantity=("quantity", "sum"),
            transactions=("transaction_id", "nunique"),
        )
        .reset_index()
    )
    grouped["total_sales"] = pd.to_numeric(grouped["total_sales"], errors="coerce")
    grouped = grouped.dropna(subset=["total_sales"])
    # Rank on rounded sums so float summation order cannot split a tie.
    grouped["rank"] = grouped["total_sales"].round(6).rank(method="dense", ascending=False).astype(int)
    top = grouped[grouped["rank"] <= n].sort_values(["rank", "product_detail"]).reset_index(drop=True)
    return top[columns]


def period_comparison(
    schema: StarSchema,
    period: Period,
    metric: Union[str, Metric] = "total_sales",
    filters: FilterArg = None,
) -> Dict[str, Any]:
    """Metric for a period and the same period one calendar month earlier."""
    fn = resolve_metric(metric)
    filt = resolve_filters(filters)
    prior = shift_period(period, -1)
    current_filter = with_period(filt, period)
    prior_filter = with_period(filt, prior)

    current_value = fn(schema, current_filter)
    prior_has_rows = not apply_filter(schema.joined, prior_filter).empty
    prior_value = fn(schema, prior_filter) if prior_has_rows else None

    variance = None
    if (
        prior_value is not None
        and current_value is not None
        and not (isinstance(prior_value, float) and math.isnan(prior_value))
        and prior_value != 0
    ):
        variance = (float(current_value) - float(prior_value)) / float(prior_value)

    return {
        "period": period.label,
        "prior_period": prior.label,
        "current": current_value,
        "prior": prior_value,
        "variance": variance,
    }


def period_variance(
    schema: StarSchema,
    period: Period,
    metric: Union[str, Metric] = "total_sales",
    filters: FilterArg = None,
) -> Optional[float]:
    """(current - prior) / prior against the prior calendar month, or None when the prior is empty or zero."""
    return period_comparison(schema, period, metric, filters)["variance"]


def sales_by(schema: StarSchema, attribute: str, filters: FilterArg = None) -> pd.DataFrame:
    if attribute not in schema.attribute_columns:
        raise ValueError(f"unknown attribute {attribute!r}")
    columns = [attribute, "total_sales", "transactions", "quantity", "share"]
    df = filtered_facts(schema, filters)
    if df.empty:
        return pd.DataFrame(columns=columns)
    grouped = (
        df.groupby(attribute)
        .agg(total_sales=("line_total", "sum"), transactions=("transaction_id", "nunique"), quantity=("quantity", "sum"))
        .reset_index()
    )
    overall = grouped["total_sales"].sum()
    grouped["share"] = grouped["total_sales"] / overall if overall else None
    if attribute in ORDERED_ATTRIBUTES:
        grouped = grouped.sort_values(attribute)
    else:
        grouped = grouped.sort_values(["total_sales", attribute], ascending=[False, True])
    return grouped.reset_index(drop=True)[columns]


def daily_sales(schema: StarSchema, filters: FilterArg = None) -> pd.DataFrame:
    """Total sales per day with each day marked against the period's daily average."""
    columns = ["date_key", "date", "total_sales", "average", "vs_average"]
    df = filtered_facts(schema, filters)
    if df.empty:
        return pd.DataFrame(columns=columns)
    daily = df.groupby(["date_key", "date"]).agg(total_sales=("line_total", "sum")).reset_index().sort_values("date_key")
    avg = float(daily["total_sales"].mean())
    daily["average"] = avg
    daily["vs_average"] = daily["total_sales"].apply(
        lambda v: "Above Average" if v > avg else ("Below Average" if v < avg else "Average")
    )
    return daily.reset_index(drop=True)[columns]


def available_months(schema: StarSchema, filters: FilterArg = None) -> list:
    df = filtered_facts(schema, filters)
    if df.empty:
        return []
    months = df[["year", "month"]].drop_duplicates().sort_values(["year", "month"])
    return [(int(y), int(m)) for y, m in months.itertuples(index=False)]
