from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import pandas as pd

from salescore.datekeys import to_date_key

logger = logging.getLogger(__name__)


class DataLoadError(ValueError):
    """The snapshot cannot be turned into a consistent star schema."""


class SchemaError(DataLoadError):
    pass


class ReferentialIntegrityError(DataLoadError):
    pass


@dataclass(frozen=True)
class PartOfDayBounds:
    afternoon_start: int = 12
    evening_start: int = 17

    def label(self, hour: int) -> str:
        if hour < self.afternoon_start:
            return "Morning"
        if hour < self.evening_start:
            return "Afternoon"
        return "Evening"


FACT_COLUMNS = ["transaction_id", "date_key", "time_key", "product_key", "store_key", "quantity", "unit_price"]

DIM_DATE_COLUMNS = ["date_key", "date", "year", "quarter", "month", "month_name", "day", "weekday", "day_name", "is_weekend"]
DIM_TIME_COLUMNS = ["time_key", "hour", "hour_label", "part_of_day"]
DIM_PRODUCT_COLUMNS = ["product_key", "product_category", "product_type", "product_detail"]
DIM_STORE_COLUMNS = ["store_key", "store_location"]

# fact foreign key -> (dimension name, dimension key)
FOREIGN_KEYS: Dict[str, tuple] = {
    "date_key": ("dim_date", "date_key"),
    "time_key": ("dim_time", "time_key"),
    "product_key": ("dim_product", "product_key"),
    "store_key": ("dim_store", "store_key"),
}

# Attributes that pin a calendar position; a period filter replaces them.
DATE_POSITION_ATTRIBUTES = {"date_key", "date", "year", "quarter", "month", "month_name", "day"}


def _require_columns(df: pd.DataFrame, cols: Iterable[str], table: str) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise SchemaError(f"{table} is missing columns: {', '.join(missing)}")


def _require_unique_key(df: pd.DataFrame, key: str, table: str) -> None:
    if df[key].isna().any():
        raise SchemaError(f"{table}.{key} contains null keys")
    dupes = df.loc[df[key].duplicated(keep=False), key].unique().tolist()
    if dupes:
        raise SchemaError(f"{table}.{key} is not unique: {dupes[:10]}")


def _check_date_keys(dim_date: pd.DataFrame) -> None:
    dates = pd.to_datetime(dim_date["date"], errors="coerce")
    from_date = dates.dt.year * 10000 + dates.dt.month * 100 + dates.dt.day
    from_parts = (
        pd.to_numeric(dim_date["year"], errors="coerce") * 10000
        + pd.to_numeric(dim_date["month"], errors="coerce") * 100
        + pd.to_numeric(dim_date["day"], errors="coerce")
    )
    keys = pd.to_numeric(dim_date["date_key"], errors="coerce")
    bad = dates.isna() | keys.isna() | (keys != from_date) | (keys != from_parts)
    if bad.any():
        sample = _sample(dim_date.loc[bad, "date_key"])
        raise SchemaError(f"dim_date has {int(bad.sum())} date_key values that do not encode their date: {sample}")


def _sample(values: pd.Series, limit: int = 10) -> List[object]:
    return values.drop_duplicates().head(limit).tolist()


def build_dim_date(start: pd.Timestamp, end: pd.Timestamp) -> pd.DataFrame:
    """One row per calendar day from start to end inclusive."""
    dates = pd.date_range(pd.Timestamp(start).normalize(), pd.Timestamp(end).normalize(), freq="D")
    dim = pd.DataFrame({"date": dates})
    dim["date_key"] = (dim["date"].dt.year * 10000 + dim["date"].dt.month * 100 + dim["date"].dt.day).astype("int64")
    dim["year"] = dim["date"].dt.year.astype("int64")
    dim["quarter"] = dim["date"].dt.quarter.astype("int64")
    dim["month"] = dim["date"].dt.month.astype("int64")
    dim["month_name"] = dim["date"].dt.strftime("%b")
    dim["day"] = dim["date"].dt.day.astype("int64")
    dim["weekday"] = dim["date"].dt.weekday.astype("int64")
    dim["day_name"] = dim["date"].dt.strftime("%a")
    dim["is_weekend"] = dim["weekday"] >= 5
    return dim[DIM_DATE_COLUMNS]


def build_dim_time(bounds: Optional[PartOfDayBounds] = None) -> pd.DataFrame:
    bounds = bounds or PartOfDayBounds()
    hours = list(range(24))
    return pd.DataFrame(
        {
            "time_key": hours,
            "hour": hours,
            "hour_label": [f"{h:02d}:00" for h in hours],
            "part_of_day": [bounds.label(h) for h in hours],
        }
    )[DIM_TIME_COLUMNS]


def _attribute_dim(transactions: pd.DataFrame, id_col: str, key: str, attrs: List[str], table: str) -> pd.DataFrame:
    dim = transactions[[id_col] + attrs].drop_duplicates().rename(columns={id_col: key})
    conflicts = dim.loc[dim[key].duplicated(keep=False), key].unique().tolist()
    if conflicts:
        raise SchemaError(f"{table}: ids with conflicting attributes: {conflicts[:10]}")
    return dim.sort_values(key).reset_index(drop=True)


def validate_referential_integrity(fact: pd.DataFrame, dims: Dict[str, pd.DataFrame]) -> None:
    """Raise if any fact foreign key has no matching dimension row."""
    problems = []
    for fk, (dim_name, dim_key) in FOREIGN_KEYS.items():
        dim = dims[dim_name]
        unmatched = fact.loc[~fact[fk].isin(dim[dim_key]), fk]
        if not unmatched.empty:
            problems.append(f"{len(unmatched)} fact rows with {fk} not in {dim_name} (e.g. {_sample(unmatched)})")
    if problems:
        raise ReferentialIntegrityError("; ".join(problems))


@dataclass(frozen=True)
class StarSchema:
    """Immutable star schema plus the denormalized fact view queries scan."""

    fact: pd.DataFrame
    dim_date: pd.DataFrame
    dim_time: pd.DataFrame
    dim_product: pd.DataFrame
    dim_store: pd.DataFrame
    joined: pd.DataFrame = field(init=False, repr=False)

    def __post_init__(self) -> None:
        joined = (
            self.fact.merge(self.dim_date, on="date_key", how="left", validate="many_to_one")
            .merge(self.dim_time, on="time_key", how="left", validate="many_to_one")
            .merge(self.dim_product, on="product_key", how="left", validate="many_to_one")
            .merge(self.dim_store, on="store_key", how="left", validate="many_to_one")
        )
        object.__setattr__(self, "joined", joined)

    @property
    def dimensions(self) -> Dict[str, pd.DataFrame]:
        return {
            "dim_date": self.dim_date,
            "dim_time": self.dim_time,
            "dim_product": self.dim_product,
            "dim_store": self.dim_store,
        }

    @property
    def attribute_columns(self) -> List[str]:
        cols: List[str] = []
        for dim in self.dimensions.values():
            cols.extend(c for c in dim.columns if c not in cols)
        return cols

    def date_bounds(self) -> tuple:
        if self.fact.empty:
            return None, None
        return int(self.fact["date_key"].min()), int(self.fact["date_key"].max())


def build_star_schema(
    fact: pd.DataFrame,
    dim_date: pd.DataFrame,
    dim_time: pd.DataFrame,
    dim_product: pd.DataFrame,
    dim_store: pd.DataFrame,
) -> StarSchema:
    """Validate prebuilt tables and assemble them into a StarSchema."""
    _require_columns(fact, FACT_COLUMNS, "fact_sales")
    tables = {
        "dim_date": (dim_date, DIM_DATE_COLUMNS),
        "dim_time": (dim_time, DIM_TIME_COLUMNS),
        "dim_product": (dim_product, DIM_PRODUCT_COLUMNS),
        "dim_store": (dim_store, DIM_STORE_COLUMNS),
    }
    for name, (df, cols) in tables.items():
        _require_columns(df, cols, name)
    for dim_name, dim_key in FOREIGN_KEYS.values():
        _require_unique_key(tables[dim_name][0], dim_key, dim_name)
    _check_date_keys(dim_date)

    fact = fact[FACT_COLUMNS].copy()
    fact["transaction_id"] = pd.to_numeric(fact["transaction_id"], errors="coerce")
    bad_ids = fact["transaction_id"].isna() | (fact["transaction_id"] % 1 != 0)
    if bad_ids.any():
        raise SchemaError(f"fact_sales has {int(bad_ids.sum())} rows with a missing or non-integer transaction_id (rows {fact.index[bad_ids].tolist()[:10]})")
    fact["transaction_id"] = fact["transaction_id"].astype("int64")
    fact["quantity"] = pd.to_numeric(fact["quantity"], errors="coerce")
    fact["unit_price"] = pd.to_numeric(fact["unit_price"], errors="coerce")
    bad = fact["quantity"].isna() | fact["unit_price"].isna() | (fact["quantity"] <= 0) | (fact["unit_price"] <= 0)
    bad |= fact["quantity"].notna() & (fact["quantity"] % 1 != 0)
    if bad.any():
        raise SchemaError(f"fact_sales has {int(bad.sum())} rows with invalid quantity or unit price (rows {fact.index[bad].tolist()[:10]})")
    fact["quantity"] = fact["quantity"].astype("int64")
    fact["unit_price"] = fact["unit_price"].astype(float)

    dims = {name: df[cols].copy() for name, (df, cols) in tables.items()}
    validate_referential_integrity(fact, dims)

    # Row-level multiply before any aggregation.
    fact["line_total"] = fact["quantity"] * fact["unit_price"]
    fact = fact.reset_index(drop=True)

    schema = StarSchema(fact=fact, **dims)
    logger.info(
        "Star schema ready: %d fact rows, %d dates, %d products, %d stores",
        len(fact),
        len(dims["dim_date"]),
        len(dims["dim_product"]),
        len(dims["dim_store"]),
    )
    return schema


def schema_from_transactions(transactions: pd.DataFrame, bounds: Optional[PartOfDayBounds] = None) -> StarSchema:
    """Split normalized flat transaction lines into fact and dimension tables.

    Expects the canonical column names produced by ``salescore.data.normalize_transactions``
    with ``transaction_date`` as datetimes and ``hour`` as the hour of day.
    """
    if transactions.empty:
        raise SchemaError("snapshot contains no transaction rows")

    dim_product = _attribute_dim(
        transactions, "product_id", "product_key", ["product_category", "product_type", "product_detail"], "dim_product"
    )
    dim_store = _attribute_dim(transactions, "store_id", "store_key", ["store_location"], "dim_store")
    dim_date = build_dim_date(transactions["transaction_date"].min(), transactions["transaction_date"].max())
    dim_time = build_dim_time(bounds)

    fact = pd.DataFrame(
        {
            "transaction_id": transactions["transaction_id"],
            "date_key": transactions["transaction_date"].map(to_date_key).astype("int64"),
            "time_key": transactions["hour"].astype("int64"),
            "product_key": transactions["product_id"],
            "store_key": transactions["store_id"],
            "quantity": transactions["transaction_qty"],
            "unit_price": transactions["unit_price"],
        }
    )
    return build_star_schema(fact, dim_date, dim_time, dim_product, dim_store)
