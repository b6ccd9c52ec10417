from __future__ import annotations

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from salescore.schema import (
    PartOfDayBounds,
    SchemaError,
    StarSchema,
    build_star_schema,
    schema_from_transactions,
)

logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("SALES_DATA_DIR", Path(__file__).resolve().parents[1] / "data"))
FILE_GLOBS = ("*Coffee Shop Sales*.xlsx", "*Coffee Shop Sales*.csv")
STAR_TABLE_FILES = {
    "fact": "fact_sales.csv",
    "dim_date": "dim_date.csv",
    "dim_time": "dim_time.csv",
    "dim_product": "dim_product.csv",
    "dim_store": "dim_store.csv",
}

SOURCE_COLUMNS = {
    "transaction_id": "transaction_id",
    "transaction id": "transaction_id",
    "transaction_date": "transaction_date",
    "transaction date": "transaction_date",
    "date": "transaction_date",
    "transaction_time": "transaction_time",
    "transaction time": "transaction_time",
    "time": "transaction_time",
    "transaction_qty": "transaction_qty",
    "transaction qty": "transaction_qty",
    "quantity": "transaction_qty",
    "qty": "transaction_qty",
    "store_id": "store_id",
    "store id": "store_id",
    "store_location": "store_location",
    "store location": "store_location",
    "product_id": "product_id",
    "product id": "product_id",
    "unit_price": "unit_price",
    "unit price": "unit_price",
    "product_category": "product_category",
    "product category": "product_category",
    "product_type": "product_type",
    "product type": "product_type",
    "product_detail": "product_detail",
    "product detail": "product_detail",
}
REQUIRED_COLUMNS = [
    "transaction_id",
    "transaction_date",
    "transaction_time",
    "transaction_qty",
    "store_id",
    "store_location",
    "product_id",
    "unit_price",
    "product_category",
    "product_type",
    "product_detail",
]
TEXT_COLUMNS = ["store_location", "product_category", "product_type", "product_detail"]


def get_source_files(data_dir: Optional[Path] = None) -> List[Path]:
    data_dir = Path(data_dir or DATA_DIR)
    found = set()
    for pattern in FILE_GLOBS:
        found.update(data_dir.glob(pattern))
    return sorted(found)


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((str(f), f.stat().st_mtime) for f in files)


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA})
            df[col] = series
    return df


def parse_hour(value: object) -> Optional[int]:
    """Hour of day from a time cell: datetime.time, Timestamp, or 'HH:MM[:SS]' text."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    hour = getattr(value, "hour", None)
    if hour is not None:
        return int(hour)
    match = re.match(r"^\s*(\d{1,2}):\d{2}", str(value))
    if not match:
        return None
    hour = int(match.group(1))
    return hour if 0 <= hour <= 23 else None


def read_snapshot(path: Union[str, Path]) -> pd.DataFrame:
    path = Path(path)
    if path.suffix.lower() in {".xlsx", ".xlsm", ".xls"}:
        return pd.read_excel(path)
    return pd.read_csv(path, encoding="utf-8-sig")


def _bad_rows(df: pd.DataFrame, mask: pd.Series, what: str) -> None:
    if mask.any():
        raise SchemaError(f"{int(mask.sum())} snapshot rows have {what} (rows {df.index[mask].tolist()[:10]})")


def normalize_transactions(raw: pd.DataFrame) -> pd.DataFrame:
    """Rename snapshot headers to canonical names and coerce every field.

    Adds ``hour``. Raises SchemaError for missing columns or rows that cannot be
    typed, instead of dropping them.
    """
    df = raw.copy()
    df.columns = [str(c).strip() for c in df.columns]
    df = df.rename(columns={c: SOURCE_COLUMNS[c.lower()] for c in df.columns if c.lower() in SOURCE_COLUMNS})
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise SchemaError(f"snapshot is missing columns: {', '.join(missing)}")
    df = df[REQUIRED_COLUMNS].copy()

    df = coerce_str_safe(df, TEXT_COLUMNS)
    df = numericize(df, ["transaction_id", "transaction_qty", "store_id", "product_id", "unit_price"])
    df["transaction_date"] = pd.to_datetime(df["transaction_date"], errors="coerce", format="mixed")
    df["hour"] = df["transaction_time"].apply(parse_hour)

    _bad_rows(df, df[["transaction_id", "store_id", "product_id"]].isna().any(axis=1), "missing or non-numeric ids")
    _bad_rows(df, df["transaction_date"].isna(), "unparseable transaction dates")
    _bad_rows(df, df["hour"].isna(), "unparseable transaction times")
    _bad_rows(df, df[TEXT_COLUMNS].isna().any(axis=1), "blank store or product attributes")
    qty = df["transaction_qty"]
    _bad_rows(df, qty.isna() | (qty <= 0) | (qty % 1 != 0), "a quantity that is not a positive integer")
    price = df["unit_price"]
    _bad_rows(df, price.isna() | (price <= 0), "a unit price that is not positive")

    for col in ["transaction_id", "store_id", "product_id", "transaction_qty", "hour"]:
        df[col] = df[col].astype("int64")
    for col in TEXT_COLUMNS:
        df[col] = df[col].astype(str)
    return df


def load_snapshot(path: Union[str, Path], bounds: Optional[PartOfDayBounds] = None) -> StarSchema:
    raw = read_snapshot(path)
    logger.info("Read %d rows from %s", len(raw), path)
    return schema_from_transactions(normalize_transactions(raw), bounds)


def load_star_tables(directory: Union[str, Path]) -> StarSchema:
    """Load prebuilt fact/dimension CSVs and validate them as a star schema."""
    directory = Path(directory)
    tables: Dict[str, pd.DataFrame] = {}
    for name, filename in STAR_TABLE_FILES.items():
        path = directory / filename
        if not path.exists():
            raise FileNotFoundError(f"missing star table {path}")
        tables[name] = pd.read_csv(path, encoding="utf-8-sig")
        logger.info("Read %d rows from %s", len(tables[name]), path)
    return build_star_schema(**tables)


# ---------------- Public API ----------------
@lru_cache(maxsize=4)
def _load_sales_data_cached(files_sig: Tuple[Tuple[str, float], ...]) -> StarSchema:
    frames = [normalize_transactions(read_snapshot(name)) for name, _ in files_sig]
    transactions = pd.concat(frames, ignore_index=True)
    logger.info("Loaded %d transaction lines from %d file(s)", len(transactions), len(frames))
    return schema_from_transactions(transactions)


def load_sales_data(data_dir: Optional[Path] = None) -> StarSchema:
    files = get_source_files(data_dir)
    if not files:
        raise FileNotFoundError(f"no sales snapshot found in {data_dir or DATA_DIR} (expected {' or '.join(FILE_GLOBS)})")
    return _load_sales_data_cached(file_signature(files))
