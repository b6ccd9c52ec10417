from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from salescore.datekeys import from_date_key
from salescore.filters import SalesFilter
from salescore.schema import StarSchema


def compute_debug(filters: SalesFilter, schema: StarSchema) -> Dict[str, Any]:
    fact = schema.fact
    first_key, last_key = schema.date_bounds()
    payload: Dict[str, Any] = {
        "filters": asdict(filters),
        "row_counts": {
            "fact_rows": int(len(fact)),
            "dim_date_rows": int(len(schema.dim_date)),
            "dim_time_rows": int(len(schema.dim_time)),
            "dim_product_rows": int(len(schema.dim_product)),
            "dim_store_rows": int(len(schema.dim_store)),
        },
        "coverage": {
            "first_date": from_date_key(first_key).isoformat() if first_key is not None else None,
            "last_date": from_date_key(last_key).isoformat() if last_key is not None else None,
            "days_with_sales": int(fact["date_key"].nunique()),
            "distinct_transactions": int(fact["transaction_id"].nunique()),
            "multi_line_transactions": 0,
        },
        "unused_products": [],
        "days_without_sales": [],
    }
    if fact.empty:
        return payload

    lines = fact.groupby("transaction_id").size()
    payload["coverage"]["multi_line_transactions"] = int((lines > 1).sum())

    used = set(fact["product_key"].unique())
    unused = schema.dim_product[~schema.dim_product["product_key"].isin(used)]
    payload["unused_products"] = unused.to_dict(orient="records")

    quiet = schema.dim_date[~schema.dim_date["date_key"].isin(fact["date_key"].unique())]
    payload["days_without_sales"] = [int(k) for k in quiet["date_key"].tolist()][:50]
    return payload
