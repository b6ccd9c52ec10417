from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

from salescore.charts import sales_bar
from salescore.filters import SalesFilter
from salescore.measures import sales_by, top_products
from salescore.schema import StarSchema


def compute_performance(filters: SalesFilter, schema: StarSchema, *, n: Optional[int] = None) -> Dict[str, Any]:
    top = top_products(schema, filters, n)
    if top.empty:
        return {"filters": asdict(filters), "top": [], "breakdowns": {}, "charts": {}}

    breakdowns = {
        "category": sales_by(schema, "product_category", filters),
        "product_type": sales_by(schema, "product_type", filters),
        "store": sales_by(schema, "store_location", filters),
    }
    charts = {
        "top_products": sales_bar(top, "product_detail", title="Product", horizontal=True, sort=top["product_detail"].tolist()),
        "category": sales_bar(breakdowns["category"], "product_category", title="Category"),
        "store": sales_bar(breakdowns["store"], "store_location", title="Store"),
    }
    return {
        "filters": asdict(filters),
        "top": top.to_dict(orient="records"),
        "breakdowns": {k: v.to_dict(orient="records") for k, v in breakdowns.items()},
        "charts": charts,
    }
