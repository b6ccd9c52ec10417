from __future__ import annotations

import logging
import math
from typing import Callable, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salesapi.schemas import MeasureResponse, MetaListResponse, SalesFilterModel, VarianceResponse
from salescore.data import load_sales_data
from salescore.datekeys import Period
from salescore.filters import SalesFilter, normalize_filters
from salescore.measures import UnknownMeasureError, period_comparison, resolve_metric, top_products
from salescore.metrics_debug import compute_debug
from salescore.metrics_overview import compute_overview
from salescore.metrics_performance import compute_performance
from salescore.metrics_timing import compute_timing
from salescore.schema import DataLoadError, StarSchema


app = FastAPI(title="Coffee Sales Analytics API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def _filters_from_model(model: Optional[SalesFilterModel]) -> SalesFilter:
    return normalize_filters(model.model_dump() if model is not None else {})


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _run(name: str, model: Optional[SalesFilterModel], compute: Callable[[StarSchema, SalesFilter], object]) -> JSONResponse:
    try:
        f = _filters_from_model(model)
        schema = load_sales_data()
        return _json(compute(schema, f))
    except DataLoadError as exc:
        logger.exception("%s failed loading sales data", name)
        return _error(exc)
    except UnknownMeasureError as exc:
        return _error(exc, 404)
    except ValueError as exc:
        logger.warning("%s rejected: %s", name, exc)
        return _error(exc, 422)
    except Exception as exc:
        logger.exception("%s failed", name)
        return _error(exc)


def _meta_values(schema: StarSchema, table: str, column: str) -> dict:
    values = sorted(str(x) for x in getattr(schema, table)[column].dropna().unique().tolist())
    return MetaListResponse(values=values).model_dump()


def _meta_months(schema: StarSchema) -> dict:
    dates = schema.dim_date[schema.dim_date["date_key"].isin(schema.fact["date_key"].unique())]
    months = dates[["year", "month"]].drop_duplicates().sort_values(["year", "month"])
    return MetaListResponse(values=[f"{y}-{m:02d}" for y, m in months.itertuples(index=False)]).model_dump()


@app.get("/meta/stores")
def meta_stores():
    return _run("meta_stores", None, lambda schema, _: _meta_values(schema, "dim_store", "store_location"))


@app.get("/meta/categories")
def meta_categories():
    return _run("meta_categories", None, lambda schema, _: _meta_values(schema, "dim_product", "product_category"))


@app.get("/meta/months")
def meta_months():
    return _run("meta_months", None, lambda schema, _: _meta_months(schema))


@app.post("/measures/{measure}")
def measure(measure: str, filters: Optional[SalesFilterModel] = None):
    def compute(schema: StarSchema, f: SalesFilter) -> dict:
        value = resolve_metric(measure)(schema, f)
        return MeasureResponse(measure=measure, value=value).model_dump()

    return _run("measure", filters, compute)


@app.post("/top-products")
def top_products_endpoint(filters: Optional[SalesFilterModel] = None, n: Optional[int] = Query(default=None, ge=1)):
    def compute(schema: StarSchema, f: SalesFilter) -> dict:
        return {"n": n or f.top_n, "top": top_products(schema, f, n).to_dict(orient="records")}

    return _run("top_products", filters, compute)


@app.post("/variance")
def variance(
    filters: Optional[SalesFilterModel] = None,
    year: int = Query(...),
    month: int = Query(..., ge=1, le=12),
    metric: str = Query(default="total_sales"),
):
    def compute(schema: StarSchema, f: SalesFilter) -> dict:
        result = period_comparison(schema, Period.month(year, month), metric, f)
        return VarianceResponse(measure=metric, **result).model_dump()

    return _run("variance", filters, compute)


@app.post("/overview")
def overview(filters: Optional[SalesFilterModel] = None):
    return _run("overview", filters, lambda schema, f: compute_overview(f, schema))


@app.post("/performance")
def performance(filters: Optional[SalesFilterModel] = None, n: Optional[int] = Query(default=None, ge=1)):
    return _run("performance", filters, lambda schema, f: compute_performance(f, schema, n=n))


@app.post("/timing")
def timing(filters: Optional[SalesFilterModel] = None):
    return _run("timing", filters, lambda schema, f: compute_timing(f, schema))


@app.post("/debug")
def debug(filters: Optional[SalesFilterModel] = None):
    return _run("debug", filters, lambda schema, f: compute_debug(f, schema))
