from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class SalesFilterModel(BaseModel):
    store_locations: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    product_types: List[str] = Field(default_factory=list)
    products: List[str] = Field(default_factory=list)
    years: List[int] = Field(default_factory=list)
    months: List[int] = Field(default_factory=list)
    weekdays: List[int] = Field(default_factory=list)
    hours: List[int] = Field(default_factory=list)
    parts_of_day: List[str] = Field(default_factory=list)
    date_from: Optional[Union[int, str]] = None
    date_to: Optional[Union[int, str]] = None
    attributes: Dict[str, List[Any]] = Field(default_factory=dict)
    top_n: int = 10


class MeasureResponse(BaseModel):
    measure: str
    value: Optional[Union[int, float]]


class VarianceResponse(BaseModel):
    measure: str
    period: str
    prior_period: str
    current: Optional[float]
    prior: Optional[float]
    variance: Optional[float]


class MetaListResponse(BaseModel):
    values: List[str]
