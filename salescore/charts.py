from __future__ import annotations

from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

CURRENCY_FORMAT = "$,.2f"


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def sales_bar(
    df: pd.DataFrame,
    category: str,
    *,
    title: str,
    horizontal: bool = False,
    sort: Optional[List[Any]] = None,
) -> Dict[str, Any]:
    """Bar chart of total_sales per category value, with hover highlight."""
    hover = alt.selection_point(fields=[category], on="mouseover", empty="all")
    cat_axis = alt.Axis(grid=False)
    sales_axis = alt.Axis(format="$~s", gridDash=[4, 4], domain=False, ticks=False)
    cat_enc = f"{category}:N"
    sort_order = sort if sort is not None else "-x" if horizontal else "-y"
    chart = (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("total_sales:Q", title="Sales", axis=sales_axis) if horizontal else alt.X(cat_enc, title=title, sort=sort_order, axis=cat_axis),
            y=alt.Y(cat_enc, title=title, sort=sort_order, axis=cat_axis) if horizontal else alt.Y("total_sales:Q", title="Sales", axis=sales_axis),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[
                alt.Tooltip(category, title=title),
                alt.Tooltip("total_sales:Q", title="Sales", format=CURRENCY_FORMAT),
            ],
        )
        .add_params(hover)
    )
    return to_vega_spec(chart)
