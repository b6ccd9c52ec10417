from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import altair as alt
import pandas as pd

from salescore.charts import CURRENCY_FORMAT, sales_bar, to_vega_spec
from salescore.filters import SalesFilter
from salescore.measures import daily_sales, filtered_facts, sales_by
from salescore.schema import StarSchema

DAY_ORDER = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
PART_OF_DAY_ORDER = ["Morning", "Afternoon", "Evening"]


def compute_timing(filters: SalesFilter, schema: StarSchema) -> Dict[str, Any]:
    df = filtered_facts(schema, filters)
    if df.empty:
        return {"filters": asdict(filters), "heatmap": [], "part_of_day": [], "daily": [], "charts": {}}

    heat = (
        df.groupby(["weekday", "day_name", "hour"])
        .agg(total_sales=("line_total", "sum"), transactions=("transaction_id", "nunique"))
        .reset_index()
        .sort_values(["weekday", "hour"])
    )
    part_of_day = sales_by(schema, "part_of_day", filters)
    part_of_day["order"] = part_of_day["part_of_day"].map({p: i for i, p in enumerate(PART_OF_DAY_ORDER)})
    part_of_day = part_of_day.sort_values("order").drop(columns=["order"]).reset_index(drop=True)
    daily = daily_sales(schema, filters)

    heatmap_chart = (
        alt.Chart(heat)
        .mark_rect()
        .encode(
            x=alt.X("hour:O", title="Hour"),
            y=alt.Y("day_name:O", title="Day", sort=DAY_ORDER),
            color=alt.Color("total_sales:Q", title="Sales", scale=alt.Scale(scheme="oranges")),
            tooltip=[
                alt.Tooltip("day_name", title="Day"),
                alt.Tooltip("hour:O", title="Hour"),
                alt.Tooltip("total_sales:Q", title="Sales", format=CURRENCY_FORMAT),
                alt.Tooltip("transactions:Q", title="Orders", format=","),
            ],
        )
    )

    daily_src = daily.assign(date=pd.to_datetime(daily["date"]).dt.strftime("%Y-%m-%d"))
    bars = (
        alt.Chart(daily_src)
        .mark_bar()
        .encode(
            x=alt.X("date:O", title="Day", axis=alt.Axis(labels=False, ticks=False)),
            y=alt.Y("total_sales:Q", title="Sales", axis=alt.Axis(format="$~s", gridDash=[4, 4], domain=False)),
            color=alt.Color(
                "vs_average:N",
                title="",
                scale=alt.Scale(domain=["Above Average", "Below Average", "Average"], range=["#c2410c", "#9ca3af", "#6b7280"]),
            ),
            tooltip=[
                alt.Tooltip("date", title="Date"),
                alt.Tooltip("total_sales:Q", title="Sales", format=CURRENCY_FORMAT),
            ],
        )
    )
    avg_rule = alt.Chart(daily_src).mark_rule(strokeDash=[4, 4]).encode(y="mean(total_sales):Q")

    return {
        "filters": asdict(filters),
        "heatmap": heat.to_dict(orient="records"),
        "part_of_day": part_of_day.to_dict(orient="records"),
        "daily": daily_src.to_dict(orient="records"),
        "charts": {
            "weekday_hour": to_vega_spec(heatmap_chart),
            "part_of_day": sales_bar(part_of_day, "part_of_day", title="Part of day", sort=PART_OF_DAY_ORDER),
            "daily": to_vega_spec(bars + avg_rule),
        },
    }
