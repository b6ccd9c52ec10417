from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import altair as alt

from salescore.charts import CURRENCY_FORMAT, to_vega_spec
from salescore.datekeys import Period
from salescore.filters import SalesFilter
from salescore.measures import MEASURES, available_months, filtered_facts, period_comparison
from salescore.schema import StarSchema


def compute_overview(filters: SalesFilter, schema: StarSchema) -> Dict[str, Any]:
    months = available_months(schema, filters)
    if not months:
        return {"filters": asdict(filters), "snapshot": None, "kpis": {}, "months": [], "monthly": [], "charts": {}}

    year, month = months[-1]
    period = Period.month(year, month)
    kpis = {name: period_comparison(schema, period, name, filters) for name in MEASURES}

    df = filtered_facts(schema, filters)
    monthly = (
        df.groupby(["year", "month", "month_name"])
        .agg(total_sales=("line_total", "sum"), transactions=("transaction_id", "nunique"), quantity=("quantity", "sum"))
        .reset_index()
        .sort_values(["year", "month"])
    )
    monthly["month_label"] = monthly.apply(lambda r: f"{int(r['year'])}-{int(r['month']):02d}", axis=1)
    prev = monthly["total_sales"].shift(1)
    consecutive = (monthly["year"] * 12 + monthly["month"]).diff() == 1
    monthly["mom_pct"] = ((monthly["total_sales"] - prev) / prev).where(consecutive & prev.ne(0))
    monthly["mom_pct"] = monthly["mom_pct"].astype(object).where(monthly["mom_pct"].notna(), None)

    hover = alt.selection_point(fields=["month_label"], on="mouseover", empty="all")
    trend = (
        alt.Chart(monthly)
        .mark_bar()
        .encode(
            x=alt.X("month_label:O", title="Month", axis=alt.Axis(grid=False)),
            y=alt.Y("total_sales:Q", title="Sales", axis=alt.Axis(format="$~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.condition(
                alt.datum.month_label == f"{year}-{month:02d}", alt.value("#2563eb"), alt.value("#9ca3af")
            ),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[
                alt.Tooltip("month_label", title="Month"),
                alt.Tooltip("total_sales:Q", title="Sales", format=CURRENCY_FORMAT),
                alt.Tooltip("transactions:Q", title="Orders", format=","),
                alt.Tooltip("mom_pct:Q", title="MoM", format="+.1%"),
            ],
        )
        .add_params(hover)
        .properties(height=260)
    )

    return {
        "filters": asdict(filters),
        "snapshot": {"year": year, "month": month, "period": period.label},
        "kpis": kpis,
        "months": [f"{y}-{m:02d}" for y, m in months],
        "monthly": monthly.to_dict(orient="records"),
        "charts": {"monthly_sales": to_vega_spec(trend)},
    }
