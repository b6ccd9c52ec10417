"""
Unit Tests - Dashboard Page Payloads
"""
import json

import pytest

from salescore.filters import SalesFilter
from salescore.metrics_debug import compute_debug
from salescore.metrics_overview import compute_overview
from salescore.metrics_performance import compute_performance
from salescore.metrics_timing import compute_timing


class TestOverview:
    """Tests for compute_overview"""

    def test_latest_month_kpis(self, schema):
        payload = compute_overview(SalesFilter(), schema)
        assert payload["snapshot"]["period"] == "2023-03"
        sales = payload["kpis"]["total_sales"]
        assert sales["current"] == pytest.approx(19.00)
        assert sales["prior"] == pytest.approx(18.80)
        assert sales["variance"] == pytest.approx((19.00 - 18.80) / 18.80)
        assert payload["kpis"]["total_transactions"]["current"] == 2
        assert payload["months"] == ["2023-01", "2023-02", "2023-03"]

    def test_monthly_trend(self, schema):
        payload = compute_overview(SalesFilter(), schema)
        monthly = payload["monthly"]
        assert [m["month_label"] for m in monthly] == ["2023-01", "2023-02", "2023-03"]
        assert monthly[0]["mom_pct"] is None
        assert monthly[1]["mom_pct"] == pytest.approx((18.80 - 15.60) / 15.60)
        assert "monthly_sales" in payload["charts"]

    def test_empty_filter_result(self, schema):
        payload = compute_overview(SalesFilter(store_locations=["Brooklyn"]), schema)
        assert payload["kpis"] == {}
        assert payload["charts"] == {}

    def test_first_month_variance_undefined(self, schema):
        payload = compute_overview(SalesFilter(months=[1]), schema)
        assert payload["snapshot"]["period"] == "2023-01"
        assert payload["kpis"]["total_sales"]["variance"] is None
        assert payload["kpis"]["average_transaction_value"]["variance"] is None


class TestPerformance:
    """Tests for compute_performance"""

    def test_top_and_breakdowns(self, schema):
        payload = compute_performance(SalesFilter(top_n=2), schema)
        assert [r["product_detail"] for r in payload["top"]] == ["Latte", "Oatmeal Scone"]
        categories = {r["product_category"]: r["total_sales"] for r in payload["breakdowns"]["category"]}
        assert categories["Coffee"] == pytest.approx(27.00)
        assert set(payload["charts"]) == {"top_products", "category", "store"}

    def test_explicit_n_overrides_filter(self, ranking_schema):
        payload = compute_performance(SalesFilter(top_n=1), ranking_schema, n=2)
        assert len(payload["top"]) == 4

    def test_charts_are_vega_lite(self, schema):
        spec = compute_performance(SalesFilter(), schema)["charts"]["category"]
        mark = spec["mark"]
        assert (mark["type"] if isinstance(mark, dict) else mark) == "bar"
        json.dumps(spec)


class TestTiming:
    """Tests for compute_timing"""

    def test_part_of_day_in_clock_order(self, schema):
        payload = compute_timing(SalesFilter(), schema)
        assert [r["part_of_day"] for r in payload["part_of_day"]] == ["Morning", "Afternoon", "Evening"]

    def test_heatmap_cells(self, schema):
        payload = compute_timing(SalesFilter(), schema)
        cell = [r for r in payload["heatmap"] if r["day_name"] == "Sun" and r["hour"] == 7][0]
        assert cell["total_sales"] == pytest.approx(9.10)
        assert cell["transactions"] == 1

    def test_daily_dates_serializable(self, schema):
        payload = compute_timing(SalesFilter(), schema)
        assert payload["daily"][0]["date"] == "2023-01-01"
        json.dumps(payload["charts"])

    def test_empty(self, schema):
        assert compute_timing(SalesFilter(categories=["Flowers"]), schema)["heatmap"] == []


class TestDebug:
    """Tests for compute_debug"""

    def test_row_counts_and_coverage(self, schema):
        payload = compute_debug(SalesFilter(), schema)
        assert payload["row_counts"]["fact_rows"] == 9
        assert payload["row_counts"]["dim_date_rows"] == 90
        assert payload["coverage"]["first_date"] == "2023-01-01"
        assert payload["coverage"]["last_date"] == "2023-03-31"
        assert payload["coverage"]["days_with_sales"] == 6
        assert payload["coverage"]["multi_line_transactions"] == 2
        assert payload["unused_products"] == []
