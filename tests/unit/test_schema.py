"""
Unit Tests - Snapshot Loading and Star Schema
"""
import pandas as pd
import pytest

from salescore.data import load_snapshot, load_star_tables, normalize_transactions, parse_hour
from salescore.schema import (
    PartOfDayBounds,
    ReferentialIntegrityError,
    SchemaError,
    build_star_schema,
    schema_from_transactions,
)


class TestNormalizeTransactions:
    """Tests for snapshot normalization"""

    def test_header_variants_are_renamed(self, raw_snapshot):
        raw = raw_snapshot.rename(columns={"transaction_qty": "Transaction Qty", "unit_price": "Unit Price"})
        df = normalize_transactions(raw)
        assert "transaction_qty" in df.columns
        assert "unit_price" in df.columns
        assert df["hour"].tolist()[:3] == [7, 7, 13]

    def test_missing_column_raises(self, raw_snapshot):
        with pytest.raises(SchemaError, match="product_detail"):
            normalize_transactions(raw_snapshot.drop(columns=["product_detail"]))

    def test_non_positive_quantity_raises(self, raw_snapshot):
        raw_snapshot.loc[2, "transaction_qty"] = 0
        with pytest.raises(SchemaError, match="quantity"):
            normalize_transactions(raw_snapshot)

    def test_fractional_quantity_raises(self, raw_snapshot):
        raw_snapshot["transaction_qty"] = raw_snapshot["transaction_qty"].astype(float)
        raw_snapshot.loc[0, "transaction_qty"] = 1.5
        with pytest.raises(SchemaError):
            normalize_transactions(raw_snapshot)

    def test_bad_date_raises(self, raw_snapshot):
        raw_snapshot.loc[1, "transaction_date"] = "not a date"
        with pytest.raises(SchemaError, match="dates"):
            normalize_transactions(raw_snapshot)

    @pytest.mark.parametrize(
        "value,expected",
        [("07:06:11", 7), ("7:06", 7), ("23:59:59", 23), ("25:00", None), ("noon", None), (None, None)],
    )
    def test_parse_hour(self, value, expected):
        assert parse_hour(value) == expected


class TestStarSchema:
    """Tests for dimension building"""

    def test_dimensions_built(self, schema):
        assert len(schema.fact) == 9
        assert len(schema.dim_date) == 90
        assert len(schema.dim_time) == 24
        assert sorted(schema.dim_store["store_location"]) == ["Astoria", "Hell's Kitchen", "Lower Manhattan"]
        assert set(schema.dim_product["product_key"]) == {32, 57, 69}

    def test_date_dimension_attributes(self, schema):
        row = schema.dim_date.set_index("date_key").loc[20230228]
        assert row["year"] == 2023
        assert row["quarter"] == 1
        assert row["month"] == 2
        assert row["day"] == 28
        assert row["day_name"] == "Tue"
        assert not row["is_weekend"]

    def test_part_of_day_mapping(self, schema):
        labels = schema.dim_time.set_index("hour")["part_of_day"]
        assert labels[6] == "Morning"
        assert labels[11] == "Morning"
        assert labels[12] == "Afternoon"
        assert labels[16] == "Afternoon"
        assert labels[17] == "Evening"
        assert labels[20] == "Evening"

    def test_custom_part_of_day_bounds(self):
        bounds = PartOfDayBounds(afternoon_start=11, evening_start=18)
        assert bounds.label(11) == "Afternoon"
        assert bounds.label(17) == "Afternoon"
        assert bounds.label(18) == "Evening"

    def test_line_total_is_row_level(self, schema):
        assert schema.fact["line_total"].tolist()[:2] == pytest.approx([6.00, 3.10])

    def test_joined_view_preserves_fact_rows(self, schema):
        assert len(schema.joined) == len(schema.fact)
        assert schema.joined["store_location"].notna().all()

    def test_conflicting_product_attributes_raise(self, raw_snapshot):
        raw_snapshot.loc[3, "product_detail"] = "Cappuccino"
        with pytest.raises(SchemaError, match="dim_product"):
            schema_from_transactions(normalize_transactions(raw_snapshot))


class TestReferentialIntegrity:
    """Tests for load-time integrity checks"""

    def _tables(self, schema):
        return {
            "fact": schema.fact.drop(columns=["line_total"]),
            "dim_date": schema.dim_date,
            "dim_time": schema.dim_time,
            "dim_product": schema.dim_product,
            "dim_store": schema.dim_store,
        }

    def test_consistent_tables_load(self, schema):
        rebuilt = build_star_schema(**self._tables(schema))
        assert len(rebuilt.fact) == len(schema.fact)

    def test_unknown_store_key_fails_load(self, schema):
        tables = self._tables(schema)
        fact = tables["fact"].copy()
        fact.loc[0, "store_key"] = 99
        tables["fact"] = fact
        with pytest.raises(ReferentialIntegrityError, match="store_key"):
            build_star_schema(**tables)

    def test_duplicate_dimension_key_fails_load(self, schema):
        tables = self._tables(schema)
        tables["dim_store"] = pd.concat([schema.dim_store, schema.dim_store.head(1)], ignore_index=True)
        with pytest.raises(SchemaError, match="not unique"):
            build_star_schema(**tables)

    def test_date_key_must_encode_its_date(self, schema):
        tables = self._tables(schema)
        dim_date = schema.dim_date.copy()
        dim_date.loc[dim_date["date_key"] == 20230101, "year"] = 2024
        tables["dim_date"] = dim_date
        with pytest.raises(SchemaError, match="date_key"):
            build_star_schema(**tables)

    def test_shuffled_date_keys_fail_load(self, schema):
        tables = self._tables(schema)
        dim_date = schema.dim_date.copy()
        dim_date["date_key"] = dim_date["date_key"].iloc[::-1].to_numpy()
        tables["dim_date"] = dim_date
        with pytest.raises(SchemaError, match="date_key"):
            build_star_schema(**tables)

    def test_missing_transaction_id_fails_load(self, schema):
        tables = self._tables(schema)
        fact = tables["fact"].astype({"transaction_id": float})
        fact.loc[0, "transaction_id"] = float("nan")
        tables["fact"] = fact
        with pytest.raises(SchemaError, match="transaction_id"):
            build_star_schema(**tables)

    def test_fractional_transaction_id_fails_load(self, schema):
        tables = self._tables(schema)
        fact = tables["fact"].astype({"transaction_id": float})
        fact.loc[0, "transaction_id"] = 1.5
        tables["fact"] = fact
        with pytest.raises(SchemaError, match="transaction_id"):
            build_star_schema(**tables)

    def test_star_tables_from_csv(self, schema, tmp_path):
        for name, df in self._tables(schema).items():
            filename = "fact_sales.csv" if name == "fact" else f"{name}.csv"
            df.to_csv(tmp_path / filename, index=False)
        loaded = load_star_tables(tmp_path)
        assert len(loaded.fact) == len(schema.fact)

    def test_star_tables_with_orphan_fact_row_fail(self, schema, tmp_path):
        tables = self._tables(schema)
        tables["dim_store"] = schema.dim_store[schema.dim_store["store_key"] != 8]
        for name, df in tables.items():
            filename = "fact_sales.csv" if name == "fact" else f"{name}.csv"
            df.to_csv(tmp_path / filename, index=False)
        with pytest.raises(ReferentialIntegrityError):
            load_star_tables(tmp_path)


class TestLoadSnapshot:
    """Tests for reading snapshot files"""

    def test_load_csv_snapshot(self, raw_snapshot, tmp_path):
        path = tmp_path / "Coffee Shop Sales.csv"
        raw_snapshot.to_csv(path, index=False)
        schema = load_snapshot(path)
        assert len(schema.fact) == 9
        assert schema.date_bounds() == (20230101, 20230331)
