"""
Test Suite Configuration
"""
import pandas as pd
import pytest

from salescore.data import normalize_transactions
from salescore.schema import schema_from_transactions

from tests.factories import make_line as _line


@pytest.fixture
def raw_snapshot() -> pd.DataFrame:
    """Three months of lines across three stores; transactions 1 and 4 span several lines."""
    return pd.DataFrame([
        # January 2023
        _line(1, "2023-01-01", "07:06:11", 2, 5, 32, 3.00, detail="Latte"),
        _line(1, "2023-01-01", "07:06:11", 1, 5, 57, 3.10, "Tea", "Brewed Chai tea", "Spicy Eye Opener Chai"),
        _line(2, "2023-01-01", "13:20:00", 1, 8, 69, 3.50, "Bakery", "Scone", "Oatmeal Scone"),
        _line(3, "2023-01-15", "18:45:30", 1, 3, 32, 3.00, detail="Latte"),
        # February 2023
        _line(4, "2023-02-10", "08:00:00", 2, 3, 32, 3.00, detail="Latte"),
        _line(4, "2023-02-10", "08:00:00", 1, 3, 69, 3.50, "Bakery", "Scone", "Oatmeal Scone"),
        _line(5, "2023-02-28", "16:59:59", 3, 8, 57, 3.10, "Tea", "Brewed Chai tea", "Spicy Eye Opener Chai"),
        # March 2023
        _line(6, "2023-03-05", "09:30:00", 4, 5, 32, 3.00, detail="Latte"),
        _line(7, "2023-03-31", "20:10:00", 2, 5, 69, 3.50, "Bakery", "Scone", "Oatmeal Scone"),
    ])


@pytest.fixture
def schema(raw_snapshot):
    return schema_from_transactions(normalize_transactions(raw_snapshot))


@pytest.fixture
def ranking_schema():
    """Five products whose sales are 100, 100, 80, 80 and 50."""
    sales = {"A": 100.0, "B": 100.0, "C": 80.0, "D": 80.0, "E": 50.0}
    rows = [
        _line(i, "2023-04-03", "10:00:00", 1, 3, i, price, detail=name)
        for i, (name, price) in enumerate(sales.items(), start=1)
    ]
    return schema_from_transactions(normalize_transactions(pd.DataFrame(rows)))
