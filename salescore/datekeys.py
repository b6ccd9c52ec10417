"""Calendar arithmetic on integer date keys (YYYYMMDD)."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Tuple, Union

import pandas as pd

DateLike = Union[date, pd.Timestamp, str]


def to_date_key(value: DateLike) -> int:
    if isinstance(value, str):
        value = pd.Timestamp(value)
    return value.year * 10000 + value.month * 100 + value.day


def split_date_key(key: int) -> Tuple[int, int, int]:
    key = int(key)
    year, rest = divmod(key, 10000)
    month, day = divmod(rest, 100)
    if not 1 <= month <= 12 or not 1 <= day <= calendar.monthrange(year, month)[1]:
        raise ValueError(f"{key} is not a valid date key")
    return year, month, day


def from_date_key(key: int) -> date:
    return date(*split_date_key(key))


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def is_month_end(key: int) -> bool:
    year, month, day = split_date_key(key)
    return day == days_in_month(year, month)


def add_months(key: int, months: int) -> int:
    """Shift a date key by whole months, clamping the day to the target month's length."""
    year, month, day = split_date_key(key)
    idx = year * 12 + (month - 1) + months
    new_year, new_month0 = divmod(idx, 12)
    new_month = new_month0 + 1
    new_day = min(day, days_in_month(new_year, new_month))
    return new_year * 10000 + new_month * 100 + new_day


def month_start(key: int) -> int:
    year, month, _ = split_date_key(key)
    return year * 10000 + month * 100 + 1


def month_end(key: int) -> int:
    year, month, _ = split_date_key(key)
    return year * 10000 + month * 100 + days_in_month(year, month)


@dataclass(frozen=True)
class Period:
    """Inclusive range of date keys."""

    start_key: int
    end_key: int

    def __post_init__(self) -> None:
        split_date_key(self.start_key)
        split_date_key(self.end_key)
        if self.start_key > self.end_key:
            raise ValueError(f"period start {self.start_key} is after end {self.end_key}")

    @classmethod
    def month(cls, year: int, month: int) -> "Period":
        start = year * 10000 + month * 100 + 1
        return cls(start, month_end(start))

    @property
    def label(self) -> str:
        start_year, start_month, start_day = split_date_key(self.start_key)
        if start_day == 1 and self.end_key == month_end(self.start_key):
            return f"{start_year}-{start_month:02d}"
        return f"{from_date_key(self.start_key).isoformat()}..{from_date_key(self.end_key).isoformat()}"


def shift_period(period: Period, months: int = -1) -> Period:
    """Shift both ends of a period by whole months.

    An end that falls on the last day of its month lands on the last day of the
    target month, so a whole month always maps to a whole month (March 1-31 ->
    February 1-28, April 1-30 -> March 1-31).
    """
    start = add_months(period.start_key, months)
    if is_month_end(period.end_key):
        end = month_end(add_months(month_start(period.end_key), months))
    else:
        end = add_months(period.end_key, months)
    return Period(start, end)
