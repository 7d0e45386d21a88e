from datetime import date, datetime, timezone

import pytest

from periods import (
    add_months,
    month_key,
    month_period,
    resolve_month,
    to_local_naive,
    trailing_months,
    trailing_window,
)


def test_trailing_months_walks_back_across_year_boundary():
    months = trailing_months(date(2024, 2, 15), 6)
    assert months == [
        date(2024, 2, 1),
        date(2024, 1, 1),
        date(2023, 12, 1),
        date(2023, 11, 1),
        date(2023, 10, 1),
        date(2023, 9, 1),
    ]


def test_trailing_window_spans_whole_months():
    window = trailing_window(date(2024, 1, 20))
    assert window.start == date(2023, 8, 1)
    assert window.end == date(2024, 1, 31)
    assert window.end_at() == datetime(2024, 1, 31, 23, 59, 59, 999999)


def test_month_period_handles_leap_years_and_december():
    assert month_period(2024, 2).end == date(2024, 2, 29)
    assert month_period(2023, 2).end == date(2023, 2, 28)
    assert month_period(2023, 12).end == date(2023, 12, 31)


def test_add_months_and_key():
    assert add_months(date(2023, 11, 30), 3) == date(2024, 2, 1)
    assert month_key(datetime(2024, 3, 9, 8, 0)) == "2024-03"


def test_resolve_month_defaults_and_validation():
    assert resolve_month(None, None, today=date(2024, 7, 4)) == (2024, 7)
    assert resolve_month(2022, None, today=date(2024, 7, 4)) == (2022, 7)
    with pytest.raises(ValueError):
        resolve_month(2024, 0, today=date(2024, 7, 4))
    with pytest.raises(ValueError):
        resolve_month(2024, 13)


def test_to_local_naive_converts_aware_datetimes():
    aware = datetime(2024, 1, 31, 23, 30, tzinfo=timezone.utc)
    assert to_local_naive(aware) == datetime(2024, 1, 31, 23, 30)
    naive = datetime(2024, 1, 1, 12, 0)
    assert to_local_naive(naive) is naive
