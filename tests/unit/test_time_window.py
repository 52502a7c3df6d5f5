"""
Tests for month-boundary normalization of reporting windows.

Covers fixed examples (leap years, year ends, timezones) and Hypothesis
properties over arbitrary UTC instants.
"""

from datetime import datetime, timedelta, timezone

import hypothesis.strategies as st
import pytest
from hypothesis import given, settings
from pydantic import ValidationError

from subscriptions_telemetry.utils.time_window import (
    DATETIME_FORMAT,
    TimeWindow,
    normalize_to_month_boundaries,
    to_utc,
)

utc_datetimes = st.datetimes(
    min_value=datetime(1971, 1, 1),
    max_value=datetime(2100, 12, 31),
).map(lambda dt: dt.replace(tzinfo=timezone.utc))


class TestNormalizeToMonthBoundaries:
    def test_widens_mid_month_range_to_whole_months(self):
        window = normalize_to_month_boundaries(
            datetime(2025, 3, 17, 8, 45, tzinfo=timezone.utc),
            datetime(2025, 5, 3, 1, 2, tzinfo=timezone.utc),
        )
        assert window.start == "2025-03-01 00:00:00"
        assert window.end == "2025-05-31 23:59:59"

    def test_leap_february(self):
        window = normalize_to_month_boundaries(
            datetime(2024, 2, 10, tzinfo=timezone.utc),
            datetime(2024, 2, 11, tzinfo=timezone.utc),
        )
        assert window.end == "2024-02-29 23:59:59"

    def test_non_leap_february(self):
        window = normalize_to_month_boundaries(
            datetime(2025, 2, 10, tzinfo=timezone.utc),
            datetime(2025, 2, 11, tzinfo=timezone.utc),
        )
        assert window.end == "2025-02-28 23:59:59"

    def test_year_end_and_epoch_seconds(self):
        start = datetime(2024, 12, 31, 23, 59, 59, tzinfo=timezone.utc).timestamp()
        end = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc).timestamp()
        window = normalize_to_month_boundaries(start, end)
        assert window.start == "2024-12-01 00:00:00"
        assert window.end == "2025-01-31 23:59:59"

    def test_aware_datetimes_are_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        # 1 April 01:00 at +02:00 is still 31 March in UTC
        window = normalize_to_month_boundaries(
            datetime(2025, 4, 1, 1, 0, tzinfo=plus_two),
            datetime(2025, 4, 1, 1, 0, tzinfo=plus_two),
        )
        assert window.start == "2025-03-01 00:00:00"
        assert window.end == "2025-03-31 23:59:59"

    def test_naive_datetime_treated_as_utc(self):
        assert to_utc(datetime(2025, 1, 1)) == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_end_exclusive_is_first_instant_after_window(self):
        window = TimeWindow(start="2025-03-01 00:00:00", end="2025-03-31 23:59:59")
        assert window.end_exclusive == "2025-04-01 00:00:00"

    def test_window_is_immutable(self):
        window = TimeWindow(start="2025-03-01 00:00:00", end="2025-03-31 23:59:59")
        with pytest.raises(ValidationError):
            window.start = "2025-01-01 00:00:00"


@given(a=utc_datetimes, b=utc_datetimes)
@settings(max_examples=200)
def test_prop_same_month_inputs_yield_identical_bounds(a: datetime, b: datetime):
    """Any two instants in one calendar month normalize to the same window."""
    b = b.replace(year=a.year, month=a.month, day=min(b.day, 28))
    first = normalize_to_month_boundaries(a, a)
    second = normalize_to_month_boundaries(b, b)
    assert first == second


@given(start=utc_datetimes, end=utc_datetimes)
@settings(max_examples=200)
def test_prop_normalization_is_idempotent(start: datetime, end: datetime):
    window = normalize_to_month_boundaries(start, end)
    again = normalize_to_month_boundaries(
        datetime.strptime(window.start, DATETIME_FORMAT),
        datetime.strptime(window.end, DATETIME_FORMAT),
    )
    assert again == window


@given(start=utc_datetimes, end=utc_datetimes)
@settings(max_examples=200)
def test_prop_bounds_fall_on_month_edges(start: datetime, end: datetime):
    window = normalize_to_month_boundaries(start, end)
    lower = datetime.strptime(window.start, DATETIME_FORMAT)
    upper = datetime.strptime(window.end_exclusive, DATETIME_FORMAT)

    assert (lower.day, lower.hour, lower.minute, lower.second) == (1, 0, 0, 0)
    assert (upper.day, upper.hour, upper.minute, upper.second) == (1, 0, 0, 0)
    assert lower <= start.replace(tzinfo=None)
    assert end.replace(tzinfo=None) < upper
