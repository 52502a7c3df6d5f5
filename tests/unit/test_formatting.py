"""
Tests for the shared formatting and merge helpers.
"""

from decimal import Decimal

import hypothesis.strategies as st
from hypothesis import given, settings

from subscriptions_telemetry.engine.formatting import (
    format_frequency_buckets,
    format_monthly_gross,
    format_monthly_order_data_by_payment_gateway,
    format_monthly_order_data_by_type,
    format_monthly_order_metrics,
    merge_by_month,
    to_gross,
    to_int,
)
from subscriptions_telemetry.models import FrequencyBucket, MonthlyGatewayMetrics, MonthlyOrderMetrics

months = st.builds(
    lambda year, month: f"{year:04d}-{month:02d}",
    st.integers(min_value=2000, max_value=2099),
    st.integers(min_value=1, max_value=12),
)


class TestCoercion:
    def test_to_int_handles_decimal_strings_and_none(self):
        assert to_int(Decimal("3")) == 3
        assert to_int("7") == 7
        assert to_int(Decimal("2.00")) == 2
        assert to_int(None) == 0

    def test_to_gross_rounds_to_two_decimals(self):
        assert to_gross(Decimal("35.00000000")) == 35.0
        assert to_gross("12.345678") == 12.35
        assert to_gross(19.999) == 20.0
        assert to_gross(None) == 0.0

    def test_to_gross_rounds_half_cents_up(self):
        assert to_gross(Decimal("1.005")) == 1.01
        assert to_gross(Decimal("2.675")) == 2.68
        assert to_gross("2.67499999") == 2.67
        assert to_gross(Decimal("-1.005")) == -1.01

    def test_format_monthly_order_metrics(self):
        point = format_monthly_order_metrics(
            {"month": "2025-03", "count": 3, "gross": Decimal("35.00000000"), "non_zero_count": Decimal("2")}
        )
        assert point == MonthlyOrderMetrics(month="2025-03", count=3, gross=35.0, non_zero_count=2)

    def test_format_monthly_gross_defaults_missing_gross(self):
        assert format_monthly_gross({"month": "2025-01", "gross": None}).gross == 0.0


class TestOrderDataByType:
    def test_all_three_keys_present_without_rows(self):
        assert format_monthly_order_data_by_type([]) == {"renewal": [], "switch": [], "resubscribe": []}

    def test_rows_routed_by_marker(self):
        rows = [
            {"meta_key": "_subscription_switch", "month": "2025-02", "count": 1, "gross": 5, "non_zero_count": 1},
            {"meta_key": "_subscription_renewal", "month": "2025-03", "count": 3, "gross": 35, "non_zero_count": 2},
            {"meta_key": "_subscription_renewal", "month": "2025-01", "count": 1, "gross": 0, "non_zero_count": 0},
        ]
        series = format_monthly_order_data_by_type(rows)

        assert [point.month for point in series["renewal"]] == ["2025-01", "2025-03"]
        assert series["switch"][0].gross == 5.0
        assert series["resubscribe"] == []

    def test_unknown_marker_ignored(self):
        rows = [{"meta_key": "_subscription_gift", "month": "2025-03", "count": 9, "gross": 1, "non_zero_count": 1}]
        series = format_monthly_order_data_by_type(rows)
        assert all(points == [] for points in series.values())


class TestOrderDataByGateway:
    def test_groups_by_gateway_with_empty_method(self):
        rows = [
            {"payment_method": "stripe", "month": "2025-03", "count": 2, "gross": Decimal("10.00")},
            {"payment_method": "", "month": "2025-03", "count": 1, "gross": Decimal("25.00")},
            {"payment_method": None, "month": "2025-04", "count": 1, "gross": Decimal("5.00")},
        ]
        by_gateway = format_monthly_order_data_by_payment_gateway(rows)

        assert list(by_gateway) == ["", "stripe"]
        assert by_gateway["stripe"] == [MonthlyGatewayMetrics(month="2025-03", count=2, gross=10.0)]
        assert [point.month for point in by_gateway[""]] == ["2025-03", "2025-04"]


class TestMergeByMonth:
    def test_missing_secondary_month_filled_with_zero(self):
        primary = [{"month": "2025-01", "count": 2}, {"month": "2025-02", "count": 1}]
        secondary = [{"month": "2025-01", "quantity": 4, "non_zero_quantity": 3}]

        merged = merge_by_month(primary, secondary, ("quantity", "non_zero_quantity"))

        assert merged == [
            {"month": "2025-01", "count": 2, "quantity": 4, "non_zero_quantity": 3},
            {"month": "2025-02", "count": 1, "quantity": 0, "non_zero_quantity": 0},
        ]

    def test_secondary_only_months_ignored(self):
        merged = merge_by_month([], [{"month": "2025-01", "quantity": 4}], ("quantity",))
        assert merged == []

    def test_inputs_not_mutated(self):
        primary = [{"month": "2025-01", "count": 2}]
        merge_by_month(primary, [], ("quantity",))
        assert primary == [{"month": "2025-01", "count": 2}]


@given(
    primary_months=st.lists(months, unique=True, max_size=12),
    secondary_months=st.lists(months, unique=True, max_size=12),
)
@settings(max_examples=100)
def test_prop_merge_keeps_every_primary_month(primary_months, secondary_months):
    primary = [{"month": month, "count": 1} for month in primary_months]
    secondary = [{"month": month, "quantity": 2} for month in secondary_months]

    merged = merge_by_month(primary, secondary, ("quantity",))

    assert [row["month"] for row in merged] == primary_months
    for row in merged:
        expected = 2 if row["month"] in secondary_months else 0
        assert row["quantity"] == expected


class TestFrequencyBuckets:
    def test_sorted_by_count_then_period_then_interval_desc(self):
        rows = [
            {"period": "year", "billing_interval": "1", "count": 2},
            {"period": "month", "billing_interval": "1", "count": 5},
            {"period": "month", "billing_interval": "3", "count": 2},
            {"period": "month", "billing_interval": "2", "count": 2},
        ]
        assert format_frequency_buckets(rows) == [
            FrequencyBucket(period="month", interval=1, count=5),
            FrequencyBucket(period="month", interval=3, count=2),
            FrequencyBucket(period="month", interval=2, count=2),
            FrequencyBucket(period="year", interval=1, count=2),
        ]

    def test_empty_and_zero_groups_dropped(self):
        rows = [
            {"period": "", "billing_interval": "1", "count": 4},
            {"period": "month", "billing_interval": "", "count": 4},
            {"period": "month", "billing_interval": "0", "count": 4},
            {"period": "month", "billing_interval": "abc", "count": 4},
            {"period": "week", "billing_interval": "2", "count": 1},
        ]
        assert format_frequency_buckets(rows) == [FrequencyBucket(period="week", interval=2, count=1)]

    def test_groups_coercing_to_same_key_are_combined(self):
        rows = [
            {"period": "month", "billing_interval": "1", "count": 2},
            {"period": "month", "billing_interval": " 1 ", "count": 3},
        ]
        assert format_frequency_buckets(rows) == [FrequencyBucket(period="month", interval=1, count=5)]
