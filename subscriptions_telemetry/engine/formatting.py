"""
Formatting and merge helpers shared by all aggregators.

Storage adapters return raw grouped rows whose numeric columns may be int,
Decimal, float, numeric strings or None. Everything here turns those rows
into the canonical telemetry models, so both schemas format identically.

Rules:
- counts and quantities are coerced to int, None becomes 0
- gross values are rounded half-up to 2 decimals, None becomes 0.0
- every series is ordered by month ascending
"""

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Sequence

from subscriptions_telemetry.models import (
    RELATED_ORDER_TYPES,
    FrequencyBucket,
    MonthlyGatewayMetrics,
    MonthlyGross,
    MonthlyInitialOrderMetrics,
    MonthlyOrderMetrics,
)

MARKER_TO_ORDER_TYPE = {order_type.meta_key: order_type for order_type in RELATED_ORDER_TYPES}

CENTS = Decimal("0.01")


def to_int(value: Any) -> int:
    """Coerce a count column to int; None and blanks become 0."""
    if value is None or value == "":
        return 0
    return int(Decimal(str(value)))


def to_gross(value: Any) -> float:
    """Round a monetary column half-up to 2 decimals; None becomes 0.0."""
    if value is None or value == "":
        return 0.0
    return float(Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP))


def _parse_interval(value: Any) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(Decimal(text))
    except (InvalidOperation, ValueError):
        return None


def _by_month(points: Iterable) -> list:
    return sorted(points, key=lambda point: point.month)


def format_monthly_gross(row: dict) -> MonthlyGross:
    return MonthlyGross(month=row["month"], gross=to_gross(row.get("gross")))


def format_monthly_order_metrics(row: dict) -> MonthlyOrderMetrics:
    """
    Format one {month, count, gross, non_zero_count} row.

    Args:
        row: Raw grouped row from a storage adapter

    Returns:
        MonthlyOrderMetrics with int counts and 2-decimal gross
    """
    return MonthlyOrderMetrics(
        month=row["month"],
        count=to_int(row.get("count")),
        gross=to_gross(row.get("gross")),
        non_zero_count=to_int(row.get("non_zero_count")),
    )


def format_monthly_initial_order_metrics(rows: Sequence[dict]) -> list[MonthlyInitialOrderMetrics]:
    """Format merged initial order rows, quantities included."""
    return _by_month(
        MonthlyInitialOrderMetrics(
            month=row["month"],
            count=to_int(row.get("count")),
            gross=to_gross(row.get("gross")),
            non_zero_count=to_int(row.get("non_zero_count")),
            quantity=to_int(row.get("quantity")),
            non_zero_quantity=to_int(row.get("non_zero_quantity")),
        )
        for row in rows
    )


def format_store_gross(rows: Sequence[dict]) -> list[MonthlyGross]:
    return _by_month(format_monthly_gross(row) for row in rows)


def format_monthly_order_data_by_type(rows: Sequence[dict]) -> dict[str, list[MonthlyOrderMetrics]]:
    """
    Split marker-keyed rows into renewal, switch and resubscribe series.

    All three keys are present in the result even when a type has no rows.
    Rows with an unrecognized marker key are ignored.

    Args:
        rows: Rows of {meta_key, month, count, gross, non_zero_count}

    Returns:
        {"renewal": [...], "switch": [...], "resubscribe": [...]}
    """
    series: dict[str, list[MonthlyOrderMetrics]] = {
        order_type.value: [] for order_type in RELATED_ORDER_TYPES
    }

    for row in rows:
        order_type = MARKER_TO_ORDER_TYPE.get(row.get("meta_key"))
        if order_type is None:
            continue
        series[order_type.value].append(format_monthly_order_metrics(row))

    return {key: _by_month(points) for key, points in series.items()}


def format_monthly_order_data_by_payment_gateway(
    rows: Sequence[dict],
) -> dict[str, list[MonthlyGatewayMetrics]]:
    """
    Group {payment_method, month, count, gross} rows per gateway.

    Gateways are keyed in ascending order; orders without a recorded
    payment method are grouped under ''.
    """
    grouped: dict[str, list[MonthlyGatewayMetrics]] = defaultdict(list)

    for row in rows:
        gateway = row.get("payment_method") or ""
        grouped[gateway].append(
            MonthlyGatewayMetrics(
                month=row["month"],
                count=to_int(row.get("count")),
                gross=to_gross(row.get("gross")),
            )
        )

    return {gateway: _by_month(grouped[gateway]) for gateway in sorted(grouped)}


def merge_by_month(
    primary: Sequence[dict],
    secondary: Sequence[dict],
    fields: Sequence[str],
) -> list[dict]:
    """
    Merge columns from a secondary month-keyed dataset into a primary one.

    Every primary row is kept. Months missing from the secondary dataset
    get 0 for each merged field; secondary months absent from the primary
    dataset are ignored.

    Args:
        primary: Rows keyed by 'month'
        secondary: Rows keyed by 'month' carrying `fields`
        fields: Column names to copy from secondary rows

    Returns:
        New rows, one per primary row, in primary order
    """
    lookup = {row["month"]: row for row in secondary}

    merged = []
    for row in primary:
        match = lookup.get(row["month"], {})
        merged.append({**row, **{field: match.get(field) or 0 for field in fields}})
    return merged


def frequency_sort_key(bucket: FrequencyBucket) -> tuple:
    return (-bucket.count, bucket.period, -bucket.interval)


def format_frequency_buckets(rows: Sequence[dict]) -> list[FrequencyBucket]:
    """
    Build sorted frequency buckets from {period, billing_interval, count} rows.

    Groups with an empty period, or an interval that is empty, non-numeric
    or not positive, are dropped. Groups that coerce to the same
    (period, interval) are combined.

    Returns:
        Buckets ordered by count desc, period asc, interval desc
    """
    counts: dict[tuple[str, int], int] = defaultdict(int)

    for row in rows:
        period = (row.get("period") or "").strip()
        interval = _parse_interval(row.get("billing_interval"))
        if not period or interval is None or interval <= 0:
            continue
        counts[(period, interval)] += to_int(row.get("count"))

    buckets = [
        FrequencyBucket(period=period, interval=interval, count=count)
        for (period, interval), count in counts.items()
    ]
    return sorted(buckets, key=frequency_sort_key)


__all__ = [
    "MARKER_TO_ORDER_TYPE",
    "to_int",
    "to_gross",
    "format_monthly_gross",
    "format_monthly_order_metrics",
    "format_monthly_initial_order_metrics",
    "format_store_gross",
    "format_monthly_order_data_by_type",
    "format_monthly_order_data_by_payment_gateway",
    "merge_by_month",
    "format_frequency_buckets",
]
