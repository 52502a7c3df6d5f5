"""
Telemetry engine.

Aggregators:
    - orders: monthly order series by type and by payment gateway
    - products: subscription product frequencies and giftable products
    - subscriptions: subscriber counts and subscription breakdowns

The collector assembles their output into a cached TelemetrySnapshot.
"""

from .collector import (
    TelemetryCollector,
    collect_telemetry_data,
    get_collector,
    get_telemetry_data,
)
from .orders import OrderMetrics
from .products import ProductMetrics
from .subscriptions import SubscriptionMetrics

__all__ = [
    "OrderMetrics",
    "ProductMetrics",
    "SubscriptionMetrics",
    "TelemetryCollector",
    "collect_telemetry_data",
    "get_collector",
    "get_telemetry_data",
]
