"""
Pydantic v2 data models for subscription telemetry.

Model Organization:
    - enums: Enumeration types for order types, capabilities and cache status
    - telemetry: Monthly series, breakdowns and the TelemetrySnapshot

Usage:
    >>> from subscriptions_telemetry.models import MonthlyOrderMetrics
    >>> point = MonthlyOrderMetrics(month="2025-03", count=3, gross=35.0, non_zero_count=2)
"""

from .enums import RELATED_ORDER_TYPES, CacheStatus, Capability, GiftingMode, OrderType
from .telemetry import (
    FrequencyBucket,
    MonthlyGatewayMetrics,
    MonthlyGross,
    MonthlyInitialOrderMetrics,
    MonthlyOrderMetrics,
    OrderTrends,
    OrderTypeTrends,
    PaymentMethodBreakdown,
    ProductTelemetry,
    SubscriberCounts,
    SubscriptionTelemetry,
    TelemetrySnapshot,
)

__all__ = [
    "RELATED_ORDER_TYPES",
    "CacheStatus",
    "Capability",
    "GiftingMode",
    "OrderType",
    "FrequencyBucket",
    "MonthlyGatewayMetrics",
    "MonthlyGross",
    "MonthlyInitialOrderMetrics",
    "MonthlyOrderMetrics",
    "OrderTrends",
    "OrderTypeTrends",
    "PaymentMethodBreakdown",
    "ProductTelemetry",
    "SubscriberCounts",
    "SubscriptionTelemetry",
    "TelemetrySnapshot",
]
