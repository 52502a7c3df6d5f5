"""
Telemetry snapshot models.

This module defines the canonical shapes produced by the aggregators and
assembled by the collector into a TelemetrySnapshot. The shapes are the
contract between the two storage schemas: whichever schema answered the
queries, the formatted models must compare equal for the same records.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import CacheStatus, Capability

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class MonthlyGross(BaseModel):
    """Gross order value for one calendar month."""

    model_config = ConfigDict(frozen=True)

    month: str = Field(description="Calendar month, 'YYYY-MM'")
    gross: float = Field(description="Sum of order totals, rounded to 2 decimals")

    @field_validator("month")
    @classmethod
    def validate_month(cls, v: str) -> str:
        """Ensure month is formatted as YYYY-MM."""
        if not MONTH_PATTERN.match(v):
            raise ValueError(f"Month must be formatted as YYYY-MM, got {v!r}")
        return v


class MonthlyGatewayMetrics(MonthlyGross):
    """Order count and gross for one payment gateway in one month."""

    count: int = Field(description="Number of orders", ge=0)


class MonthlyOrderMetrics(MonthlyGatewayMetrics):
    """Order metrics for one order type in one month."""

    non_zero_count: int = Field(description="Number of orders with a positive total", ge=0)


class MonthlyInitialOrderMetrics(MonthlyOrderMetrics):
    """Initial order metrics, including line item quantities."""

    quantity: int = Field(default=0, description="Sum of line item quantities", ge=0)
    non_zero_quantity: int = Field(
        default=0, description="Line item quantities on orders with a positive total", ge=0
    )


def _validate_series(series: list) -> list:
    months = [point.month for point in series]
    if len(months) != len(set(months)):
        raise ValueError("Series contains duplicate months")
    if months != sorted(months):
        raise ValueError("Series must be ordered by month ascending")
    return series


class OrderTypeTrends(BaseModel):
    """
    Monthly order series per order type, plus store-wide GMV.

    All five keys are always present; a type with no orders in the window is
    an empty list rather than a missing key.
    """

    model_config = ConfigDict(frozen=True)

    store_gross: list[MonthlyGross] = Field(default_factory=list)
    initial: list[MonthlyInitialOrderMetrics] = Field(default_factory=list)
    renewal: list[MonthlyOrderMetrics] = Field(default_factory=list)
    switch: list[MonthlyOrderMetrics] = Field(default_factory=list)
    resubscribe: list[MonthlyOrderMetrics] = Field(default_factory=list)

    @field_validator("store_gross", "initial", "renewal", "switch", "resubscribe")
    @classmethod
    def validate_unique_months(cls, v: list) -> list:
        """Ensure each series holds one point per month, ascending."""
        return _validate_series(v)


class OrderTrends(BaseModel):
    """Trailing-year order trends."""

    model_config = ConfigDict(frozen=True)

    by_order_type: OrderTypeTrends = Field(default_factory=OrderTypeTrends)
    by_payment_gateway: dict[str, list[MonthlyGatewayMetrics]] = Field(
        default_factory=dict,
        description="Gateway id ('' when none recorded) to monthly series",
    )

    @field_validator("by_payment_gateway")
    @classmethod
    def validate_gateway_series(cls, v: dict) -> dict:
        """Ensure each gateway series holds one point per month, ascending."""
        for series in v.values():
            _validate_series(series)
        return v


class FrequencyBucket(BaseModel):
    """Number of subscriptions or products sharing a billing schedule."""

    model_config = ConfigDict(frozen=True)

    period: str = Field(description="Billing period (day, week, month, year)")
    interval: int = Field(description="Billing interval", gt=0)
    count: int = Field(description="Number of matching records", ge=0)

    @field_validator("period")
    @classmethod
    def validate_period_not_empty(cls, v: str) -> str:
        """Empty periods are dropped before buckets are built."""
        if not v:
            raise ValueError("Billing period cannot be empty")
        return v


class PaymentMethodBreakdown(BaseModel):
    """
    Subscription counts for a payment method, with gateway capabilities.

    Attributes:
        payment_method: Gateway id, or '' when none is recorded
        active_count: Subscriptions in an active-like status
        inactive_count: Subscriptions in any other status
        renews_off_site: Whether the gateway schedules renewals itself
        manual_only: Whether the gateway lacks subscription support
    """

    model_config = ConfigDict(frozen=True)

    payment_method: str = Field(default="", description="Gateway id, '' if unknown")
    active_count: int = Field(ge=0)
    inactive_count: int = Field(ge=0)
    renews_off_site: Capability = Field(default=Capability.UNKNOWN)
    manual_only: Capability = Field(default=Capability.UNKNOWN)


class SubscriberCounts(BaseModel):
    """Distinct customers split by whether they hold an active subscription."""

    model_config = ConfigDict(frozen=True)

    active: int = Field(ge=0)
    inactive: int = Field(ge=0)


class ProductTelemetry(BaseModel):
    """Point-in-time subscription product metrics."""

    model_config = ConfigDict(frozen=True)

    frequencies: list[FrequencyBucket] = Field(default_factory=list)
    giftable: int = Field(default=0, ge=0)


class SubscriptionTelemetry(BaseModel):
    """Point-in-time subscription metrics."""

    model_config = ConfigDict(frozen=True)

    gifted: int = Field(default=0, ge=0)
    payment_methods: list[PaymentMethodBreakdown] = Field(default_factory=list)
    renewal_frequencies: list[FrequencyBucket] = Field(default_factory=list)
    renewing_automatically: int = Field(default=0, ge=0)
    renewing_manually: int = Field(default=0, ge=0)
    subscriber_count: int = Field(default=0, ge=0)
    inactive_subscriber_count: int = Field(default=0, ge=0)


class TelemetrySnapshot(BaseModel):
    """
    One complete telemetry collection.

    Created only by the collector and never modified afterwards; a newer
    collection replaces the cached snapshot wholesale. cache_status is unset
    on a freshly collected snapshot and set on copies handed out by reads.

    Attributes:
        generated_at: UTC epoch seconds when collection finished
        generation_duration_ms: Wall-clock time spent collecting
        cache_status: hit/miss for reads, None for direct collections
        order_trends: Trailing-year monthly order series
        products: Product metrics
        subscriptions: Subscription metrics
    """

    model_config = ConfigDict(frozen=True)

    generated_at: int = Field(ge=0)
    generation_duration_ms: float = Field(ge=0.0)
    cache_status: Optional[CacheStatus] = Field(default=None)
    order_trends: OrderTrends = Field(default_factory=OrderTrends)
    products: ProductTelemetry = Field(default_factory=ProductTelemetry)
    subscriptions: SubscriptionTelemetry = Field(default_factory=SubscriptionTelemetry)

    def to_payload(self) -> dict:
        """JSON-compatible payload, with the cache marker as telemetry_cache."""
        payload = self.model_dump(mode="json", exclude={"cache_status"})
        if self.cache_status is not None:
            payload["telemetry_cache"] = self.cache_status.value
        return payload
