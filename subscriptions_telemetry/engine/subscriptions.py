"""
Subscription Metrics Aggregator - point-in-time subscription snapshot.

Covers subscriber counts, renewal modes, billing frequencies, payment
method breakdowns and gifted subscriptions. None of these are windowed:
they describe the store as it is when the collection runs.
"""

from typing import Optional, Sequence

import structlog

from subscriptions_telemetry.config import get_settings
from subscriptions_telemetry.gateways import GatewayCapabilityCache, StaticGatewayRegistry
from subscriptions_telemetry.models import (
    FrequencyBucket,
    PaymentMethodBreakdown,
    SubscriberCounts,
)
from subscriptions_telemetry.storage import TelemetryStore, get_storage

from .formatting import format_frequency_buckets, to_int

logger = structlog.get_logger(__name__)


class SubscriptionMetrics:
    """
    Aggregates subscription records into counts and breakdowns.

    Attributes:
        store: Telemetry store answering the grouped queries
        gateways: Capability lookups for payment method breakdowns
        active_statuses: Subscription statuses counted as active
    """

    def __init__(
        self,
        store: Optional[TelemetryStore] = None,
        gateways: Optional[GatewayCapabilityCache] = None,
        active_statuses: Optional[Sequence[str]] = None,
    ):
        """
        Initialize the aggregator.

        Args:
            store: Telemetry store; the configured store when omitted
            gateways: Capability cache; a fresh one over the configured
                gateways when omitted
            active_statuses: Active-like statuses; from settings when omitted
        """
        self.store = store or get_storage()
        self.gateways = gateways or GatewayCapabilityCache(StaticGatewayRegistry.from_settings())
        self.active_statuses = tuple(
            active_statuses or get_settings().active_subscription_statuses
        )

    def get_subscriber_counts(self) -> SubscriberCounts:
        """
        Distinct customers with and without an active subscription.

        A customer holding any active subscription is active; every other
        customer with at least one subscription is inactive.
        """
        row = self.store.subscriber_counts(self.active_statuses)
        return SubscriberCounts(
            active=to_int(row.get("active")),
            inactive=to_int(row.get("inactive")),
        )

    def get_subscriber_count(self, active: bool = True) -> int:
        counts = self.get_subscriber_counts()
        return counts.active if active else counts.inactive

    def _renewal_modes(self) -> dict:
        row = self.store.subscription_renewal_modes(self.active_statuses)
        return {
            "automatic": to_int(row.get("automatic")),
            "manual": to_int(row.get("manual")),
        }

    def get_active_subscriptions_renewing_automatically(self) -> int:
        return self._renewal_modes()["automatic"]

    def get_active_subscriptions_renewing_manually(self) -> int:
        return self._renewal_modes()["manual"]

    def get_renewal_mode_counts(self) -> tuple[int, int]:
        """(automatic, manual) counts of active subscriptions from one read."""
        modes = self._renewal_modes()
        return modes["automatic"], modes["manual"]

    def get_subscriptions_by_frequency(self) -> list[FrequencyBucket]:
        buckets = format_frequency_buckets(self.store.subscriptions_by_frequency(self.active_statuses))
        logger.debug("subscription_frequencies_aggregated", buckets=len(buckets))
        return buckets

    def get_subscriptions_by_payment_method(
        self, gateways: Optional[GatewayCapabilityCache] = None
    ) -> list[PaymentMethodBreakdown]:
        """
        Active and inactive subscription counts per payment method.

        Each method is annotated with the capabilities of its gateway.

        Args:
            gateways: Capability cache for this call; the aggregator's own
                cache when omitted

        Returns:
            Breakdowns ordered by active desc, inactive desc, payment method asc
        """
        gateways = gateways or self.gateways
        breakdowns = []
        for row in self.store.subscriptions_by_payment_method(self.active_statuses):
            payment_method = row.get("payment_method") or ""
            capabilities = gateways.capabilities(payment_method)
            breakdowns.append(
                PaymentMethodBreakdown(
                    payment_method=payment_method,
                    active_count=to_int(row.get("active_count")),
                    inactive_count=to_int(row.get("inactive_count")),
                    renews_off_site=capabilities.renews_off_site,
                    manual_only=capabilities.manual_only,
                )
            )

        breakdowns.sort(key=lambda b: (-b.active_count, -b.inactive_count, b.payment_method))
        return breakdowns

    def get_gifted_subscriptions_count(self) -> int:
        return self.store.gifted_subscriptions_count()
