"""
Product Metrics Aggregator - subscription product catalogue snapshot.

Subscription products are identified through the product type taxonomy.
Stores missing either subscription product type term report no
subscription products instead of failing.
"""

from typing import Optional

import structlog

from subscriptions_telemetry.config import get_settings
from subscriptions_telemetry.models import FrequencyBucket
from subscriptions_telemetry.storage import TelemetryStore, TermResolver, get_storage
from subscriptions_telemetry.storage.terms import DuckDBTermResolver

from .formatting import format_frequency_buckets

logger = structlog.get_logger(__name__)


class ProductMetrics:
    """
    Point-in-time metrics over published subscription products.

    Attributes:
        store: Telemetry store answering the grouped queries
        terms: Resolver for the subscription product type terms
        gifting_enabled: Whether gifting is enabled store-wide
        gifting_enabled_for_all: Default gifting mode for products
    """

    def __init__(
        self,
        store: Optional[TelemetryStore] = None,
        terms: Optional[TermResolver] = None,
        gifting_enabled: Optional[bool] = None,
        gifting_enabled_for_all: Optional[bool] = None,
    ):
        settings = get_settings()
        self.store = store or get_storage()
        self.terms = terms or DuckDBTermResolver(self.store)
        self.gifting_enabled = (
            settings.gifting_enabled if gifting_enabled is None else gifting_enabled
        )
        self.gifting_enabled_for_all = (
            settings.gifting_enabled_for_all_products
            if gifting_enabled_for_all is None
            else gifting_enabled_for_all
        )

    def get_product_frequencies(self) -> list[FrequencyBucket]:
        """
        Count published subscription products per billing schedule.

        Simple subscriptions count themselves; variable subscriptions count
        each published variation.

        Returns:
            Buckets ordered by count desc, period asc, interval desc
        """
        product_types = self.terms.product_type_terms()
        if product_types is None:
            return []

        buckets = format_frequency_buckets(self.store.product_frequencies(product_types))
        logger.debug("product_frequencies_aggregated", buckets=len(buckets))
        return buckets

    def get_active_giftable_products_count(self) -> int:
        """
        Count published subscription products that can be gifted.

        Returns 0 when gifting is disabled store-wide or the product type
        terms are missing.
        """
        if not self.gifting_enabled:
            return 0

        product_types = self.terms.product_type_terms()
        if product_types is None:
            return 0

        return self.store.giftable_products_count(product_types, self.gifting_enabled_for_all)
