"""
Telemetry Collector - assembles, caches and schedules telemetry snapshots.

Reads are cache-first: a valid cached snapshot is returned as a hit, and
anything else triggers a fresh collection returned as a miss. Collections
also run on a recurring background schedule so most reads are hits.

A snapshot is written to the cache only once it is completely built; a
storage failure part-way through leaves the previous entry in place.
"""

import time
from functools import lru_cache
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError

from subscriptions_telemetry.cache import CacheStore, get_cache
from subscriptions_telemetry.config import get_settings
from subscriptions_telemetry.errors import SchedulerError
from subscriptions_telemetry.gateways import (
    GatewayCapabilityCache,
    GatewayRegistry,
    StaticGatewayRegistry,
)
from subscriptions_telemetry.models import (
    CacheStatus,
    OrderTrends,
    ProductTelemetry,
    SubscriptionTelemetry,
    TelemetrySnapshot,
)
from subscriptions_telemetry.scheduling import Scheduler

from .orders import OrderMetrics
from .products import ProductMetrics
from .subscriptions import SubscriptionMetrics

logger = structlog.get_logger(__name__)

CACHE_KEY = "subscriptions-telemetry-data"

COLLECT_HOOK = "collect-telemetry-data"
SCHEDULE_GROUP = "subscriptions-telemetry"

WINDOW_SECONDS = 365 * 24 * 60 * 60


class TelemetryCollector:
    """
    Orchestrates the three aggregators into one TelemetrySnapshot.

    Attributes:
        orders: Order metrics aggregator
        products: Product metrics aggregator
        subscriptions: Subscription metrics aggregator
        cache: Snapshot cache
        scheduler: Recurring job registry, needed only by setup()
        gateway_registry: Source of payment gateway capabilities
        clock: Epoch seconds time source

    Example:
        >>> collector = TelemetryCollector(cache=MemoryCacheStore())
        >>> snapshot = collector.get()
        >>> snapshot.cache_status
        <CacheStatus.MISS: 'miss'>
    """

    def __init__(
        self,
        orders: Optional[OrderMetrics] = None,
        products: Optional[ProductMetrics] = None,
        subscriptions: Optional[SubscriptionMetrics] = None,
        cache: Optional[CacheStore] = None,
        scheduler: Optional[Scheduler] = None,
        gateway_registry: Optional[GatewayRegistry] = None,
        clock: Callable[[], float] = time.time,
    ):
        settings = get_settings()
        self.orders = orders or OrderMetrics()
        self.products = products or ProductMetrics()
        self.gateway_registry = gateway_registry or StaticGatewayRegistry.from_settings(settings)
        self.subscriptions = subscriptions or SubscriptionMetrics(
            gateways=GatewayCapabilityCache(self.gateway_registry)
        )
        self.cache = cache or get_cache()
        self.scheduler = scheduler
        self.clock = clock

        self.cache_ttl = settings.cache_ttl_seconds
        self.initial_delay = settings.schedule_initial_delay_seconds
        self.interval = settings.schedule_interval_seconds

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self) -> TelemetrySnapshot:
        """
        Return the cached snapshot, collecting a fresh one on a miss.

        Returns:
            Snapshot tagged with cache_status hit or miss

        Raises:
            StorageError: If a collection is needed and a query fails
        """
        snapshot = self._read_cache()
        if snapshot is not None:
            logger.info("telemetry_cache_hit", generated_at=snapshot.generated_at)
            return snapshot.model_copy(update={"cache_status": CacheStatus.HIT})

        logger.info("telemetry_cache_miss")
        snapshot = self.collect()
        return snapshot.model_copy(update={"cache_status": CacheStatus.MISS})

    def _read_cache(self) -> Optional[TelemetrySnapshot]:
        try:
            cached = self.cache.get(CACHE_KEY)
        except Exception as e:
            logger.warning("telemetry_cache_read_failed", error=str(e))
            return None

        return self._load_snapshot(cached)

    @staticmethod
    def _load_snapshot(cached: Any) -> Optional[TelemetrySnapshot]:
        """Validate a cached value; anything unusable counts as absent."""
        if not isinstance(cached, dict) or not cached:
            return None

        try:
            return TelemetrySnapshot.model_validate(cached)
        except ValidationError as e:
            logger.warning("telemetry_cache_invalid", errors=e.error_count())
            return None

    # =========================================================================
    # Collection
    # =========================================================================

    def collect(self) -> TelemetrySnapshot:
        """
        Build a fresh snapshot for the trailing year and cache it.

        Returns:
            Snapshot with cache_status unset

        Raises:
            StorageError: If any query fails; the cache is left untouched
        """
        started = time.perf_counter()
        end = self.clock()
        start = end - WINDOW_SECONDS

        order_trends = OrderTrends(
            by_order_type=self.orders.get_aggregated_monthly_order_data(start, end),
            by_payment_gateway=self.orders.get_aggregated_monthly_order_data_by_payment_gateway(
                start, end
            ),
        )

        products = ProductTelemetry(
            frequencies=self.products.get_product_frequencies(),
            giftable=self.products.get_active_giftable_products_count(),
        )

        subscriber_counts = self.subscriptions.get_subscriber_counts()
        automatic, manual = self.subscriptions.get_renewal_mode_counts()
        subscriptions = SubscriptionTelemetry(
            gifted=self.subscriptions.get_gifted_subscriptions_count(),
            payment_methods=self.subscriptions.get_subscriptions_by_payment_method(
                GatewayCapabilityCache(self.gateway_registry)
            ),
            renewal_frequencies=self.subscriptions.get_subscriptions_by_frequency(),
            renewing_automatically=automatic,
            renewing_manually=manual,
            subscriber_count=subscriber_counts.active,
            inactive_subscriber_count=subscriber_counts.inactive,
        )

        snapshot = TelemetrySnapshot(
            generated_at=int(self.clock()),
            generation_duration_ms=round((time.perf_counter() - started) * 1000, 3),
            order_trends=order_trends,
            products=products,
            subscriptions=subscriptions,
        )

        self._write_cache(snapshot)

        logger.info(
            "telemetry_collected",
            generated_at=snapshot.generated_at,
            duration_ms=snapshot.generation_duration_ms,
        )
        return snapshot

    def _write_cache(self, snapshot: TelemetrySnapshot) -> None:
        try:
            stored = self.cache.set(CACHE_KEY, snapshot.to_payload(), self.cache_ttl)
        except Exception as e:
            logger.warning("telemetry_cache_write_failed", error=str(e))
            return

        if not stored:
            logger.warning("telemetry_cache_write_failed", error="backend rejected write")

    # =========================================================================
    # Scheduling
    # =========================================================================

    def setup(self, scheduler: Optional[Scheduler] = None) -> bool:
        """
        Register the recurring collection job if it is not already registered.

        Args:
            scheduler: Scheduler to register with; the collector's own when omitted

        Returns:
            True if the job was newly registered

        Raises:
            SchedulerError: If no scheduler is available or registration fails
        """
        scheduler = scheduler or self.scheduler
        if scheduler is None:
            raise SchedulerError("No scheduler configured for telemetry collection")

        return scheduler.register(
            initial_delay=self.initial_delay,
            interval=self.interval,
            hook=COLLECT_HOOK,
            args=(),
            group=SCHEDULE_GROUP,
            unique=True,
        )


@lru_cache
def get_collector() -> TelemetryCollector:
    """Get cached collector instance (singleton)."""
    return TelemetryCollector()


def get_telemetry_data() -> dict:
    """Cached-or-fresh telemetry payload, with telemetry_cache hit|miss."""
    return get_collector().get().to_payload()


def collect_telemetry_data() -> dict:
    """Freshly collected telemetry payload, without a cache marker."""
    return get_collector().collect().to_payload()
