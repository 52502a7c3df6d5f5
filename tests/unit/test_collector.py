"""
Unit tests for the TelemetryCollector: cache-first reads, collection,
failure handling and recurring job registration.
"""

from unittest.mock import MagicMock

import pytest

from subscriptions_telemetry.cache import CacheStore, MemoryCacheStore
from subscriptions_telemetry.engine import OrderMetrics, ProductMetrics, SubscriptionMetrics
from subscriptions_telemetry.engine import collector as collector_module
from subscriptions_telemetry.engine.collector import (
    CACHE_KEY,
    COLLECT_HOOK,
    SCHEDULE_GROUP,
    WINDOW_SECONDS,
    TelemetryCollector,
    collect_telemetry_data,
    get_telemetry_data,
)
from subscriptions_telemetry.errors import SchedulerError, StorageError
from subscriptions_telemetry.models import CacheStatus
from subscriptions_telemetry.scheduling import Scheduler
from tests.conftest import FIXED_NOW


@pytest.fixture
def collector_factory(mock_store, gateway_registry, fixed_clock):
    """Build collectors over the mock store with injectable cache/scheduler."""

    def _build(cache=None, scheduler=None, clock=fixed_clock):
        return TelemetryCollector(
            orders=OrderMetrics(store=mock_store),
            products=ProductMetrics(store=mock_store, terms=MagicMock(), gifting_enabled=False),
            subscriptions=SubscriptionMetrics(store=mock_store),
            cache=cache or MemoryCacheStore(),
            scheduler=scheduler,
            gateway_registry=gateway_registry,
            clock=clock,
        )

    return _build


class TestCollect:
    def test_stamps_generation_time_and_duration(self, collector_factory):
        snapshot = collector_factory().collect()

        assert snapshot.generated_at == int(FIXED_NOW.timestamp())
        assert snapshot.generation_duration_ms >= 0
        assert snapshot.cache_status is None

    def test_payload_has_no_cache_marker(self, collector_factory):
        payload = collector_factory().collect().to_payload()
        assert "telemetry_cache" not in payload
        assert set(payload["order_trends"]["by_order_type"]) == {
            "store_gross",
            "initial",
            "renewal",
            "switch",
            "resubscribe",
        }

    def test_covers_trailing_year(self, collector_factory, mock_store):
        collector_factory().collect()

        window, _ = mock_store.monthly_store_gmv.call_args.args
        assert window.start == "2024-06-01 00:00:00"
        assert window.end == "2025-06-30 23:59:59"
        assert WINDOW_SECONDS == 365 * 24 * 60 * 60

    def test_writes_cache_with_ttl(self, collector_factory):
        cache = MagicMock(spec=CacheStore)
        cache.set.return_value = True

        snapshot = collector_factory(cache=cache).collect()

        key, value, ttl = cache.set.call_args.args
        assert key == CACHE_KEY == "subscriptions-telemetry-data"
        assert ttl == 604800
        assert value == snapshot.to_payload()

    def test_storage_failure_leaves_cache_untouched(self, collector_factory, mock_store):
        cache = MemoryCacheStore()
        collector = collector_factory(cache=cache)
        previous = collector.collect().to_payload()

        mock_store.subscriber_counts.side_effect = StorageError("connection lost")
        with pytest.raises(StorageError):
            collector.collect()

        assert cache.get(CACHE_KEY) == previous

    def test_cache_write_failure_is_not_fatal(self, collector_factory):
        cache = MagicMock(spec=CacheStore)
        cache.set.side_effect = ConnectionError("redis down")

        snapshot = collector_factory(cache=cache).collect()

        assert snapshot.generated_at == int(FIXED_NOW.timestamp())

    def test_fresh_capability_cache_per_collection(self, collector_factory, mock_store, gateway_registry):
        mock_store.subscriptions_by_payment_method.return_value = [
            {"payment_method": "stripe", "active_count": 1, "inactive_count": 0},
        ]
        registry = MagicMock(wraps=gateway_registry)
        collector = collector_factory()
        collector.gateway_registry = registry

        collector.collect()
        collector.collect()

        assert registry.get.call_count == 2


class TestGet:
    def test_miss_then_hit_with_identical_payload(self, collector_factory):
        collector = collector_factory()

        first = collector.get()
        second = collector.get()

        assert first.cache_status == CacheStatus.MISS
        assert second.cache_status == CacheStatus.HIT

        first_payload = first.to_payload()
        second_payload = second.to_payload()
        assert first_payload.pop("telemetry_cache") == "miss"
        assert second_payload.pop("telemetry_cache") == "hit"
        assert first_payload == second_payload

    def test_hit_does_not_query_storage(self, collector_factory, mock_store):
        collector = collector_factory()
        collector.get()
        calls_after_miss = mock_store.monthly_store_gmv.call_count

        collector.get()

        assert mock_store.monthly_store_gmv.call_count == calls_after_miss

    @pytest.mark.parametrize(
        "cached",
        [None, [], "snapshot", 42, {}, {"generated_at": "yesterday"}],
        ids=["missing", "list", "string", "number", "empty", "invalid"],
    )
    def test_unusable_cache_values_are_misses(self, collector_factory, cached):
        cache = MagicMock(spec=CacheStore)
        cache.get.return_value = cached
        cache.set.return_value = True

        snapshot = collector_factory(cache=cache).get()

        assert snapshot.cache_status == CacheStatus.MISS
        cache.set.assert_called_once()

    def test_cache_read_failure_is_a_miss(self, collector_factory):
        cache = MagicMock(spec=CacheStore)
        cache.get.side_effect = TimeoutError("cache timeout")
        cache.set.return_value = True

        assert collector_factory(cache=cache).get().cache_status == CacheStatus.MISS

    def test_expired_entry_is_recollected(self, collector_factory):
        now = [0.0]
        cache = MemoryCacheStore(clock=lambda: now[0])
        collector = collector_factory(cache=cache)

        assert collector.get().cache_status == CacheStatus.MISS
        now[0] += 604800
        assert collector.get().cache_status == CacheStatus.MISS
        assert collector.get().cache_status == CacheStatus.HIT

    def test_storage_error_on_miss_propagates(self, collector_factory, mock_store):
        mock_store.monthly_order_data_by_type.side_effect = StorageError("boom")

        with pytest.raises(StorageError):
            collector_factory().get()


class TestSetup:
    def test_registers_unique_recurring_job(self, collector_factory):
        scheduler = MagicMock(spec=Scheduler)
        scheduler.register.return_value = True

        assert collector_factory(scheduler=scheduler).setup() is True

        scheduler.register.assert_called_once_with(
            initial_delay=3600,
            interval=259200,
            hook=COLLECT_HOOK,
            args=(),
            group=SCHEDULE_GROUP,
            unique=True,
        )
        assert COLLECT_HOOK == "collect-telemetry-data"
        assert SCHEDULE_GROUP == "subscriptions-telemetry"

    def test_explicit_scheduler_overrides_default(self, collector_factory):
        default = MagicMock(spec=Scheduler)
        explicit = MagicMock(spec=Scheduler)
        explicit.register.return_value = False

        assert collector_factory(scheduler=default).setup(explicit) is False
        default.register.assert_not_called()

    def test_without_scheduler_raises(self, collector_factory):
        with pytest.raises(SchedulerError):
            collector_factory().setup()


class TestModuleFunctions:
    def test_get_telemetry_data_marks_cache_status(self, collector_factory, monkeypatch):
        collector = collector_factory()
        monkeypatch.setattr(collector_module, "get_collector", lambda: collector)

        first = get_telemetry_data()
        second = get_telemetry_data()

        assert first.pop("telemetry_cache") == "miss"
        assert second.pop("telemetry_cache") == "hit"
        assert first == second

    def test_collect_telemetry_data_is_unmarked(self, collector_factory, monkeypatch):
        collector = collector_factory()
        monkeypatch.setattr(collector_module, "get_collector", lambda: collector)

        payload = collect_telemetry_data()

        assert "telemetry_cache" not in payload
        assert payload["generated_at"] == int(FIXED_NOW.timestamp())
