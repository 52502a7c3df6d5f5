"""
Pytest configuration and shared fixtures for the subscriptions telemetry suite.

Provides record factories, DuckDB-backed stores for both schemas, mock
stores for pure unit tests, and a collector wired to an in-memory cache.
"""

import os
import tempfile
import uuid as _uuid
from datetime import datetime, timezone
from typing import Optional
from unittest.mock import MagicMock

import pytest

# Set testing environment BEFORE importing the package: settings are cached
# on first use. Use a temp path (DuckDB creates the file).
_test_db_path = os.path.join(tempfile.gettempdir(), f"telemetry_test_{_uuid.uuid4().hex[:8]}.duckdb")
os.environ["DB_PATH"] = _test_db_path
os.environ["CACHE_BACKEND"] = "memory"
os.environ["LOG_FORMAT"] = "console"
os.environ["GIFTING_ENABLED"] = "false"
os.environ["PAYMENT_GATEWAYS"] = '{"stripe": ["products", "subscriptions"], "paypal": ["products"]}'


from subscriptions_telemetry.cache import MemoryCacheStore
from subscriptions_telemetry.gateways import GatewayCapabilityCache, StaticGatewayRegistry
from subscriptions_telemetry.models import OrderType
from subscriptions_telemetry.storage import TelemetryStore, create_store
from subscriptions_telemetry.storage.seed import (
    LineItem,
    OrderRecord,
    ProductRecord,
    StoreRecords,
    SubscriptionRecord,
    seed_store,
)

SCHEMAS = ["order_tables", "entity_meta"]

# A fixed "now" in mid-June 2025 (UTC) for deterministic windows.
FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)

# Reporting window covering 2025 so far.
WINDOW_START = datetime(2025, 1, 1, tzinfo=timezone.utc)
WINDOW_END = datetime(2025, 6, 30, 23, 59, 59, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Record factories. Ids come from a shared counter so orders, subscriptions
# and products never collide in the entity table
# ---------------------------------------------------------------------------

_ids = iter(range(10_000, 10_000_000))


def next_id() -> int:
    return next(_ids)


def make_order(
    created_at: datetime = datetime(2025, 3, 10, 9, 30),
    total: Optional[float] = 10.0,
    status: str = "wc-completed",
    payment_method: Optional[str] = "stripe",
    related_type: Optional[OrderType] = None,
    quantities: tuple = (),
    **overrides,
) -> OrderRecord:
    """Factory function for creating test OrderRecord objects."""
    defaults = dict(
        id=next_id(),
        status=status,
        created_at=created_at,
        total=total,
        payment_method=payment_method,
        customer_id=1,
        related_type=related_type,
        related_subscription_id=1 if related_type else None,
        line_items=[LineItem(id=next_id(), quantity=quantity) for quantity in quantities],
    )
    defaults.update(overrides)
    return OrderRecord(**defaults)


def make_subscription(
    customer_id: Optional[int] = 1,
    status: str = "wc-active",
    billing_period: Optional[str] = "month",
    billing_interval=1,
    payment_method: Optional[str] = "stripe",
    parent_order_id: Optional[int] = None,
    **overrides,
) -> SubscriptionRecord:
    """Factory function for creating test SubscriptionRecord objects."""
    defaults = dict(
        id=next_id(),
        status=status,
        created_at=datetime(2025, 3, 1),
        customer_id=customer_id,
        parent_order_id=parent_order_id,
        payment_method=payment_method,
        billing_period=billing_period,
        billing_interval=billing_interval,
    )
    defaults.update(overrides)
    return SubscriptionRecord(**defaults)


def make_product(
    product_type: Optional[str] = "subscription",
    billing_period: Optional[str] = "month",
    billing_interval=1,
    status: str = "publish",
    gifting: Optional[str] = None,
    **overrides,
) -> ProductRecord:
    """Factory function for creating test ProductRecord objects."""
    defaults = dict(
        id=next_id(),
        product_type=product_type,
        billing_period=billing_period,
        billing_interval=billing_interval,
        status=status,
        gifting=gifting,
    )
    defaults.update(overrides)
    return ProductRecord(**defaults)


def make_variable_product(
    variations: list[tuple],
    status: str = "publish",
    gifting: Optional[str] = None,
) -> list[ProductRecord]:
    """Variable subscription parent plus one variation per (period, interval[, status])."""
    parent = make_product(
        product_type="variable-subscription",
        billing_period=None,
        billing_interval=None,
        status=status,
        gifting=gifting,
    )
    records = [parent]
    for variation in variations:
        period, interval = variation[0], variation[1]
        variation_status = variation[2] if len(variation) > 2 else "publish"
        records.append(
            make_product(
                kind="product_variation",
                parent_id=parent.id,
                product_type=None,
                billing_period=period,
                billing_interval=interval,
                status=variation_status,
            )
        )
    return records


def make_initial_order(subscription_kwargs: Optional[dict] = None, **order_kwargs):
    """An order plus the subscription that names it as parent."""
    order = make_order(**order_kwargs)
    subscription = make_subscription(parent_order_id=order.id, **(subscription_kwargs or {}))
    return order, subscription


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

@pytest.fixture(params=SCHEMAS)
def store(request, tmp_path) -> TelemetryStore:
    """Fresh DuckDB store, once per schema."""
    return create_store(request.param == "order_tables", str(tmp_path / f"{request.param}.duckdb"))


@pytest.fixture
def seeded_store(store):
    """Seed the parametrized store with StoreRecords and return it."""

    def _seed(records: StoreRecords) -> TelemetryStore:
        seed_store(store, records)
        return store

    return _seed


@pytest.fixture
def both_stores(tmp_path):
    """One store per schema, for side-by-side comparisons."""

    def _build(records: StoreRecords) -> dict:
        stores = {}
        for schema in SCHEMAS:
            built = create_store(schema == "order_tables", str(tmp_path / f"pair_{schema}.duckdb"))
            built.clear_for_testing()
            seed_store(built, records)
            stores[schema] = built
        return stores

    return _build


@pytest.fixture
def mock_store():
    """MagicMock store returning empty results for every query."""
    mock = MagicMock(spec=TelemetryStore)
    mock.schema_name = "mock"
    mock.monthly_order_data_by_type.return_value = []
    mock.monthly_parent_order_data.return_value = []
    mock.monthly_parent_order_quantities.return_value = []
    mock.monthly_order_data_by_payment_gateway.return_value = []
    mock.monthly_store_gmv.return_value = []
    mock.subscriber_counts.return_value = {"active": 0, "inactive": 0}
    mock.subscription_renewal_modes.return_value = {"automatic": 0, "manual": 0}
    mock.subscriptions_by_frequency.return_value = []
    mock.subscriptions_by_payment_method.return_value = []
    mock.gifted_subscriptions_count.return_value = 0
    mock.product_frequencies.return_value = []
    mock.giftable_products_count.return_value = 0
    return mock


@pytest.fixture
def gateway_registry():
    return StaticGatewayRegistry(
        {
            "stripe": ["products", "subscriptions"],
            "braintree": ["subscriptions", "gateway_scheduled_payments"],
            "bacs": ["products"],
        }
    )


@pytest.fixture
def gateway_cache(gateway_registry):
    return GatewayCapabilityCache(gateway_registry)


@pytest.fixture
def memory_cache():
    return MemoryCacheStore()


@pytest.fixture
def fixed_clock():
    """Epoch-seconds clock pinned to FIXED_NOW."""
    return lambda: FIXED_NOW.timestamp()
