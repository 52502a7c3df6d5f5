#!/usr/bin/env python3
"""
Subscriptions Telemetry Demo Seeder

Generates a year of subscription store activity (products, subscriptions,
initial and related orders) and writes it into the configured DuckDB file,
in whichever schema USE_ORDER_TABLES selects.

Usage:
    python scripts/seed_demo_store.py
    python scripts/seed_demo_store.py --customers 200 --seed 7
    python scripts/seed_demo_store.py --schema entity_meta --collect
"""

import argparse
import json
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import structlog

sys.path.insert(0, str(Path(__file__).parent.parent))

from subscriptions_telemetry.config import get_settings
from subscriptions_telemetry.models import OrderType
from subscriptions_telemetry.storage import create_store
from subscriptions_telemetry.storage.seed import (
    LineItem,
    OrderRecord,
    ProductRecord,
    StoreRecords,
    SubscriptionRecord,
    seed_store,
)
from subscriptions_telemetry.utils.logging import configure_logging

logger = structlog.get_logger()


class DemoStoreGenerator:
    """
    Generates a subscription store with realistic proportions.

    - Simple and variable subscription products across billing schedules
    - Customers holding one or more subscriptions, some cancelled
    - Initial orders for each subscription, plus renewals, switches and
      resubscribes spread over the trailing year
    """

    PAYMENT_METHODS = {"stripe": 0.55, "paypal": 0.25, "bacs": 0.10, "": 0.10}

    SCHEDULES = [("month", 1), ("month", 3), ("year", 1), ("week", 2)]

    SUBSCRIPTION_STATUSES = {
        "wc-active": 0.60,
        "wc-pending-cancel": 0.05,
        "wc-on-hold": 0.10,
        "wc-cancelled": 0.20,
        "wc-expired": 0.05,
    }

    def __init__(self, seed: int = 42, customers: int = 100):
        """
        Initialize generator with reproducible seed.

        Args:
            seed: Random seed for reproducibility
            customers: Number of subscribing customers
        """
        self.random = random.Random(seed)
        self.customers = customers
        self.end_date = datetime.now(timezone.utc).replace(microsecond=0)
        self.start_date = self.end_date - timedelta(days=365)
        self._next_id = 1000

        logger.info("demo_generator_initialized", seed=seed, customers=customers)

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    def _weighted(self, weights: dict) -> str:
        return self.random.choices(list(weights), weights=list(weights.values()))[0]

    def _random_date(self, start: Optional[datetime] = None) -> datetime:
        start = start or self.start_date
        span = int((self.end_date - start).total_seconds())
        return start + timedelta(seconds=self.random.randint(0, max(span, 0)))

    def generate_products(self) -> list[ProductRecord]:
        products = []
        for period, interval in self.SCHEDULES:
            products.append(
                ProductRecord(
                    id=self._id(),
                    product_type="subscription",
                    billing_period=period,
                    billing_interval=interval,
                    gifting=self.random.choice([None, "enabled", "disabled"]),
                )
            )

        parent = ProductRecord(id=self._id(), product_type="variable-subscription", gifting="enabled")
        products.append(parent)
        for period, interval in self.SCHEDULES[:2]:
            products.append(
                ProductRecord(
                    id=self._id(),
                    kind="product_variation",
                    parent_id=parent.id,
                    billing_period=period,
                    billing_interval=interval,
                )
            )

        products.append(ProductRecord(id=self._id(), product_type="simple"))
        return products

    def generate(self) -> StoreRecords:
        """Generate the complete store."""
        products = self.generate_products()
        orders: list[OrderRecord] = []
        subscriptions: list[SubscriptionRecord] = []

        for customer_id in range(1, self.customers + 1):
            for _ in range(self.random.choice([1, 1, 1, 2])):
                period, interval = self.random.choice(self.SCHEDULES)
                payment_method = self._weighted(self.PAYMENT_METHODS) or None
                price = self.random.choice([0, 9.99, 19.99, 49.0, 99.0])
                created = self._random_date()

                parent = OrderRecord(
                    id=self._id(),
                    created_at=created,
                    total=price,
                    payment_method=payment_method,
                    customer_id=customer_id,
                    line_items=[LineItem(id=self._id(), quantity=self.random.choice([1, 1, 2]))],
                )
                orders.append(parent)

                subscription = SubscriptionRecord(
                    id=self._id(),
                    status=self._weighted(self.SUBSCRIPTION_STATUSES),
                    created_at=created,
                    customer_id=customer_id,
                    parent_order_id=parent.id,
                    payment_method=payment_method,
                    billing_period=period,
                    billing_interval=interval,
                    requires_manual_renewal="true" if self.random.random() < 0.15 else None,
                    recipient_user=customer_id + 10000 if self.random.random() < 0.05 else None,
                )
                subscriptions.append(subscription)

                for _ in range(self.random.randint(0, 6)):
                    orders.append(
                        OrderRecord(
                            id=self._id(),
                            status=self.random.choice(["wc-completed", "wc-completed", "wc-refunded", "wc-failed"]),
                            created_at=self._random_date(created),
                            total=price,
                            payment_method=payment_method,
                            customer_id=customer_id,
                            related_type=self.random.choice(
                                [OrderType.RENEWAL] * 8 + [OrderType.SWITCH, OrderType.RESUBSCRIBE]
                            ),
                            related_subscription_id=subscription.id,
                        )
                    )

        # One-off store orders count towards store GMV only
        for _ in range(self.customers):
            orders.append(
                OrderRecord(
                    id=self._id(),
                    created_at=self._random_date(),
                    total=self.random.choice([5.0, 15.0, 30.0]),
                    payment_method="stripe",
                )
            )

        records = StoreRecords(orders=orders, subscriptions=subscriptions, products=products)
        logger.info(
            "demo_store_generated",
            orders=len(orders),
            subscriptions=len(subscriptions),
            products=len(products),
        )
        return records


def main():
    """Main entry point for demo seeding script."""
    parser = argparse.ArgumentParser(
        description="Seed a DuckDB store with demo subscription data for telemetry"
    )
    parser.add_argument(
        "--schema",
        type=str,
        choices=["order_tables", "entity_meta"],
        default=None,
        help="Schema to seed (default: from USE_ORDER_TABLES)",
    )
    parser.add_argument("--customers", type=int, default=100, help="Number of customers")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument(
        "--collect",
        action="store_true",
        default=False,
        help="Run a telemetry collection after seeding and print it",
    )
    args = parser.parse_args()

    configure_logging("seed")
    settings = get_settings()

    use_order_tables = settings.use_order_tables if args.schema is None else args.schema == "order_tables"
    store = create_store(use_order_tables, settings.db_path)
    store.clear_for_testing()

    records = DemoStoreGenerator(seed=args.seed, customers=args.customers).generate()
    seed_store(store, records)

    if args.collect:
        from subscriptions_telemetry.cache import MemoryCacheStore
        from subscriptions_telemetry.engine import (
            OrderMetrics,
            ProductMetrics,
            SubscriptionMetrics,
            TelemetryCollector,
        )

        collector = TelemetryCollector(
            orders=OrderMetrics(store=store),
            products=ProductMetrics(store=store),
            subscriptions=SubscriptionMetrics(store=store),
            cache=MemoryCacheStore(),
        )
        print(json.dumps(collector.collect().to_payload(), indent=2))


if __name__ == "__main__":
    main()
