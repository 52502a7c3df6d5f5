"""
Load logical store records into either physical schema.

Tests, the demo seeder and contract checks describe a store once as
`StoreRecords` and write it into both schemas. Equivalent records must
produce identical telemetry whichever adapter reads them back.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union

import structlog
from pydantic import BaseModel, Field

from subscriptions_telemetry.models.enums import OrderType

from .duckdb_backend import DuckDBBackend
from .entity_meta import EntityMetaStore
from .order_tables import OrderTablesStore
from .terms import PRODUCT_TYPE_TAXONOMY, SUBSCRIPTION_SLUG, VARIABLE_SUBSCRIPTION_SLUG

logger = structlog.get_logger(__name__)

Amount = Union[Decimal, float, int, str]


class LineItem(BaseModel):
    """A line item on an order."""

    id: int
    quantity: Amount = 1
    item_type: str = "line_item"


class OrderRecord(BaseModel):
    """
    A store order.

    `related_type` marks renewal, switch and resubscribe orders;
    `related_subscription_id` is stored as the marker value.
    """

    id: int
    status: str = "wc-completed"
    created_at: datetime
    total: Optional[Amount] = None
    payment_method: Optional[str] = None
    customer_id: Optional[int] = None
    related_type: Optional[OrderType] = None
    related_subscription_id: Optional[int] = None
    line_items: list[LineItem] = Field(default_factory=list)


class SubscriptionRecord(BaseModel):
    """A subscription, optionally created by a parent order."""

    id: int
    status: str = "wc-active"
    created_at: Optional[datetime] = None
    customer_id: Optional[int] = None
    parent_order_id: Optional[int] = None
    payment_method: Optional[str] = None
    billing_period: Optional[str] = None
    billing_interval: Optional[Union[int, str]] = None
    requires_manual_renewal: Optional[str] = None
    recipient_user: Optional[int] = None


class ProductRecord(BaseModel):
    """
    A product or variation.

    `product_type` is the product type slug carried by this row, if any;
    variations carry none and inherit from `parent_id`.
    """

    id: int
    kind: str = "product"
    status: str = "publish"
    parent_id: int = 0
    product_type: Optional[str] = None
    billing_period: Optional[str] = None
    billing_interval: Optional[Union[int, str]] = None
    gifting: Optional[str] = None


class TermRecord(BaseModel):
    """A taxonomy term."""

    term_id: int
    slug: str
    taxonomy: str = PRODUCT_TYPE_TAXONOMY


def default_terms() -> list[TermRecord]:
    return [
        TermRecord(term_id=1, slug="simple"),
        TermRecord(term_id=2, slug="variable"),
        TermRecord(term_id=3, slug=SUBSCRIPTION_SLUG),
        TermRecord(term_id=4, slug=VARIABLE_SUBSCRIPTION_SLUG),
    ]


class StoreRecords(BaseModel):
    """Everything needed to populate a store."""

    orders: list[OrderRecord] = Field(default_factory=list)
    subscriptions: list[SubscriptionRecord] = Field(default_factory=list)
    products: list[ProductRecord] = Field(default_factory=list)
    terms: list[TermRecord] = Field(default_factory=default_terms)

    def term_id(self, slug: Optional[str]) -> Optional[int]:
        for term in self.terms:
            if term.slug == slug and term.taxonomy == PRODUCT_TYPE_TAXONOMY:
                return term.term_id
        return None


def _timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """Naive UTC datetime for TIMESTAMP columns."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _text(value) -> Optional[str]:
    return None if value is None else str(value)


def _amount(value: Optional[Amount]) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def _seed_shared(conn, records: StoreRecords) -> None:
    terms = [(term.term_id, term.slug, term.taxonomy) for term in records.terms]
    if terms:
        conn.executemany("INSERT INTO terms VALUES (?, ?, ?)", terms)

    items = []
    item_meta = []
    for order in records.orders:
        for item in order.line_items:
            items.append((item.id, order.id, item.item_type))
            item_meta.append((item.id, "_qty", str(item.quantity)))
    if items:
        conn.executemany("INSERT INTO order_items VALUES (?, ?, ?)", items)
        conn.executemany("INSERT INTO order_itemmeta VALUES (?, ?, ?)", item_meta)


def _order_marker(order: OrderRecord) -> Optional[tuple[str, str]]:
    if order.related_type is None or order.related_type == OrderType.INITIAL:
        return None
    return order.related_type.meta_key, str(order.related_subscription_id or 0)


def seed_order_tables(store: OrderTablesStore, records: StoreRecords) -> None:
    """Write records into the normalized order tables."""
    orders = []
    meta = []

    for order in records.orders:
        orders.append(
            (
                order.id,
                "shop_order",
                order.status,
                order.customer_id,
                order.payment_method,
                _amount(order.total),
                None,
                _timestamp(order.created_at),
            )
        )
        marker = _order_marker(order)
        if marker:
            meta.append((order.id, *marker))

    for subscription in records.subscriptions:
        orders.append(
            (
                subscription.id,
                "shop_subscription",
                subscription.status,
                subscription.customer_id,
                subscription.payment_method,
                None,
                subscription.parent_order_id,
                _timestamp(subscription.created_at),
            )
        )
        for key, value in (
            ("_billing_period", subscription.billing_period),
            ("_billing_interval", subscription.billing_interval),
            ("_requires_manual_renewal", subscription.requires_manual_renewal),
            ("_recipient_user", subscription.recipient_user),
        ):
            if value is not None:
                meta.append((subscription.id, key, str(value)))

    products = [
        (
            product.id,
            product.parent_id,
            product.kind,
            product.status,
            records.term_id(product.product_type),
            product.billing_period,
            _text(product.billing_interval),
            product.gifting,
        )
        for product in records.products
    ]

    with store.connection() as conn:
        _seed_shared(conn, records)
        if orders:
            conn.executemany("INSERT INTO orders VALUES (?, ?, ?, ?, ?, ?, ?, ?)", orders)
        if meta:
            conn.executemany("INSERT INTO orders_meta VALUES (?, ?, ?)", meta)
        if products:
            conn.executemany("INSERT INTO products VALUES (?, ?, ?, ?, ?, ?, ?, ?)", products)

    logger.info(
        "store_seeded",
        schema=store.schema_name,
        orders=len(records.orders),
        subscriptions=len(records.subscriptions),
        products=len(records.products),
    )


def seed_entity_meta(store: EntityMetaStore, records: StoreRecords) -> None:
    """Write records into the generic entity/meta tables."""
    posts = []
    meta = []
    relationships = []

    for order in records.orders:
        posts.append((order.id, "shop_order", order.status, 0, _timestamp(order.created_at)))
        for key, value in (
            ("_order_total", _amount(order.total)),
            ("_payment_method", order.payment_method),
            ("_customer_user", order.customer_id),
        ):
            if value is not None:
                meta.append((order.id, key, str(value)))
        marker = _order_marker(order)
        if marker:
            meta.append((order.id, *marker))

    for subscription in records.subscriptions:
        posts.append(
            (
                subscription.id,
                "shop_subscription",
                subscription.status,
                subscription.parent_order_id or 0,
                _timestamp(subscription.created_at),
            )
        )
        for key, value in (
            ("_customer_user", subscription.customer_id),
            ("_payment_method", subscription.payment_method),
            ("_billing_period", subscription.billing_period),
            ("_billing_interval", subscription.billing_interval),
            ("_requires_manual_renewal", subscription.requires_manual_renewal),
            ("_recipient_user", subscription.recipient_user),
        ):
            if value is not None:
                meta.append((subscription.id, key, str(value)))

    for product in records.products:
        posts.append((product.id, product.kind, product.status, product.parent_id, None))
        term_id = records.term_id(product.product_type)
        if term_id is not None:
            relationships.append((product.id, term_id))
        for key, value in (
            ("_subscription_period", product.billing_period),
            ("_subscription_period_interval", product.billing_interval),
            ("_subscription_gifting", product.gifting),
        ):
            if value is not None:
                meta.append((product.id, key, str(value)))

    with store.connection() as conn:
        _seed_shared(conn, records)
        if posts:
            conn.executemany("INSERT INTO posts VALUES (?, ?, ?, ?, ?)", posts)
        if meta:
            conn.executemany("INSERT INTO postmeta VALUES (?, ?, ?)", meta)
        if relationships:
            conn.executemany("INSERT INTO term_relationships VALUES (?, ?)", relationships)

    logger.info(
        "store_seeded",
        schema=store.schema_name,
        orders=len(records.orders),
        subscriptions=len(records.subscriptions),
        products=len(records.products),
    )


def seed_store(store: DuckDBBackend, records: StoreRecords) -> None:
    """Write records into whichever schema the store reads."""
    if isinstance(store, OrderTablesStore):
        seed_order_tables(store, records)
    elif isinstance(store, EntityMetaStore):
        seed_entity_meta(store, records)
    else:
        raise TypeError(f"Cannot seed store of type {type(store).__name__}")
