"""
Telemetry queries against the normalized order tables.

Orders and subscriptions share the `orders` table, distinguished by `type`.
Status, totals, payment method, customer and parent order are typed
columns; relationship markers and subscription settings live in
`orders_meta`. Subscription products live in `products`, one row per
product or variation, with the product type term on the row that carries it.
"""

from typing import Sequence

import structlog

from subscriptions_telemetry.models.enums import GiftingMode
from subscriptions_telemetry.utils.time_window import TimeWindow

from .base import (
    NON_RECORD_STATUSES,
    RELATED_ORDER_META_KEYS,
    ProductTypeTerms,
    TelemetryStore,
)
from .duckdb_backend import DuckDBBackend, placeholders

logger = structlog.get_logger(__name__)

# Orders referenced as the originating order of at least one subscription.
PARENT_ORDER_IDS = """
    SELECT DISTINCT subscriptions.parent_order_id
    FROM   orders AS subscriptions
    WHERE  subscriptions.type = 'shop_subscription'
           AND subscriptions.parent_order_id IS NOT NULL
           AND subscriptions.parent_order_id <> 0
"""


class OrderTablesStore(DuckDBBackend, TelemetryStore):
    """Telemetry store backed by the normalized order tables."""

    schema_name = "order_tables"

    tables = ("orders", "orders_meta", "products")

    schema_statements = (
        """
        CREATE TABLE IF NOT EXISTS orders (
            id BIGINT PRIMARY KEY,
            type VARCHAR NOT NULL,
            status VARCHAR NOT NULL,
            customer_id BIGINT,
            payment_method VARCHAR,
            total_amount DECIMAL(26, 8),
            parent_order_id BIGINT,
            date_created_gmt TIMESTAMP
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS orders_meta (
            order_id BIGINT NOT NULL,
            meta_key VARCHAR NOT NULL,
            meta_value VARCHAR
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS products (
            id BIGINT PRIMARY KEY,
            parent_id BIGINT NOT NULL DEFAULT 0,
            product_kind VARCHAR NOT NULL,
            status VARCHAR NOT NULL,
            type_term_id BIGINT,
            billing_period VARCHAR,
            billing_interval VARCHAR,
            gifting VARCHAR
        )
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_orders_type_status
        ON orders(type, status)
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_orders_date_created
        ON orders(date_created_gmt)
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_orders_meta_order_key
        ON orders_meta(order_id, meta_key)
        """,
    )

    # =========================================================================
    # Orders
    # =========================================================================

    def monthly_order_data_by_type(
        self, window: TimeWindow, paid_statuses: Sequence[str]
    ) -> list[dict]:
        query = f"""
            SELECT   order_type_meta.meta_key AS meta_key,
                     strftime(orders.date_created_gmt, '%Y-%m') AS month,
                     COUNT(*) AS count,
                     SUM(orders.total_amount) AS gross,
                     SUM(CASE WHEN orders.total_amount > 0 THEN 1 ELSE 0 END) AS non_zero_count
            FROM     orders
            INNER JOIN orders_meta AS order_type_meta ON (
                     order_type_meta.order_id = orders.id
                     AND order_type_meta.meta_key IN ({placeholders(RELATED_ORDER_META_KEYS)})
            )
            WHERE    orders.type = 'shop_order'
                     AND orders.status IN ({placeholders(paid_statuses)})
                     AND orders.date_created_gmt >= CAST(? AS TIMESTAMP)
                     AND orders.date_created_gmt < CAST(? AS TIMESTAMP)
            GROUP BY order_type_meta.meta_key, month
            ORDER BY meta_key ASC, month ASC
        """
        params = [*RELATED_ORDER_META_KEYS, *paid_statuses, window.start, window.end_exclusive]
        return self.fetch_rows("read_monthly_order_data_by_type", query, params)

    def monthly_parent_order_data(
        self, window: TimeWindow, paid_statuses: Sequence[str]
    ) -> list[dict]:
        query = f"""
            SELECT   strftime(orders.date_created_gmt, '%Y-%m') AS month,
                     COUNT(*) AS count,
                     SUM(orders.total_amount) AS gross,
                     SUM(CASE WHEN orders.total_amount > 0 THEN 1 ELSE 0 END) AS non_zero_count
            FROM     orders
            WHERE    orders.type = 'shop_order'
                     AND orders.status IN ({placeholders(paid_statuses)})
                     AND orders.date_created_gmt >= CAST(? AS TIMESTAMP)
                     AND orders.date_created_gmt < CAST(? AS TIMESTAMP)
                     AND orders.id IN ({PARENT_ORDER_IDS})
            GROUP BY month
            ORDER BY month ASC
        """
        params = [*paid_statuses, window.start, window.end_exclusive]
        return self.fetch_rows("read_monthly_parent_order_data", query, params)

    def monthly_parent_order_quantities(
        self, window: TimeWindow, paid_statuses: Sequence[str]
    ) -> list[dict]:
        query = f"""
            SELECT   strftime(orders.date_created_gmt, '%Y-%m') AS month,
                     SUM(TRY_CAST(item_meta.meta_value AS DECIMAL(18, 2))) AS total_quantity,
                     SUM(
                         CASE WHEN orders.total_amount > 0
                              THEN TRY_CAST(item_meta.meta_value AS DECIMAL(18, 2))
                              ELSE 0
                         END
                     ) AS non_zero_quantity
            FROM     orders
            INNER JOIN order_items AS items ON (
                     items.order_id = orders.id
                     AND items.order_item_type = 'line_item'
            )
            INNER JOIN order_itemmeta AS item_meta ON (
                     item_meta.order_item_id = items.order_item_id
                     AND item_meta.meta_key = '_qty'
            )
            WHERE    orders.type = 'shop_order'
                     AND orders.status IN ({placeholders(paid_statuses)})
                     AND orders.date_created_gmt >= CAST(? AS TIMESTAMP)
                     AND orders.date_created_gmt < CAST(? AS TIMESTAMP)
                     AND orders.id IN ({PARENT_ORDER_IDS})
            GROUP BY month
            ORDER BY month ASC
        """
        params = [*paid_statuses, window.start, window.end_exclusive]
        return self.fetch_rows("read_monthly_parent_order_quantities", query, params)

    def monthly_order_data_by_payment_gateway(
        self, window: TimeWindow, paid_statuses: Sequence[str]
    ) -> list[dict]:
        query = f"""
            SELECT   COALESCE(orders.payment_method, '') AS payment_method,
                     strftime(orders.date_created_gmt, '%Y-%m') AS month,
                     COUNT(*) AS count,
                     SUM(orders.total_amount) AS gross
            FROM     orders
            WHERE    orders.type = 'shop_order'
                     AND orders.status IN ({placeholders(paid_statuses)})
                     AND orders.date_created_gmt >= CAST(? AS TIMESTAMP)
                     AND orders.date_created_gmt < CAST(? AS TIMESTAMP)
                     AND (
                         orders.id IN ({PARENT_ORDER_IDS})
                         OR EXISTS (
                             SELECT 1
                             FROM   orders_meta AS marker
                             WHERE  marker.order_id = orders.id
                                    AND marker.meta_key IN ({placeholders(RELATED_ORDER_META_KEYS)})
                         )
                     )
            GROUP BY COALESCE(orders.payment_method, ''), month
            ORDER BY payment_method ASC, month ASC
        """
        params = [
            *paid_statuses,
            window.start,
            window.end_exclusive,
            *RELATED_ORDER_META_KEYS,
        ]
        return self.fetch_rows("read_monthly_order_data_by_payment_gateway", query, params)

    def monthly_store_gmv(self, window: TimeWindow, paid_statuses: Sequence[str]) -> list[dict]:
        query = f"""
            SELECT   strftime(orders.date_created_gmt, '%Y-%m') AS month,
                     SUM(orders.total_amount) AS gross
            FROM     orders
            WHERE    orders.type = 'shop_order'
                     AND orders.status IN ({placeholders(paid_statuses)})
                     AND orders.date_created_gmt >= CAST(? AS TIMESTAMP)
                     AND orders.date_created_gmt < CAST(? AS TIMESTAMP)
            GROUP BY month
            ORDER BY month ASC
        """
        params = [*paid_statuses, window.start, window.end_exclusive]
        return self.fetch_rows("read_monthly_store_gmv", query, params)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscriber_counts(self, active_statuses: Sequence[str]) -> dict:
        query = f"""
            WITH subscribers AS (
                SELECT   customer_id,
                         MAX(CASE WHEN status IN ({placeholders(active_statuses)}) THEN 1 ELSE 0 END) AS is_active
                FROM     orders
                WHERE    type = 'shop_subscription'
                         AND customer_id IS NOT NULL
                GROUP BY customer_id
            )
            SELECT COALESCE(SUM(is_active), 0) AS active,
                   COUNT(*) - COALESCE(SUM(is_active), 0) AS inactive
            FROM   subscribers
        """
        return self.fetch_one("read_subscriber_counts", query, list(active_statuses))

    def subscription_renewal_modes(self, active_statuses: Sequence[str]) -> dict:
        query = f"""
            SELECT    COALESCE(SUM(CASE WHEN manual.meta_value = 'true' THEN 1 ELSE 0 END), 0) AS manual,
                      COALESCE(SUM(CASE WHEN manual.meta_value IS DISTINCT FROM 'true' THEN 1 ELSE 0 END), 0) AS automatic
            FROM      orders
            LEFT JOIN orders_meta AS manual ON (
                      manual.order_id = orders.id
                      AND manual.meta_key = '_requires_manual_renewal'
            )
            WHERE     orders.type = 'shop_subscription'
                      AND orders.status IN ({placeholders(active_statuses)})
        """
        return self.fetch_one("read_subscription_renewal_modes", query, list(active_statuses))

    def subscriptions_by_frequency(self, active_statuses: Sequence[str]) -> list[dict]:
        query = f"""
            SELECT    COALESCE(billing_period.meta_value, '') AS period,
                      COALESCE(billing_interval.meta_value, '') AS billing_interval,
                      COUNT(*) AS count
            FROM      orders
            LEFT JOIN orders_meta AS billing_period ON (
                      billing_period.order_id = orders.id
                      AND billing_period.meta_key = '_billing_period'
            )
            LEFT JOIN orders_meta AS billing_interval ON (
                      billing_interval.order_id = orders.id
                      AND billing_interval.meta_key = '_billing_interval'
            )
            WHERE     orders.type = 'shop_subscription'
                      AND orders.status IN ({placeholders(active_statuses)})
            GROUP BY  COALESCE(billing_period.meta_value, ''),
                      COALESCE(billing_interval.meta_value, '')
        """
        return self.fetch_rows("read_subscriptions_by_frequency", query, list(active_statuses))

    def subscriptions_by_payment_method(self, active_statuses: Sequence[str]) -> list[dict]:
        query = f"""
            SELECT   COALESCE(payment_method, '') AS payment_method,
                     SUM(CASE WHEN status IN ({placeholders(active_statuses)}) THEN 1 ELSE 0 END) AS active_count,
                     SUM(CASE WHEN status NOT IN ({placeholders(active_statuses)}) THEN 1 ELSE 0 END) AS inactive_count
            FROM     orders
            WHERE    type = 'shop_subscription'
            GROUP BY COALESCE(payment_method, '')
            ORDER BY active_count DESC,
                     inactive_count DESC,
                     payment_method ASC
        """
        params = [*active_statuses, *active_statuses]
        return self.fetch_rows("read_subscriptions_by_payment_method", query, params)

    def gifted_subscriptions_count(self) -> int:
        query = f"""
            SELECT     COUNT(DISTINCT orders.id) AS gifted
            FROM       orders
            INNER JOIN orders_meta AS recipient ON (
                       recipient.order_id = orders.id
                       AND recipient.meta_key = '_recipient_user'
            )
            WHERE      orders.type = 'shop_subscription'
                       AND orders.status NOT IN ({placeholders(NON_RECORD_STATUSES)})
        """
        row = self.fetch_one("read_gifted_subscriptions_count", query, list(NON_RECORD_STATUSES))
        return int(row.get("gifted") or 0)

    # =========================================================================
    # Products
    # =========================================================================

    # The row carrying the type term: the product itself for simple
    # subscriptions, the parent for variations of variable subscriptions.
    _TYPED_PRODUCT_JOIN = """
        INNER JOIN products AS typed ON (
                   (product.id = typed.id AND typed.type_term_id = ?)
                   OR (product.parent_id = typed.id AND typed.type_term_id = ?)
        )
    """

    _PUBLISHED_PRODUCTS = """
        product.product_kind IN ('product', 'product_variation')
        AND product.status = 'publish'
        AND typed.status = 'publish'
    """

    def product_frequencies(self, terms: ProductTypeTerms) -> list[dict]:
        query = f"""
            SELECT   COALESCE(product.billing_period, '') AS period,
                     COALESCE(product.billing_interval, '') AS billing_interval,
                     COUNT(*) AS count
            FROM     products AS product
            {self._TYPED_PRODUCT_JOIN}
            WHERE    {self._PUBLISHED_PRODUCTS}
            GROUP BY COALESCE(product.billing_period, ''),
                     COALESCE(product.billing_interval, '')
        """
        params = [terms.subscription, terms.variable_subscription]
        return self.fetch_rows("read_product_frequencies", query, params)

    def giftable_products_count(self, terms: ProductTypeTerms, enabled_for_all: bool) -> int:
        if enabled_for_all:
            gifting_condition = "(typed.gifting IS NULL OR typed.gifting <> ?)"
            gifting_mode = GiftingMode.DISABLED
        else:
            gifting_condition = "typed.gifting = ?"
            gifting_mode = GiftingMode.ENABLED
        query = f"""
            SELECT COUNT(*) AS giftable
            FROM   products AS product
            {self._TYPED_PRODUCT_JOIN}
            WHERE  {self._PUBLISHED_PRODUCTS}
                   AND {gifting_condition}
        """
        params = [terms.subscription, terms.variable_subscription, gifting_mode.value]
        row = self.fetch_one("read_giftable_products_count", query, params)
        return int(row.get("giftable") or 0)
