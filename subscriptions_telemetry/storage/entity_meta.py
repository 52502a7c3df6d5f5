"""
Telemetry queries against the generic entity/meta tables.

Every record (order, subscription, product, variation) is a row in `posts`
with a `post_type`; everything beyond type, status, parent and creation date
is a key/value row in `postmeta`. Product types are attached through
`term_relationships`. Numeric attributes are stored as text and cast at
query time.
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

PARENT_ORDER_IDS = """
    SELECT DISTINCT subscriptions.post_parent
    FROM   posts AS subscriptions
    WHERE  subscriptions.post_type = 'shop_subscription'
           AND subscriptions.post_parent IS NOT NULL
           AND subscriptions.post_parent <> 0
"""

ORDER_TOTAL_JOIN = """
    LEFT JOIN postmeta AS total_meta ON (
              total_meta.post_id = orders.ID
              AND total_meta.meta_key = '_order_total'
    )
"""

ORDER_TOTAL = "TRY_CAST(total_meta.meta_value AS DECIMAL(26, 8))"


class EntityMetaStore(DuckDBBackend, TelemetryStore):
    """Telemetry store backed by the generic entity/meta tables."""

    schema_name = "entity_meta"

    tables = ("posts", "postmeta", "term_relationships")

    schema_statements = (
        """
        CREATE TABLE IF NOT EXISTS posts (
            ID BIGINT PRIMARY KEY,
            post_type VARCHAR NOT NULL,
            post_status VARCHAR NOT NULL,
            post_parent BIGINT NOT NULL DEFAULT 0,
            post_date_gmt TIMESTAMP
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS postmeta (
            post_id BIGINT NOT NULL,
            meta_key VARCHAR NOT NULL,
            meta_value VARCHAR
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS term_relationships (
            object_id BIGINT NOT NULL,
            term_taxonomy_id BIGINT NOT NULL
        )
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_posts_type_status
        ON posts(post_type, post_status)
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_postmeta_post_key
        ON postmeta(post_id, meta_key)
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
                     strftime(orders.post_date_gmt, '%Y-%m') AS month,
                     COUNT(*) AS count,
                     SUM({ORDER_TOTAL}) AS gross,
                     SUM(CASE WHEN {ORDER_TOTAL} > 0 THEN 1 ELSE 0 END) AS non_zero_count
            FROM     posts AS orders
            INNER JOIN postmeta AS order_type_meta ON (
                     order_type_meta.post_id = orders.ID
                     AND order_type_meta.meta_key IN ({placeholders(RELATED_ORDER_META_KEYS)})
            )
            {ORDER_TOTAL_JOIN}
            WHERE    orders.post_type = 'shop_order'
                     AND orders.post_status IN ({placeholders(paid_statuses)})
                     AND orders.post_date_gmt >= CAST(? AS TIMESTAMP)
                     AND orders.post_date_gmt < CAST(? AS TIMESTAMP)
            GROUP BY order_type_meta.meta_key, month
            ORDER BY meta_key ASC, month ASC
        """
        params = [*RELATED_ORDER_META_KEYS, *paid_statuses, window.start, window.end_exclusive]
        return self.fetch_rows("read_monthly_order_data_by_type", query, params)

    def monthly_parent_order_data(
        self, window: TimeWindow, paid_statuses: Sequence[str]
    ) -> list[dict]:
        query = f"""
            SELECT   strftime(orders.post_date_gmt, '%Y-%m') AS month,
                     COUNT(*) AS count,
                     SUM({ORDER_TOTAL}) AS gross,
                     SUM(CASE WHEN {ORDER_TOTAL} > 0 THEN 1 ELSE 0 END) AS non_zero_count
            FROM     posts AS orders
            {ORDER_TOTAL_JOIN}
            WHERE    orders.post_type = 'shop_order'
                     AND orders.post_status IN ({placeholders(paid_statuses)})
                     AND orders.post_date_gmt >= CAST(? AS TIMESTAMP)
                     AND orders.post_date_gmt < CAST(? AS TIMESTAMP)
                     AND orders.ID IN ({PARENT_ORDER_IDS})
            GROUP BY month
            ORDER BY month ASC
        """
        params = [*paid_statuses, window.start, window.end_exclusive]
        return self.fetch_rows("read_monthly_parent_order_data", query, params)

    def monthly_parent_order_quantities(
        self, window: TimeWindow, paid_statuses: Sequence[str]
    ) -> list[dict]:
        query = f"""
            SELECT   strftime(orders.post_date_gmt, '%Y-%m') AS month,
                     SUM(TRY_CAST(item_meta.meta_value AS DECIMAL(18, 2))) AS total_quantity,
                     SUM(
                         CASE WHEN {ORDER_TOTAL} > 0
                              THEN TRY_CAST(item_meta.meta_value AS DECIMAL(18, 2))
                              ELSE 0
                         END
                     ) AS non_zero_quantity
            FROM     posts AS orders
            {ORDER_TOTAL_JOIN}
            INNER JOIN order_items AS items ON (
                     items.order_id = orders.ID
                     AND items.order_item_type = 'line_item'
            )
            INNER JOIN order_itemmeta AS item_meta ON (
                     item_meta.order_item_id = items.order_item_id
                     AND item_meta.meta_key = '_qty'
            )
            WHERE    orders.post_type = 'shop_order'
                     AND orders.post_status IN ({placeholders(paid_statuses)})
                     AND orders.post_date_gmt >= CAST(? AS TIMESTAMP)
                     AND orders.post_date_gmt < CAST(? AS TIMESTAMP)
                     AND orders.ID IN ({PARENT_ORDER_IDS})
            GROUP BY month
            ORDER BY month ASC
        """
        params = [*paid_statuses, window.start, window.end_exclusive]
        return self.fetch_rows("read_monthly_parent_order_quantities", query, params)

    def monthly_order_data_by_payment_gateway(
        self, window: TimeWindow, paid_statuses: Sequence[str]
    ) -> list[dict]:
        query = f"""
            SELECT   COALESCE(payment_meta.meta_value, '') AS payment_method,
                     strftime(orders.post_date_gmt, '%Y-%m') AS month,
                     COUNT(*) AS count,
                     SUM({ORDER_TOTAL}) AS gross
            FROM     posts AS orders
            LEFT JOIN postmeta AS payment_meta ON (
                     payment_meta.post_id = orders.ID
                     AND payment_meta.meta_key = '_payment_method'
            )
            {ORDER_TOTAL_JOIN}
            WHERE    orders.post_type = 'shop_order'
                     AND orders.post_status IN ({placeholders(paid_statuses)})
                     AND orders.post_date_gmt >= CAST(? AS TIMESTAMP)
                     AND orders.post_date_gmt < CAST(? AS TIMESTAMP)
                     AND (
                         orders.ID IN ({PARENT_ORDER_IDS})
                         OR EXISTS (
                             SELECT 1
                             FROM   postmeta AS marker
                             WHERE  marker.post_id = orders.ID
                                    AND marker.meta_key IN ({placeholders(RELATED_ORDER_META_KEYS)})
                         )
                     )
            GROUP BY COALESCE(payment_meta.meta_value, ''), month
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
            SELECT   strftime(orders.post_date_gmt, '%Y-%m') AS month,
                     SUM({ORDER_TOTAL}) AS gross
            FROM     posts AS orders
            {ORDER_TOTAL_JOIN}
            WHERE    orders.post_type = 'shop_order'
                     AND orders.post_status IN ({placeholders(paid_statuses)})
                     AND orders.post_date_gmt >= CAST(? AS TIMESTAMP)
                     AND orders.post_date_gmt < CAST(? AS TIMESTAMP)
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
                SELECT     customer.meta_value AS customer_id,
                           MAX(CASE WHEN subscriptions.post_status IN ({placeholders(active_statuses)}) THEN 1 ELSE 0 END) AS is_active
                FROM       posts AS subscriptions
                INNER JOIN postmeta AS customer ON (
                           customer.post_id = subscriptions.ID
                           AND customer.meta_key = '_customer_user'
                )
                WHERE      subscriptions.post_type = 'shop_subscription'
                           AND customer.meta_value IS NOT NULL
                GROUP BY   customer.meta_value
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
            FROM      posts AS subscriptions
            LEFT JOIN postmeta AS manual ON (
                      manual.post_id = subscriptions.ID
                      AND manual.meta_key = '_requires_manual_renewal'
            )
            WHERE     subscriptions.post_type = 'shop_subscription'
                      AND subscriptions.post_status IN ({placeholders(active_statuses)})
        """
        return self.fetch_one("read_subscription_renewal_modes", query, list(active_statuses))

    def subscriptions_by_frequency(self, active_statuses: Sequence[str]) -> list[dict]:
        query = f"""
            SELECT    COALESCE(billing_period.meta_value, '') AS period,
                      COALESCE(billing_interval.meta_value, '') AS billing_interval,
                      COUNT(*) AS count
            FROM      posts AS subscriptions
            LEFT JOIN postmeta AS billing_period ON (
                      billing_period.post_id = subscriptions.ID
                      AND billing_period.meta_key = '_billing_period'
            )
            LEFT JOIN postmeta AS billing_interval ON (
                      billing_interval.post_id = subscriptions.ID
                      AND billing_interval.meta_key = '_billing_interval'
            )
            WHERE     subscriptions.post_type = 'shop_subscription'
                      AND subscriptions.post_status IN ({placeholders(active_statuses)})
            GROUP BY  COALESCE(billing_period.meta_value, ''),
                      COALESCE(billing_interval.meta_value, '')
        """
        return self.fetch_rows("read_subscriptions_by_frequency", query, list(active_statuses))

    def subscriptions_by_payment_method(self, active_statuses: Sequence[str]) -> list[dict]:
        query = f"""
            SELECT    COALESCE(payment_meta.meta_value, '') AS payment_method,
                      SUM(CASE WHEN subscriptions.post_status IN ({placeholders(active_statuses)}) THEN 1 ELSE 0 END) AS active_count,
                      SUM(CASE WHEN subscriptions.post_status NOT IN ({placeholders(active_statuses)}) THEN 1 ELSE 0 END) AS inactive_count
            FROM      posts AS subscriptions
            LEFT JOIN postmeta AS payment_meta ON (
                      payment_meta.post_id = subscriptions.ID
                      AND payment_meta.meta_key = '_payment_method'
            )
            WHERE     subscriptions.post_type = 'shop_subscription'
            GROUP BY  COALESCE(payment_meta.meta_value, '')
            ORDER BY  active_count DESC,
                      inactive_count DESC,
                      payment_method ASC
        """
        params = [*active_statuses, *active_statuses]
        return self.fetch_rows("read_subscriptions_by_payment_method", query, params)

    def gifted_subscriptions_count(self) -> int:
        query = f"""
            SELECT     COUNT(DISTINCT subscriptions.ID) AS gifted
            FROM       posts AS subscriptions
            INNER JOIN postmeta AS recipient ON (
                       recipient.post_id = subscriptions.ID
                       AND recipient.meta_key = '_recipient_user'
            )
            WHERE      subscriptions.post_type = 'shop_subscription'
                       AND subscriptions.post_status NOT IN ({placeholders(NON_RECORD_STATUSES)})
        """
        row = self.fetch_one("read_gifted_subscriptions_count", query, list(NON_RECORD_STATUSES))
        return int(row.get("gifted") or 0)

    # =========================================================================
    # Products
    # =========================================================================

    # Published posts carrying one of the two subscription product type terms.
    _TYPED_PRODUCT_JOIN = """
        INNER JOIN (
            SELECT     product_post.ID,
                       product_post.post_status,
                       product_type.term_taxonomy_id
            FROM       posts AS product_post
            INNER JOIN term_relationships AS product_type ON (
                       product_type.object_id = product_post.ID
                       AND product_type.term_taxonomy_id IN (?, ?)
            )
        ) AS typed ON (
            (product.ID = typed.ID AND typed.term_taxonomy_id = ?)
            OR (product.post_parent = typed.ID AND typed.term_taxonomy_id = ?)
        )
    """

    _PUBLISHED_PRODUCTS = """
        product.post_type IN ('product', 'product_variation')
        AND product.post_status = 'publish'
        AND typed.post_status = 'publish'
    """

    @staticmethod
    def _typed_product_params(terms: ProductTypeTerms) -> list:
        return [
            terms.subscription,
            terms.variable_subscription,
            terms.subscription,
            terms.variable_subscription,
        ]

    def product_frequencies(self, terms: ProductTypeTerms) -> list[dict]:
        query = f"""
            SELECT    COALESCE(billing_period.meta_value, '') AS period,
                      COALESCE(billing_interval.meta_value, '') AS billing_interval,
                      COUNT(*) AS count
            FROM      posts AS product
            {self._TYPED_PRODUCT_JOIN}
            LEFT JOIN postmeta AS billing_interval ON (
                      billing_interval.post_id = product.ID
                      AND billing_interval.meta_key = '_subscription_period_interval'
            )
            LEFT JOIN postmeta AS billing_period ON (
                      billing_period.post_id = product.ID
                      AND billing_period.meta_key = '_subscription_period'
            )
            WHERE     {self._PUBLISHED_PRODUCTS}
            GROUP BY  COALESCE(billing_period.meta_value, ''),
                      COALESCE(billing_interval.meta_value, '')
        """
        return self.fetch_rows("read_product_frequencies", query, self._typed_product_params(terms))

    def giftable_products_count(self, terms: ProductTypeTerms, enabled_for_all: bool) -> int:
        if enabled_for_all:
            gifting_condition = (
                "(gifting_setting.meta_value IS NULL OR gifting_setting.meta_value <> ?)"
            )
            gifting_mode = GiftingMode.DISABLED
        else:
            gifting_condition = "gifting_setting.meta_value = ?"
            gifting_mode = GiftingMode.ENABLED
        query = f"""
            SELECT    COUNT(*) AS giftable
            FROM      posts AS product
            {self._TYPED_PRODUCT_JOIN}
            LEFT JOIN postmeta AS gifting_setting ON (
                      gifting_setting.post_id = typed.ID
                      AND gifting_setting.meta_key = '_subscription_gifting'
            )
            WHERE     {self._PUBLISHED_PRODUCTS}
                      AND {gifting_condition}
        """
        params = [*self._typed_product_params(terms), gifting_mode.value]
        row = self.fetch_one("read_giftable_products_count", query, params)
        return int(row.get("giftable") or 0)
