"""
Abstract storage interface for telemetry queries.

Two physical representations of the same orders and subscriptions coexist
across installs while stores migrate between them:

- Order tables: a normalized, order-centric schema with typed columns
  (status, totals, payment method, parent order) plus an order meta table.
- Entity/meta tables: a generic entity table holding every record type,
  with all attributes held as key/value rows.

Every logical query is declared once here and implemented once per schema.
Implementations return raw grouped rows; formatting into the canonical
telemetry shapes happens in the aggregators so both schemas share it.

Row conventions:
- month columns are 'YYYY-MM' strings
- numeric columns may be int, Decimal, float or None (empty groups)
"""

from abc import ABC, abstractmethod
from typing import NamedTuple, Sequence

from subscriptions_telemetry.utils.time_window import TimeWindow

RELATED_ORDER_META_KEYS = (
    "_subscription_renewal",
    "_subscription_switch",
    "_subscription_resubscribe",
)

# Subscriptions in these states are not real records yet (or anymore).
NON_RECORD_STATUSES = ("auto-draft", "trash")


class ProductTypeTerms(NamedTuple):
    """Term ids classifying subscription products."""

    subscription: int
    variable_subscription: int


class TelemetryStore(ABC):
    """
    Read-only query surface for telemetry aggregation.

    All methods are pure reads. Implementations must ensure that, given
    equivalent underlying records, every method returns rows that format to
    identical telemetry output. Failures are raised as StorageError.
    """

    schema_name: str = ""

    # =========================================================================
    # Orders
    # =========================================================================

    @abstractmethod
    def monthly_order_data_by_type(
        self, window: TimeWindow, paid_statuses: Sequence[str]
    ) -> list[dict]:
        """
        Aggregate renewal, switch and resubscribe orders per marker and month.

        Args:
            window: Month-aligned reporting window
            paid_statuses: Order statuses counted as paid

        Returns:
            Rows of {meta_key, month, count, gross, non_zero_count}, ordered
            by meta_key then month
        """
        pass

    @abstractmethod
    def monthly_parent_order_data(
        self, window: TimeWindow, paid_statuses: Sequence[str]
    ) -> list[dict]:
        """
        Aggregate initial orders (orders that created a subscription) per month.

        Returns:
            Rows of {month, count, gross, non_zero_count}, ordered by month
        """
        pass

    @abstractmethod
    def monthly_parent_order_quantities(
        self, window: TimeWindow, paid_statuses: Sequence[str]
    ) -> list[dict]:
        """
        Sum line item quantities on initial orders per month.

        Returns:
            Rows of {month, total_quantity, non_zero_quantity}, ordered by month
        """
        pass

    @abstractmethod
    def monthly_order_data_by_payment_gateway(
        self, window: TimeWindow, paid_statuses: Sequence[str]
    ) -> list[dict]:
        """
        Aggregate all subscription-related orders per payment method and month.

        Returns:
            Rows of {payment_method, month, count, gross}, ordered by
            payment_method then month. payment_method is '' when none recorded.
        """
        pass

    @abstractmethod
    def monthly_store_gmv(self, window: TimeWindow, paid_statuses: Sequence[str]) -> list[dict]:
        """
        Sum totals of every paid store order per month.

        Returns:
            Rows of {month, gross}, ordered by month
        """
        pass

    # =========================================================================
    # Subscriptions
    # =========================================================================

    @abstractmethod
    def subscriber_counts(self, active_statuses: Sequence[str]) -> dict:
        """
        Count distinct customers with and without an active subscription.

        Both counts are evaluated in a single read: each customer is classified
        once, so a customer holding any active subscription is never counted
        as inactive.

        Returns:
            {active, inactive}
        """
        pass

    @abstractmethod
    def subscription_renewal_modes(self, active_statuses: Sequence[str]) -> dict:
        """
        Count active subscriptions by renewal mode.

        A subscription renews manually only when its manual renewal flag is
        exactly 'true'; a missing flag means automatic renewal.

        Returns:
            {automatic, manual}
        """
        pass

    @abstractmethod
    def subscriptions_by_frequency(self, active_statuses: Sequence[str]) -> list[dict]:
        """
        Count active subscriptions per billing period and interval.

        Returns:
            Rows of {period, billing_interval, count}; missing values are ''
        """
        pass

    @abstractmethod
    def subscriptions_by_payment_method(self, active_statuses: Sequence[str]) -> list[dict]:
        """
        Count active and inactive subscriptions per payment method in one pass.

        Returns:
            Rows of {payment_method, active_count, inactive_count}, ordered by
            active_count desc, inactive_count desc, payment_method asc
        """
        pass

    @abstractmethod
    def gifted_subscriptions_count(self) -> int:
        """Count subscriptions purchased for a recipient."""
        pass

    # =========================================================================
    # Products
    # =========================================================================

    @abstractmethod
    def product_frequencies(self, terms: ProductTypeTerms) -> list[dict]:
        """
        Count published subscription products per billing period and interval.

        Simple subscriptions count themselves; variable subscriptions count
        their published variations.

        Returns:
            Rows of {period, billing_interval, count}; missing values are ''
        """
        pass

    @abstractmethod
    def giftable_products_count(self, terms: ProductTypeTerms, enabled_for_all: bool) -> int:
        """
        Count published subscription products whose gifting mode is enabled.

        The gifting override is read from the product carrying the
        subscription type (the parent, for variations).

        Args:
            terms: Subscription product type term ids
            enabled_for_all: Global default; when True only explicitly
                disabled products are excluded, otherwise only explicitly
                enabled products are counted
        """
        pass
