"""
Order Metrics Aggregator - monthly order volume and value.

Orders fall into four disjoint categories:
- initial: referenced as the parent order of at least one subscription
- renewal, switch, resubscribe: carrying the matching marker attribute

Every query window is widened to whole UTC months first, so no month in a
series is ever partial.
"""

from typing import Optional, Sequence

import structlog

from subscriptions_telemetry.config import get_settings
from subscriptions_telemetry.models import MonthlyGatewayMetrics, OrderType, OrderTypeTrends
from subscriptions_telemetry.storage import TelemetryStore, get_storage
from subscriptions_telemetry.utils.time_window import Timestamp, normalize_to_month_boundaries

from .formatting import (
    format_monthly_initial_order_metrics,
    format_monthly_order_data_by_payment_gateway,
    format_monthly_order_data_by_type,
    format_store_gross,
    merge_by_month,
)

logger = structlog.get_logger(__name__)

QUANTITY_FIELDS = ("quantity", "non_zero_quantity")


class OrderMetrics:
    """
    Aggregates subscription-related orders into monthly series.

    Attributes:
        store: Telemetry store answering the grouped queries
        paid_statuses: Order statuses counted as paid

    Example:
        >>> metrics = OrderMetrics(store=store)
        >>> trends = metrics.get_aggregated_monthly_order_data(start, end)
        >>> trends.renewal[0].gross
        35.0
    """

    def __init__(
        self,
        store: Optional[TelemetryStore] = None,
        paid_statuses: Optional[Sequence[str]] = None,
    ):
        """
        Initialize the aggregator.

        Args:
            store: Telemetry store; the configured store when omitted
            paid_statuses: Paid order statuses; from settings when omitted
        """
        self.store = store or get_storage()
        self.paid_statuses = tuple(paid_statuses or get_settings().paid_order_statuses)

    def get_aggregated_monthly_order_data(self, start: Timestamp, end: Timestamp) -> OrderTypeTrends:
        """
        Monthly count, gross and non-zero count per order type, plus store GMV.

        Initial order points also carry line item quantities. A month with
        initial orders but no quantity rows gets zero quantities.

        Args:
            start: Start of the reporting range (widened to month start)
            end: End of the reporting range (widened to month end)

        Returns:
            OrderTypeTrends with all five series present
        """
        window = normalize_to_month_boundaries(start, end)

        related = format_monthly_order_data_by_type(
            self.store.monthly_order_data_by_type(window, self.paid_statuses)
        )

        parent_rows = self.store.monthly_parent_order_data(window, self.paid_statuses)
        quantity_rows = [
            {
                "month": row["month"],
                "quantity": row.get("total_quantity"),
                "non_zero_quantity": row.get("non_zero_quantity"),
            }
            for row in self.store.monthly_parent_order_quantities(window, self.paid_statuses)
        ]
        initial = format_monthly_initial_order_metrics(
            merge_by_month(parent_rows, quantity_rows, QUANTITY_FIELDS)
        )

        store_gross = format_store_gross(self.store.monthly_store_gmv(window, self.paid_statuses))

        trends = OrderTypeTrends(
            store_gross=store_gross,
            initial=initial,
            renewal=related[OrderType.RENEWAL.value],
            switch=related[OrderType.SWITCH.value],
            resubscribe=related[OrderType.RESUBSCRIBE.value],
        )

        logger.info(
            "order_data_aggregated",
            window_start=window.start,
            window_end=window.end,
            schema=self.store.schema_name,
            initial_months=len(trends.initial),
            renewal_months=len(trends.renewal),
        )
        return trends

    def get_aggregated_monthly_order_data_by_payment_gateway(
        self, start: Timestamp, end: Timestamp
    ) -> dict[str, list[MonthlyGatewayMetrics]]:
        """
        Monthly count and gross of subscription-related orders per gateway.

        Covers initial, renewal, switch and resubscribe orders. Orders with
        no recorded payment method are keyed under ''.

        Returns:
            Gateway id to month-ordered series, gateways in ascending order
        """
        window = normalize_to_month_boundaries(start, end)

        by_gateway = format_monthly_order_data_by_payment_gateway(
            self.store.monthly_order_data_by_payment_gateway(window, self.paid_statuses)
        )

        logger.info(
            "gateway_order_data_aggregated",
            window_start=window.start,
            window_end=window.end,
            schema=self.store.schema_name,
            gateways=len(by_gateway),
        )
        return by_gateway
