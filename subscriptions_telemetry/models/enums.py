"""
Enumeration types for subscription telemetry.

All enums inherit from str to ensure JSON serialization compatibility.
"""

from enum import Enum


class OrderType(str, Enum):
    """
    Relationship of an order to the subscriptions it belongs to.

    Initial orders are identified by a subscription pointing back at them; the
    other three are identified by a marker attribute on the order itself. By
    business rule an order carries at most one marker.
    """

    INITIAL = "initial"
    RENEWAL = "renewal"
    SWITCH = "switch"
    RESUBSCRIBE = "resubscribe"

    @property
    def meta_key(self) -> str:
        """Attribute key marking an order of this type."""
        if self is OrderType.INITIAL:
            raise ValueError("Initial orders carry no marker attribute")
        return f"_subscription_{self.value}"


RELATED_ORDER_TYPES = (OrderType.RENEWAL, OrderType.SWITCH, OrderType.RESUBSCRIBE)


class Capability(str, Enum):
    """Tri-state answer for a payment gateway capability."""

    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"


class CacheStatus(str, Enum):
    """Whether a telemetry read was served from cache."""

    HIT = "hit"
    MISS = "miss"


class GiftingMode(str, Enum):
    """Per-product gifting override values."""

    ENABLED = "enabled"
    DISABLED = "disabled"
