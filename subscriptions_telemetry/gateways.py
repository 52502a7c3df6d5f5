"""
Payment gateway registry and capability lookups.

Subscriptions record the id of the gateway that charges them. Whether that
gateway renews subscriptions on its own schedule, or can only take manual
renewals, depends on the features it registers. Gateways that are no longer
registered (uninstalled plugins, legacy ids) report unknown capabilities.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Mapping, NamedTuple, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from subscriptions_telemetry.config import Settings, get_settings
from subscriptions_telemetry.models import Capability

logger = structlog.get_logger(__name__)

SUBSCRIPTIONS_FEATURE = "subscriptions"
GATEWAY_SCHEDULED_PAYMENTS_FEATURE = "gateway_scheduled_payments"


class PaymentGateway(BaseModel):
    """A registered payment gateway and the features it supports."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Gateway id as recorded on orders and subscriptions")
    features: frozenset[str] = Field(default_factory=frozenset)

    def supports(self, feature: str) -> bool:
        return feature in self.features


class GatewayCapabilities(NamedTuple):
    renews_off_site: Capability
    manual_only: Capability


UNKNOWN_CAPABILITIES = GatewayCapabilities(Capability.UNKNOWN, Capability.UNKNOWN)


class GatewayRegistry(ABC):
    """Lookup of registered payment gateways by id."""

    @abstractmethod
    def get(self, gateway_id: str) -> Optional[PaymentGateway]:
        """Return the registered gateway, or None if unregistered."""
        pass


class StaticGatewayRegistry(GatewayRegistry):
    """Registry built from a fixed id -> features mapping."""

    def __init__(self, gateways: Mapping[str, Iterable[str]]):
        self._gateways = {
            gateway_id: PaymentGateway(id=gateway_id, features=frozenset(features))
            for gateway_id, features in gateways.items()
        }

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "StaticGatewayRegistry":
        settings = settings or get_settings()
        return cls(settings.payment_gateways)

    def get(self, gateway_id: str) -> Optional[PaymentGateway]:
        return self._gateways.get(gateway_id)


def resolve_capabilities(gateway: Optional[PaymentGateway]) -> GatewayCapabilities:
    """
    Derive capability flags for a gateway.

    renews_off_site is yes when the gateway runs its own renewal schedule.
    manual_only is yes when the gateway has no subscription support at all.
    An unregistered gateway is unknown for both.
    """
    if gateway is None:
        return UNKNOWN_CAPABILITIES

    return GatewayCapabilities(
        renews_off_site=(
            Capability.YES
            if gateway.supports(GATEWAY_SCHEDULED_PAYMENTS_FEATURE)
            else Capability.NO
        ),
        manual_only=Capability.NO if gateway.supports(SUBSCRIPTIONS_FEATURE) else Capability.YES,
    )


class GatewayCapabilityCache:
    """
    Read-through cache of gateway capabilities.

    Built once per telemetry collection so each gateway id is looked up in
    the registry at most once, however many breakdowns reference it.
    """

    def __init__(self, registry: GatewayRegistry):
        self.registry = registry
        self._capabilities: dict[str, GatewayCapabilities] = {}

    def capabilities(self, gateway_id: str) -> GatewayCapabilities:
        if gateway_id not in self._capabilities:
            gateway = self.registry.get(gateway_id) if gateway_id else None
            if gateway is None and gateway_id:
                logger.debug("payment_gateway_unregistered", gateway_id=gateway_id)
            self._capabilities[gateway_id] = resolve_capabilities(gateway)
        return self._capabilities[gateway_id]
