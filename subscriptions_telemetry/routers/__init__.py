"""API routers for all endpoints."""

from subscriptions_telemetry.routers import telemetry

__all__ = [
    "telemetry",
]
