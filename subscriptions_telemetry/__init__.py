"""Subscription commerce telemetry aggregation across both order storage schemas."""

__version__ = "0.1.0"
