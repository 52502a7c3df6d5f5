"""Shared utilities: logging setup and reporting window normalization."""

from .time_window import TimeWindow, normalize_to_month_boundaries

__all__ = ["TimeWindow", "normalize_to_month_boundaries"]
