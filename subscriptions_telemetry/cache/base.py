"""
Abstract cache interface for telemetry snapshots.

Values are JSON-compatible dicts. Implementations expire entries after
their TTL and never raise on backend failures: a failed read is a miss and
a failed write is reported as False.
"""

from abc import ABC, abstractmethod
from typing import Optional


class CacheStore(ABC):
    """Key/value store with per-entry expiry."""

    @abstractmethod
    def get(self, key: str) -> Optional[dict]:
        """
        Return the cached value, or None if absent, expired or unreadable.

        Args:
            key: Cache key
        """
        pass

    @abstractmethod
    def set(self, key: str, value: dict, ttl: int) -> bool:
        """
        Store a value for `ttl` seconds, replacing any previous entry.

        Returns:
            True if the value was stored
        """
        pass
