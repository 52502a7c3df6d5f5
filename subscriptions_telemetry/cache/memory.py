"""In-process cache backend for single-process deployments and tests."""

import copy
import threading
import time
from typing import Callable, Optional

import structlog

from .base import CacheStore

logger = structlog.get_logger(__name__)


class MemoryCacheStore(CacheStore):
    """
    Dict-backed cache with monotonic-clock expiry.

    Values are deep-copied on the way in and out so callers never share
    mutable state with the cache.

    Attributes:
        clock: Monotonic time source in seconds
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._entries: dict[str, tuple[float, dict]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[dict]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            expires_at, value = entry
            if self.clock() >= expires_at:
                del self._entries[key]
                logger.debug("cache_entry_expired", key=key)
                return None

            return copy.deepcopy(value)

    def set(self, key: str, value: dict, ttl: int) -> bool:
        with self._lock:
            self._entries[key] = (self.clock() + ttl, copy.deepcopy(value))
        return True
