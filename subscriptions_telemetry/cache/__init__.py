"""
Snapshot cache layer.

memory: in-process dict, the default
redis: shared across API and worker processes
"""

from functools import lru_cache

from subscriptions_telemetry.config import get_settings

from .base import CacheStore
from .memory import MemoryCacheStore
from .redis_cache import RedisCacheStore


@lru_cache
def get_cache() -> CacheStore:
    """
    Get cached cache store instance (singleton).

    Returns:
        CacheStore for the configured backend
    """
    settings = get_settings()
    if settings.cache_backend == "redis":
        return RedisCacheStore.from_url(settings.redis_url)
    return MemoryCacheStore()


__all__ = [
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "get_cache",
]
