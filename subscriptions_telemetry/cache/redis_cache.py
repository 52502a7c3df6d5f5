"""
Redis cache backend.

Values are stored as JSON strings with SETEX so Redis handles expiry.
Connection and protocol errors are logged and degrade to a miss, so a
Redis outage slows telemetry reads down but never breaks them.
"""

import json
from typing import Optional

import redis
import structlog

from .base import CacheStore

logger = structlog.get_logger(__name__)


class RedisCacheStore(CacheStore):
    """
    Cache backed by a Redis server.

    Attributes:
        client: redis-py client
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStore":
        return cls(redis.Redis.from_url(url))

    def get(self, key: str) -> Optional[dict]:
        try:
            raw = self.client.get(key)
        except redis.exceptions.RedisError as e:
            logger.warning("cache_read_failed", key=key, backend="redis", error=str(e))
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("cache_value_undecodable", key=key, backend="redis", error=str(e))
            return None

    def set(self, key: str, value: dict, ttl: int) -> bool:
        try:
            self.client.setex(key, ttl, json.dumps(value))
        except redis.exceptions.RedisError as e:
            logger.warning("cache_write_failed", key=key, backend="redis", error=str(e))
            return False
        return True
