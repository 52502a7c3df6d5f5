"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

import json
from functools import lru_cache
from typing import Annotated, Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    use_order_tables: bool = Field(
        default=True,
        description="Read from the normalized order tables (True) or the entity/meta tables (False)",
    )
    db_path: str = Field(default="./data/store.duckdb", description="DuckDB file path")

    # Cache
    cache_backend: str = Field(default="memory", description="Cache backend (memory|redis)")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    cache_ttl_seconds: int = Field(
        default=7 * 24 * 60 * 60, ge=1, description="Telemetry snapshot lifetime (1 week)"
    )

    # Celery
    celery_broker_url: str = Field(
        default="redis://localhost:6379/1", description="Celery broker URL"
    )
    celery_result_backend: str = Field(
        default="redis://localhost:6379/2", description="Celery result backend"
    )
    schedule_initial_delay_seconds: int = Field(
        default=60 * 60, ge=0, description="Delay before the first scheduled collection"
    )
    schedule_interval_seconds: int = Field(
        default=3 * 24 * 60 * 60, ge=60, description="Interval between scheduled collections"
    )

    # Store semantics
    paid_order_statuses: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["wc-completed", "wc-refunded"],
        description="Order statuses counted as paid",
    )
    active_subscription_statuses: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["wc-active", "wc-pending-cancel"],
        description="Subscription statuses counted as active",
    )
    payment_gateways: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Registered payment gateways mapped to the features they support",
    )

    # Gifting
    gifting_enabled: bool = Field(default=False, description="Gifting feature toggle")
    gifting_enabled_for_all_products: bool = Field(
        default=False, description="Global default gifting mode for products"
    )

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=False, description="Enable hot reload")

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")

    @field_validator("paid_order_statuses", "active_subscription_statuses", mode="before")
    @classmethod
    def parse_status_list(cls, v):
        """Accept comma-separated statuses as well as JSON arrays."""
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                return json.loads(s)
            return [status.strip() for status in s.split(",") if status.strip()]
        return v

    @field_validator("paid_order_statuses", "active_subscription_statuses")
    @classmethod
    def validate_statuses_not_empty(cls, v: List[str]) -> List[str]:
        """Reject empty status lists."""
        if not v:
            raise ValueError("Status list cannot be empty")
        return v

    @field_validator("cache_backend")
    @classmethod
    def validate_cache_backend(cls, v: str) -> str:
        """Validate cache backend is a known value."""
        valid_backends = {"memory", "redis"}
        if v.lower() not in valid_backends:
            raise ValueError(f"Cache backend must be one of: {', '.join(sorted(valid_backends))}")
        return v.lower()


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
