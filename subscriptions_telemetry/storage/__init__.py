"""
Telemetry storage layer.

Two adapters answer the same logical queries:

Order tables: normalized, order-centric tables with typed columns
Entity/meta: generic entity table with key/value attributes

The active adapter is chosen once from configuration; aggregators never
branch on the schema themselves. All storage uses DuckDB.
"""

from functools import lru_cache

from subscriptions_telemetry.config import get_settings

from .base import ProductTypeTerms, TelemetryStore
from .duckdb_backend import DuckDBBackend
from .entity_meta import EntityMetaStore
from .order_tables import OrderTablesStore
from .terms import DuckDBTermResolver, TermResolver


def create_store(use_order_tables: bool, db_path: str) -> DuckDBBackend:
    """
    Build the adapter for the configured schema.

    Args:
        use_order_tables: True for the order tables, False for entity/meta
        db_path: DuckDB file path

    Returns:
        TelemetryStore implementation instance
    """
    if use_order_tables:
        return OrderTablesStore(db_path=db_path)
    return EntityMetaStore(db_path=db_path)


@lru_cache
def get_storage() -> TelemetryStore:
    """
    Get cached telemetry store instance (singleton).

    Returns:
        TelemetryStore implementation for the configured schema
    """
    settings = get_settings()
    return create_store(settings.use_order_tables, settings.db_path)


__all__ = [
    "TelemetryStore",
    "ProductTypeTerms",
    "DuckDBBackend",
    "OrderTablesStore",
    "EntityMetaStore",
    "TermResolver",
    "DuckDBTermResolver",
    "create_store",
    "get_storage",
]
