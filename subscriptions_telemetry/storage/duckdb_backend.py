"""
DuckDB connection management shared by both telemetry schemas.

Key features:
- Thread-safe per-thread connections
- Idempotent schema creation on first access
- Query helpers returning rows as dicts
- Failures wrapped in StorageError with structured logging
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

import duckdb
import structlog

from subscriptions_telemetry.errors import StorageError

logger = structlog.get_logger(__name__)

# Tables present in both schemas: the product taxonomy and order line items
# were never part of the order storage migration.
SHARED_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS terms (
        term_id BIGINT PRIMARY KEY,
        slug VARCHAR NOT NULL,
        taxonomy VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS order_items (
        order_item_id BIGINT PRIMARY KEY,
        order_id BIGINT NOT NULL,
        order_item_type VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS order_itemmeta (
        order_item_id BIGINT NOT NULL,
        meta_key VARCHAR NOT NULL,
        meta_value VARCHAR
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_order_items_order_id
    ON order_items(order_id)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_order_itemmeta_item
    ON order_itemmeta(order_item_id)
    """,
)

SHARED_TABLES = ("terms", "order_items", "order_itemmeta")


def placeholders(values: Sequence[Any]) -> str:
    """Comma separated '?' markers for an IN (...) clause."""
    if not values:
        raise ValueError("Cannot build an IN clause from an empty sequence")
    return ", ".join("?" for _ in values)


class DuckDBBackend:
    """
    Thread-safe access to a DuckDB database file.

    Subclasses declare their tables in `schema_statements` and `tables`;
    the shared tables are always created.

    Attributes:
        db_path: Path to the DuckDB database file
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    schema_statements: tuple[str, ...] = ()
    tables: tuple[str, ...] = ()

    def __init__(self, db_path: str = "./data/store.duckdb"):
        """
        Initialize the DuckDB backend.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_backend_initialized", db_path=str(self.db_path), backend=type(self).__name__)

        self._initialize_schema()

    @contextmanager
    def connection(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Get a thread-local DuckDB connection.

        Yields:
            DuckDB connection instance

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(str(self.db_path))
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except Exception as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        yield self._local.connection

    def _initialize_schema(self) -> None:
        """
        Create shared and schema-specific tables. Idempotent.

        Raises:
            StorageError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self.connection() as conn:
                    for statement in SHARED_SCHEMA + self.schema_statements:
                        conn.execute(statement)
                self._initialized = True
                logger.info("duckdb_schema_initialized", backend=type(self).__name__)
            except StorageError:
                raise
            except Exception as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def clear_for_testing(self) -> None:
        """Delete all rows from every table this backend owns."""
        with self.connection() as conn:
            for table in SHARED_TABLES + self.tables:
                conn.execute(f"DELETE FROM {table}")

    def fetch_rows(self, operation: str, query: str, params: Optional[list] = None) -> list[dict]:
        """
        Run a read query and return rows keyed by column name.

        Args:
            operation: Name used in log events and error messages
            query: SQL with '?' placeholders
            params: Positional parameters

        Raises:
            StorageError: If the query fails
        """
        try:
            with self.connection() as conn:
                cursor = conn.execute(query, params or [])
                columns = [column[0] for column in cursor.description]
                rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"{operation}_failed", error=str(e), backend=type(self).__name__)
            raise StorageError(f"Failed to {operation.replace('_', ' ')}: {e}") from e

        logger.debug(f"{operation}_read", count=len(rows), backend=type(self).__name__)
        return rows

    def fetch_one(self, operation: str, query: str, params: Optional[list] = None) -> dict:
        """Run a query expected to return exactly one row."""
        rows = self.fetch_rows(operation, query, params)
        return rows[0] if rows else {}
