"""
DuckDB store for the retail sales dataset.

Owns the database connection, schema and the two access paths every
repository goes through:

- write(): serialized by an asyncio lock and executed on a single writer
  thread inside one transaction (COMMIT on success, ROLLBACK on any error).
- read(): executed on a reader thread pool, each call on its own cursor and
  inside its own transaction, so one call observes one snapshot and never
  waits for writers.
"""
import asyncio
import functools
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

import duckdb
import pandas as pd

from retailops.config import config
from retailops.exceptions import QueryTimeoutError
from retailops.observability import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

SCHEMA_SQL = """
-- Catalog (delivered validated and deduplicated by upstream ingestion)
CREATE TABLE IF NOT EXISTS customers (
    id INTEGER PRIMARY KEY,
    name VARCHAR NOT NULL,
    state VARCHAR NOT NULL,
    address VARCHAR NOT NULL
);

CREATE TABLE IF NOT EXISTS sellers (
    id INTEGER PRIMARY KEY,
    name VARCHAR NOT NULL,
    origin VARCHAR
);

CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY,
    name VARCHAR NOT NULL
);

CREATE TABLE IF NOT EXISTS products (
    id INTEGER PRIMARY KEY,
    name VARCHAR NOT NULL,
    price DECIMAL(12, 2) NOT NULL,
    cogs DECIMAL(12, 2) NOT NULL,
    category_id INTEGER
);

-- Orders and line items
-- FKs omitted: DuckDB rejects UPDATE/DELETE on referenced rows
-- See: https://github.com/duckdb/duckdb/issues/4023
CREATE TABLE IF NOT EXISTS orders (
    id INTEGER PRIMARY KEY,
    order_date DATE NOT NULL,
    customer_id INTEGER NOT NULL,
    seller_id INTEGER NOT NULL,
    status VARCHAR NOT NULL
        CHECK (status IN ('Pending', 'Shipped', 'Delivered', 'Returned', 'Cancelled'))
);

CREATE TABLE IF NOT EXISTS order_items (
    id INTEGER PRIMARY KEY,
    order_id INTEGER NOT NULL,
    product_id INTEGER NOT NULL,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    price_per_unit DECIMAL(12, 2) NOT NULL
);

CREATE TABLE IF NOT EXISTS payments (
    id INTEGER PRIMARY KEY,
    order_id INTEGER NOT NULL,
    payment_date DATE,
    status VARCHAR NOT NULL CHECK (status IN ('Success', 'Failed', 'Pending'))
);

-- return_date NULL means the shipment was not returned
CREATE TABLE IF NOT EXISTS shippings (
    id INTEGER PRIMARY KEY,
    order_id INTEGER NOT NULL,
    shipping_date DATE,
    return_date DATE,
    shipping_provider VARCHAR NOT NULL,
    delivery_status VARCHAR
);

-- Inventory ledger: the only mutable state of the core
-- (product_id, warehouse_id) uniqueness is enforced by the writers
CREATE TABLE IF NOT EXISTS inventory (
    id INTEGER PRIMARY KEY,
    product_id INTEGER NOT NULL,
    warehouse_id INTEGER NOT NULL,
    stock INTEGER NOT NULL CHECK (stock >= 0),
    last_restock_date DATE
);

-- Audit trail of every stock mutation
CREATE SEQUENCE IF NOT EXISTS seq_stock_movements_id START 1;

CREATE TABLE IF NOT EXISTS stock_movements (
    id INTEGER PRIMARY KEY DEFAULT(nextval('seq_stock_movements_id')),
    inventory_id INTEGER NOT NULL,
    product_id INTEGER NOT NULL,
    warehouse_id INTEGER NOT NULL,
    movement_type VARCHAR NOT NULL,
    quantity_before INTEGER NOT NULL,
    quantity_after INTEGER NOT NULL,
    delta INTEGER NOT NULL,
    order_id INTEGER,
    recorded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Join columns stay unindexed: ON CONFLICT DO UPDATE cannot assign indexed columns
CREATE INDEX IF NOT EXISTS idx_movements_product ON stock_movements(product_id);
"""


class DuckDBStore:
    """
    Async-compatible DuckDB store.

    Features:
    - File-backed or in-memory database (config.database.path)
    - Serialized write transactions on one writer thread
    - Snapshot reads on a reader thread pool, with timeout
    - Thread offloading to avoid blocking the asyncio event loop
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        query_timeout: Optional[float] = None,
        reader_threads: Optional[int] = None,
    ):
        self.db_path = str(db_path or config.database.path)
        self.query_timeout = query_timeout or config.database.query_timeout
        self._reader_threads = reader_threads or config.database.reader_threads

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._writer_conn: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()  # Serializes all writes
        self._cursor_lock = threading.Lock()  # Guards cursor creation on the root connection

        self._writer: Optional[ThreadPoolExecutor] = None
        self._readers: Optional[ThreadPoolExecutor] = None

        # Stats for monitoring
        self._total_reads = 0
        self._total_writes = 0

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """Initialize database connection, schema, and thread pools."""
        async with self._lock:
            if self._connection is not None:
                return

            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self._connection = duckdb.connect(self.db_path)
            self._connection.execute(SCHEMA_SQL)
            self._writer_conn = self._connection.cursor()

            self._writer = ThreadPoolExecutor(
                max_workers=1,  # Single writer keeps check-and-decrement indivisible
                thread_name_prefix="duckdb-writer",
            )
            self._readers = ThreadPoolExecutor(
                max_workers=self._reader_threads,
                thread_name_prefix="duckdb-reader",
            )

            logger.info(f"DuckDB connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connections and thread pools."""
        async with self._lock:
            for executor in (self._writer, self._readers):
                if executor:
                    executor.shutdown(wait=True)
            self._writer = None
            self._readers = None

            if self._writer_conn:
                self._writer_conn.close()
                self._writer_conn = None

            if self._connection:
                self._connection.close()
                self._connection = None
                logger.info("DuckDB connection closed")

    def get_connection_info(self) -> Dict[str, Any]:
        """Get connection info for monitoring."""
        return {
            "status": "active" if self._connection else "not_initialized",
            "total_reads": self._total_reads,
            "total_writes": self._total_writes,
            "db_path": self.db_path,
        }

    # ─── Writes ──────────────────────────────────────────────────────────────

    async def write(self, fn: Callable[..., T], *args: Any) -> T:
        """
        Run fn(conn, *args) inside one write transaction.

        Writes are serialized: only one write transaction exists at any time.
        Any exception rolls the whole transaction back and propagates.
        """
        if self._connection is None:
            await self.connect()

        async with self._lock:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                self._writer, functools.partial(self._run_write, fn, *args)
            )
            self._total_writes += 1
            return result

    def _run_write(self, fn: Callable[..., T], *args: Any) -> T:
        conn = self._writer_conn
        conn.execute("BEGIN TRANSACTION")
        try:
            result = fn(conn, *args)
        except Exception:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
        return result

    # ─── Reads ───────────────────────────────────────────────────────────────

    async def read(
        self,
        fn: Callable[..., T],
        *args: Any,
        timeout: Optional[float] = None,
    ) -> T:
        """
        Run fn(cursor, *args) inside one read transaction.

        Raises:
            QueryTimeoutError: If the read exceeds the timeout
        """
        if self._connection is None:
            await self.connect()

        timeout = timeout or self.query_timeout
        self._total_reads += 1
        with self._cursor_lock:
            cursor = self._connection.cursor()

        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(
                    self._readers, functools.partial(self._run_read, cursor, fn, *args)
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            # Stop the abandoned query so it releases its reader thread
            try:
                cursor.interrupt()
            except duckdb.Error as e:
                logger.debug(f"Interrupt after timeout failed: {e}")
            raise QueryTimeoutError(getattr(fn, "__name__", "read"), timeout, "Read failed")

    def _run_read(self, cursor, fn: Callable[..., T], *args: Any) -> T:
        try:
            cursor.execute("BEGIN TRANSACTION")
            try:
                return fn(cursor, *args)
            finally:
                cursor.execute("ROLLBACK")
        finally:
            cursor.close()

    async def fetch_all(self, query: str, params: list = None) -> List[tuple]:
        """Execute query and fetch all result rows."""
        def _run(cursor):
            return cursor.execute(query, params or []).fetchall()
        return await self.read(_run)

    async def fetch_one(self, query: str, params: list = None) -> Optional[tuple]:
        """Execute query and fetch one result row."""
        def _run(cursor):
            return cursor.execute(query, params or []).fetchone()
        return await self.read(_run)

    async def fetch_dicts(self, query: str, params: list = None) -> List[Dict[str, Any]]:
        """Execute query and return rows as dicts keyed by column name."""
        def _run(cursor):
            return rows_as_dicts(cursor.execute(query, params or []))
        return await self.read(_run)

    async def fetch_df(self, query: str, params: list = None) -> pd.DataFrame:
        """Execute query and return a pandas DataFrame."""
        def _run(cursor):
            return cursor.execute(query, params or []).fetchdf()
        return await self.read(_run)


def rows_as_dicts(result: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Materialize an executed DuckDB result as a list of dicts."""
    columns = [col[0] for col in result.description]
    return [dict(zip(columns, row)) for row in result.fetchall()]
