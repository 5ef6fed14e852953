"""
Base repository and shared query helpers.

All domain repositories inherit from BaseRepository and share one
DuckDBStore, so reads and writes go through the store's snapshot-read and
serialized-write paths.
"""
from decimal import Decimal
from typing import Any

from retailops.duckdb_store import DuckDBStore
from retailops.models import UNDEFINED, Ratio
from retailops.observability import get_logger

logger = get_logger(__name__)

# Revenue of one order line
LINE_REVENUE = "oi.quantity * oi.price_per_unit"


def to_money(value: Any) -> float:
    """Convert a DECIMAL/None aggregate to a float rounded to cents."""
    if value is None:
        return 0.0
    return round(float(value), 2)


def safe_ratio(numerator: Any, denominator: Any, scale: float = 1.0, digits: int = 2) -> Ratio:
    """
    Divide without faulting on a zero denominator.

    Returns:
        numerator / denominator * scale rounded to digits, or UNDEFINED
        when the denominator is zero or missing
    """
    if denominator is None:
        return UNDEFINED
    denominator = Decimal(str(denominator))
    if denominator == 0:
        return UNDEFINED
    numerator = Decimal(str(numerator or 0))
    return round(float(numerator / denominator) * scale, digits)


class BaseRepository:
    """
    Base repository over a shared DuckDBStore.

    Usage:
        class OrdersRepository(BaseRepository):
            async def get_order(self, order_id: int):
                return await self.store.fetch_one(
                    "SELECT * FROM orders WHERE id = ?", [order_id]
                )
    """

    def __init__(self, store: DuckDBStore):
        self.store = store

    @staticmethod
    def _exists(conn, table: str, entity_id: int) -> bool:
        """Check a row exists by primary key on the given connection."""
        return conn.execute(
            f"SELECT 1 FROM {table} WHERE id = ?", [entity_id]
        ).fetchone() is not None

    @staticmethod
    def _next_id(conn, table: str) -> int:
        """Next free primary key; callers must hold the write lock."""
        row = conn.execute(f"SELECT COALESCE(MAX(id), 0) + 1 FROM {table}").fetchone()
        return int(row[0])
