"""
Inventory ledger: per-product, per-warehouse stock counts.

Stock is the only shared mutable state of the system. Every mutation goes
through a conditional update on the store's serialized write path:

- sale decrement:  stock = stock - q  WHERE stock >= q
- restock:         stock = stock + delta

Catalog reloads that change the stock of an existing record are recorded as
adjustments. Every mutation lands in the stock_movements audit trail in the
same transaction.
"""
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from retailops.events import EventBus, SaleEvent
from retailops.exceptions import OutOfStock, ValidationError
from retailops.duckdb_store import rows_as_dicts
from retailops.models import InventoryRecord
from retailops.observability import get_logger
from retailops.repositories.base import BaseRepository
from retailops.validators import (
    validate_date,
    validate_id,
    validate_limit,
    validate_restock_delta,
)

logger = get_logger(__name__)

MOVEMENT_SALE = "sale"
MOVEMENT_RESTOCK = "restock"
MOVEMENT_ADJUSTMENT = "adjustment"


class InventoryLedger(BaseRepository):
    """
    Owned handle over the inventory table.

    Pass the same ledger to the sale processor and to any restock
    collaborator so both mutate stock through one discipline.
    """

    def __init__(self, store, event_bus: Optional[EventBus] = None):
        super().__init__(store)
        self.event_bus = event_bus

    # ─── Reads ───────────────────────────────────────────────────────────────

    async def get_stock(self, product_id: int, warehouse_id: int) -> Optional[int]:
        """Stock of one (product, warehouse) key, or None if no record exists."""
        row = await self.store.fetch_one(
            "SELECT stock FROM inventory WHERE product_id = ? AND warehouse_id = ?",
            [product_id, warehouse_id],
        )
        return int(row[0]) if row else None

    async def available_stock(self, product_id: int) -> int:
        """Total stock of a product across all warehouses."""
        return await self.store.read(self.available_in, product_id)

    async def get_records(self, product_id: Optional[int] = None) -> List[InventoryRecord]:
        """Inventory records, optionally for one product, ordered by id."""
        if product_id is None:
            rows = await self.store.fetch_dicts("SELECT * FROM inventory ORDER BY id")
        else:
            rows = await self.store.fetch_dicts(
                "SELECT * FROM inventory WHERE product_id = ? ORDER BY id", [product_id]
            )
        return [InventoryRecord.from_dict(r) for r in rows]

    async def get_movements(
        self, product_id: Optional[int] = None, limit: int = 50
    ) -> List[Dict[str, Any]]:
        """Stock movement audit rows, newest first."""
        limit = validate_limit(limit, "limit")
        where = "WHERE product_id = ?" if product_id is not None else ""
        params = [product_id] if product_id is not None else []
        return await self.store.fetch_dicts(f"""
            SELECT id, inventory_id, product_id, warehouse_id, movement_type,
                   quantity_before, quantity_after, delta, order_id, recorded_at
            FROM stock_movements
            {where}
            ORDER BY id DESC
            LIMIT {limit}
        """, params)

    # ─── Restock ─────────────────────────────────────────────────────────────

    async def restock(
        self,
        product_id: int,
        warehouse_id: int,
        delta: int,
        restock_date: Optional[date] = None,
    ) -> int:
        """
        Apply an external restock event.

        Creates the inventory record when the (product, warehouse) key is new.

        Returns:
            Stock of the key after the increment

        Raises:
            ValidationError: On a negative delta or an unknown product
        """
        product_id = validate_id(product_id, "product_id")
        warehouse_id = validate_id(warehouse_id, "warehouse_id")
        delta = validate_restock_delta(delta)
        restock_date = validate_date(restock_date or date.today(), "restock_date")

        inventory_id, before, after = await self.store.write(
            self._apply_restock, product_id, warehouse_id, delta, restock_date
        )

        logger.info(
            f"Restocked product {product_id} in warehouse {warehouse_id}: {before} -> {after}",
            extra={"product_id": product_id, "warehouse_id": warehouse_id, "delta": delta},
        )

        if self.event_bus:
            await self.event_bus.emit(SaleEvent.STOCK_RESTOCKED, {
                "inventory_id": inventory_id,
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "delta": delta,
                "stock": after,
            })

        return after

    def _apply_restock(
        self, conn, product_id: int, warehouse_id: int, delta: int, restock_date: date
    ) -> Tuple[int, int, int]:
        if not self._exists(conn, "products", product_id):
            raise ValidationError("product_id", "Unknown product", product_id)

        row = conn.execute(
            "SELECT id, stock FROM inventory WHERE product_id = ? AND warehouse_id = ?",
            [product_id, warehouse_id],
        ).fetchone()

        if row is None:
            inventory_id, before = self._next_id(conn, "inventory"), 0
            conn.execute("""
                INSERT INTO inventory (id, product_id, warehouse_id, stock, last_restock_date)
                VALUES (?, ?, ?, ?, ?)
            """, [inventory_id, product_id, warehouse_id, delta, restock_date])
            after = delta
        else:
            inventory_id, before = row[0], row[1]
            after = conn.execute("""
                UPDATE inventory
                SET stock = stock + ?, last_restock_date = ?
                WHERE id = ?
                RETURNING stock
            """, [delta, restock_date, inventory_id]).fetchone()[0]

        record_movement(
            conn, inventory_id, product_id, warehouse_id, MOVEMENT_RESTOCK, before, after
        )
        return inventory_id, before, after

    # ─── Transaction-internal operations (run inside the caller's transaction) ─

    @staticmethod
    def available_in(conn, product_id: int) -> int:
        row = conn.execute(
            "SELECT COALESCE(SUM(stock), 0) FROM inventory WHERE product_id = ?",
            [product_id],
        ).fetchone()
        return int(row[0])

    def decrement_in(self, conn, product_id: int, quantity: int, order_id: int) -> None:
        """
        Take quantity of a product out of stock inside the caller's transaction.

        Warehouses are drained in descending stock order, ties by ascending
        warehouse id. Each step is a conditional update; if any step finds
        less stock than it needs the whole product request fails.

        Raises:
            OutOfStock: If the product cannot cover quantity
        """
        records = conn.execute("""
            SELECT id, warehouse_id, stock
            FROM inventory
            WHERE product_id = ? AND stock > 0
            ORDER BY stock DESC, warehouse_id ASC
        """, [product_id]).fetchall()

        remaining = quantity
        for inventory_id, warehouse_id, stock in records:
            if remaining == 0:
                break
            take = min(remaining, stock)
            updated = conn.execute("""
                UPDATE inventory
                SET stock = stock - ?
                WHERE id = ? AND stock >= ?
                RETURNING stock
            """, [take, inventory_id, take]).fetchone()
            if updated is None:
                raise OutOfStock(product_id, quantity, self.available_in(conn, product_id))

            record_movement(
                conn, inventory_id, product_id, warehouse_id, MOVEMENT_SALE,
                updated[0] + take, updated[0], order_id,
            )
            remaining -= take

        if remaining > 0:
            raise OutOfStock(product_id, quantity, quantity - remaining)

    async def total_stock_by_product(self) -> Dict[int, int]:
        """Total stock per product in one snapshot."""
        def _run(cursor):
            result = cursor.execute("""
                SELECT product_id, SUM(stock) AS stock
                FROM inventory
                GROUP BY product_id
                ORDER BY product_id
            """)
            return {int(r["product_id"]): int(r["stock"]) for r in rows_as_dicts(result)}

        return await self.store.read(_run)


def record_movement(
    conn,
    inventory_id: int,
    product_id: int,
    warehouse_id: int,
    movement_type: str,
    before: int,
    after: int,
    order_id: Optional[int] = None,
) -> None:
    """Append one stock_movements row inside the caller's transaction."""
    conn.execute("""
        INSERT INTO stock_movements
        (inventory_id, product_id, warehouse_id, movement_type,
         quantity_before, quantity_after, delta, order_id)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    """, [inventory_id, product_id, warehouse_id, movement_type,
          before, after, after - before, order_id])
