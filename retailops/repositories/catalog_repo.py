"""
Catalog repository: reference data ingestion and lookups.

Upstream ingestion delivers validated, deduplicated rows; this repository
bulk-loads them (one transaction per call) and serves point lookups used by
the sale processor and by callers inspecting committed state.
"""
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence

from retailops.exceptions import ValidationError
from retailops.duckdb_store import rows_as_dicts
from retailops.models import (
    Category,
    Customer,
    InventoryRecord,
    Order,
    OrderItem,
    Payment,
    Product,
    Seller,
    Shipping,
)
from retailops.observability import get_logger
from retailops.repositories.base import BaseRepository
from retailops.repositories.inventory_repo import MOVEMENT_ADJUSTMENT, record_movement
from retailops.validators import validate_quantity

logger = get_logger(__name__)

_TABLES = {
    "customers", "sellers", "categories", "products", "orders",
    "order_items", "payments", "shippings", "inventory", "stock_movements",
}


class CatalogRepository(BaseRepository):
    """Repository for reference data and historical order imports."""

    async def _upsert(self, table: str, columns: Sequence[str], rows: List[list]) -> int:
        """Insert rows, replacing existing rows with the same id."""
        if not rows:
            return 0

        placeholders = ", ".join("?" for _ in columns)
        updates = ",\n                ".join(
            f"{col} = excluded.{col}" for col in columns if col != "id"
        )
        sql = f"""
            INSERT INTO {table} ({", ".join(columns)})
            VALUES ({placeholders})
            ON CONFLICT (id) DO UPDATE SET
                {updates}
        """

        def _run(conn):
            conn.executemany(sql, rows)
            return len(rows)

        count = await self.store.write(_run)
        logger.info(f"Upserted {count} rows into {table}")
        return count

    async def upsert_customers(self, customers: Iterable[Customer]) -> int:
        rows = [[c.id, c.name, c.state, c.address] for c in customers]
        return await self._upsert("customers", ["id", "name", "state", "address"], rows)

    async def upsert_sellers(self, sellers: Iterable[Seller]) -> int:
        rows = [[s.id, s.name, s.origin] for s in sellers]
        return await self._upsert("sellers", ["id", "name", "origin"], rows)

    async def upsert_categories(self, categories: Iterable[Category]) -> int:
        rows = [[c.id, c.name] for c in categories]
        return await self._upsert("categories", ["id", "name"], rows)

    async def upsert_products(self, products: Iterable[Product]) -> int:
        rows = [[p.id, p.name, p.price, p.cogs, p.category_id] for p in products]
        return await self._upsert(
            "products", ["id", "name", "price", "cogs", "category_id"], rows
        )

    async def upsert_payments(self, payments: Iterable[Payment]) -> int:
        rows = [[p.id, p.order_id, p.payment_date, p.status.value] for p in payments]
        return await self._upsert(
            "payments", ["id", "order_id", "payment_date", "status"], rows
        )

    async def upsert_shippings(self, shippings: Iterable[Shipping]) -> int:
        rows = [
            [s.id, s.order_id, s.shipping_date, s.return_date,
             s.shipping_provider, s.delivery_status]
            for s in shippings
        ]
        return await self._upsert(
            "shippings",
            ["id", "order_id", "shipping_date", "return_date",
             "shipping_provider", "delivery_status"],
            rows,
        )

    async def upsert_inventory(self, records: Iterable[InventoryRecord]) -> int:
        """
        Load inventory records.

        One record per (product, warehouse) is enforced here; the ledger
        relies on it when it looks records up by that key. A record already
        in the store keeps its key; reloading it with a different stock
        writes an adjustment row to stock_movements.

        Raises:
            ValidationError: On negative stock, a duplicate (product, warehouse)
                or a reload that moves an existing id to another key
        """
        records = list(records)
        for r in records:
            if r.stock < 0:
                raise ValidationError("stock", "Must be non-negative", r.stock)

        keys = Counter((r.product_id, r.warehouse_id) for r in records)
        duplicates = [k for k, n in keys.items() if n > 1]
        if duplicates:
            raise ValidationError("inventory", "Duplicate (product, warehouse) key", duplicates[0])

        rows = [
            [r.id, r.product_id, r.warehouse_id, r.stock, r.last_restock_date]
            for r in records
        ]
        if not rows:
            return 0

        def _run(conn):
            adjusted = 0
            for rid, product_id, warehouse_id, stock, restock_date in rows:
                clash = conn.execute(
                    "SELECT id FROM inventory WHERE product_id = ? AND warehouse_id = ? AND id <> ?",
                    [product_id, warehouse_id, rid],
                ).fetchone()
                if clash:
                    raise ValidationError(
                        "inventory", "Duplicate (product, warehouse) key", (product_id, warehouse_id)
                    )

                existing = conn.execute(
                    "SELECT product_id, warehouse_id, stock FROM inventory WHERE id = ?", [rid]
                ).fetchone()
                if existing is None:
                    conn.execute("""
                        INSERT INTO inventory (id, product_id, warehouse_id, stock, last_restock_date)
                        VALUES (?, ?, ?, ?, ?)
                    """, [rid, product_id, warehouse_id, stock, restock_date])
                    continue

                if (existing[0], existing[1]) != (product_id, warehouse_id):
                    raise ValidationError("inventory", "Key change", rid)

                conn.execute(
                    "UPDATE inventory SET stock = ?, last_restock_date = ? WHERE id = ?",
                    [stock, restock_date, rid],
                )
                if existing[2] != stock:
                    record_movement(
                        conn, rid, product_id, warehouse_id, MOVEMENT_ADJUSTMENT, existing[2], stock
                    )
                    adjusted += 1
            return len(rows), adjusted

        count, adjusted = await self.store.write(_run)
        logger.info(f"Upserted {count} inventory records ({adjusted} stock adjustments)")
        return count

    async def import_orders(self, orders: Iterable[Order], items: Iterable[OrderItem]) -> int:
        """
        Import historical orders with their line items in one transaction.

        Raises:
            ValidationError: If an item has a non-positive quantity, refers to an
                order outside the batch, or an order has no items
        """
        orders = list(orders)
        items = list(items)
        order_ids = {o.id for o in orders}

        for item in items:
            validate_quantity(item.quantity, f"order_items[{item.id}].quantity")
            if item.order_id not in order_ids:
                raise ValidationError("order_items", "Item refers to an order outside the batch", item.id)

        with_items = {item.order_id for item in items}
        missing = sorted(order_ids - with_items)
        if missing:
            raise ValidationError("orders", "Order has no items", missing[0])

        order_rows = [
            [o.id, o.order_date, o.customer_id, o.seller_id, o.status.value] for o in orders
        ]
        item_rows = [
            [i.id, i.order_id, i.product_id, i.quantity, i.price_per_unit] for i in items
        ]
        if not order_rows:
            return 0

        def _run(conn):
            conn.executemany("""
                INSERT INTO orders (id, order_date, customer_id, seller_id, status)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    order_date = excluded.order_date,
                    customer_id = excluded.customer_id,
                    seller_id = excluded.seller_id,
                    status = excluded.status
            """, order_rows)
            conn.executemany("""
                INSERT INTO order_items (id, order_id, product_id, quantity, price_per_unit)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    order_id = excluded.order_id,
                    product_id = excluded.product_id,
                    quantity = excluded.quantity,
                    price_per_unit = excluded.price_per_unit
            """, item_rows)
            return len(order_rows)

        count = await self.store.write(_run)
        logger.info(f"Imported {count} orders, {len(item_rows)} order items")
        return count

    # ─── Lookups ─────────────────────────────────────────────────────────────

    async def _get(self, table: str, entity_id: int) -> Optional[Dict[str, Any]]:
        rows = await self.store.fetch_dicts(f"SELECT * FROM {table} WHERE id = ?", [entity_id])
        return rows[0] if rows else None

    async def get_customer(self, customer_id: int) -> Optional[Customer]:
        row = await self._get("customers", customer_id)
        return Customer.from_dict(row) if row else None

    async def get_seller(self, seller_id: int) -> Optional[Seller]:
        row = await self._get("sellers", seller_id)
        return Seller.from_dict(row) if row else None

    async def get_product(self, product_id: int) -> Optional[Product]:
        row = await self._get("products", product_id)
        return Product.from_dict(row) if row else None

    async def get_order(self, order_id: int) -> Optional[Order]:
        row = await self._get("orders", order_id)
        return Order.from_dict(row) if row else None

    async def get_order_items(self, order_id: int) -> List[OrderItem]:
        rows = await self.store.fetch_dicts(
            "SELECT * FROM order_items WHERE order_id = ? ORDER BY id", [order_id]
        )
        return [OrderItem.from_dict(r) for r in rows]

    async def count(self, table: str) -> int:
        """Row count of one of the store's tables."""
        if table not in _TABLES:
            raise ValidationError("table", "Unknown table", table)
        row = await self.store.fetch_one(f"SELECT COUNT(*) FROM {table}")
        return int(row[0])

    async def snapshot_counts(self) -> Dict[str, int]:
        """Row counts of every table, read in one snapshot."""
        def _run(cursor):
            result = cursor.execute(" UNION ALL ".join(
                f"SELECT '{t}' AS table_name, COUNT(*) AS n FROM {t}" for t in sorted(_TABLES)
            ))
            return {row["table_name"]: int(row["n"]) for row in rows_as_dicts(result)}

        return await self.store.read(_run)
