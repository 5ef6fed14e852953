"""
Sale transaction processor.

record_sale creates one order, its line items and the matching stock
decrements as a single atomic unit. A SaleCommand runs in two phases inside
one write transaction:

1. validate: every reference resolves and every product has enough stock
   for its combined requested quantity (no mutation);
2. apply: insert the order and items, decrement stock through the ledger.

Any failure rolls the transaction back: no partial orders.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Union

from retailops.events import EventBus, SaleEvent
from retailops.exceptions import OutOfStock, ValidationError
from retailops.models import OrderStatus, SaleLine
from retailops.observability import Timer, correlation_context, get_logger
from retailops.repositories.base import BaseRepository
from retailops.repositories.inventory_repo import InventoryLedger
from retailops.validators import validate_date, validate_id, validate_sale_lines

logger = get_logger(__name__)


@dataclass
class SaleCommand:
    """One validated sale request, executed on the write connection."""

    customer_id: int
    seller_id: int
    lines: List[SaleLine]
    order_date: date
    ledger: InventoryLedger
    prices: Dict[int, Decimal] = field(default_factory=dict)

    @property
    def requested(self) -> "OrderedDict[int, int]":
        """Combined quantity per product, in first-seen line order."""
        totals: "OrderedDict[int, int]" = OrderedDict()
        for line in self.lines:
            totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
        return totals

    def validate(self, conn) -> None:
        """
        Phase 1: check references and stock without mutating.

        Raises:
            ValidationError: Unknown customer, seller or product
            OutOfStock: First product whose stock cannot cover its request
        """
        if not BaseRepository._exists(conn, "customers", self.customer_id):
            raise ValidationError("customer_id", "Unknown customer", self.customer_id)
        if not BaseRepository._exists(conn, "sellers", self.seller_id):
            raise ValidationError("seller_id", "Unknown seller", self.seller_id)

        for product_id in self.requested:
            row = conn.execute("SELECT price FROM products WHERE id = ?", [product_id]).fetchone()
            if row is None:
                raise ValidationError("product_id", "Unknown product", product_id)
            self.prices[product_id] = row[0]

        for product_id, quantity in self.requested.items():
            available = self.ledger.available_in(conn, product_id)
            if available < quantity:
                raise OutOfStock(product_id, quantity, available)

    def apply(self, conn) -> int:
        """Phase 2: insert order and items, decrement stock. Returns the order id."""
        order_id = BaseRepository._next_id(conn, "orders")
        conn.execute("""
            INSERT INTO orders (id, order_date, customer_id, seller_id, status)
            VALUES (?, ?, ?, ?, ?)
        """, [order_id, self.order_date, self.customer_id, self.seller_id,
              OrderStatus.PENDING.value])

        item_id = BaseRepository._next_id(conn, "order_items")
        item_rows = []
        for offset, line in enumerate(self.lines):
            item_rows.append([
                item_id + offset, order_id, line.product_id,
                line.quantity, self.prices[line.product_id],
            ])
        conn.executemany("""
            INSERT INTO order_items (id, order_id, product_id, quantity, price_per_unit)
            VALUES (?, ?, ?, ?, ?)
        """, item_rows)

        for product_id, quantity in self.requested.items():
            self.ledger.decrement_in(conn, product_id, quantity, order_id)

        return order_id

    def execute(self, conn) -> int:
        self.validate(conn)
        return self.apply(conn)


class SaleTransactionProcessor(BaseRepository):
    """Records sales against an explicitly passed inventory ledger."""

    def __init__(self, store, ledger: InventoryLedger, event_bus: Optional[EventBus] = None):
        super().__init__(store)
        self.ledger = ledger
        self.event_bus = event_bus

    async def record_sale(
        self,
        customer_id: int,
        seller_id: int,
        lines: Iterable[Union[SaleLine, Sequence[int]]],
        order_date: Optional[date] = None,
    ) -> int:
        """
        Record a sale atomically.

        Args:
            customer_id: Buying customer
            seller_id: Selling seller
            lines: SaleLine objects or (product_id, quantity) pairs
            order_date: Order date (defaults to today)

        Returns:
            The new order id; the order is created with status Pending

        Raises:
            ValidationError: Malformed input or unknown reference (no write)
            OutOfStock: Stock insufficient at commit time (no write)
        """
        command = SaleCommand(
            customer_id=validate_id(customer_id, "customer_id"),
            seller_id=validate_id(seller_id, "seller_id"),
            lines=validate_sale_lines(lines),
            order_date=validate_date(order_date or date.today(), "order_date"),
            ledger=self.ledger,
        )

        with correlation_context(), Timer("record_sale", logger):
            try:
                order_id = await self.store.write(command.execute)
            except OutOfStock as e:
                logger.warning(
                    f"Sale rejected: {e}",
                    extra={"customer_id": customer_id, "product_id": e.product_id},
                )
                if self.event_bus:
                    await self.event_bus.emit(SaleEvent.SALE_REJECTED, {
                        "customer_id": customer_id,
                        "seller_id": seller_id,
                        "product_id": e.product_id,
                        "requested": e.requested,
                        "available": e.available,
                    })
                raise

            logger.info(
                f"Sale recorded: order {order_id}",
                extra={"order_id": order_id, "lines": len(command.lines)},
            )

        if self.event_bus:
            await self.event_bus.emit(SaleEvent.SALE_RECORDED, {
                "order_id": order_id,
                "customer_id": customer_id,
                "seller_id": seller_id,
                "lines": [(line.product_id, line.quantity) for line in command.lines],
            })

        return order_id
