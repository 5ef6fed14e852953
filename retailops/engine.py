"""
Wiring of store, ledger and repositories into one engine.

Usage:
    from retailops.engine import RetailEngine

    engine = await RetailEngine.open()
    order_id = await engine.sales.record_sale(1, 1, [(7, 2)])
    top = await engine.analytics.top_selling_products(10)
    await engine.close()
"""
from typing import Optional

from retailops.duckdb_store import DuckDBStore
from retailops.events import EventBus
from retailops.observability import get_logger
from retailops.repositories import (
    AlertingRepository,
    AnalyticsRepository,
    CatalogRepository,
    InventoryLedger,
    SaleTransactionProcessor,
)

logger = get_logger(__name__)


class RetailEngine:
    """
    One store shared by every repository.

    The ledger is created once and handed to the sale processor so every
    stock mutation goes through the same handle.
    """

    def __init__(self, store: DuckDBStore, event_bus: Optional[EventBus] = None):
        self.store = store
        self.event_bus = event_bus
        self.catalog = CatalogRepository(store)
        self.ledger = InventoryLedger(store, event_bus)
        self.sales = SaleTransactionProcessor(store, self.ledger, event_bus)
        self.analytics = AnalyticsRepository(store)
        self.alerts = AlertingRepository(store, event_bus)

    @classmethod
    async def open(
        cls,
        db_path: Optional[str] = None,
        event_bus: Optional[EventBus] = None,
    ) -> "RetailEngine":
        """Connect a new store and build the engine around it."""
        store = DuckDBStore(db_path)
        await store.connect()
        return cls(store, event_bus)

    async def close(self) -> None:
        await self.store.close()

    async def __aenter__(self) -> "RetailEngine":
        if not self.store.is_connected:
            await self.store.connect()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()
