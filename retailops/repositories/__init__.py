"""
Repository layer over the DuckDB store.

- BaseRepository: Shared store handle and SQL helpers
- CatalogRepository: Reference data ingestion and lookups
- InventoryLedger: Atomic stock decrements, restocks and audit trail
- SaleTransactionProcessor: All-or-nothing sale recording
- AnalyticsRepository: Rankings, revenue breakdowns, customer insights
- AlertingRepository: Stock, shipping-delay and payment alerts
"""
from retailops.repositories.base import BaseRepository
from retailops.repositories.catalog_repo import CatalogRepository
from retailops.repositories.inventory_repo import InventoryLedger
from retailops.repositories.sales_repo import SaleCommand, SaleTransactionProcessor
from retailops.repositories.analytics_repo import AnalyticsRepository
from retailops.repositories.alerts_repo import AlertingRepository

__all__ = [
    "BaseRepository",
    "CatalogRepository",
    "InventoryLedger",
    "SaleCommand",
    "SaleTransactionProcessor",
    "AnalyticsRepository",
    "AlertingRepository",
]
