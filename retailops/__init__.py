"""
Retail operations analytics and inventory-consistency engine.

This package contains:
- models: Domain dataclasses, enums and the UNDEFINED ratio marker
- exceptions: Error hierarchy (ValidationError, OutOfStock, ...)
- validators: Input validation functions
- config: Centralized configuration
- duckdb_store: DuckDB connection, schema, snapshot reads, serialized writes
- repositories: Catalog, inventory ledger, sales, analytics, alerting
- engine: Wiring of all of the above
"""

# Import in dependency order
from retailops.exceptions import (
    RetailOpsError,
    OutOfStock,
    ValidationError,
    QueryTimeoutError,
)

from retailops.models import (
    UNDEFINED,
    UndefinedRatio,
    OrderStatus,
    PaymentStatus,
    CustomerSegment,
    SaleLine,
    Period,
)

from retailops.config import config

from retailops.engine import RetailEngine

__all__ = [
    # Exceptions
    "RetailOpsError",
    "OutOfStock",
    "ValidationError",
    "QueryTimeoutError",
    # Models
    "UNDEFINED",
    "UndefinedRatio",
    "OrderStatus",
    "PaymentStatus",
    "CustomerSegment",
    "SaleLine",
    "Period",
    # Config
    "config",
    # Engine
    "RetailEngine",
]
