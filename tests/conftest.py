"""
Pytest configuration and shared fixtures.

The sample dataset below is small enough to verify every analytics figure by
hand; the expected values in the integration tests are derived from it.
"""
import pytest
import pytest_asyncio
from typing import Any, Dict, List

from retailops.engine import RetailEngine
from retailops.events import EventBus
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


@pytest.fixture
def sample_dataset() -> Dict[str, List[Dict[str, Any]]]:
    """Cleaned rows as delivered by upstream ingestion."""
    return {
        "categories": [
            {"id": 1, "name": "Electronics"},
            {"id": 2, "name": "Books"},
            {"id": 3, "name": "Garden"},
        ],
        "products": [
            {"id": 1, "name": "Laptop", "price": 1000, "cogs": 700, "category_id": 1},
            {"id": 2, "name": "Phone", "price": 500, "cogs": 300, "category_id": 1},
            {"id": 3, "name": "Novel", "price": 20, "cogs": 8, "category_id": 2},
            {"id": 4, "name": "Bookmark", "price": 0, "cogs": 5, "category_id": 2},
            {"id": 5, "name": "Shovel", "price": 30, "cogs": 18, "category_id": 3},
            {"id": 7, "name": "Widget", "price": 10, "cogs": 4, "category_id": 2},
        ],
        "customers": [
            {"id": 1, "name": "Alice", "state": "CA", "address": "1 Main St"},
            {"id": 2, "name": "Bob", "state": "CA", "address": "2 Main St"},
            {"id": 3, "name": "Carol", "state": "NY", "address": None},
            {"id": 4, "name": "Dave", "state": "NY", "address": "4 Broadway"},
            {"id": 5, "name": "Erin", "state": "TX", "address": "5 Elm St"},
            {"id": 6, "name": "Frank", "state": "CA", "address": "6 Main St"},
        ],
        "sellers": [
            {"id": 1, "name": "North Co", "origin": "US"},
            {"id": 2, "name": "South Co", "origin": "US"},
            {"id": 3, "name": "Idle Co", "origin": "CA"},
        ],
        "orders": [
            {"id": 1, "order_date": "2024-01-10", "customer_id": 1, "seller_id": 1, "status": "Delivered"},
            {"id": 2, "order_date": "2024-02-15", "customer_id": 1, "seller_id": 2, "status": "Returned"},
            {"id": 3, "order_date": "2024-02-20", "customer_id": 2, "seller_id": 1, "status": "Delivered"},
            {"id": 4, "order_date": "2024-02-20", "customer_id": 2, "seller_id": 1, "status": "Returned"},
            {"id": 5, "order_date": "2024-03-05", "customer_id": 3, "seller_id": 2, "status": "Returned"},
            {"id": 6, "order_date": "2024-03-06", "customer_id": 4, "seller_id": 2, "status": "Pending"},
            {"id": 7, "order_date": "2024-03-10", "customer_id": 6, "seller_id": 1, "status": "Pending"},
        ],
        "order_items": [
            {"id": 1, "order_id": 1, "product_id": 1, "quantity": 1, "price_per_unit": 1000},
            {"id": 2, "order_id": 1, "product_id": 3, "quantity": 2, "price_per_unit": 20},
            {"id": 3, "order_id": 2, "product_id": 2, "quantity": 1, "price_per_unit": 500},
            {"id": 4, "order_id": 3, "product_id": 3, "quantity": 5, "price_per_unit": 20},
            {"id": 5, "order_id": 4, "product_id": 2, "quantity": 2, "price_per_unit": 500},
            {"id": 6, "order_id": 5, "product_id": 4, "quantity": 3, "price_per_unit": 0},
            {"id": 7, "order_id": 5, "product_id": 3, "quantity": 1, "price_per_unit": 20},
            {"id": 8, "order_id": 6, "product_id": 1, "quantity": 1, "price_per_unit": 1000},
            {"id": 9, "order_id": 7, "product_id": 3, "quantity": 1, "price_per_unit": 20},
        ],
        "payments": [
            {"id": 1, "order_id": 1, "payment_date": "2024-01-10", "status": "Success"},
            {"id": 2, "order_id": 2, "payment_date": "2024-02-15", "status": "Success"},
            {"id": 3, "order_id": 3, "payment_date": "2024-02-20", "status": "Failed"},
            {"id": 4, "order_id": 4, "payment_date": "2024-02-20", "status": "Success"},
            {"id": 5, "order_id": 5, "payment_date": "2024-03-05", "status": "Pending"},
        ],
        "shippings": [
            {"id": 1, "order_id": 1, "shipping_date": "2024-01-12", "shipping_provider": "FedEx",
             "delivery_status": "Delivered", "return_date": None},
            {"id": 2, "order_id": 2, "shipping_date": "2024-02-25", "shipping_provider": "UPS",
             "delivery_status": "Returned", "return_date": "2024-03-01"},
            {"id": 3, "order_id": 3, "shipping_date": "2024-02-21", "shipping_provider": "FedEx",
             "delivery_status": "Delivered", "return_date": None},
            {"id": 4, "order_id": 4, "shipping_date": "2024-02-28", "shipping_provider": "DHL",
             "delivery_status": "Returned", "return_date": "2024-03-10"},
            {"id": 5, "order_id": 5, "shipping_date": "2024-03-07", "shipping_provider": "UPS",
             "delivery_status": "Returned", "return_date": "2024-03-15"},
        ],
        "inventory": [
            {"id": 1, "product_id": 1, "warehouse_id": 1, "stock": 5, "last_restock_date": "2024-01-01"},
            {"id": 2, "product_id": 2, "warehouse_id": 1, "stock": 2, "last_restock_date": "2024-01-01"},
            {"id": 3, "product_id": 2, "warehouse_id": 2, "stock": 4, "last_restock_date": "2024-01-01"},
            {"id": 4, "product_id": 3, "warehouse_id": 1, "stock": 50, "last_restock_date": "2024-01-01"},
            {"id": 5, "product_id": 7, "warehouse_id": 1, "stock": 3, "last_restock_date": "2024-01-01"},
            {"id": 6, "product_id": 5, "warehouse_id": 1, "stock": 0, "last_restock_date": None},
        ],
    }


async def load_dataset(engine: RetailEngine, data: Dict[str, List[Dict[str, Any]]]) -> None:
    """Load a dataset dict through the catalog repository."""
    catalog = engine.catalog
    await catalog.upsert_categories(Category.from_dict(r) for r in data.get("categories", []))
    await catalog.upsert_products(Product.from_dict(r) for r in data.get("products", []))
    await catalog.upsert_customers(Customer.from_dict(r) for r in data.get("customers", []))
    await catalog.upsert_sellers(Seller.from_dict(r) for r in data.get("sellers", []))
    await catalog.import_orders(
        [Order.from_dict(r) for r in data.get("orders", [])],
        [OrderItem.from_dict(r) for r in data.get("order_items", [])],
    )
    await catalog.upsert_payments(Payment.from_dict(r) for r in data.get("payments", []))
    await catalog.upsert_shippings(Shipping.from_dict(r) for r in data.get("shippings", []))
    await catalog.upsert_inventory(InventoryRecord.from_dict(r) for r in data.get("inventory", []))


@pytest.fixture
def event_bus() -> EventBus:
    """Fresh event bus, isolated from the global one."""
    return EventBus(max_history=100)


@pytest_asyncio.fixture
async def engine(event_bus):
    """Empty engine over a private in-memory database."""
    eng = await RetailEngine.open(":memory:", event_bus=event_bus)
    yield eng
    await eng.close()


@pytest_asyncio.fixture
async def seeded_engine(engine, sample_dataset):
    """Engine loaded with the sample dataset."""
    await load_dataset(engine, sample_dataset)
    return engine


@pytest.fixture
def dataset_loader():
    """Loader for tests that build their own dataset."""
    return load_dataset
