"""
Domain models for the retail sales dataset.

Provides type-safe dataclasses for catalog entities, orders, payments,
shippings and inventory records. These models are the single source of
truth for the shapes loaded into and read out of the DuckDB store.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, Any, Union


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class OrderStatus(str, Enum):
    """Order lifecycle statuses."""
    PENDING = "Pending"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    RETURNED = "Returned"
    CANCELLED = "Cancelled"

    @classmethod
    def values(cls) -> List[str]:
        return [s.value for s in cls]


class PaymentStatus(str, Enum):
    """Payment outcomes."""
    SUCCESS = "Success"
    FAILED = "Failed"
    PENDING = "Pending"

    @classmethod
    def values(cls) -> List[str]:
        return [s.value for s in cls]


class CustomerSegment(str, Enum):
    """Segments produced by customer segmentation."""
    NEW = "New"
    RETURNING = "Returning"


# ═══════════════════════════════════════════════════════════════════════════════
# UNDEFINED RATIO MARKER
# ═══════════════════════════════════════════════════════════════════════════════

class UndefinedRatio:
    """
    Marker for a ratio whose denominator is zero.

    Returned in place of a number by margin/ratio computations; never raised.
    Falsy, equal only to itself, and serialized as None.
    """

    _instance: Optional["UndefinedRatio"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UndefinedRatio"

    def __bool__(self) -> bool:
        return False

    def __eq__(self, other) -> bool:
        return isinstance(other, UndefinedRatio)

    def __hash__(self) -> int:
        return hash(UndefinedRatio)

    def to_json(self) -> None:
        return None


UNDEFINED = UndefinedRatio()

Ratio = Union[float, UndefinedRatio]


def is_undefined(value: Any) -> bool:
    """Check if a value is the undefined-ratio marker."""
    return isinstance(value, UndefinedRatio)


def _parse_date(value: Any) -> Optional[date]:
    """Parse ISO date strings, datetimes and dates into a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def _money(value: Any) -> Decimal:
    """Normalize a price-like value to a 2-place Decimal."""
    return Decimal(str(value)).quantize(Decimal("0.01"))


# ═══════════════════════════════════════════════════════════════════════════════
# CATALOG
# ═══════════════════════════════════════════════════════════════════════════════

# Placeholder written by upstream cleaning when a customer's address is unknown
UNKNOWN_ADDRESS = "xxx"


@dataclass
class Customer:
    """Customer from the catalog."""
    id: int
    name: str
    state: str
    address: str = UNKNOWN_ADDRESS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Customer":
        return cls(
            id=int(data["id"]),
            name=data["name"],
            state=data["state"],
            address=data.get("address") or UNKNOWN_ADDRESS,
        )


@dataclass
class Seller:
    """Seller from the catalog."""
    id: int
    name: str
    origin: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Seller":
        return cls(id=int(data["id"]), name=data["name"], origin=data.get("origin"))


@dataclass
class Category:
    """Product category."""
    id: int
    name: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(id=int(data["id"]), name=data["name"])


@dataclass
class Product:
    """Product with selling price and cost of goods sold."""
    id: int
    name: str
    price: Decimal
    cogs: Decimal
    category_id: Optional[int] = None

    def __post_init__(self):
        self.price = _money(self.price)
        self.cogs = _money(self.cogs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        category_id = data.get("category_id")
        return cls(
            id=int(data["id"]),
            name=data["name"],
            price=data.get("price", 0),
            cogs=data.get("cogs", 0),
            category_id=int(category_id) if category_id is not None else None,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# ORDERS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Order:
    """Order header."""
    id: int
    order_date: date
    customer_id: int
    seller_id: int
    status: OrderStatus = OrderStatus.PENDING

    def __post_init__(self):
        self.order_date = _parse_date(self.order_date)
        self.status = OrderStatus(self.status)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        return cls(
            id=int(data["id"]),
            order_date=data["order_date"],
            customer_id=int(data["customer_id"]),
            seller_id=int(data["seller_id"]),
            status=data.get("status", OrderStatus.PENDING),
        )


@dataclass
class OrderItem:
    """Order line item. price_per_unit is captured at time of sale."""
    id: int
    order_id: int
    product_id: int
    quantity: int
    price_per_unit: Decimal

    def __post_init__(self):
        self.price_per_unit = _money(self.price_per_unit)

    @property
    def total(self) -> Decimal:
        return self.price_per_unit * self.quantity

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderItem":
        return cls(
            id=int(data["id"]),
            order_id=int(data["order_id"]),
            product_id=int(data["product_id"]),
            quantity=int(data["quantity"]),
            price_per_unit=data["price_per_unit"],
        )


@dataclass
class Payment:
    """Payment attempt for an order."""
    id: int
    order_id: int
    payment_date: date
    status: PaymentStatus

    def __post_init__(self):
        self.payment_date = _parse_date(self.payment_date)
        self.status = PaymentStatus(self.status)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Payment":
        return cls(
            id=int(data["id"]),
            order_id=int(data["order_id"]),
            payment_date=data["payment_date"],
            status=data["status"],
        )


@dataclass
class Shipping:
    """Shipment of an order. return_date None means not returned."""
    id: int
    order_id: int
    shipping_date: date
    shipping_provider: str
    delivery_status: str
    return_date: Optional[date] = None

    def __post_init__(self):
        self.shipping_date = _parse_date(self.shipping_date)
        self.return_date = _parse_date(self.return_date)

    @property
    def is_returned(self) -> bool:
        return self.return_date is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Shipping":
        return cls(
            id=int(data["id"]),
            order_id=int(data["order_id"]),
            shipping_date=data["shipping_date"],
            shipping_provider=data["shipping_provider"],
            delivery_status=data.get("delivery_status", ""),
            return_date=data.get("return_date"),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# INVENTORY
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class InventoryRecord:
    """Stock count of one product in one warehouse."""
    id: int
    product_id: int
    warehouse_id: int
    stock: int
    last_restock_date: Optional[date] = None

    def __post_init__(self):
        self.last_restock_date = _parse_date(self.last_restock_date)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InventoryRecord":
        return cls(
            id=int(data["id"]),
            product_id=int(data["product_id"]),
            warehouse_id=int(data["warehouse_id"]),
            stock=int(data["stock"]),
            last_restock_date=data.get("last_restock_date"),
        )


@dataclass(frozen=True)
class SaleLine:
    """One requested line of a sale."""
    product_id: int
    quantity: int


@dataclass(frozen=True)
class Period:
    """Inclusive date range used for period-over-period comparisons."""
    start: date
    end: date

    def overlaps(self, other: "Period") -> bool:
        return self.start <= other.end and other.start <= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"
