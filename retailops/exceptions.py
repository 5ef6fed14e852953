"""
Custom exception hierarchy for retail operations.

Exception Hierarchy:
    RetailOpsError (base)
    └── OutOfStock            - Sale rejected, stock insufficient at commit time

    ValidationError            - Input validation failed (before any write)
    QueryTimeoutError          - Read query exceeded timeout
"""


class RetailOpsError(Exception):
    """Base exception for all retail operations errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class OutOfStock(RetailOpsError):
    """
    A sale line cannot be satisfied from current stock.

    Raised by record_sale. The whole sale is rolled back: no order,
    no order items and no stock change are committed.
    """

    def __init__(self, product_id: int, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            "Out of stock",
            f"product {product_id} requested={requested} available={available}",
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, OutOfStock):
            return NotImplemented
        return (self.product_id, self.requested, self.available) == (
            other.product_id, other.requested, other.available
        )

    def __hash__(self) -> int:
        return hash((self.product_id, self.requested, self.available))


class ValidationError(Exception):
    """
    Input validation failed.

    Used for unknown references and malformed arguments, always
    raised before any database mutation.
    """

    def __init__(self, field: str, message: str, value: any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"


class QueryTimeoutError(Exception):
    """
    Database query exceeded timeout.

    Indicates a long-running analytics query that should be investigated:
    - Missing index
    - Too much data being scanned
    - Complex join/aggregation
    """

    def __init__(self, query: str, timeout: float, details: str = None):
        self.query = query[:200] + "..." if len(query) > 200 else query
        self.timeout = timeout
        self.details = details
        message = f"Query timed out after {timeout}s"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)

    def __str__(self) -> str:
        return f"QueryTimeoutError: Query timed out after {self.timeout}s - {self.query}"
