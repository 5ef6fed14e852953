"""
Tests for retailops.exceptions module.
"""
import pytest

from retailops.exceptions import (
    RetailOpsError,
    OutOfStock,
    ValidationError,
    QueryTimeoutError,
)


class TestRetailOpsError:
    """Tests for base RetailOpsError exception."""

    def test_message_only(self):
        """Error with message only."""
        error = RetailOpsError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.details is None

    def test_message_with_details(self):
        """Error with message and details."""
        error = RetailOpsError("Write failed", "constraint violated")
        assert str(error) == "Write failed: constraint violated"
        assert error.details == "constraint violated"


class TestOutOfStock:
    """Tests for OutOfStock exception."""

    def test_inheritance(self):
        """Should inherit from RetailOpsError."""
        assert isinstance(OutOfStock(7, 5, 3), RetailOpsError)

    def test_carries_request_and_availability(self):
        """Exposes product, requested and available quantities."""
        error = OutOfStock(7, 5, 3)
        assert error.product_id == 7
        assert error.requested == 5
        assert error.available == 3

    def test_message(self):
        """String form names the product and both quantities."""
        assert str(OutOfStock(7, 5, 3)) == "Out of stock: product 7 requested=5 available=3"

    def test_equality_by_value(self):
        """Two errors with the same triple compare equal."""
        assert OutOfStock(7, 5, 3) == OutOfStock(7, 5, 3)
        assert OutOfStock(7, 5, 3) != OutOfStock(7, 5, 2)
        assert hash(OutOfStock(7, 2, 1)) == hash(OutOfStock(7, 2, 1))

    def test_not_equal_to_other_types(self):
        """Comparison with a non-OutOfStock is not equal."""
        assert OutOfStock(7, 5, 3) != (7, 5, 3)


class TestValidationError:
    """Tests for ValidationError exception."""

    def test_basic_error(self):
        """Basic validation error."""
        error = ValidationError("customer_id", "Unknown customer")
        assert str(error) == "customer_id: Unknown customer"
        assert error.field == "customer_id"
        assert error.value is None

    def test_with_value(self):
        """Validation error with invalid value."""
        error = ValidationError("quantity", "Must be greater than 0", 0)
        assert error.value == 0
        assert str(error) == "quantity: Must be greater than 0 (got: 0)"

    def test_not_a_retail_error(self):
        """Validation errors are caller mistakes, not operational failures."""
        assert not isinstance(ValidationError("x", "y"), RetailOpsError)


class TestQueryTimeoutError:
    """Tests for QueryTimeoutError exception."""

    def test_basic_timeout(self):
        """Basic timeout error."""
        error = QueryTimeoutError("SELECT * FROM orders", 30.0)
        assert error.timeout == 30.0
        assert "30" in str(error)

    def test_long_query_truncated(self):
        """Long queries are truncated to 200 chars plus ellipsis."""
        error = QueryTimeoutError("SELECT " + "x" * 500, 5.0)
        assert len(error.query) == 203
        assert error.query.endswith("...")

    def test_raises_cleanly(self):
        """Can be raised and caught as a plain Exception."""
        with pytest.raises(QueryTimeoutError):
            raise QueryTimeoutError("SELECT 1", 1.0, "Read failed")
