"""
Input validation functions for sale, restock and query parameters.

All validators raise ValidationError on invalid input.
"""

from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from retailops.exceptions import ValidationError
from retailops.models import Period, SaleLine


# Maximum allowed values
MAX_LIMIT = 1000


def _is_int(value: Any) -> bool:
    # bool is an int subclass; True is not a quantity
    return isinstance(value, int) and not isinstance(value, bool)


def validate_date(
    value: Union[str, date, None],
    field: str = "date",
    format: str = "%Y-%m-%d"
) -> date:
    """
    Validate and parse a date or date string.

    Args:
        value: date, datetime or date string to validate
        field: Field name for error messages
        format: Expected string format (default: YYYY-MM-DD)

    Returns:
        Parsed date object

    Raises:
        ValidationError: If date is missing or in wrong format
    """
    if value is None or value == "":
        raise ValidationError(field, "Date is required", value)

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a date or string", value)

    try:
        return datetime.strptime(value, format).date()
    except ValueError:
        raise ValidationError(
            field,
            f"Invalid date format. Expected {format}",
            value
        )


def validate_period(
    value: Union[Period, Tuple[Any, Any], None],
    field: str = "period"
) -> Period:
    """
    Validate an inclusive (start, end) period.

    Raises:
        ValidationError: If the period is missing or start is after end
    """
    if value is None:
        raise ValidationError(field, "Period is required")

    if isinstance(value, Period):
        start, end = value.start, value.end
    else:
        try:
            start, end = value
        except (TypeError, ValueError):
            raise ValidationError(field, "Must be a (start, end) pair", value)

    start = validate_date(start, f"{field}.start")
    end = validate_date(end, f"{field}.end")

    if start > end:
        raise ValidationError(
            field,
            "Start date must be before or equal to end date",
            f"{start} to {end}"
        )

    return Period(start, end)


def validate_disjoint_periods(
    period_a: Union[Period, Tuple[Any, Any]],
    period_b: Union[Period, Tuple[Any, Any]],
) -> Tuple[Period, Period]:
    """Validate two periods and check that they do not overlap."""
    a = validate_period(period_a, "period_a")
    b = validate_period(period_b, "period_b")

    if a.overlaps(b):
        raise ValidationError("periods", "Periods must not overlap", f"{a} / {b}")

    return a, b


def validate_limit(
    value: int,
    field: str = "n",
    min_value: int = 1,
    max_value: int = MAX_LIMIT
) -> int:
    """
    Validate a limit/count parameter.

    Returns:
        Validated limit

    Raises:
        ValidationError: If limit is not an integer or out of range
    """
    if not _is_int(value):
        raise ValidationError(field, "Must be an integer", value)

    if value < min_value:
        raise ValidationError(field, f"Must be at least {min_value}", value)

    if value > max_value:
        raise ValidationError(field, f"Cannot exceed {max_value}", value)

    return value


def validate_id(value: Any, field: str = "id") -> int:
    """Validate an entity reference is a positive integer."""
    if value is None:
        raise ValidationError(field, "Reference is required")

    if not _is_int(value):
        raise ValidationError(field, "Must be an integer", value)

    if value <= 0:
        raise ValidationError(field, "Must be a positive integer", value)

    return value


def validate_quantity(value: Any, field: str = "quantity") -> int:
    """Validate a sale quantity is a positive integer."""
    if not _is_int(value):
        raise ValidationError(field, "Must be an integer", value)

    if value <= 0:
        raise ValidationError(field, "Must be greater than 0", value)

    return value


def validate_sale_lines(
    lines: Optional[Iterable[Union[SaleLine, Sequence[int]]]]
) -> List[SaleLine]:
    """
    Validate and normalize sale lines.

    Accepts SaleLine objects or (product_id, quantity) pairs.

    Returns:
        List of SaleLine in caller order

    Raises:
        ValidationError: If lines are empty or any line is malformed
    """
    if lines is None:
        raise ValidationError("lines", "At least one line is required")

    normalized = []
    for i, line in enumerate(lines):
        if isinstance(line, SaleLine):
            product_id, quantity = line.product_id, line.quantity
        else:
            try:
                product_id, quantity = line
            except (TypeError, ValueError):
                raise ValidationError(
                    f"lines[{i}]", "Must be a (product_id, quantity) pair", line
                )

        normalized.append(SaleLine(
            product_id=validate_id(product_id, f"lines[{i}].product_id"),
            quantity=validate_quantity(quantity, f"lines[{i}].quantity"),
        ))

    if not normalized:
        raise ValidationError("lines", "At least one line is required")

    return normalized


def validate_restock_delta(value: Any, field: str = "delta") -> int:
    """Validate a restock delta is a non-negative integer."""
    if not _is_int(value):
        raise ValidationError(field, "Must be an integer", value)

    if value < 0:
        raise ValidationError(field, "Must be non-negative", value)

    return value


def validate_threshold(
    value: Any,
    field: str = "threshold",
    max_value: Optional[float] = None
) -> Union[int, float]:
    """Validate a non-negative numeric alert threshold."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(field, "Must be a number", value)

    if value < 0:
        raise ValidationError(field, "Must be non-negative", value)

    if max_value is not None and value > max_value:
        raise ValidationError(field, f"Cannot exceed {max_value}", value)

    return value
