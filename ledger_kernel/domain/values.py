"""
Value helpers shared by every ledger.

Quantities and money are ``Decimal`` end to end.  Callers may pass ints or
numeric strings; floats are converted through ``str`` so that ``0.1`` stays
``Decimal("0.1")`` rather than its binary expansion.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum

from ledger_kernel.exceptions import InvalidQuantityError, InvalidUnitError

ZERO = Decimal("0")


class Unit(Enum):
    """Counting unit of a quantity: the base unit or the bundled one."""
    SMALLEST = "smallest"
    LARGEST = "largest"

    @classmethod
    def parse(cls, value: "Unit | str | None") -> "Unit":
        """Accept a Unit or its label; None means the smallest unit."""
        if value is None:
            return cls.SMALLEST
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidUnitError(value) from None


def to_decimal(value, field_name: str = "value") -> Decimal:
    """Coerce a numeric input to Decimal; None becomes zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidQuantityError(field_name, value, "not a number")
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        raise InvalidQuantityError(field_name, value, "not a number") from None


def normalize_quantity(
    quantity: Decimal, unit: Unit | str | None, conversion_factor: Decimal
) -> Decimal:
    """Express a quantity in the smallest unit."""
    if Unit.parse(unit) is Unit.LARGEST:
        return quantity * conversion_factor
    return quantity


def to_date(value: date | datetime | str) -> date:
    """Parse a document date from a date, datetime or ISO string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise ValueError(f"Cannot parse date from {value!r}")
