"""
Inventory Domain Models (``ledger_modules.inventory.models``).

Responsibility
--------------
Frozen value objects for products and the stock documents that move them
outside the invoice and consignment flows: adjustments and returns.

Architecture
------------
Layer: **Modules** -- pure domain data structures.  Built from store
records with ``from_record``; they carry no I/O.

Invariants
----------
- ``Product.stock >= 0`` and ``conversion_factor > 0``.
- All quantities use ``Decimal`` in the smallest unit.

Failure Modes
-------------
- Constructing a ``Product`` that violates an invariant raises
  ``ValueError`` immediately.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from ledger_engines.stock_movement import MovementKind
from ledger_kernel.domain.values import ZERO, Unit, to_date, to_decimal
from ledger_kernel.logging_config import get_logger
from ledger_kernel.store.protocol import Record

logger = get_logger("modules.inventory.models")


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AdjustmentType(Enum):
    """Direction of a manual stock adjustment."""
    INCREASE = "increase"
    DECREASE = "decrease"
    SET = "set"

    @property
    def movement_kind(self) -> MovementKind:
        return {
            AdjustmentType.INCREASE: MovementKind.ADJUSTMENT_INCREASE,
            AdjustmentType.DECREASE: MovementKind.ADJUSTMENT_DECREASE,
            AdjustmentType.SET: MovementKind.ADJUSTMENT_SET,
        }[self]


class ReturnType(Enum):
    """Who the goods come back from."""
    FROM_CUSTOMER = "from_customer"
    TO_SUPPLIER = "to_supplier"

    @property
    def movement_kind(self) -> MovementKind:
        if self is ReturnType.FROM_CUSTOMER:
            return MovementKind.CUSTOMER_RETURN
        return MovementKind.SUPPLIER_RETURN


@dataclass(frozen=True)
class Product:
    """
    A stocked product.

    Contract: ``stock`` and ``opening_stock`` are in the smallest unit;
    ``conversion_factor`` is the number of smallest units per largest unit.
    """
    id: str
    code: str
    name: str
    stock: Decimal
    opening_stock: Decimal
    conversion_factor: Decimal = Decimal("1")
    category: str = ""
    smallest_unit: str = ""
    largest_unit: str = ""
    smallest_price: Decimal = ZERO
    largest_price: Decimal = ZERO
    status: ProductStatus = ProductStatus.ACTIVE

    def __post_init__(self):
        if self.conversion_factor <= 0:
            logger.warning(
                "product_conversion_factor_invalid",
                extra={"product_id": self.id, "conversion_factor": str(self.conversion_factor)},
            )
            raise ValueError(
                f"conversion_factor must be positive (got {self.conversion_factor})"
            )
        if self.stock < 0:
            raise ValueError(f"stock cannot be negative (got {self.stock})")

    def in_smallest(self, quantity: Decimal, unit: Unit) -> Decimal:
        return quantity * self.conversion_factor if unit is Unit.LARGEST else quantity

    @classmethod
    def from_record(cls, record: Record) -> "Product":
        return cls(
            id=record["id"],
            code=record.get("code", ""),
            name=record.get("name", ""),
            stock=to_decimal(record.get("stock")),
            opening_stock=to_decimal(record.get("opening_stock")),
            conversion_factor=to_decimal(record.get("conversion_factor") or 1),
            category=record.get("category") or "",
            smallest_unit=record.get("smallest_unit") or "",
            largest_unit=record.get("largest_unit") or "",
            smallest_price=to_decimal(record.get("smallest_price")),
            largest_price=to_decimal(record.get("largest_price")),
            status=ProductStatus(record.get("status") or "active"),
        )


@dataclass(frozen=True)
class Adjustment:
    """A posted stock adjustment with the stock before and after it."""
    id: str
    adjustment_number: str
    product_id: str
    date: date
    adjustment_type: AdjustmentType
    quantity: Decimal
    old_stock: Decimal
    new_stock: Decimal
    reason: str | None = None

    @classmethod
    def from_record(cls, record: Record) -> "Adjustment":
        return cls(
            id=record["id"],
            adjustment_number=record["adjustment_number"],
            product_id=record["product_id"],
            date=to_date(record["date"]),
            adjustment_type=AdjustmentType(record["type"]),
            quantity=to_decimal(record["quantity"]),
            old_stock=to_decimal(record["old_stock"]),
            new_stock=to_decimal(record["new_stock"]),
            reason=record.get("reason"),
        )


@dataclass(frozen=True)
class StockReturn:
    """A return of goods from a customer or to a supplier."""
    id: str
    return_number: str
    product_id: str
    date: date
    return_type: ReturnType
    entity_id: str
    quantity: Decimal
    unit: Unit
    unit_price: Decimal
    total_amount: Decimal
    return_reason: str
    restored_to_stock: bool
    restore_balance: bool

    @classmethod
    def from_record(cls, record: Record) -> "StockReturn":
        return cls(
            id=record["id"],
            return_number=record["return_number"],
            product_id=record["product_id"],
            date=to_date(record["date"]),
            return_type=ReturnType(record["return_type"]),
            entity_id=record["entity_id"],
            quantity=to_decimal(record["quantity"]),
            unit=Unit.parse(record.get("unit")),
            unit_price=to_decimal(record["unit_price"]),
            total_amount=to_decimal(record["total_amount"]),
            return_reason=record.get("return_reason") or "",
            restored_to_stock=bool(record.get("restored_to_stock")),
            restore_balance=bool(record.get("restore_balance")),
        )
