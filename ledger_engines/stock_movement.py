"""
Module: ledger_engines.stock_movement
Responsibility:
    Compute the effect of one stock movement on a product's stock scalar.
    Every stock change in the system (purchase, sale, adjustment, return,
    consignment settlement, delivery-note release) is expressed as a
    ``StockMovement`` and applied here.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Quantities are normalized to the smallest unit before use
      (``largest`` multiplies by the product's conversion factor).
    - The resulting stock is floored at zero; a clamp is reported, never
      raised.
    - Every movement except an absolute "set" has an exact inverse:
      applying ``m`` then ``m.inverse()`` restores the prior stock whenever
      no clamp occurred.
    - A settlement is a single combined delta ``-sold + returned + rejected``.

Failure modes:
    - ValueError on negative component quantities at construction.
    - IrreversibleMovementError from ``inverse()`` on an adjustment-set.

Usage:
    from ledger_engines.stock_movement import MovementKind, StockMovement, apply_movement

    result = apply_movement(
        stock=Decimal("100"),
        movement=StockMovement(MovementKind.SALE, Decimal("30")),
        conversion_factor=Decimal("1"),
    )
    result.new_stock   # Decimal("70")
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.values import ZERO, Unit, normalize_quantity
from ledger_kernel.exceptions import IrreversibleMovementError


class MovementKind(Enum):
    """Kinds of stock movement and their direction."""
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT_INCREASE = "adjustment_increase"
    ADJUSTMENT_DECREASE = "adjustment_decrease"
    ADJUSTMENT_SET = "adjustment_set"
    SETTLEMENT = "settlement"
    CUSTOMER_RETURN = "customer_return"
    SUPPLIER_RETURN = "supplier_return"
    NOTE_RELEASE = "note_release"


_DIRECTION: dict[MovementKind, int] = {
    MovementKind.PURCHASE: 1,
    MovementKind.SALE: -1,
    MovementKind.ADJUSTMENT_INCREASE: 1,
    MovementKind.ADJUSTMENT_DECREASE: -1,
    MovementKind.CUSTOMER_RETURN: 1,
    MovementKind.SUPPLIER_RETURN: -1,
    MovementKind.NOTE_RELEASE: 1,
}


@dataclass(frozen=True)
class StockMovement:
    """
    One movement against one product.

    Contract:
        ``quantity`` is the moved quantity in ``unit``; for a settlement it
        is the sold quantity and ``returned_quantity``/``rejected_quantity``
        carry the goods coming back.  ``reversed`` flips the sign of the
        whole effect.
    """
    kind: MovementKind
    quantity: Decimal
    unit: Unit = Unit.SMALLEST
    returned_quantity: Decimal = ZERO
    rejected_quantity: Decimal = ZERO
    reversed: bool = False

    def __post_init__(self):
        if self.kind is not MovementKind.ADJUSTMENT_SET and self.quantity < 0:
            raise ValueError(f"{self.kind.value} quantity cannot be negative: {self.quantity}")
        if self.returned_quantity < 0 or self.rejected_quantity < 0:
            raise ValueError("returned and rejected quantities cannot be negative")
        if self.kind is not MovementKind.SETTLEMENT and (
            self.returned_quantity or self.rejected_quantity
        ):
            raise ValueError("only settlement movements carry returned/rejected quantities")

    @property
    def is_absolute(self) -> bool:
        return self.kind is MovementKind.ADJUSTMENT_SET

    def signed_delta(self, conversion_factor: Decimal) -> Decimal:
        """Signed change in smallest units (not defined for a set)."""
        if self.is_absolute:
            raise IrreversibleMovementError(self.kind.value)
        if self.kind is MovementKind.SETTLEMENT:
            delta = (
                -normalize_quantity(self.quantity, self.unit, conversion_factor)
                + normalize_quantity(self.returned_quantity, self.unit, conversion_factor)
                + normalize_quantity(self.rejected_quantity, self.unit, conversion_factor)
            )
        else:
            delta = _DIRECTION[self.kind] * normalize_quantity(
                self.quantity, self.unit, conversion_factor
            )
        return -delta if self.reversed else delta

    def inverse(self) -> StockMovement:
        """The movement that undoes this one."""
        if self.is_absolute:
            raise IrreversibleMovementError(self.kind.value)
        return replace(self, reversed=not self.reversed)


@dataclass(frozen=True)
class StockMovementResult:
    """Outcome of applying a movement."""
    old_stock: Decimal
    new_stock: Decimal
    computed_stock: Decimal

    @property
    def clamped(self) -> bool:
        """True when the computed stock was negative and floored to zero."""
        return self.computed_stock != self.new_stock

    @property
    def change(self) -> Decimal:
        return self.new_stock - self.old_stock


@traced_engine("stock_movement", "1.0", fingerprint_fields=("stock", "movement", "conversion_factor"))
def apply_movement(
    *,
    stock: Decimal,
    movement: StockMovement,
    conversion_factor: Decimal = Decimal("1"),
) -> StockMovementResult:
    """
    Apply ``movement`` to ``stock``.

    Preconditions:
        - ``conversion_factor`` > 0.
    Postconditions:
        - ``result.new_stock >= 0``.
        - For a set, ``new_stock == |quantity|`` normalized, regardless of
          ``stock``.
    """
    if conversion_factor <= 0:
        raise ValueError(f"conversion_factor must be positive, got {conversion_factor}")

    if movement.is_absolute:
        computed = abs(normalize_quantity(movement.quantity, movement.unit, conversion_factor))
    else:
        computed = stock + movement.signed_delta(conversion_factor)

    return StockMovementResult(
        old_stock=stock,
        new_stock=max(ZERO, computed),
        computed_stock=computed,
    )
