"""
Line items shared by invoices and delivery notes.

Used by sales, purchasing and consignment services to validate the item
lists they receive before any write happens, and by both invoice services
for header totals.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from ledger_kernel.domain.values import ZERO, Unit, to_decimal
from ledger_kernel.exceptions import InvalidQuantityError, MissingFieldError


@dataclass(frozen=True)
class LineInput:
    """One requested line: product, quantity in ``unit``, optional unit price."""
    product_id: str
    quantity: Decimal
    unit: Unit = Unit.SMALLEST
    price: Decimal = ZERO

    @property
    def key(self) -> tuple[str, Unit]:
        """Match key between invoice lines and note lines."""
        return (self.product_id, self.unit)

    @property
    def total(self) -> Decimal:
        return self.quantity * self.price


def coerce_lines(
    lines: Iterable[LineInput | Mapping[str, Any]], document: str
) -> list[LineInput]:
    """
    Normalize and validate requested lines.

    Accepts ``LineInput`` values or mappings with ``product_id``,
    ``quantity``, optional ``unit`` and ``price``.

    Raises:
        MissingFieldError: no lines, or a line without a product.
        InvalidQuantityError: a non-positive quantity or negative price.
    """
    result: list[LineInput] = []
    for raw in lines:
        if isinstance(raw, LineInput):
            line = raw
        else:
            line = LineInput(
                product_id=raw.get("product_id") or "",
                quantity=to_decimal(raw.get("quantity"), "quantity"),
                unit=Unit.parse(raw.get("unit")),
                price=to_decimal(raw.get("price"), "price"),
            )
        if not line.product_id:
            raise MissingFieldError("product_id", document)
        if line.quantity <= 0:
            raise InvalidQuantityError("quantity", line.quantity, "must be positive")
        if line.price < 0:
            raise InvalidQuantityError("price", line.price, "cannot be negative")
        result.append(line)
    if not result:
        raise MissingFieldError("items", document)
    return result


def merge_lines(lines: Iterable[LineInput]) -> list[LineInput]:
    """Collapse lines sharing a ``(product_id, unit)`` key, summing quantities."""
    merged: dict[tuple[str, Unit], LineInput] = {}
    for line in lines:
        seen = merged.get(line.key)
        merged[line.key] = line if seen is None else replace(seen, quantity=seen.quantity + line.quantity)
    return list(merged.values())


@dataclass(frozen=True)
class InvoiceTotals:
    """Money figures of an invoice header."""
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    paid: Decimal
    remaining: Decimal

    def as_record(self) -> dict[str, Decimal]:
        return {
            "subtotal": self.subtotal,
            "tax_rate": self.tax_rate,
            "tax_amount": self.tax_amount,
            "shipping": self.shipping,
            "discount": self.discount,
            "total": self.total,
            "paid": self.paid,
            "remaining": self.remaining,
        }


def compute_totals(
    lines: Iterable[LineInput],
    tax_rate=ZERO,
    shipping=ZERO,
    discount=ZERO,
    paid=ZERO,
) -> InvoiceTotals:
    """
    ``total = subtotal + subtotal * tax_rate / 100 + shipping - discount``
    and ``remaining = total - paid``.
    """
    tax_rate = to_decimal(tax_rate, "tax_rate")
    shipping = to_decimal(shipping, "shipping")
    discount = to_decimal(discount, "discount")
    paid = to_decimal(paid, "paid")
    for name, value in (("tax_rate", tax_rate), ("shipping", shipping), ("discount", discount), ("paid", paid)):
        if value < 0:
            raise InvalidQuantityError(name, value, "cannot be negative")
    subtotal = sum((line.total for line in lines), ZERO)
    tax_amount = subtotal * tax_rate / 100
    total = subtotal + tax_amount + shipping - discount
    return InvoiceTotals(
        subtotal=subtotal,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        shipping=shipping,
        discount=discount,
        total=total,
        paid=paid,
        remaining=total - paid,
    )


@dataclass(frozen=True)
class InvoiceLine:
    """A stored invoice line (sales or purchase)."""
    id: str
    invoice_id: str
    product_id: str
    product_name: str
    unit: Unit
    quantity: Decimal
    price: Decimal
    total: Decimal

    def as_input(self) -> LineInput:
        return LineInput(self.product_id, self.quantity, self.unit, self.price)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "InvoiceLine":
        return cls(
            id=record["id"],
            invoice_id=record["invoice_id"],
            product_id=record["product_id"],
            product_name=record.get("product_name") or "",
            unit=Unit.parse(record.get("unit")),
            quantity=to_decimal(record["quantity"]),
            price=to_decimal(record.get("price")),
            total=to_decimal(record.get("total")),
        )
