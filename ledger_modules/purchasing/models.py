"""
Purchasing Domain Models (``ledger_modules.purchasing.models``).
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from ledger_kernel.domain.values import to_date, to_decimal
from ledger_kernel.store.protocol import Record
from ledger_modules._document_lines import InvoiceLine


@dataclass(frozen=True)
class PurchaseInvoice:
    """A supplier invoice.  Every purchase invoice counts towards the supplier balance."""
    id: str
    invoice_number: str
    supplier_id: str
    date: date
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    paid: Decimal
    remaining: Decimal
    due_date: date | None = None
    payment_method: str | None = None
    notes: str | None = None
    items: tuple[InvoiceLine, ...] = field(default_factory=tuple)

    @classmethod
    def from_record(cls, record: Record, items: list[Record] | None = None) -> "PurchaseInvoice":
        due = record.get("due_date")
        return cls(
            id=record["id"],
            invoice_number=record["invoice_number"],
            supplier_id=record["supplier_id"],
            date=to_date(record["date"]),
            subtotal=to_decimal(record.get("subtotal")),
            tax_rate=to_decimal(record.get("tax_rate")),
            tax_amount=to_decimal(record.get("tax_amount")),
            shipping=to_decimal(record.get("shipping")),
            discount=to_decimal(record.get("discount")),
            total=to_decimal(record.get("total")),
            paid=to_decimal(record.get("paid")),
            remaining=to_decimal(record.get("remaining")),
            due_date=to_date(due) if due else None,
            payment_method=record.get("payment_method"),
            notes=record.get("notes"),
            items=tuple(InvoiceLine.from_record(i) for i in items or ()),
        )
