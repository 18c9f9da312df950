"""
Sales Domain Models (``ledger_modules.sales.models``).

A sales invoice either ships from stock (unlinked) or sells goods already
handed to a representative on a delivery note (linked).  Only delivered
invoices count towards the customer's balance.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from ledger_kernel.domain.values import to_date, to_decimal
from ledger_kernel.store.protocol import Record
from ledger_modules._document_lines import InvoiceLine


class InvoiceStatus(Enum):
    PENDING = "pending"
    DELIVERED = "delivered"


@dataclass(frozen=True)
class SalesInvoice:
    id: str
    invoice_number: str
    customer_id: str
    date: date
    status: InvoiceStatus
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    paid: Decimal
    remaining: Decimal
    delivery_note_id: str | None = None
    due_date: date | None = None
    payment_method: str | None = None
    notes: str | None = None
    items: tuple[InvoiceLine, ...] = field(default_factory=tuple)

    @property
    def is_linked(self) -> bool:
        """True when the invoice sells goods from a delivery note."""
        return self.delivery_note_id is not None

    @property
    def is_delivered(self) -> bool:
        return self.status is InvoiceStatus.DELIVERED

    @classmethod
    def from_record(cls, record: Record, items: list[Record] | None = None) -> "SalesInvoice":
        due = record.get("due_date")
        return cls(
            id=record["id"],
            invoice_number=record["invoice_number"],
            customer_id=record["customer_id"],
            date=to_date(record["date"]),
            status=InvoiceStatus(record.get("status") or "pending"),
            subtotal=to_decimal(record.get("subtotal")),
            tax_rate=to_decimal(record.get("tax_rate")),
            tax_amount=to_decimal(record.get("tax_amount")),
            shipping=to_decimal(record.get("shipping")),
            discount=to_decimal(record.get("discount")),
            total=to_decimal(record.get("total")),
            paid=to_decimal(record.get("paid")),
            remaining=to_decimal(record.get("remaining")),
            delivery_note_id=record.get("delivery_note_id"),
            due_date=to_date(due) if due else None,
            payment_method=record.get("payment_method"),
            notes=record.get("notes"),
            items=tuple(InvoiceLine.from_record(i) for i in items or ()),
        )
