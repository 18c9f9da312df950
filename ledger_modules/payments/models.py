"""
Payments Domain Models (``ledger_modules.payments.models``).

Money received from customers (receipts) and paid to suppliers (payments).
Both lower the account balance by ``amount``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ledger_kernel.domain.values import to_date, to_decimal
from ledger_kernel.store.protocol import Record


@dataclass(frozen=True)
class Receipt:
    id: str
    receipt_number: str
    customer_id: str
    date: date
    amount: Decimal
    payment_method: str
    notes: str | None = None

    @classmethod
    def from_record(cls, record: Record) -> "Receipt":
        return cls(
            id=record["id"],
            receipt_number=record["receipt_number"],
            customer_id=record["customer_id"],
            date=to_date(record["date"]),
            amount=to_decimal(record["amount"]),
            payment_method=record.get("payment_method") or "",
            notes=record.get("notes"),
        )


@dataclass(frozen=True)
class Payment:
    id: str
    payment_number: str
    supplier_id: str
    date: date
    amount: Decimal
    payment_method: str
    to_name: str | None = None
    notes: str | None = None

    @classmethod
    def from_record(cls, record: Record) -> "Payment":
        return cls(
            id=record["id"],
            payment_number=record["payment_number"],
            supplier_id=record["supplier_id"],
            date=to_date(record["date"]),
            amount=to_decimal(record["amount"]),
            payment_method=record.get("payment_method") or "",
            to_name=record.get("to_name"),
            notes=record.get("notes"),
        )
