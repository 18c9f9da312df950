"""
Account Domain Models (``ledger_modules.accounts.models``).

Customers and suppliers share one shape: an immutable opening balance and
a cached running ``balance`` that is always recomputed from transactions.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from ledger_kernel.domain.values import to_date, to_decimal
from ledger_kernel.services import numbering
from ledger_kernel.store import tables
from ledger_kernel.store.protocol import Record


class AccountKind(Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"

    @property
    def table(self) -> str:
        return tables.CUSTOMERS if self is AccountKind.CUSTOMER else tables.SUPPLIERS

    @property
    def number_series(self) -> numbering.NumberSeries:
        return numbering.CUSTOMER if self is AccountKind.CUSTOMER else numbering.SUPPLIER


@dataclass(frozen=True)
class Account:
    """A customer or supplier account."""
    id: str
    kind: AccountKind
    code: str
    name: str
    opening_balance: Decimal
    balance: Decimal
    first_transaction_date: date | None = None
    last_transaction_date: date | None = None
    phone: str | None = None
    address: str | None = None

    @classmethod
    def from_record(cls, kind: AccountKind, record: Record) -> "Account":
        first = record.get("first_transaction_date")
        last = record.get("last_transaction_date")
        return cls(
            id=record["id"],
            kind=kind,
            code=record.get("code", ""),
            name=record.get("name", ""),
            opening_balance=to_decimal(record.get("opening_balance")),
            balance=to_decimal(record.get("balance")),
            first_transaction_date=to_date(first) if first else None,
            last_transaction_date=to_date(last) if last else None,
            phone=record.get("phone"),
            address=record.get("address"),
        )
