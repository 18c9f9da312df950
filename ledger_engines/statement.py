"""
Module: ledger_engines.statement
Responsibility:
    Replay an account's transactions in date order to produce a statement:
    a row per transaction with the balance before and after it, plus the
    summary figures printed under the statement.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The accounts module
    gathers the transactions from the store and calls ``walk_statement``.

Invariants enforced:
    - Stable ordering: transactions are sorted by date only; ties keep the
      order they were supplied in.
    - Row continuity: each row's ``old_balance`` equals the previous row's
      ``new_balance``; the first row starts from ``opening_balance``.
    - Signed deltas per type: invoice ``+amount - paid``; receipt/payment
      ``-amount``; return ``-amount``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Sequence

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.values import ZERO


class StatementEntryType(Enum):
    SALES_INVOICE = "sales_invoice"
    PURCHASE_INVOICE = "purchase_invoice"
    RECEIPT = "receipt"
    PAYMENT = "payment"
    RETURN_FROM_CUSTOMER = "return_from_customer"
    RETURN_TO_SUPPLIER = "return_to_supplier"

    @property
    def is_invoice(self) -> bool:
        return self in (StatementEntryType.SALES_INVOICE, StatementEntryType.PURCHASE_INVOICE)

    @property
    def is_settlement(self) -> bool:
        return self in (StatementEntryType.RECEIPT, StatementEntryType.PAYMENT)

    @property
    def is_return(self) -> bool:
        return self in (
            StatementEntryType.RETURN_FROM_CUSTOMER,
            StatementEntryType.RETURN_TO_SUPPLIER,
        )


@dataclass(frozen=True)
class StatementTransaction:
    """A transaction as fed to the walk.  ``paid`` applies to invoices only."""
    date: date
    entry_type: StatementEntryType
    reference: str
    amount: Decimal
    paid: Decimal = ZERO

    def delta(self) -> Decimal:
        if self.entry_type.is_invoice:
            return self.amount - self.paid
        return -self.amount


@dataclass(frozen=True)
class StatementRow:
    date: date
    entry_type: StatementEntryType
    reference: str
    amount: Decimal
    paid: Decimal
    old_balance: Decimal
    new_balance: Decimal


@dataclass(frozen=True)
class StatementSummary:
    opening_balance: Decimal
    total_invoiced: Decimal
    total_settled: Decimal
    total_returns: Decimal
    closing_balance: Decimal
    first_date: date | None
    last_date: date | None


@dataclass(frozen=True)
class Statement:
    rows: tuple[StatementRow, ...]
    summary: StatementSummary

    def __len__(self) -> int:
        return len(self.rows)


@traced_engine("account_statement", "1.0", fingerprint_fields=("opening_balance", "transactions"))
def walk_statement(
    *,
    opening_balance: Decimal,
    transactions: Sequence[StatementTransaction],
    date_from: date | None = None,
    date_to: date | None = None,
) -> Statement:
    """
    Walk ``transactions`` chronologically from ``opening_balance``.

    ``date_from``/``date_to`` are only used for the summary's first/last
    date; the caller has already restricted ``transactions`` to the window.
    """
    ordered = sorted(transactions, key=lambda t: t.date)

    rows: list[StatementRow] = []
    balance = opening_balance
    for txn in ordered:
        old = balance
        balance = balance + txn.delta()
        rows.append(
            StatementRow(
                date=txn.date,
                entry_type=txn.entry_type,
                reference=txn.reference,
                amount=txn.amount,
                paid=txn.amount if not txn.entry_type.is_invoice else txn.paid,
                old_balance=old,
                new_balance=balance,
            )
        )

    start = rows[0].old_balance if rows else opening_balance
    summary = StatementSummary(
        opening_balance=start,
        total_invoiced=sum((r.amount for r in rows if r.entry_type.is_invoice), ZERO),
        total_settled=sum((r.amount for r in rows if r.entry_type.is_settlement), ZERO),
        total_returns=sum((r.amount for r in rows if r.entry_type.is_return), ZERO),
        closing_balance=rows[-1].new_balance if rows else start,
        first_date=date_from or (rows[0].date if rows else None),
        last_date=date_to or (rows[-1].date if rows else None),
    )
    return Statement(rows=tuple(rows), summary=summary)
