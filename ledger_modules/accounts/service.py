"""
Account Balance Ledger (``ledger_modules.accounts.service``).

Responsibility
--------------
Owns customer and supplier accounts: creation with a numbered code and an
opening balance, full balance recomputation from transactions, and the
chronological statement replay used by reports.

Architecture
------------
Layer: **Modules**.  Reads transactions from the record store, delegates
the statement walk to ``ledger_engines.statement``.

Invariants
----------
- ``balance == opening_balance + signed sum of transactions``, always
  recomputed in full, never incremented.  Signs are fixed per type:

  ==================  =====================================  ============
  Account             Transaction                            Contribution
  ==================  =====================================  ============
  customer            delivered sales invoice                +remaining
  customer            receipt                                -amount
  customer            return from customer, restore_balance  -total_amount
  supplier            purchase invoice (any status)          +remaining
  supplier            payment                                -amount
  supplier            return to supplier, restore_balance    -total_amount
  ==================  =====================================  ============

- Recomputing twice with no intervening writes yields the same value.

Failure Modes
-------------
- ``RecordNotFoundError`` for an unknown account id.
- ``MissingFieldError`` / ``InvalidQuantityError`` on invalid creation input.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ledger_engines.statement import (
    Statement,
    StatementEntryType,
    StatementTransaction,
    walk_statement,
)
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.values import ZERO, to_date, to_decimal
from ledger_kernel.exceptions import MissingFieldError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import StoreBackedService
from ledger_kernel.services.cache import RecordCache
from ledger_kernel.services.notifications import BALANCE_CHANGED, ChangeNotifier
from ledger_kernel.services.numbering import NumberingService
from ledger_kernel.store import tables
from ledger_kernel.store.protocol import RecordStore
from ledger_modules.accounts.models import Account, AccountKind

logger = get_logger("modules.accounts.service")


def _in_window(value: date, date_from: date | None, date_to: date | None) -> bool:
    if date_from is not None and value < date_from:
        return False
    if date_to is not None and value > date_to:
        return False
    return True


class AccountBalanceLedger(StoreBackedService):
    """
    Customer and supplier accounts and their balances.

    Usage:
        ledger = AccountBalanceLedger(store, clock, numbering, cache, notifier)
        customer = ledger.create_customer("Nile Traders", opening_balance=Decimal("250"))
        ledger.recompute_balance(AccountKind.CUSTOMER, customer.id)
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock,
        numbering: NumberingService,
        cache: RecordCache,
        notifier: ChangeNotifier,
    ):
        super().__init__(store, clock)
        self.numbering = numbering
        self.cache = cache
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_customer(self, name: str, opening_balance=ZERO, **details) -> Account:
        return self._create(AccountKind.CUSTOMER, name, opening_balance, details)

    def create_supplier(self, name: str, opening_balance=ZERO, **details) -> Account:
        return self._create(AccountKind.SUPPLIER, name, opening_balance, details)

    def _create(self, kind: AccountKind, name: str, opening_balance, details: dict) -> Account:
        if not name or not name.strip():
            raise MissingFieldError("name", kind.value)
        opening = to_decimal(opening_balance, "opening_balance")
        record = self._insert(
            kind.table,
            {
                "code": self.numbering.next_number(kind.number_series),
                "name": name.strip(),
                "phone": details.get("phone"),
                "address": details.get("address"),
                "notes": details.get("notes"),
                "opening_balance": opening,
                "balance": opening,
                "status": "active",
                "first_transaction_date": None,
                "last_transaction_date": None,
            },
        )
        self.cache.upsert(kind.table, record)
        logger.info(
            "account_created",
            extra={
                "account_kind": kind.value,
                "account_id": record["id"],
                "code": record["code"],
                "opening_balance": str(opening),
            },
        )
        return Account.from_record(kind, record)

    def get_account(self, kind: AccountKind, account_id: str) -> Account:
        return Account.from_record(kind, self._require(kind.table, account_id))

    # ------------------------------------------------------------------
    # Balance recompute
    # ------------------------------------------------------------------

    def _contributions(self, kind: AccountKind, account_id: str) -> list[tuple[date, Decimal]]:
        """Signed (date, amount) pairs that make up the balance."""
        src = _STATEMENT_SOURCES[kind]
        invoice_criteria = {src.account_field: account_id}
        if kind is AccountKind.CUSTOMER:
            # undelivered sales invoices are not yet owed
            invoice_criteria["status"] = "delivered"
        invoices = self.store.get_all(src.invoice_table, invoice_criteria)
        settlements = self.store.get_all(src.settlement_table, {src.account_field: account_id})
        returns = self.store.get_all(
            tables.RETURNS,
            {"return_type": src.return_type, "entity_id": account_id, "restore_balance": True},
        )

        pairs = [(to_date(r["date"]), to_decimal(r.get("remaining"))) for r in invoices]
        pairs += [(to_date(r["date"]), -to_decimal(r.get("amount"))) for r in settlements]
        pairs += [(to_date(r["date"]), -to_decimal(r.get("total_amount"))) for r in returns]
        return pairs

    def recompute_balance(self, kind: AccountKind, account_id: str) -> Decimal:
        """
        Rebuild the cached balance from every transaction of the account.

        Postconditions:
            - The account record's ``balance`` equals the returned value.
            - ``first_transaction_date``/``last_transaction_date`` span the
              contributing transactions (None when there are none).
            - ``balance_changed`` is published.
        """
        account = self._require(kind.table, account_id)
        pairs = self._contributions(kind, account_id)
        balance = to_decimal(account.get("opening_balance")) + sum(
            (amount for _, amount in pairs), ZERO
        )
        dates = [d for d, _ in pairs]
        changes = {
            "balance": balance,
            "first_transaction_date": min(dates) if dates else None,
            "last_transaction_date": max(dates) if dates else None,
        }
        self._update(kind.table, account_id, changes)
        self.cache.upsert(kind.table, {**account, **changes})

        logger.info(
            "balance_recomputed",
            extra={
                "account_kind": kind.value,
                "account_id": account_id,
                "old_balance": str(to_decimal(account.get("balance"))),
                "balance": str(balance),
                "transaction_count": len(pairs),
            },
        )
        self.notifier.publish(
            BALANCE_CHANGED,
            {"account_id": account_id, "account_kind": kind.value, "balance": balance},
        )
        return balance

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def customer_statement(
        self,
        customer_id: str,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> Statement:
        """Sales invoices, receipts and customer returns, walked by date."""
        return self.statement(AccountKind.CUSTOMER, customer_id, date_from, date_to)

    def supplier_statement(
        self,
        supplier_id: str,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> Statement:
        """Purchase invoices, payments and supplier returns, walked by date."""
        return self.statement(AccountKind.SUPPLIER, supplier_id, date_from, date_to)

    def statement(
        self,
        kind: AccountKind,
        account_id: str,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> Statement:
        """
        Replay the account's transactions inside the window.

        Every invoice is listed whatever its delivery status, and every
        return whether or not it restored the balance: the statement shows
        documents, the cached balance shows what is owed.  The walk starts
        from the account's opening balance.
        """
        account = self._require(kind.table, account_id)
        src = _STATEMENT_SOURCES[kind]

        txns: list[StatementTransaction] = []
        for r in self.store.get_all(src.invoice_table, {src.account_field: account_id}):
            txns.append(
                StatementTransaction(
                    date=to_date(r["date"]),
                    entry_type=src.invoice_type,
                    reference=r.get("invoice_number") or r["id"],
                    amount=to_decimal(r.get("total")),
                    paid=to_decimal(r.get("paid")),
                )
            )
        for r in self.store.get_all(src.settlement_table, {src.account_field: account_id}):
            txns.append(
                StatementTransaction(
                    date=to_date(r["date"]),
                    entry_type=src.settlement_type,
                    reference=r.get(src.settlement_number_field) or r["id"],
                    amount=to_decimal(r.get("amount")),
                )
            )
        for r in self.store.get_all(
            tables.RETURNS, {"return_type": src.return_type, "entity_id": account_id}
        ):
            txns.append(
                StatementTransaction(
                    date=to_date(r["date"]),
                    entry_type=src.return_entry_type,
                    reference=r.get("return_number") or r["id"],
                    amount=to_decimal(r.get("total_amount")),
                )
            )
        txns = [t for t in txns if _in_window(t.date, date_from, date_to)]

        result = walk_statement(
            opening_balance=to_decimal(account.get("opening_balance")),
            transactions=txns,
            date_from=date_from,
            date_to=date_to,
        )
        logger.info(
            "statement_generated",
            extra={
                "account_kind": kind.value,
                "account_id": account_id,
                "row_count": len(result.rows),
                "closing_balance": str(result.summary.closing_balance),
            },
        )
        return result


@dataclass(frozen=True)
class _StatementSources:
    invoice_table: str
    account_field: str
    invoice_type: StatementEntryType
    settlement_table: str
    settlement_number_field: str
    settlement_type: StatementEntryType
    return_type: str
    return_entry_type: StatementEntryType


_STATEMENT_SOURCES = {
    AccountKind.CUSTOMER: _StatementSources(
        invoice_table=tables.SALES_INVOICES,
        account_field="customer_id",
        invoice_type=StatementEntryType.SALES_INVOICE,
        settlement_table=tables.RECEIPTS,
        settlement_number_field="receipt_number",
        settlement_type=StatementEntryType.RECEIPT,
        return_type="from_customer",
        return_entry_type=StatementEntryType.RETURN_FROM_CUSTOMER,
    ),
    AccountKind.SUPPLIER: _StatementSources(
        invoice_table=tables.PURCHASE_INVOICES,
        account_field="supplier_id",
        invoice_type=StatementEntryType.PURCHASE_INVOICE,
        settlement_table=tables.PAYMENTS,
        settlement_number_field="payment_number",
        settlement_type=StatementEntryType.PAYMENT,
        return_type="to_supplier",
        return_entry_type=StatementEntryType.RETURN_TO_SUPPLIER,
    ),
}
