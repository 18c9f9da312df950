"""
Payments Service (``ledger_modules.payments.service``).

Responsibility
--------------
Customer receipts and supplier payments.  Each write is followed by a full
recompute of the account balance, so deleting a receipt or payment needs
no inverse of its own.

Failure Modes
-------------
- ``MissingFieldError`` for a missing account, date or payment method.
- ``InvalidQuantityError`` for a non-positive amount.
- ``RecordNotFoundError`` for an unknown account or document.
"""

from __future__ import annotations

from datetime import date

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.values import to_date, to_decimal
from ledger_kernel.exceptions import InvalidQuantityError, MissingFieldError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services import numbering as series
from ledger_kernel.services.base import StoreBackedService
from ledger_kernel.services.numbering import NumberingService
from ledger_kernel.store import tables
from ledger_kernel.store.protocol import RecordStore
from ledger_modules.accounts.models import AccountKind
from ledger_modules.accounts.service import AccountBalanceLedger
from ledger_modules.payments.models import Payment, Receipt

logger = get_logger("modules.payments.service")


class PaymentsService(StoreBackedService):
    """
    Receipts and payments.

    Usage:
        payments.create_receipt(customer.id, Decimal("60"), date(2024, 1, 5), "cash")
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock,
        numbering: NumberingService,
        accounts: AccountBalanceLedger,
    ):
        super().__init__(store, clock)
        self.numbering = numbering
        self.accounts = accounts

    def create_receipt(
        self,
        customer_id: str,
        amount,
        receipt_date: date | str,
        payment_method: str,
        notes: str | None = None,
    ) -> Receipt:
        amount = self._validate(customer_id, "customer_id", "receipt", amount, receipt_date, payment_method)
        self._require(tables.CUSTOMERS, customer_id)
        number = self.numbering.next_number(series.RECEIPT)
        record = self._insert(
            tables.RECEIPTS,
            {
                "receipt_number": number,
                "customer_id": customer_id,
                "date": to_date(receipt_date),
                "amount": amount,
                "payment_method": payment_method,
                "notes": notes,
            },
        )
        self.accounts.recompute_balance(AccountKind.CUSTOMER, customer_id)
        logger.info(
            "receipt_created",
            extra={"receipt_number": number, "customer_id": customer_id, "amount": str(amount)},
        )
        return Receipt.from_record(record)

    def delete_receipt(self, receipt_id: str) -> None:
        receipt = self._require(tables.RECEIPTS, receipt_id)
        self._delete(tables.RECEIPTS, receipt_id)
        self.accounts.recompute_balance(AccountKind.CUSTOMER, receipt["customer_id"])
        logger.info("receipt_deleted", extra={"receipt_number": receipt["receipt_number"]})

    def create_payment(
        self,
        supplier_id: str,
        amount,
        payment_date: date | str,
        payment_method: str,
        notes: str | None = None,
    ) -> Payment:
        amount = self._validate(supplier_id, "supplier_id", "payment", amount, payment_date, payment_method)
        supplier = self._require(tables.SUPPLIERS, supplier_id)
        number = self.numbering.next_number(series.PAYMENT)
        record = self._insert(
            tables.PAYMENTS,
            {
                "payment_number": number,
                "supplier_id": supplier_id,
                "type": "supplier",
                "to_name": supplier.get("name"),
                "date": to_date(payment_date),
                "amount": amount,
                "payment_method": payment_method,
                "notes": notes,
            },
        )
        self.accounts.recompute_balance(AccountKind.SUPPLIER, supplier_id)
        logger.info(
            "payment_created",
            extra={"payment_number": number, "supplier_id": supplier_id, "amount": str(amount)},
        )
        return Payment.from_record(record)

    def delete_payment(self, payment_id: str) -> None:
        payment = self._require(tables.PAYMENTS, payment_id)
        self._delete(tables.PAYMENTS, payment_id)
        self.accounts.recompute_balance(AccountKind.SUPPLIER, payment["supplier_id"])
        logger.info("payment_deleted", extra={"payment_number": payment["payment_number"]})

    @staticmethod
    def _validate(account_id, field_name, document, amount, when, payment_method):
        if not account_id:
            raise MissingFieldError(field_name, document)
        if not when:
            raise MissingFieldError("date", document)
        if not payment_method:
            raise MissingFieldError("payment_method", document)
        amount = to_decimal(amount, "amount")
        if amount <= 0:
            raise InvalidQuantityError("amount", amount, "must be positive")
        return amount
