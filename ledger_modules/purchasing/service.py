"""
Purchasing Service (``ledger_modules.purchasing.service``).

Responsibility
--------------
Purchase invoices and their effects: each line is a purchase movement
(``+qty``) and the supplier balance is recomputed after every change.
Edits and deletes apply the inverse movement of the old lines first.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date

from ledger_engines.stock_movement import MovementKind, StockMovement
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.values import to_date, to_decimal
from ledger_kernel.exceptions import InvalidQuantityError, MissingFieldError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services import numbering as series
from ledger_kernel.services.base import StoreBackedService
from ledger_kernel.services.numbering import NumberingService
from ledger_kernel.store import tables
from ledger_kernel.store.protocol import Record, RecordStore
from ledger_modules._document_lines import InvoiceLine, LineInput, coerce_lines, compute_totals
from ledger_modules.accounts.models import AccountKind
from ledger_modules.accounts.service import AccountBalanceLedger
from ledger_modules.inventory.stock_ledger import StockLedger
from ledger_modules.purchasing.models import PurchaseInvoice

logger = get_logger("modules.purchasing.service")


class PurchasingService(StoreBackedService):
    """
    Purchase invoices.

    Usage:
        purchasing.create_invoice(
            supplier.id,
            [LineInput(product.id, Decimal("50"), price=Decimal("1.20"))],
            invoice_date=date(2024, 3, 1),
        )
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock,
        stock_ledger: StockLedger,
        numbering: NumberingService,
        accounts: AccountBalanceLedger,
    ):
        super().__init__(store, clock)
        self.stock_ledger = stock_ledger
        self.numbering = numbering
        self.accounts = accounts

    def get_invoice(self, invoice_id: str) -> PurchaseInvoice:
        return PurchaseInvoice.from_record(
            self._require(tables.PURCHASE_INVOICES, invoice_id), self._lines(invoice_id)
        )

    def list_invoices(self, supplier_id: str | None = None) -> list[PurchaseInvoice]:
        criteria = {"supplier_id": supplier_id} if supplier_id else None
        return [
            PurchaseInvoice.from_record(r, self._lines(r["id"]))
            for r in self.store.get_all(tables.PURCHASE_INVOICES, criteria)
        ]

    def _lines(self, invoice_id: str) -> list[Record]:
        return self.store.get_all(tables.PURCHASE_INVOICE_ITEMS, {"invoice_id": invoice_id})

    def create_invoice(
        self,
        supplier_id: str,
        items: Iterable[LineInput | Mapping],
        invoice_date: date | str,
        paid=0,
        tax_rate=0,
        shipping=0,
        discount=0,
        due_date: date | str | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
    ) -> PurchaseInvoice:
        if not supplier_id:
            raise MissingFieldError("supplier_id", "purchase invoice")
        if not invoice_date:
            raise MissingFieldError("date", "purchase invoice")
        self._require(tables.SUPPLIERS, supplier_id)
        lines = coerce_lines(items, "purchase invoice")
        totals = compute_totals(lines, tax_rate, shipping, discount, paid)
        products = self._load_products(lines)

        number = self.numbering.next_number(series.PURCHASE_INVOICE)
        record = self._insert(
            tables.PURCHASE_INVOICES,
            {
                "invoice_number": number,
                "supplier_id": supplier_id,
                "date": to_date(invoice_date),
                "due_date": to_date(due_date) if due_date else None,
                **totals.as_record(),
                "payment_method": payment_method,
                "notes": notes,
            },
        )
        self._apply_lines(record["id"], lines, products)
        self.accounts.recompute_balance(AccountKind.SUPPLIER, supplier_id)
        self.stock_ledger.notify_changed(line.product_id for line in lines)

        logger.info(
            "purchase_invoice_created",
            extra={
                "invoice_id": record["id"],
                "invoice_number": number,
                "supplier_id": supplier_id,
                "total": str(totals.total),
                "line_count": len(lines),
            },
        )
        return self.get_invoice(record["id"])

    def update_invoice(
        self,
        invoice_id: str,
        items: Iterable[LineInput | Mapping] | None = None,
        supplier_id: str | None = None,
        invoice_date: date | str | None = None,
        paid=None,
        tax_rate=None,
        shipping=None,
        discount=None,
        notes: str | None = None,
    ) -> PurchaseInvoice:
        """Reverse the old lines, replace them, and recompute the header totals."""
        old = self._require(tables.PURCHASE_INVOICES, invoice_id)
        old_lines = [InvoiceLine.from_record(r).as_input() for r in self._lines(invoice_id)]
        new_supplier = supplier_id or old["supplier_id"]
        self._require(tables.SUPPLIERS, new_supplier)
        lines = coerce_lines(items, "purchase invoice") if items is not None else old_lines
        totals = compute_totals(
            lines,
            old.get("tax_rate") if tax_rate is None else tax_rate,
            old.get("shipping") if shipping is None else shipping,
            old.get("discount") if discount is None else discount,
            old.get("paid") if paid is None else paid,
        )
        products = self._load_products(lines)

        self._undo_lines(invoice_id, old_lines)
        self._apply_lines(invoice_id, lines, products)
        changes = {**totals.as_record(), "supplier_id": new_supplier}
        if invoice_date is not None:
            changes["date"] = to_date(invoice_date)
        if notes is not None:
            changes["notes"] = notes
        self._update(tables.PURCHASE_INVOICES, invoice_id, changes)

        self.accounts.recompute_balance(AccountKind.SUPPLIER, new_supplier)
        if new_supplier != old["supplier_id"]:
            self.accounts.recompute_balance(AccountKind.SUPPLIER, old["supplier_id"])
        self.stock_ledger.notify_changed(
            [line.product_id for line in old_lines] + [line.product_id for line in lines]
        )
        logger.info(
            "purchase_invoice_updated",
            extra={
                "invoice_id": invoice_id,
                "invoice_number": old["invoice_number"],
                "total": str(totals.total),
            },
        )
        return self.get_invoice(invoice_id)

    def record_payment(self, invoice_id: str, amount) -> PurchaseInvoice:
        amount = to_decimal(amount, "amount")
        if amount <= 0:
            raise InvalidQuantityError("amount", amount, "must be positive")
        invoice = self._require(tables.PURCHASE_INVOICES, invoice_id)
        paid = to_decimal(invoice.get("paid")) + amount
        self._update(
            tables.PURCHASE_INVOICES,
            invoice_id,
            {"paid": paid, "remaining": to_decimal(invoice.get("total")) - paid},
        )
        self.accounts.recompute_balance(AccountKind.SUPPLIER, invoice["supplier_id"])
        logger.info(
            "purchase_invoice_payment_recorded",
            extra={"invoice_id": invoice_id, "amount": str(amount), "paid": str(paid)},
        )
        return self.get_invoice(invoice_id)

    def delete_invoice(self, invoice_id: str) -> None:
        invoice = self._require(tables.PURCHASE_INVOICES, invoice_id)
        lines = [InvoiceLine.from_record(r).as_input() for r in self._lines(invoice_id)]
        self._undo_lines(invoice_id, lines)
        self._delete(tables.PURCHASE_INVOICES, invoice_id)
        self.accounts.recompute_balance(AccountKind.SUPPLIER, invoice["supplier_id"])
        self.stock_ledger.notify_changed(line.product_id for line in lines)
        logger.info(
            "purchase_invoice_deleted",
            extra={"invoice_id": invoice_id, "invoice_number": invoice["invoice_number"]},
        )

    def _load_products(self, lines: list[LineInput]) -> dict[str, Record]:
        return {line.product_id: self._require(tables.PRODUCTS, line.product_id) for line in lines}

    def _apply_lines(
        self, invoice_id: str, lines: list[LineInput], products: Mapping[str, Record]
    ) -> None:
        for line in lines:
            self._insert(
                tables.PURCHASE_INVOICE_ITEMS,
                {
                    "invoice_id": invoice_id,
                    "product_id": line.product_id,
                    "product_name": products[line.product_id].get("name") or "",
                    "unit": line.unit.value,
                    "quantity": line.quantity,
                    "price": line.price,
                    "total": line.total,
                },
            )
            self.stock_ledger.apply(
                line.product_id,
                StockMovement(MovementKind.PURCHASE, line.quantity, line.unit),
                notify=False,
            )

    def _undo_lines(self, invoice_id: str, lines: list[LineInput]) -> None:
        for line in lines:
            self.stock_ledger.reverse(
                line.product_id,
                StockMovement(MovementKind.PURCHASE, line.quantity, line.unit),
                notify=False,
            )
        for record in self._lines(invoice_id):
            self._delete(tables.PURCHASE_INVOICE_ITEMS, record["id"])
