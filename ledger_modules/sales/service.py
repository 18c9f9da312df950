"""
Sales Service (``ledger_modules.sales.service``).

Responsibility
--------------
Sales invoices: creation, edit, delivery, payment and deletion, with their
stock and customer-balance effects.

Architecture
------------
Layer: **Modules**.  Unlinked invoices move stock through ``StockLedger``;
invoices linked to a delivery note reserve quantity on the note through
``ConsignmentService`` and leave stock alone until the note is settled.

Invariants
----------
- ``remaining == total - paid`` on every stored invoice.
- Edits and deletes first undo what the invoice did (inverse sale movement
  or reservation release), then apply the new state.
- The customer balance is recomputed after every change.

Failure Modes
-------------
- ``MissingFieldError`` / ``InvalidQuantityError`` on invalid input.
- ``DeliveryNoteLockedError`` / ``NoteQuantityExceededError`` when a linked
  invoice cannot be covered by its note.  Raised before any write.
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
from ledger_modules.consignment.service import ConsignmentService
from ledger_modules.inventory.stock_ledger import StockLedger
from ledger_modules.sales.models import InvoiceStatus, SalesInvoice

logger = get_logger("modules.sales.service")

_KEEP = object()


class SalesService(StoreBackedService):
    """
    Sales invoices.

    Usage:
        invoice = sales.create_invoice(
            customer.id,
            [LineInput(product.id, Decimal("30"), price=Decimal("2.50"))],
            invoice_date=date(2024, 3, 1),
        )
        sales.mark_delivered(invoice.id)
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock,
        stock_ledger: StockLedger,
        numbering: NumberingService,
        accounts: AccountBalanceLedger,
        consignment: ConsignmentService,
    ):
        super().__init__(store, clock)
        self.stock_ledger = stock_ledger
        self.numbering = numbering
        self.accounts = accounts
        self.consignment = consignment

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_invoice(self, invoice_id: str) -> SalesInvoice:
        return SalesInvoice.from_record(
            self._require(tables.SALES_INVOICES, invoice_id), self._lines(invoice_id)
        )

    def list_invoices(
        self,
        customer_id: str | None = None,
        delivery_note_id: str | None = None,
    ) -> list[SalesInvoice]:
        criteria = {}
        if customer_id:
            criteria["customer_id"] = customer_id
        if delivery_note_id:
            criteria["delivery_note_id"] = delivery_note_id
        return [
            SalesInvoice.from_record(r, self._lines(r["id"]))
            for r in self.store.get_all(tables.SALES_INVOICES, criteria or None)
        ]

    def _lines(self, invoice_id: str) -> list[Record]:
        return self.store.get_all(tables.SALES_INVOICE_ITEMS, {"invoice_id": invoice_id})

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_invoice(
        self,
        customer_id: str,
        items: Iterable[LineInput | Mapping],
        invoice_date: date | str,
        status: InvoiceStatus | str = InvoiceStatus.PENDING,
        paid=0,
        tax_rate=0,
        shipping=0,
        discount=0,
        delivery_note_id: str | None = None,
        due_date: date | str | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
    ) -> SalesInvoice:
        """
        Post a sales invoice.

        Unlinked: each line is a sale movement.  Linked: each line is
        reserved on the matching note item and stock is unchanged.
        """
        if not customer_id:
            raise MissingFieldError("customer_id", "sales invoice")
        if not invoice_date:
            raise MissingFieldError("date", "sales invoice")
        self._require(tables.CUSTOMERS, customer_id)
        the_status = InvoiceStatus(status)
        lines = coerce_lines(items, "sales invoice")
        totals = compute_totals(lines, tax_rate, shipping, discount, paid)
        products = self._load_products(lines)
        if delivery_note_id:
            self.consignment.check_reservation(delivery_note_id, lines)

        number = self.numbering.next_number(series.SALES_INVOICE)
        record = self._insert(
            tables.SALES_INVOICES,
            {
                "invoice_number": number,
                "customer_id": customer_id,
                "date": to_date(invoice_date),
                "due_date": to_date(due_date) if due_date else None,
                "status": the_status.value,
                **totals.as_record(),
                "delivery_note_id": delivery_note_id,
                "payment_method": payment_method,
                "notes": notes,
            },
        )
        self._apply_lines(record["id"], delivery_note_id, lines, products)
        self.accounts.recompute_balance(AccountKind.CUSTOMER, customer_id)
        if not delivery_note_id:
            self.stock_ledger.notify_changed(line.product_id for line in lines)

        logger.info(
            "sales_invoice_created",
            extra={
                "invoice_id": record["id"],
                "invoice_number": number,
                "customer_id": customer_id,
                "delivery_note_id": delivery_note_id,
                "total": str(totals.total),
                "line_count": len(lines),
            },
        )
        return self.get_invoice(record["id"])

    def update_invoice(
        self,
        invoice_id: str,
        items: Iterable[LineInput | Mapping] | None = None,
        customer_id: str | None = None,
        invoice_date: date | str | None = None,
        paid=None,
        tax_rate=None,
        shipping=None,
        discount=None,
        delivery_note_id=_KEEP,
        notes: str | None = None,
    ) -> SalesInvoice:
        """
        Edit an invoice.  The old lines are undone (inverse sale or
        reservation release), deleted, and the new lines applied as on
        create.  Omitted arguments keep their stored values.
        """
        old = self._require(tables.SALES_INVOICES, invoice_id)
        old_lines = [InvoiceLine.from_record(r).as_input() for r in self._lines(invoice_id)]
        old_note = old.get("delivery_note_id")
        new_note = old_note if delivery_note_id is _KEEP else delivery_note_id
        new_customer = customer_id or old["customer_id"]
        self._require(tables.CUSTOMERS, new_customer)
        lines = coerce_lines(items, "sales invoice") if items is not None else old_lines
        totals = compute_totals(
            lines,
            old.get("tax_rate") if tax_rate is None else tax_rate,
            old.get("shipping") if shipping is None else shipping,
            old.get("discount") if discount is None else discount,
            old.get("paid") if paid is None else paid,
        )
        products = self._load_products(lines)
        if new_note:
            self.consignment.check_reservation(
                new_note, lines, credit=old_lines if new_note == old_note else ()
            )

        self._undo_lines(invoice_id, old_note, old_lines)
        self._apply_lines(invoice_id, new_note, lines, products)
        changes = {
            **totals.as_record(),
            "customer_id": new_customer,
            "delivery_note_id": new_note,
        }
        if invoice_date is not None:
            changes["date"] = to_date(invoice_date)
        if notes is not None:
            changes["notes"] = notes
        self._update(tables.SALES_INVOICES, invoice_id, changes)

        self.accounts.recompute_balance(AccountKind.CUSTOMER, new_customer)
        if new_customer != old["customer_id"]:
            self.accounts.recompute_balance(AccountKind.CUSTOMER, old["customer_id"])
        self.stock_ledger.notify_changed(
            [line.product_id for line in old_lines if not old_note]
            + [line.product_id for line in lines if not new_note]
        )

        logger.info(
            "sales_invoice_updated",
            extra={
                "invoice_id": invoice_id,
                "invoice_number": old["invoice_number"],
                "total": str(totals.total),
                "line_count": len(lines),
            },
        )
        return self.get_invoice(invoice_id)

    def mark_delivered(self, invoice_id: str) -> SalesInvoice:
        """Set the delivery status to ``delivered``; the invoice now counts as owed."""
        invoice = self._require(tables.SALES_INVOICES, invoice_id)
        self._update(tables.SALES_INVOICES, invoice_id, {"status": InvoiceStatus.DELIVERED.value})
        self.accounts.recompute_balance(AccountKind.CUSTOMER, invoice["customer_id"])
        logger.info(
            "sales_invoice_delivered",
            extra={"invoice_id": invoice_id, "invoice_number": invoice["invoice_number"]},
        )
        return self.get_invoice(invoice_id)

    def record_payment(self, invoice_id: str, amount) -> SalesInvoice:
        """Add ``amount`` to ``paid`` and lower ``remaining`` by the same."""
        amount = to_decimal(amount, "amount")
        if amount <= 0:
            raise InvalidQuantityError("amount", amount, "must be positive")
        invoice = self._require(tables.SALES_INVOICES, invoice_id)
        paid = to_decimal(invoice.get("paid")) + amount
        self._update(
            tables.SALES_INVOICES,
            invoice_id,
            {"paid": paid, "remaining": to_decimal(invoice.get("total")) - paid},
        )
        self.accounts.recompute_balance(AccountKind.CUSTOMER, invoice["customer_id"])
        logger.info(
            "sales_invoice_payment_recorded",
            extra={"invoice_id": invoice_id, "amount": str(amount), "paid": str(paid)},
        )
        return self.get_invoice(invoice_id)

    def delete_invoice(self, invoice_id: str) -> None:
        """Undo the invoice's stock or reservation effect, then delete it."""
        invoice = self._require(tables.SALES_INVOICES, invoice_id)
        note_id = invoice.get("delivery_note_id")
        lines = [InvoiceLine.from_record(r).as_input() for r in self._lines(invoice_id)]
        self._undo_lines(invoice_id, note_id, lines)
        self._delete(tables.SALES_INVOICES, invoice_id)
        self.accounts.recompute_balance(AccountKind.CUSTOMER, invoice["customer_id"])
        if not note_id:
            self.stock_ledger.notify_changed(line.product_id for line in lines)
        logger.info(
            "sales_invoice_deleted",
            extra={
                "invoice_id": invoice_id,
                "invoice_number": invoice["invoice_number"],
                "delivery_note_id": note_id,
            },
        )

    # ------------------------------------------------------------------
    # Line effects
    # ------------------------------------------------------------------

    def _load_products(self, lines: list[LineInput]) -> dict[str, Record]:
        return {line.product_id: self._require(tables.PRODUCTS, line.product_id) for line in lines}

    def _apply_lines(
        self,
        invoice_id: str,
        note_id: str | None,
        lines: list[LineInput],
        products: Mapping[str, Record],
    ) -> None:
        for line in lines:
            self._insert(
                tables.SALES_INVOICE_ITEMS,
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
        if note_id:
            self.consignment.reserve(note_id, lines)
            return
        for line in lines:
            self.stock_ledger.apply(
                line.product_id,
                StockMovement(MovementKind.SALE, line.quantity, line.unit),
                notify=False,
            )

    def _undo_lines(self, invoice_id: str, note_id: str | None, lines: list[LineInput]) -> None:
        if note_id:
            self.consignment.release(note_id, lines)
        else:
            for line in lines:
                self.stock_ledger.reverse(
                    line.product_id,
                    StockMovement(MovementKind.SALE, line.quantity, line.unit),
                    notify=False,
                )
        for record in self._lines(invoice_id):
            self._delete(tables.SALES_INVOICE_ITEMS, record["id"])
