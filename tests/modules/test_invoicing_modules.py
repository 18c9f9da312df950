"""
Tests for the sales and purchasing modules.

Covers:
- Header totals (tax, shipping, discount, paid, remaining)
- Stock effects of unlinked sales and purchases
- Edits undoing old lines before applying new ones
- Payments against invoices
- Deletion restoring stock and balances
- A failed line insert leaving stock untouched
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.values import Unit
from ledger_kernel.exceptions import (
    InvalidQuantityError,
    MissingFieldError,
    RecordNotFoundError,
    StoreFailureError,
)
from ledger_kernel.store import tables
from ledger_modules._document_lines import LineInput, compute_totals
from ledger_modules.accounts import AccountKind
from ledger_modules.sales import InvoiceStatus

DAY = date(2024, 1, 8)


def _line(product, quantity, price="2.50", unit=Unit.SMALLEST):
    return LineInput(product.id, Decimal(quantity), unit, Decimal(price))


class TestInvoiceTotals:
    """Header money figures."""

    def test_totals(self, product):
        totals = compute_totals(
            [_line(product, "10", "10")],
            tax_rate=Decimal("15"),
            shipping=Decimal("5"),
            discount=Decimal("20"),
            paid=Decimal("50"),
        )

        assert totals.subtotal == Decimal("100")
        assert totals.tax_amount == Decimal("15")
        assert totals.total == Decimal("100")
        assert totals.remaining == Decimal("50")

    def test_negative_discount_rejected(self, product):
        with pytest.raises(InvalidQuantityError):
            compute_totals([_line(product, "1")], discount=Decimal("-1"))


class TestSalesInvoices:
    """Unlinked sales move stock directly."""

    def test_create_moves_stock(self, engine, product, customer, stock_events):
        invoice = engine.sales.create_invoice(customer.id, [_line(product, "30")], DAY)

        assert invoice.invoice_number == "INV-2024-001"
        assert invoice.status is InvoiceStatus.PENDING
        assert invoice.total == Decimal("75.00")
        assert invoice.is_linked is False
        assert engine.stock_ledger.current_stock(product.id) == Decimal("70")
        assert stock_events == [{"product_id": product.id}]

    def test_largest_unit_line(self, engine, product, customer):
        engine.sales.create_invoice(customer.id, [_line(product, "2", "30", Unit.LARGEST)], DAY)

        assert engine.stock_ledger.current_stock(product.id) == Decimal("76")

    def test_mapping_lines_accepted(self, engine, product, customer):
        invoice = engine.sales.create_invoice(
            customer.id, [{"product_id": product.id, "quantity": "3", "price": "1.5"}], DAY
        )

        assert invoice.items[0].total == Decimal("4.5")

    def test_create_delivered(self, engine, product, customer):
        engine.sales.create_invoice(customer.id, [_line(product, "4")], DAY, status="delivered")

        assert engine.accounts.get_account(AccountKind.CUSTOMER, customer.id).balance == Decimal("10.00")

    def test_validation_before_write(self, engine, product, customer):
        with pytest.raises(InvalidQuantityError):
            engine.sales.create_invoice(customer.id, [_line(product, "0")], DAY)
        with pytest.raises(MissingFieldError):
            engine.sales.create_invoice("", [_line(product, "1")], DAY)
        with pytest.raises(RecordNotFoundError):
            engine.sales.create_invoice(customer.id, [LineInput("missing", Decimal("1"))], DAY)

        assert engine.sales.list_invoices() == []
        assert engine.stock_ledger.current_stock(product.id) == Decimal("100")

    def test_item_insert_failure_stops_stock_moves(self, engine, store, product, customer, stock_events):
        store.fail_next("insert", tables.SALES_INVOICE_ITEMS)

        with pytest.raises(StoreFailureError) as exc_info:
            engine.sales.create_invoice(
                customer.id, [_line(product, "3"), _line(product, "4", unit=Unit.LARGEST)], DAY
            )

        assert exc_info.value.operation == "insert"
        assert exc_info.value.table == tables.SALES_INVOICE_ITEMS
        assert store.count(tables.SALES_INVOICE_ITEMS) == 0
        assert engine.stock_ledger.current_stock(product.id) == Decimal("100")
        assert stock_events == []

    def test_update_replaces_lines(self, engine, product, customer):
        invoice = engine.sales.create_invoice(customer.id, [_line(product, "30")], DAY)

        updated = engine.sales.update_invoice(invoice.id, items=[_line(product, "10")])

        assert engine.stock_ledger.current_stock(product.id) == Decimal("90")
        assert [i.quantity for i in updated.items] == [Decimal("10")]
        assert updated.total == Decimal("25.00")

    def test_update_moves_customer(self, engine, product, customer):
        other = engine.accounts.create_customer("Blue Nile")
        invoice = engine.sales.create_invoice(customer.id, [_line(product, "4")], DAY, status="delivered")

        engine.sales.update_invoice(invoice.id, customer_id=other.id)

        assert engine.accounts.get_account(AccountKind.CUSTOMER, customer.id).balance == Decimal("0")
        assert engine.accounts.get_account(AccountKind.CUSTOMER, other.id).balance == Decimal("10.00")
        assert engine.stock_ledger.current_stock(product.id) == Decimal("96")

    def test_update_linked_invoice_within_note(self, engine, product, customer):
        """Editing a linked invoice credits its own reservation first."""
        note = engine.consignment.create_note([_line(product, "20")], DAY, "Sami")
        invoice = engine.sales.create_invoice(
            customer.id, [_line(product, "15")], DAY, delivery_note_id=note.id
        )

        engine.sales.update_invoice(invoice.id, items=[_line(product, "20")])

        item = engine.consignment.get_note(note.id).items[0]
        assert item.reserved_quantity == Decimal("20")
        assert item.available_quantity == Decimal("0")
        assert engine.stock_ledger.current_stock(product.id) == Decimal("100")

    def test_record_payment(self, engine, product, customer):
        invoice = engine.sales.create_invoice(customer.id, [_line(product, "4")], DAY, status="delivered")

        paid = engine.sales.record_payment(invoice.id, Decimal("4"))

        assert paid.paid == Decimal("4")
        assert paid.remaining == Decimal("6.00")
        assert engine.accounts.get_account(AccountKind.CUSTOMER, customer.id).balance == Decimal("6.00")

    def test_record_payment_must_be_positive(self, engine, product, customer):
        invoice = engine.sales.create_invoice(customer.id, [_line(product, "4")], DAY)

        with pytest.raises(InvalidQuantityError):
            engine.sales.record_payment(invoice.id, 0)

    def test_delete_restores_stock(self, engine, product, customer):
        invoice = engine.sales.create_invoice(customer.id, [_line(product, "30")], DAY, status="delivered")

        engine.sales.delete_invoice(invoice.id)

        assert engine.stock_ledger.current_stock(product.id) == Decimal("100")
        assert engine.accounts.get_account(AccountKind.CUSTOMER, customer.id).balance == Decimal("0")
        assert engine.store.get_all("sales_invoice_items") == []

    def test_list_by_note(self, engine, product, customer):
        note = engine.consignment.create_note([_line(product, "20")], DAY, "Sami")
        linked = engine.sales.create_invoice(customer.id, [_line(product, "1")], DAY, delivery_note_id=note.id)
        engine.sales.create_invoice(customer.id, [_line(product, "1")], DAY)

        assert [i.id for i in engine.sales.list_invoices(delivery_note_id=note.id)] == [linked.id]
        assert len(engine.sales.list_invoices(customer_id=customer.id)) == 2


class TestPurchaseInvoices:
    """Purchases add stock and raise the supplier balance."""

    def test_create(self, engine, product, supplier):
        invoice = engine.purchasing.create_invoice(
            supplier.id, [_line(product, "50", "1.20")], DAY, paid=Decimal("10")
        )

        assert invoice.invoice_number == "PUR-2024-001"
        assert invoice.remaining == Decimal("50.00")
        assert engine.stock_ledger.current_stock(product.id) == Decimal("150")
        assert engine.accounts.get_account(AccountKind.SUPPLIER, supplier.id).balance == Decimal("50.00")

    def test_update_quantity(self, engine, product, supplier):
        invoice = engine.purchasing.create_invoice(supplier.id, [_line(product, "50", "1")], DAY)

        engine.purchasing.update_invoice(invoice.id, items=[_line(product, "20", "1")])

        assert engine.stock_ledger.current_stock(product.id) == Decimal("120")
        assert engine.accounts.get_account(AccountKind.SUPPLIER, supplier.id).balance == Decimal("20")

    def test_record_payment(self, engine, product, supplier):
        invoice = engine.purchasing.create_invoice(supplier.id, [_line(product, "10", "1")], DAY)

        assert engine.purchasing.record_payment(invoice.id, Decimal("4")).remaining == Decimal("6")

    def test_delete(self, engine, product, supplier):
        invoice = engine.purchasing.create_invoice(supplier.id, [_line(product, "50", "1")], DAY)

        engine.purchasing.delete_invoice(invoice.id)

        assert engine.stock_ledger.current_stock(product.id) == Decimal("100")
        assert engine.purchasing.list_invoices(supplier.id) == []
        assert engine.accounts.get_account(AccountKind.SUPPLIER, supplier.id).balance == Decimal("0")

    def test_unknown_supplier(self, engine, product, customer):
        with pytest.raises(RecordNotFoundError):
            engine.purchasing.create_invoice(customer.id, [_line(product, "1")], DAY)
