"""Tests for customer receipts and supplier payments."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.exceptions import InvalidQuantityError, MissingFieldError, RecordNotFoundError
from ledger_modules.accounts import AccountKind

DAY = date(2024, 1, 5)


class TestReceipts:

    def test_create_receipt(self, engine, customer):
        receipt = engine.payments.create_receipt(customer.id, Decimal("60"), DAY, "cash", notes="counter")

        assert receipt.receipt_number == "REC-2024-001"
        assert receipt.amount == Decimal("60")
        assert engine.accounts.get_account(AccountKind.CUSTOMER, customer.id).balance == Decimal("-60")

    def test_delete_receipt(self, engine, customer):
        receipt = engine.payments.create_receipt(customer.id, Decimal("60"), DAY, "cash")

        engine.payments.delete_receipt(receipt.id)

        assert engine.accounts.get_account(AccountKind.CUSTOMER, customer.id).balance == Decimal("0")

    @pytest.mark.parametrize("amount", [0, -5])
    def test_amount_must_be_positive(self, engine, customer, amount):
        with pytest.raises(InvalidQuantityError):
            engine.payments.create_receipt(customer.id, amount, DAY, "cash")

    def test_payment_method_required(self, engine, customer):
        with pytest.raises(MissingFieldError) as exc_info:
            engine.payments.create_receipt(customer.id, Decimal("1"), DAY, "")

        assert exc_info.value.field_name == "payment_method"

    def test_unknown_customer(self, engine):
        with pytest.raises(RecordNotFoundError):
            engine.payments.create_receipt("missing", Decimal("1"), DAY, "cash")


class TestPayments:

    def test_create_payment(self, engine, supplier):
        payment = engine.payments.create_payment(supplier.id, Decimal("25"), DAY, "bank")

        assert payment.payment_number == "PAY-2024-001"
        assert payment.to_name == "Delta Mills"
        assert engine.accounts.get_account(AccountKind.SUPPLIER, supplier.id).balance == Decimal("-25")

    def test_delete_payment(self, engine, supplier):
        payment = engine.payments.create_payment(supplier.id, Decimal("25"), DAY, "bank")

        engine.payments.delete_payment(payment.id)

        assert engine.accounts.get_account(AccountKind.SUPPLIER, supplier.id).balance == Decimal("0")

    def test_date_required(self, engine, supplier):
        with pytest.raises(MissingFieldError):
            engine.payments.create_payment(supplier.id, Decimal("25"), None, "bank")
