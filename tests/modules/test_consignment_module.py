"""
Tests for the consignment state machine.

Covers:
- Delivery note issue (no stock effect), edit and delete guards
- Reservations by linked invoices
- Settlement guards in order: already settled, duplicate, pending invoices
- Settlement stock effect, difference and reconciliation gap
- Settlement deletion reversing stock and reopening the note
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.values import Unit
from ledger_kernel.exceptions import (
    AlreadySettledError,
    DeliveryNoteLockedError,
    DuplicateSettlementError,
    InsufficientStockError,
    InvalidQuantityError,
    LinkedToInvoiceError,
    MissingFieldError,
    NoteQuantityExceededError,
    PendingInvoicesError,
)
from ledger_kernel.store import tables
from ledger_modules._document_lines import LineInput
from ledger_modules.consignment import ConsignmentConfig, NoteStatus
from ledger_services import LedgerEngine

ISSUE_DAY = date(2024, 1, 10)
SETTLE_DAY = date(2024, 1, 20)


def _issue(engine, product, quantity="20", unit=Unit.SMALLEST):
    return engine.consignment.create_note(
        [LineInput(product.id, Decimal(quantity), unit)],
        note_date=ISSUE_DAY,
        warehouse_keeper_name="Sami",
        sales_rep_name="Hana",
    )


def _sell(engine, note, product, customer, quantity="15", deliver=True):
    invoice = engine.sales.create_invoice(
        customer.id,
        [LineInput(product.id, Decimal(quantity), price=Decimal("2.50"))],
        date(2024, 1, 12),
        delivery_note_id=note.id,
    )
    if deliver:
        engine.sales.mark_delivered(invoice.id)
    return invoice


class TestDeliveryNotes:
    """Issuing goods to a representative."""

    def test_create_note(self, engine, product):
        note = _issue(engine, product)

        assert note.delivery_note_number == "DN-2024-001"
        assert note.status is NoteStatus.ISSUED
        assert note.total_products == 1
        item = note.items[0]
        assert item.reserved_quantity == Decimal("0")
        assert item.available_quantity == Decimal("20")
        assert item.product_name == "Rice 5kg"

    def test_issue_does_not_move_stock(self, engine, product, stock_events):
        _issue(engine, product)

        assert engine.stock_ledger.current_stock(product.id) == Decimal("100")
        assert stock_events == []

    def test_insufficient_stock(self, engine, product):
        """9 cartons of 12 is more than 100 units in stock."""
        with pytest.raises(InsufficientStockError):
            _issue(engine, product, quantity="9", unit=Unit.LARGEST)
        assert engine.consignment.list_notes() == []

    def test_stock_check_can_be_disabled(self, store, clock):
        engine = LedgerEngine(
            store, clock=clock, consignment_config=ConsignmentConfig(check_stock_on_issue=False)
        )
        product = engine.inventory.create_product("Rice", opening_stock=1)

        assert _issue(engine, product, quantity="5").items[0].quantity == Decimal("5")

    def test_missing_warehouse_keeper(self, engine, product):
        with pytest.raises(MissingFieldError):
            engine.consignment.create_note([LineInput(product.id, Decimal("1"))], ISSUE_DAY, " ")

    def test_empty_note(self, engine):
        with pytest.raises(MissingFieldError):
            engine.consignment.create_note([], ISSUE_DAY, "Sami")

    def test_list_notes_by_status(self, engine, product):
        note = _issue(engine, product)

        assert [n.id for n in engine.consignment.list_notes(NoteStatus.ISSUED)] == [note.id]
        assert engine.consignment.list_notes("settled") == []

    def test_edit_replaces_items(self, engine, product):
        note = _issue(engine, product)

        edited = engine.consignment.edit_note(
            note.id, items=[LineInput(product.id, Decimal("1"), Unit.LARGEST)], notes="swap"
        )

        assert len(edited.items) == 1
        assert edited.items[0].unit is Unit.LARGEST
        assert edited.notes == "swap"
        assert engine.store.get_all(tables.DELIVERY_NOTE_ITEMS) == engine.store.get_all(
            tables.DELIVERY_NOTE_ITEMS, {"delivery_note_id": note.id}
        )

    def test_duplicate_lines_merge_into_one_item(self, engine, product, customer):
        note = engine.consignment.create_note(
            [LineInput(product.id, Decimal("10")), LineInput(product.id, Decimal("10"))],
            note_date=ISSUE_DAY,
            warehouse_keeper_name="Sami",
        )
        assert [(i.quantity, i.available_quantity) for i in note.items] == [
            (Decimal("20"), Decimal("20"))
        ]
        assert note.total_products == 1

        _sell(engine, note, product, customer, quantity="15")
        settlement = engine.consignment.create_settlement(note.id, SETTLE_DAY)

        assert [i.sold_quantity for i in settlement.items] == [Decimal("15")]
        assert engine.stock_ledger.current_stock(product.id) == Decimal("85")

    def test_edit_merges_duplicate_lines(self, engine, product):
        note = _issue(engine, product)

        edited = engine.consignment.edit_note(
            note.id,
            items=[
                LineInput(product.id, Decimal("4")),
                LineInput(product.id, Decimal("6")),
                LineInput(product.id, Decimal("1"), Unit.LARGEST),
            ],
        )

        assert sorted((i.unit.value, i.quantity) for i in edited.items) == [
            ("largest", Decimal("1")),
            ("smallest", Decimal("10")),
        ]

    def test_edit_linked_note_refused(self, engine, product, customer):
        note = _issue(engine, product)
        _sell(engine, note, product, customer, deliver=False)

        with pytest.raises(LinkedToInvoiceError):
            engine.consignment.edit_note(note.id, notes="late change")

    def test_edit_settled_note_locked(self, engine, product):
        note = _issue(engine, product)
        engine.consignment.create_settlement(note.id, SETTLE_DAY)

        with pytest.raises(DeliveryNoteLockedError):
            engine.consignment.edit_note(note.id, notes="late change")

    def test_delete_restores_available_quantity(self, engine, product, stock_events):
        note = _issue(engine, product)

        engine.consignment.delete_note(note.id)

        assert engine.stock_ledger.current_stock(product.id) == Decimal("120")
        assert engine.consignment.list_notes() == []
        assert engine.store.get_all(tables.DELIVERY_NOTE_ITEMS) == []
        assert stock_events == [{"product_id": product.id}]

    def test_delete_without_restore(self, store, clock):
        engine = LedgerEngine(
            store, clock=clock, consignment_config=ConsignmentConfig(restore_available_on_delete=False)
        )
        product = engine.inventory.create_product("Rice", opening_stock=100)
        note = _issue(engine, product)

        engine.consignment.delete_note(note.id)

        assert engine.stock_ledger.current_stock(product.id) == Decimal("100")

    def test_delete_linked_note_refused(self, engine, product, customer):
        note = _issue(engine, product)
        _sell(engine, note, product, customer)

        with pytest.raises(LinkedToInvoiceError) as exc_info:
            engine.consignment.delete_note(note.id)

        assert exc_info.value.invoice_numbers == ["INV-2024-001"]

    def test_delete_settled_note_reverses_settlement(self, engine, product):
        note = _issue(engine, product)
        engine.consignment.create_settlement(
            note.id, SETTLE_DAY, returns={(product.id, "smallest"): (Decimal("5"), 0)}
        )
        assert engine.stock_ledger.current_stock(product.id) == Decimal("105")

        engine.consignment.delete_note(note.id)

        # settlement reversed (100), then available 20 added back
        assert engine.stock_ledger.current_stock(product.id) == Decimal("120")
        assert engine.store.get_all(tables.DELIVERY_SETTLEMENTS) == []


class TestReservations:
    """Invoices linked to a note."""

    def test_reserve_moves_available_to_reserved(self, engine, product, customer):
        note = _issue(engine, product)
        _sell(engine, note, product, customer, quantity="15")

        item = engine.consignment.get_note(note.id).items[0]
        assert item.reserved_quantity == Decimal("15")
        assert item.available_quantity == Decimal("5")
        assert engine.stock_ledger.current_stock(product.id) == Decimal("100")

    def test_exceeding_note_refused(self, engine, product, customer):
        note = _issue(engine, product)
        _sell(engine, note, product, customer, quantity="15")

        with pytest.raises(NoteQuantityExceededError) as exc_info:
            _sell(engine, note, product, customer, quantity="6")

        assert exc_info.value.available == Decimal("5")
        assert len(engine.sales.list_invoices()) == 1

    def test_unit_must_match_note_item(self, engine, product, customer):
        note = _issue(engine, product)

        with pytest.raises(NoteQuantityExceededError):
            engine.sales.create_invoice(
                customer.id,
                [LineInput(product.id, Decimal("1"), Unit.LARGEST)],
                date(2024, 1, 12),
                delivery_note_id=note.id,
            )

    def test_settled_note_locked_for_invoicing(self, engine, product, customer):
        note = _issue(engine, product)
        engine.consignment.create_settlement(note.id, SETTLE_DAY)

        with pytest.raises(DeliveryNoteLockedError):
            _sell(engine, note, product, customer, quantity="1")

    def test_release_on_invoice_delete(self, engine, product, customer):
        note = _issue(engine, product)
        invoice = _sell(engine, note, product, customer, quantity="15")

        engine.sales.delete_invoice(invoice.id)

        item = engine.consignment.get_note(note.id).items[0]
        assert item.reserved_quantity == Decimal("0")
        assert item.available_quantity == Decimal("20")

    def test_release_spreads_over_matching_items(self, engine, product, customer):
        """A reservation split over two items comes back without overfilling either."""
        note = _issue(engine, product, quantity="10")
        engine.store.insert(
            tables.DELIVERY_NOTE_ITEMS,
            {
                "delivery_note_id": note.id,
                "product_id": product.id,
                "product_name": product.name,
                "quantity": Decimal("10"),
                "unit": "smallest",
                "reserved_quantity": Decimal("0"),
                "available_quantity": Decimal("10"),
            },
        )
        invoice = _sell(engine, note, product, customer, quantity="15", deliver=False)
        reserved = engine.consignment.get_note(note.id).items
        assert sum(i.reserved_quantity for i in reserved) == Decimal("15")

        engine.sales.delete_invoice(invoice.id)

        items = engine.consignment.get_note(note.id).items
        assert [(i.reserved_quantity, i.available_quantity) for i in items] == [
            (Decimal("0"), Decimal("10")),
            (Decimal("0"), Decimal("10")),
        ]

    def test_release_for_missing_note_is_skipped(self, engine, product, captured_logs):
        engine.consignment.release("gone", [LineInput(product.id, Decimal("1"))])

        assert any(r["message"] == "delivery_note_release_skipped" for r in captured_logs())


class TestSettlementGuards:
    """Guards run before any write, in a fixed order."""

    def test_pending_invoices(self, engine, product, customer):
        note = _issue(engine, product)
        invoice = _sell(engine, note, product, customer, deliver=False)

        with pytest.raises(PendingInvoicesError) as exc_info:
            engine.consignment.create_settlement(note.id, SETTLE_DAY)

        assert exc_info.value.invoice_numbers == [invoice.invoice_number]
        assert engine.store.get_all(tables.DELIVERY_SETTLEMENTS) == []
        assert engine.stock_ledger.current_stock(product.id) == Decimal("100")

    def test_already_settled(self, engine, product):
        note = _issue(engine, product)
        engine.consignment.create_settlement(note.id, SETTLE_DAY)

        with pytest.raises(AlreadySettledError):
            engine.consignment.create_settlement(note.id, SETTLE_DAY)

    def test_duplicate_settlement(self, engine, product, store):
        """A settlement row without the status flip still blocks a second one."""
        note = _issue(engine, product)
        settlement = engine.consignment.create_settlement(note.id, SETTLE_DAY)
        store.update(tables.DELIVERY_NOTES, note.id, {"status": "issued"})

        with pytest.raises(DuplicateSettlementError) as exc_info:
            engine.consignment.create_settlement(note.id, SETTLE_DAY)

        assert exc_info.value.settlement_number == settlement.settlement_number

    def test_negative_returned_quantity(self, engine, product):
        note = _issue(engine, product)

        with pytest.raises(InvalidQuantityError):
            engine.consignment.create_settlement(
                note.id, SETTLE_DAY, returns={(product.id, "smallest"): (Decimal("-1"), 0)}
            )
        assert engine.consignment.get_note(note.id).status is NoteStatus.ISSUED

    def test_returns_for_item_not_on_note(self, engine, product):
        note = _issue(engine, product)

        with pytest.raises(InvalidQuantityError) as exc_info:
            engine.consignment.create_settlement(
                note.id, SETTLE_DAY, returns={(product.id, Unit.LARGEST): (Decimal("2"), 0)}
            )

        assert exc_info.value.field_name == "returns"
        assert engine.store.get_all(tables.DELIVERY_SETTLEMENTS) == []
        assert engine.consignment.get_note(note.id).status is NoteStatus.ISSUED
        assert engine.stock_ledger.current_stock(product.id) == Decimal("100")

    def test_missing_date(self, engine, product):
        note = _issue(engine, product)

        with pytest.raises(MissingFieldError):
            engine.consignment.create_settlement(note.id, None)


class TestSettlement:
    """Settlement effect and reversal."""

    def test_settlement_moves_stock(self, engine, product, customer, stock_events):
        note = _issue(engine, product)
        _sell(engine, note, product, customer, quantity="15")

        settlement = engine.consignment.create_settlement(
            note.id, SETTLE_DAY, returns={(product.id, Unit.SMALLEST): (Decimal("5"), Decimal("0"))}
        )

        assert settlement.settlement_number == "STL-2024-001"
        assert settlement.status == "completed"
        assert settlement.sales_rep_name == "Hana"
        item = settlement.items[0]
        assert (item.issued_quantity, item.sold_quantity, item.returned_quantity) == (
            Decimal("20"),
            Decimal("15"),
            Decimal("5"),
        )
        assert item.difference == Decimal("5")
        assert item.is_reconciled is True
        assert engine.stock_ledger.current_stock(product.id) == Decimal("90")
        assert engine.consignment.get_note(note.id).status is NoteStatus.SETTLED
        assert stock_events == [{"product_id": product.id}]

    def test_difference_ignores_returns(self, engine, product, customer):
        """difference stays issued - sold; the gap shows what is unaccounted."""
        note = _issue(engine, product)
        _sell(engine, note, product, customer, quantity="12")

        settlement = engine.consignment.create_settlement(
            note.id, SETTLE_DAY, returns={(product.id, "smallest"): (Decimal("3"), Decimal("2"))}
        )

        item = settlement.items[0]
        assert item.difference == Decimal("8")
        assert item.reconciliation_gap == Decimal("3")
        assert settlement.unreconciled_items == (item,)

    def test_reconciliation_report_logs_gaps(self, engine, product, customer, captured_logs):
        note = _issue(engine, product)
        _sell(engine, note, product, customer, quantity="12")
        settlement = engine.consignment.create_settlement(note.id, SETTLE_DAY)

        gaps = engine.consignment.reconciliation_report(settlement.id)

        assert [g.reconciliation_gap for g in gaps] == [Decimal("8")]
        warnings = [r for r in captured_logs() if r["message"] == "settlement_reconciliation_gap"]
        assert warnings[0]["gap"] == "8"

    def test_sold_sums_all_linked_invoices(self, engine, product, customer):
        note = _issue(engine, product)
        _sell(engine, note, product, customer, quantity="4")
        _sell(engine, note, product, customer, quantity="6")

        settlement = engine.consignment.create_settlement(note.id, SETTLE_DAY)

        assert settlement.items[0].sold_quantity == Decimal("10")
        assert engine.stock_ledger.current_stock(product.id) == Decimal("90")

    def test_settlement_in_largest_unit(self, engine, product, customer):
        note = _issue(engine, product, quantity="2", unit=Unit.LARGEST)
        engine.sales.mark_delivered(
            engine.sales.create_invoice(
                customer.id,
                [LineInput(product.id, Decimal("1"), Unit.LARGEST, Decimal("30"))],
                date(2024, 1, 12),
                delivery_note_id=note.id,
            ).id
        )

        engine.consignment.create_settlement(note.id, SETTLE_DAY)

        assert engine.stock_ledger.current_stock(product.id) == Decimal("88")

    def test_configured_settlement_status(self, store, clock):
        engine = LedgerEngine(
            store, clock=clock, consignment_config=ConsignmentConfig(settlement_status="pending")
        )
        product = engine.inventory.create_product("Rice", opening_stock=50)
        note = _issue(engine, product, quantity="5")

        assert engine.consignment.create_settlement(note.id, SETTLE_DAY).status == "pending"

    def test_delete_settlement_reverses(self, engine, product, customer):
        note = _issue(engine, product)
        _sell(engine, note, product, customer, quantity="15")
        settlement = engine.consignment.create_settlement(
            note.id, SETTLE_DAY, returns={(product.id, "smallest"): (Decimal("5"), 0)}
        )

        engine.consignment.delete_settlement(settlement.id)

        assert engine.stock_ledger.current_stock(product.id) == Decimal("100")
        assert engine.consignment.get_note(note.id).status is NoteStatus.ISSUED
        assert engine.consignment.settlements_for_note(note.id) == []
        assert engine.store.get_all(tables.SETTLEMENT_ITEMS) == []

    def test_resettle_after_delete(self, engine, product):
        note = _issue(engine, product)
        first = engine.consignment.create_settlement(note.id, SETTLE_DAY)
        engine.consignment.delete_settlement(first.id)

        second = engine.consignment.create_settlement(note.id, SETTLE_DAY)

        assert second.settlement_number == "STL-2024-002"
