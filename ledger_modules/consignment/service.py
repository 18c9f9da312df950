"""
Consignment Service (``ledger_modules.consignment.service``).

Responsibility
--------------
Runs the delivery note lifecycle: goods are issued to a sales
representative on a note (no stock effect), sold through sales invoices
linked to the note, and settled once every linked invoice is delivered.
Settlement is the moment stock moves: sold quantities leave, returned and
rejected quantities come back.

Architecture
------------
Layer: **Modules**.  Status changes are checked against
``DELIVERY_NOTE_WORKFLOW``; stock changes go through ``StockLedger`` as
settlement movements so they can be reversed exactly.

Invariants
----------
- A note has at most one settlement.
- A settlement exists only for a note whose linked invoices are all
  delivered.
- ``delete_settlement`` applies the exact inverse of what
  ``create_settlement`` applied and returns the note to ``issued``.
- Every guard runs before the first write.

Failure Modes
-------------
- ``AlreadySettledError``, ``DuplicateSettlementError``,
  ``PendingInvoicesError`` from ``create_settlement`` (in that order).
- ``DeliveryNoteLockedError`` / ``LinkedToInvoiceError`` from ``edit_note``.
- ``LinkedToInvoiceError`` from ``delete_note``.
- ``NoteQuantityExceededError`` when an invoice asks for more than the
  note has available.
- ``InsufficientStockError`` when a note issues more than is in stock.
- ``InvalidQuantityError`` from ``create_settlement`` for negative or
  unmatched returns.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal

from ledger_engines.stock_movement import MovementKind, StockMovement
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.values import ZERO, Unit, normalize_quantity, to_date, to_decimal
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
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services import numbering as series
from ledger_kernel.services.base import StoreBackedService
from ledger_kernel.services.numbering import NumberingService
from ledger_kernel.store import tables
from ledger_kernel.store.protocol import Record, RecordStore
from ledger_modules._document_lines import LineInput, coerce_lines, merge_lines
from ledger_modules.consignment.config import ConsignmentConfig
from ledger_modules.consignment.models import (
    DeliveryNote,
    NoteStatus,
    Settlement,
    SettlementItem,
)
from ledger_modules.consignment.workflows import DELIVERY_NOTE_WORKFLOW
from ledger_modules.inventory.stock_ledger import StockLedger

logger = get_logger("modules.consignment.service")

ReturnsInput = Mapping[tuple[str, "Unit | str"], tuple]


class ConsignmentService(StoreBackedService):
    """
    Delivery notes and settlements.

    Usage:
        note = consignment.create_note(
            [LineInput(product_id, Decimal("20"))],
            note_date=date(2024, 3, 1),
            warehouse_keeper_name="Sami",
        )
        # ... invoices linked to note.id are created and delivered ...
        consignment.create_settlement(
            note.id, date(2024, 3, 9), returns={(product_id, "smallest"): (Decimal("5"), 0)}
        )
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock,
        stock_ledger: StockLedger,
        numbering: NumberingService,
        config: ConsignmentConfig | None = None,
    ):
        super().__init__(store, clock)
        self.stock_ledger = stock_ledger
        self.numbering = numbering
        self.config = config or ConsignmentConfig.with_defaults()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_note(self, note_id: str) -> DeliveryNote:
        return DeliveryNote.from_record(
            self._require(tables.DELIVERY_NOTES, note_id), self._note_items(note_id)
        )

    def list_notes(self, status: NoteStatus | str | None = None) -> list[DeliveryNote]:
        criteria = {"status": NoteStatus(status).value} if status else None
        return [
            DeliveryNote.from_record(r, self._note_items(r["id"]))
            for r in self.store.get_all(tables.DELIVERY_NOTES, criteria)
        ]

    def get_settlement(self, settlement_id: str) -> Settlement:
        return Settlement.from_record(
            self._require(tables.DELIVERY_SETTLEMENTS, settlement_id),
            self._settlement_items(settlement_id),
        )

    def settlements_for_note(self, note_id: str) -> list[Settlement]:
        return [
            Settlement.from_record(r, self._settlement_items(r["id"]))
            for r in self.store.get_all(tables.DELIVERY_SETTLEMENTS, {"delivery_note_id": note_id})
        ]

    def _note_items(self, note_id: str) -> list[Record]:
        return self.store.get_all(tables.DELIVERY_NOTE_ITEMS, {"delivery_note_id": note_id})

    def _settlement_items(self, settlement_id: str) -> list[Record]:
        return self.store.get_all(tables.SETTLEMENT_ITEMS, {"settlement_id": settlement_id})

    def _linked_invoices(self, note_id: str) -> list[Record]:
        return self.store.get_all(tables.SALES_INVOICES, {"delivery_note_id": note_id})

    # ------------------------------------------------------------------
    # Delivery notes
    # ------------------------------------------------------------------

    def create_note(
        self,
        items: Iterable[LineInput | Mapping],
        note_date: date | str,
        warehouse_keeper_name: str,
        sales_rep_name: str | None = None,
        notes: str | None = None,
    ) -> DeliveryNote:
        """
        Issue goods to a representative.  Stock is not touched.

        Postconditions:
            - status is ``issued``.
            - every item has ``reserved_quantity == 0`` and
              ``available_quantity == quantity``.
        """
        if not warehouse_keeper_name or not warehouse_keeper_name.strip():
            raise MissingFieldError("warehouse_keeper_name", "delivery note")
        if not note_date:
            raise MissingFieldError("date", "delivery note")
        lines = merge_lines(coerce_lines(items, "delivery note"))
        products = self._check_issue(lines)

        number = self.numbering.next_number(series.DELIVERY_NOTE)
        record = self._insert(
            tables.DELIVERY_NOTES,
            {
                "delivery_note_number": number,
                "date": to_date(note_date),
                "warehouse_keeper_name": warehouse_keeper_name.strip(),
                "sales_rep_name": sales_rep_name,
                "status": DELIVERY_NOTE_WORKFLOW.initial_state,
                "total_products": len(lines),
                "notes": notes,
            },
        )
        self._insert_note_items(record["id"], lines, products)

        logger.info(
            "delivery_note_created",
            extra={
                "delivery_note_id": record["id"],
                "delivery_note_number": number,
                "item_count": len(lines),
            },
        )
        return self.get_note(record["id"])

    def edit_note(
        self,
        note_id: str,
        items: Iterable[LineInput | Mapping] | None = None,
        note_date: date | str | None = None,
        warehouse_keeper_name: str | None = None,
        sales_rep_name: str | None = None,
        notes: str | None = None,
    ) -> DeliveryNote:
        """
        Change an issued note that no invoice references yet.

        When ``items`` is given, the note's items are replaced.
        """
        note = self._require(tables.DELIVERY_NOTES, note_id)
        if note["status"] != NoteStatus.ISSUED.value:
            raise DeliveryNoteLockedError(note_id, note["delivery_note_number"], note["status"])
        linked = self._linked_invoices(note_id)
        if linked:
            raise LinkedToInvoiceError(note_id, [i["invoice_number"] for i in linked])
        if warehouse_keeper_name is not None and not warehouse_keeper_name.strip():
            raise MissingFieldError("warehouse_keeper_name", "delivery note")

        lines = None
        products: dict[str, Record] = {}
        if items is not None:
            lines = merge_lines(coerce_lines(items, "delivery note"))
            products = self._check_issue(lines)

        changes: dict = {}
        if note_date is not None:
            changes["date"] = to_date(note_date)
        if warehouse_keeper_name is not None:
            changes["warehouse_keeper_name"] = warehouse_keeper_name.strip()
        if sales_rep_name is not None:
            changes["sales_rep_name"] = sales_rep_name
        if notes is not None:
            changes["notes"] = notes
        if lines is not None:
            for item in self._note_items(note_id):
                self._delete(tables.DELIVERY_NOTE_ITEMS, item["id"])
            self._insert_note_items(note_id, lines, products)
            changes["total_products"] = len(lines)
        if changes:
            self._update(tables.DELIVERY_NOTES, note_id, changes)

        logger.info(
            "delivery_note_edited",
            extra={
                "delivery_note_id": note_id,
                "delivery_note_number": note["delivery_note_number"],
                "items_replaced": lines is not None,
            },
        )
        return self.get_note(note_id)

    def delete_note(self, note_id: str) -> None:
        """
        Delete a note that no invoice references.

        Settlements of the note are deleted first with full stock reversal.
        With ``restore_available_on_delete`` each item's available quantity
        is then added to stock.  ``stock_changed`` is published once per
        product at the end.  Restored stock leaves no document behind, so the
        movement report does not replay it.
        """
        note = self._require(tables.DELIVERY_NOTES, note_id)
        linked = self._linked_invoices(note_id)
        if linked:
            raise LinkedToInvoiceError(note_id, [i["invoice_number"] for i in linked])

        touched: list[str] = []
        for settlement in self.store.get_all(
            tables.DELIVERY_SETTLEMENTS, {"delivery_note_id": note_id}
        ):
            touched += self._remove_settlement(settlement)

        items = self._note_items(note_id)
        if self.config.restore_available_on_delete:
            for item in items:
                available = to_decimal(item.get("available_quantity"))
                if available > 0:
                    self.stock_ledger.apply(
                        item["product_id"],
                        StockMovement(MovementKind.NOTE_RELEASE, available, Unit.parse(item.get("unit"))),
                        notify=False,
                    )
                    touched.append(item["product_id"])

        for item in items:
            self._delete(tables.DELIVERY_NOTE_ITEMS, item["id"])
        self._delete(tables.DELIVERY_NOTES, note_id)
        self.stock_ledger.notify_changed(touched)

        logger.info(
            "delivery_note_deleted",
            extra={
                "delivery_note_id": note_id,
                "delivery_note_number": note["delivery_note_number"],
                "products_touched": len(set(touched)),
            },
        )

    def _check_issue(self, lines: list[LineInput]) -> dict[str, Record]:
        """Load each product and, when configured, check stock covers the note."""
        products: dict[str, Record] = {}
        wanted: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for line in lines:
            product = products.get(line.product_id) or self._require(tables.PRODUCTS, line.product_id)
            products[line.product_id] = product
            wanted[line.product_id] += normalize_quantity(
                line.quantity, line.unit, to_decimal(product.get("conversion_factor") or 1)
            )
        if self.config.check_stock_on_issue:
            for product_id, quantity in wanted.items():
                in_stock = to_decimal(products[product_id].get("stock"))
                if quantity > in_stock:
                    raise InsufficientStockError(product_id, quantity, in_stock)
        return products

    def _insert_note_items(
        self, note_id: str, lines: list[LineInput], products: Mapping[str, Record]
    ) -> None:
        for line in lines:
            product = products[line.product_id]
            self._insert(
                tables.DELIVERY_NOTE_ITEMS,
                {
                    "delivery_note_id": note_id,
                    "product_id": line.product_id,
                    "product_name": product.get("name") or "",
                    "product_code": product.get("code"),
                    "quantity": line.quantity,
                    "unit": line.unit.value,
                    "reserved_quantity": ZERO,
                    "available_quantity": line.quantity,
                },
            )

    # ------------------------------------------------------------------
    # Reservations (invoices linked to a note)
    # ------------------------------------------------------------------

    def check_reservation(
        self,
        note_id: str,
        lines: Iterable[LineInput],
        credit: Iterable[LineInput] = (),
    ) -> None:
        """
        Verify the note can cover ``lines``.

        ``credit`` lists quantities about to be released (an invoice being
        edited) and counts as available.

        Raises:
            DeliveryNoteLockedError: the note is not issued.
            NoteQuantityExceededError: a line has no matching note item or
                asks for more than is available.
        """
        note = self._require(tables.DELIVERY_NOTES, note_id)
        if note["status"] != NoteStatus.ISSUED.value:
            raise DeliveryNoteLockedError(note_id, note["delivery_note_number"], note["status"])

        available: dict[tuple[str, Unit], Decimal] = defaultdict(lambda: ZERO)
        for item in self._note_items(note_id):
            available[(item["product_id"], Unit.parse(item.get("unit")))] += to_decimal(
                item.get("available_quantity")
            )
        for line in credit:
            if line.key in available:
                available[line.key] += line.quantity

        requested: dict[tuple[str, Unit], Decimal] = defaultdict(lambda: ZERO)
        for line in lines:
            requested[line.key] += line.quantity
        for (product_id, unit), quantity in requested.items():
            have = available.get((product_id, unit), ZERO)
            if quantity > have:
                raise NoteQuantityExceededError(note_id, product_id, unit.value, quantity, have)

    def reserve(self, note_id: str, lines: Iterable[LineInput]) -> None:
        """Move invoice quantities from available to reserved on the note."""
        lines = list(lines)
        self.check_reservation(note_id, lines)
        for line in lines:
            remaining = line.quantity
            for item in self._matching_items(note_id, line):
                if remaining <= 0:
                    break
                take = min(remaining, to_decimal(item.get("available_quantity")))
                if take <= 0:
                    continue
                self._update(
                    tables.DELIVERY_NOTE_ITEMS,
                    item["id"],
                    {
                        "reserved_quantity": to_decimal(item.get("reserved_quantity")) + take,
                        "available_quantity": to_decimal(item.get("available_quantity")) - take,
                    },
                )
                remaining -= take
        logger.info(
            "delivery_note_reserved",
            extra={"delivery_note_id": note_id, "line_count": len(lines)},
        )

    def release(self, note_id: str, lines: Iterable[LineInput]) -> None:
        """
        Give reserved invoice quantities back to the note's availability.

        Mirrors ``reserve``: a line is spread over its matching items and no
        item's available quantity goes above its issued quantity.
        """
        note = self.store.get(tables.DELIVERY_NOTES, note_id)
        if note is None:
            logger.warning("delivery_note_release_skipped", extra={"delivery_note_id": note_id})
            return
        lines = list(lines)
        for line in lines:
            remaining = line.quantity
            for item in self._matching_items(note_id, line):
                if remaining <= 0:
                    break
                available = to_decimal(item.get("available_quantity"))
                give = min(remaining, to_decimal(item["quantity"]) - available)
                if give <= 0:
                    continue
                self._update(
                    tables.DELIVERY_NOTE_ITEMS,
                    item["id"],
                    {
                        "reserved_quantity": max(ZERO, to_decimal(item.get("reserved_quantity")) - give),
                        "available_quantity": available + give,
                    },
                )
                remaining -= give
            if remaining > 0:
                logger.warning(
                    "delivery_note_release_unmatched",
                    extra={
                        "delivery_note_id": note_id,
                        "product_id": line.product_id,
                        "unit": line.unit.value,
                        "quantity": str(remaining),
                    },
                )
        logger.info(
            "delivery_note_released",
            extra={"delivery_note_id": note_id, "line_count": len(lines)},
        )

    def _matching_items(self, note_id: str, line: LineInput) -> list[Record]:
        return [
            item
            for item in self._note_items(note_id)
            if item["product_id"] == line.product_id and Unit.parse(item.get("unit")) is line.unit
        ]

    # ------------------------------------------------------------------
    # Settlements
    # ------------------------------------------------------------------

    def create_settlement(
        self,
        note_id: str,
        settlement_date: date | str,
        returns: ReturnsInput | None = None,
        notes: str | None = None,
        sales_rep_name: str | None = None,
        warehouse_keeper_name: str | None = None,
    ) -> Settlement:
        """
        Settle an issued note.

        ``returns`` maps ``(product_id, unit)`` to ``(returned, rejected)``
        quantities reported by the representative; missing keys mean zero
        and a key with no matching note item is rejected.
        The sold quantity of each note item is the sum of matching lines
        over every invoice linked to the note.

        Postconditions:
            - stock of each product changed by ``-sold + returned + rejected``.
            - note status is ``settled``.
        """
        note = self._require(tables.DELIVERY_NOTES, note_id)
        if note["status"] != NoteStatus.ISSUED.value:
            raise AlreadySettledError(note_id, note["delivery_note_number"], note["status"])
        existing = self.store.get_all(tables.DELIVERY_SETTLEMENTS, {"delivery_note_id": note_id})
        if existing:
            raise DuplicateSettlementError(note_id, existing[0]["settlement_number"])
        invoices = self._linked_invoices(note_id)
        pending = [i["invoice_number"] for i in invoices if i.get("status") != "delivered"]
        if pending:
            raise PendingInvoicesError(note_id, pending)
        if not settlement_date:
            raise MissingFieldError("date", "settlement")
        transition = DELIVERY_NOTE_WORKFLOW.transition(note["status"], "settle")
        reported = _coerce_returns(returns)
        sold = self._sold_quantities(invoices)
        items = self._note_items(note_id)
        on_note = {(i["product_id"], Unit.parse(i.get("unit"))) for i in items}
        for product_id, unit in reported:
            if (product_id, unit) not in on_note:
                raise InvalidQuantityError(
                    "returns", f"{product_id}/{unit.value}", "matches no item on the note"
                )

        number = self.numbering.next_number(series.SETTLEMENT)
        record = self._insert(
            tables.DELIVERY_SETTLEMENTS,
            {
                "settlement_number": number,
                "delivery_note_id": note_id,
                "date": to_date(settlement_date),
                "sales_rep_name": sales_rep_name or note.get("sales_rep_name"),
                "warehouse_keeper_name": warehouse_keeper_name or note.get("warehouse_keeper_name"),
                "status": self.config.settlement_status,
                "notes": notes,
            },
        )
        for item in items:
            unit = Unit.parse(item.get("unit"))
            key = (item["product_id"], unit)
            issued = to_decimal(item["quantity"])
            sold_qty = sold.get(key, ZERO)
            returned, rejected = reported.get(key, (ZERO, ZERO))
            self.stock_ledger.apply(
                item["product_id"],
                StockMovement(MovementKind.SETTLEMENT, sold_qty, unit, returned, rejected),
                notify=False,
            )
            self._insert(
                tables.SETTLEMENT_ITEMS,
                {
                    "settlement_id": record["id"],
                    "product_id": item["product_id"],
                    "product_name": item.get("product_name") or "",
                    "product_code": item.get("product_code"),
                    "unit": unit.value,
                    "issued_quantity": issued,
                    "sold_quantity": sold_qty,
                    "returned_quantity": returned,
                    "rejected_quantity": rejected,
                    "difference": issued - sold_qty,
                },
            )
        self._update(tables.DELIVERY_NOTES, note_id, {"status": transition.to_state})
        self.stock_ledger.notify_changed(i["product_id"] for i in items)

        logger.info(
            "settlement_created",
            extra={
                "settlement_id": record["id"],
                "settlement_number": number,
                "delivery_note_id": note_id,
                "linked_invoice_count": len(invoices),
                "item_count": len(items),
            },
        )
        return self.get_settlement(record["id"])

    def delete_settlement(self, settlement_id: str) -> None:
        """Reverse a settlement's stock effect and reopen its note."""
        settlement = self._require(tables.DELIVERY_SETTLEMENTS, settlement_id)
        touched = self._remove_settlement(settlement)
        self.stock_ledger.notify_changed(touched)

    def _remove_settlement(self, settlement: Record) -> list[str]:
        items = self._settlement_items(settlement["id"])
        for item in items:
            self.stock_ledger.reverse(
                item["product_id"],
                StockMovement(
                    MovementKind.SETTLEMENT,
                    to_decimal(item["sold_quantity"]),
                    Unit.parse(item.get("unit")),
                    to_decimal(item.get("returned_quantity")),
                    to_decimal(item.get("rejected_quantity")),
                ),
                notify=False,
            )

        note_id = settlement["delivery_note_id"]
        note = self.store.get(tables.DELIVERY_NOTES, note_id)
        if note is not None and note["status"] == NoteStatus.SETTLED.value:
            transition = DELIVERY_NOTE_WORKFLOW.transition(note["status"], "unsettle")
            self._update(tables.DELIVERY_NOTES, note_id, {"status": transition.to_state})

        for item in items:
            self._delete(tables.SETTLEMENT_ITEMS, item["id"])
        self._delete(tables.DELIVERY_SETTLEMENTS, settlement["id"])

        logger.info(
            "settlement_deleted",
            extra={
                "settlement_id": settlement["id"],
                "settlement_number": settlement["settlement_number"],
                "delivery_note_id": note_id,
            },
        )
        return [i["product_id"] for i in items]

    def _sold_quantities(self, invoices: list[Record]) -> dict[tuple[str, Unit], Decimal]:
        sold: dict[tuple[str, Unit], Decimal] = defaultdict(lambda: ZERO)
        for invoice in invoices:
            for line in self.store.get_all(tables.SALES_INVOICE_ITEMS, {"invoice_id": invoice["id"]}):
                sold[(line["product_id"], Unit.parse(line.get("unit")))] += to_decimal(line["quantity"])
        return dict(sold)

    def reconciliation_report(self, settlement_id: str) -> tuple[SettlementItem, ...]:
        """
        Settlement items whose ``difference`` is not covered by the returned
        and rejected quantities.  Each one is logged at WARNING.
        """
        settlement = self.get_settlement(settlement_id)
        gaps = settlement.unreconciled_items
        for item in gaps:
            logger.warning(
                "settlement_reconciliation_gap",
                extra={
                    "settlement_number": settlement.settlement_number,
                    "product_id": item.product_id,
                    "difference": str(item.difference),
                    "returned_quantity": str(item.returned_quantity),
                    "rejected_quantity": str(item.rejected_quantity),
                    "gap": str(item.reconciliation_gap),
                },
            )
        return gaps


def _coerce_returns(returns: ReturnsInput | None) -> dict[tuple[str, Unit], tuple[Decimal, Decimal]]:
    result: dict[tuple[str, Unit], tuple[Decimal, Decimal]] = {}
    for (product_id, unit), (returned, rejected) in (returns or {}).items():
        returned = to_decimal(returned, "returned_quantity")
        rejected = to_decimal(rejected, "rejected_quantity")
        if returned < 0:
            raise InvalidQuantityError("returned_quantity", returned, "cannot be negative")
        if rejected < 0:
            raise InvalidQuantityError("rejected_quantity", rejected, "cannot be negative")
        result[(product_id, Unit.parse(unit))] = (returned, rejected)
    return result
