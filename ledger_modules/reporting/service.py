"""
Movement Report Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Collects every stock-relevant document line from the store, turns each
into a signed ``MovementEvent`` in smallest units and hands them to
``ledger_engines.movement_replay`` for a full historical replay.

Sources and signs:

    ====================================  ======
    Source                                Effect
    ====================================  ======
    purchase invoice line                 +qty
    sales invoice line (not on a note)    -qty
    adjustment increase / decrease        +qty / -qty
    adjustment set                        = |qty|
    return from customer (restocked)      +qty
    return to supplier (restocked)        -qty
    delivery note line                    0
    settlement sold / returned / rejected -qty / +qty / +qty
    ====================================  ======

Failure Modes
-------------
A line whose product no longer exists is kept and labelled
"Unknown product" rather than failing the report.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import date
from decimal import Decimal

from ledger_engines.movement_replay import (
    MovementEvent,
    MovementRow,
    MovementSource,
    replay_movements,
)
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.values import ZERO, normalize_quantity, to_date, to_decimal
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import StoreBackedService
from ledger_kernel.services.cache import RecordCache
from ledger_kernel.store import tables
from ledger_kernel.store.protocol import Record, RecordStore

logger = get_logger("modules.reporting.service")

_ADJUSTMENT_SIGN = {"increase": 1, "decrease": -1}
_RETURN_SIGN = {"from_customer": 1, "to_supplier": -1}


class MovementReportService(StoreBackedService):
    """Product movement report."""

    def __init__(self, store: RecordStore, clock: Clock, cache: RecordCache):
        super().__init__(store, clock)
        self.cache = cache

    def project_product_movements(
        self,
        product_id: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        kinds: Collection[MovementSource | str] | None = None,
    ) -> list[MovementRow]:
        """
        Replay stock history for one product, or all products when
        ``product_id`` is None.

        Rows are ordered by date.  ``balance_before`` of the first row in
        the window includes every earlier movement.
        """
        products = {p["id"]: p for p in self.cache.all(tables.PRODUCTS)}
        factors = {pid: to_decimal(p.get("conversion_factor") or 1) for pid, p in products.items()}

        events = self._collect(factors)
        if product_id is not None:
            events = [e for e in events if e.product_id == product_id]

        rows = replay_movements(
            events=events,
            opening_stock={pid: to_decimal(p.get("opening_stock")) for pid, p in products.items()},
            labels={pid: p.get("name") or p.get("code") or pid for pid, p in products.items()},
            date_from=date_from,
            date_to=date_to,
            sources={MovementSource(k) for k in kinds} if kinds is not None else None,
        )
        logger.info(
            "movement_report_projected",
            extra={
                "product_id": product_id,
                "event_count": len(events),
                "row_count": len(rows),
            },
        )
        return rows

    # ------------------------------------------------------------------
    # Event collection
    # ------------------------------------------------------------------

    def _collect(self, factors: dict[str, Decimal]) -> list[MovementEvent]:
        events: list[MovementEvent] = []
        events += self._invoice_events(
            tables.PURCHASE_INVOICES, tables.PURCHASE_INVOICE_ITEMS, MovementSource.PURCHASE, 1, factors
        )
        events += self._invoice_events(
            tables.SALES_INVOICES, tables.SALES_INVOICE_ITEMS, MovementSource.SALE, -1, factors
        )
        events += self._adjustment_events()
        events += self._return_events(factors)
        events += self._consignment_events(factors)
        return events

    def _invoice_events(
        self,
        header_table: str,
        line_table: str,
        source: MovementSource,
        sign: int,
        factors: dict[str, Decimal],
    ) -> list[MovementEvent]:
        events = []
        for invoice in self.store.get_all(header_table):
            # goods sold off a delivery note move at settlement
            if invoice.get("delivery_note_id"):
                continue
            for line in self.store.get_all(line_table, {"invoice_id": invoice["id"]}):
                events.append(
                    MovementEvent(
                        date=to_date(invoice["date"]),
                        product_id=line["product_id"],
                        source=source,
                        quantity=sign * _smallest(line, "quantity", factors),
                        reference=invoice["invoice_number"],
                    )
                )
        return events

    def _adjustment_events(self) -> list[MovementEvent]:
        events = []
        for adjustment in self.store.get_all(tables.INVENTORY_ADJUSTMENTS):
            reference = adjustment["adjustment_number"]
            is_set = adjustment["type"] == "set"
            quantity = to_decimal(adjustment["quantity"])
            events.append(
                MovementEvent(
                    date=to_date(adjustment["date"]),
                    product_id=adjustment["product_id"],
                    source=MovementSource.ADJUSTMENT,
                    quantity=abs(quantity) if is_set else _ADJUSTMENT_SIGN[adjustment["type"]] * quantity,
                    reference=reference,
                    absolute=is_set,
                )
            )
        return events

    def _return_events(self, factors: dict[str, Decimal]) -> list[MovementEvent]:
        return [
            MovementEvent(
                date=to_date(r["date"]),
                product_id=r["product_id"],
                source=MovementSource.RETURN,
                quantity=_RETURN_SIGN[r["return_type"]] * _smallest(r, "quantity", factors),
                reference=r["return_number"],
            )
            for r in self.store.get_all(tables.RETURNS, {"restored_to_stock": True})
        ]

    def _consignment_events(self, factors: dict[str, Decimal]) -> list[MovementEvent]:
        events = []
        for note in self.store.get_all(tables.DELIVERY_NOTES):
            for item in self.store.get_all(tables.DELIVERY_NOTE_ITEMS, {"delivery_note_id": note["id"]}):
                events.append(
                    MovementEvent(
                        date=to_date(note["date"]),
                        product_id=item["product_id"],
                        source=MovementSource.DELIVERY_NOTE,
                        quantity=ZERO,
                        reference=note["delivery_note_number"],
                    )
                )
        for settlement in self.store.get_all(tables.DELIVERY_SETTLEMENTS):
            when = to_date(settlement["date"])
            reference = settlement["settlement_number"]
            for item in self.store.get_all(tables.SETTLEMENT_ITEMS, {"settlement_id": settlement["id"]}):
                parts = (
                    (MovementSource.SETTLEMENT_SOLD, -_smallest(item, "sold_quantity", factors)),
                    (MovementSource.SETTLEMENT_RETURNED, _smallest(item, "returned_quantity", factors)),
                    (MovementSource.SETTLEMENT_REJECTED, _smallest(item, "rejected_quantity", factors)),
                )
                for source, quantity in parts:
                    if source is not MovementSource.SETTLEMENT_SOLD and quantity == 0:
                        continue
                    events.append(
                        MovementEvent(
                            date=when,
                            product_id=item["product_id"],
                            source=source,
                            quantity=quantity,
                            reference=reference,
                        )
                    )
        return events


def _smallest(record: Record, field: str, factors: dict[str, Decimal]) -> Decimal:
    return normalize_quantity(
        to_decimal(record.get(field)),
        record.get("unit"),
        factors.get(record["product_id"], Decimal("1")),
    )
