"""
Module: ledger_engines.movement_replay
Responsibility:
    Rebuild each product's stock trail from its opening stock by replaying
    every movement in date order, recording the balance before and after
    each one.  The trail is independent of the live cached stock, so it
    doubles as an audit of the Stock Ledger.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The reporting module
    collects ``MovementEvent`` values from the store.

Invariants enforced:
    - Per-product running balance seeded from opening stock.
    - Stable sort by date; ties keep the order the events were supplied in.
    - Absolute events (adjustment "set") replace the balance with
      ``|quantity|``; all others add their signed quantity.
    - Window and kind filters apply after the full replay, so the first row
      inside a window still reflects all earlier history.
    - The replayed balance is not clamped.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.values import ZERO

UNKNOWN_PRODUCT_LABEL = "Unknown product"


class MovementSource(Enum):
    """Document line a movement row comes from."""
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    RETURN = "return"
    DELIVERY_NOTE = "delivery_note"
    SETTLEMENT_SOLD = "settlement_sold"
    SETTLEMENT_RETURNED = "settlement_returned"
    SETTLEMENT_REJECTED = "settlement_rejected"


@dataclass(frozen=True)
class MovementEvent:
    """A movement in smallest units; ``quantity`` is signed unless absolute."""
    date: date
    product_id: str
    source: MovementSource
    quantity: Decimal
    reference: str
    absolute: bool = False


@dataclass(frozen=True)
class MovementRow:
    date: date
    product_id: str
    product_label: str
    source: MovementSource
    reference: str
    quantity: Decimal
    balance_before: Decimal
    balance_after: Decimal


@traced_engine("movement_replay", "1.0", fingerprint_fields=("events", "opening_stock"))
def replay_movements(
    *,
    events: Sequence[MovementEvent],
    opening_stock: Mapping[str, Decimal],
    labels: Mapping[str, str] | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    sources: Collection[MovementSource] | None = None,
) -> list[MovementRow]:
    """
    Replay ``events`` and return the rows that pass the filters.

    Products missing from ``opening_stock`` start at zero; products missing
    from ``labels`` are labelled ``UNKNOWN_PRODUCT_LABEL``.
    """
    labels = labels or {}
    balances: dict[str, Decimal] = {}
    rows: list[MovementRow] = []

    for event in sorted(events, key=lambda e: e.date):
        before = balances.get(event.product_id, opening_stock.get(event.product_id, ZERO))
        after = abs(event.quantity) if event.absolute else before + event.quantity
        balances[event.product_id] = after

        if date_from is not None and event.date < date_from:
            continue
        if date_to is not None and event.date > date_to:
            continue
        if sources is not None and event.source not in sources:
            continue

        rows.append(
            MovementRow(
                date=event.date,
                product_id=event.product_id,
                product_label=labels.get(event.product_id, UNKNOWN_PRODUCT_LABEL),
                source=event.source,
                reference=event.reference,
                quantity=event.quantity,
                balance_before=before,
                balance_after=after,
            )
        )
    return rows
