"""
Consignment Domain Models (``ledger_modules.consignment.models``).

Responsibility
--------------
Frozen value objects for delivery notes (goods handed to a sales
representative) and the settlements that reconcile them.

Invariants
----------
- A note item starts with ``reserved_quantity == 0`` and
  ``available_quantity == quantity``; invoices linked to the note move
  quantity from available to reserved.
- ``SettlementItem.difference == issued_quantity - sold_quantity``.
  ``reconciliation_gap`` measures how far that is from the returned and
  rejected quantities the representative actually accounted for.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from ledger_kernel.domain.values import ZERO, Unit, to_date, to_decimal
from ledger_kernel.store.protocol import Record


class NoteStatus(Enum):
    ISSUED = "issued"
    SETTLED = "settled"
    # declared in the status vocabulary; nothing transitions into it
    RETURNED = "returned"


@dataclass(frozen=True)
class NoteItem:
    """One product line on a delivery note, quantities in ``unit``."""
    id: str
    delivery_note_id: str
    product_id: str
    product_name: str
    quantity: Decimal
    unit: Unit
    reserved_quantity: Decimal = ZERO
    available_quantity: Decimal = ZERO

    @property
    def key(self) -> tuple[str, Unit]:
        return (self.product_id, self.unit)

    @classmethod
    def from_record(cls, record: Record) -> "NoteItem":
        return cls(
            id=record["id"],
            delivery_note_id=record["delivery_note_id"],
            product_id=record["product_id"],
            product_name=record.get("product_name") or "",
            quantity=to_decimal(record["quantity"]),
            unit=Unit.parse(record.get("unit")),
            reserved_quantity=to_decimal(record.get("reserved_quantity")),
            available_quantity=to_decimal(record.get("available_quantity")),
        )


@dataclass(frozen=True)
class DeliveryNote:
    """A delivery note and its items."""
    id: str
    delivery_note_number: str
    date: date
    warehouse_keeper_name: str
    status: NoteStatus
    total_products: int
    sales_rep_name: str | None = None
    notes: str | None = None
    items: tuple[NoteItem, ...] = field(default_factory=tuple)

    @property
    def is_locked(self) -> bool:
        return self.status is not NoteStatus.ISSUED

    @classmethod
    def from_record(cls, record: Record, items: list[Record] | None = None) -> "DeliveryNote":
        return cls(
            id=record["id"],
            delivery_note_number=record["delivery_note_number"],
            date=to_date(record["date"]),
            warehouse_keeper_name=record.get("warehouse_keeper_name") or "",
            status=NoteStatus(record.get("status") or "issued"),
            total_products=int(record.get("total_products") or 0),
            sales_rep_name=record.get("sales_rep_name"),
            notes=record.get("notes"),
            items=tuple(NoteItem.from_record(i) for i in items or ()),
        )


@dataclass(frozen=True)
class SettlementItem:
    """
    Reconciliation of one note item.

    ``difference`` keeps its historical formula (issued minus sold); it is
    not reduced by returned or rejected quantities.  Use
    ``reconciliation_gap`` to see whether the representative accounted for
    everything that was not sold.
    """
    id: str
    settlement_id: str
    product_id: str
    product_name: str
    unit: Unit
    issued_quantity: Decimal
    sold_quantity: Decimal
    returned_quantity: Decimal = ZERO
    rejected_quantity: Decimal = ZERO
    difference: Decimal = ZERO

    def __post_init__(self):
        for name in ("issued_quantity", "sold_quantity", "returned_quantity", "rejected_quantity"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative (got {getattr(self, name)})")

    @property
    def reconciliation_gap(self) -> Decimal:
        return self.difference - (self.returned_quantity + self.rejected_quantity)

    @property
    def is_reconciled(self) -> bool:
        return self.reconciliation_gap == 0

    @classmethod
    def from_record(cls, record: Record) -> "SettlementItem":
        return cls(
            id=record["id"],
            settlement_id=record["settlement_id"],
            product_id=record["product_id"],
            product_name=record.get("product_name") or "",
            unit=Unit.parse(record.get("unit")),
            issued_quantity=to_decimal(record["issued_quantity"]),
            sold_quantity=to_decimal(record["sold_quantity"]),
            returned_quantity=to_decimal(record.get("returned_quantity")),
            rejected_quantity=to_decimal(record.get("rejected_quantity")),
            difference=to_decimal(record.get("difference")),
        )


@dataclass(frozen=True)
class Settlement:
    """A completed settlement of a delivery note."""
    id: str
    settlement_number: str
    delivery_note_id: str
    date: date
    status: str
    sales_rep_name: str | None = None
    warehouse_keeper_name: str | None = None
    notes: str | None = None
    items: tuple[SettlementItem, ...] = field(default_factory=tuple)

    @property
    def unreconciled_items(self) -> tuple[SettlementItem, ...]:
        return tuple(i for i in self.items if not i.is_reconciled)

    @classmethod
    def from_record(cls, record: Record, items: list[Record] | None = None) -> "Settlement":
        return cls(
            id=record["id"],
            settlement_number=record["settlement_number"],
            delivery_note_id=record["delivery_note_id"],
            date=to_date(record["date"]),
            status=record.get("status") or "completed",
            sales_rep_name=record.get("sales_rep_name"),
            warehouse_keeper_name=record.get("warehouse_keeper_name"),
            notes=record.get("notes"),
            items=tuple(SettlementItem.from_record(i) for i in items or ()),
        )
