"""
Consignment Module (``ledger_modules.consignment``).

Responsibility
--------------
Delivery notes (goods handed to a sales representative) and the
settlements that reconcile them against the invoices raised on the note.

Architecture
------------
Layer: **Modules**.  Stock moves only at settlement, through
``StockLedger``; status changes follow ``DELIVERY_NOTE_WORKFLOW``.
"""

from ledger_modules.consignment.config import ConsignmentConfig
from ledger_modules.consignment.models import (
    DeliveryNote,
    NoteItem,
    NoteStatus,
    Settlement,
    SettlementItem,
)
from ledger_modules.consignment.service import ConsignmentService
from ledger_modules.consignment.workflows import DELIVERY_NOTE_WORKFLOW

__all__ = [
    "ConsignmentConfig",
    "ConsignmentService",
    "DELIVERY_NOTE_WORKFLOW",
    "DeliveryNote",
    "NoteItem",
    "NoteStatus",
    "Settlement",
    "SettlementItem",
]
