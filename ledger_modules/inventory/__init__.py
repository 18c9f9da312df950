"""
Inventory Module (``ledger_modules.inventory``).

Responsibility
--------------
Products and everything that changes their stock outside a document flow:
manual adjustments and returns.  ``StockLedger`` is the one writer of
``products.stock`` and is shared with every other module.

Architecture
------------
Layer: **Modules**.  Movement arithmetic comes from
``ledger_engines.stock_movement``; this package applies it to records.
"""

from ledger_modules.inventory.config import InventoryConfig
from ledger_modules.inventory.models import (
    Adjustment,
    AdjustmentType,
    Product,
    ProductStatus,
    ReturnType,
    StockReturn,
)
from ledger_modules.inventory.service import InventoryService
from ledger_modules.inventory.stock_ledger import StockLedger

__all__ = [
    "Adjustment",
    "AdjustmentType",
    "InventoryConfig",
    "InventoryService",
    "Product",
    "ProductStatus",
    "ReturnType",
    "StockLedger",
    "StockReturn",
]
