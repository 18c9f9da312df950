"""Kernel services shared by the ledger modules."""

from ledger_kernel.services.base import StoreBackedService
from ledger_kernel.services.cache import RecordCache
from ledger_kernel.services.notifications import ChangeNotifier
from ledger_kernel.services.numbering import NumberingService, NumberSeries

__all__ = [
    "ChangeNotifier",
    "NumberSeries",
    "NumberingService",
    "RecordCache",
    "StoreBackedService",
]
