"""
Purchasing Module (``ledger_modules.purchasing``).

Purchase invoices: stock comes in, the supplier balance goes up.
"""

from ledger_modules.purchasing.models import PurchaseInvoice
from ledger_modules.purchasing.service import PurchasingService

__all__ = ["PurchaseInvoice", "PurchasingService"]
