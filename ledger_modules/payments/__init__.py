"""
Payments Module (``ledger_modules.payments``).

Customer receipts and supplier payments.
"""

from ledger_modules.payments.models import Payment, Receipt
from ledger_modules.payments.service import PaymentsService

__all__ = ["Payment", "PaymentsService", "Receipt"]
