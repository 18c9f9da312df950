"""
Sales Module (``ledger_modules.sales``).

Sales invoices, from stock or against a delivery note, and their effect on
stock and on the customer's balance.
"""

from ledger_modules.sales.models import InvoiceStatus, SalesInvoice
from ledger_modules.sales.service import SalesService

__all__ = ["InvoiceStatus", "SalesInvoice", "SalesService"]
