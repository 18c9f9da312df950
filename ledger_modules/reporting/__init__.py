"""
Reporting Module (``ledger_modules.reporting``).

The product movement report: a full replay of stock history from each
product's opening stock.
"""

from ledger_modules.reporting.service import MovementReportService

__all__ = ["MovementReportService"]
