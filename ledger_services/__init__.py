"""
ledger_services -- composition of the ledger kernel and modules.

``LedgerEngine`` is the one place services are constructed; callers use
its attributes (``inventory``, ``sales``, ``consignment``, ...).
"""

from ledger_services.engine import LedgerEngine

__all__ = ["LedgerEngine"]
