"""
Accounts Module (``ledger_modules.accounts``).

Customer and supplier accounts, full balance recomputation and the
chronological account statement.
"""

from ledger_modules.accounts.models import Account, AccountKind
from ledger_modules.accounts.service import AccountBalanceLedger

__all__ = ["Account", "AccountBalanceLedger", "AccountKind"]
