"""
Pure calculation engines for the ledgers.

Engines take plain values and return frozen results; they never touch the
record store or the clock.
"""

from ledger_engines.movement_replay import MovementEvent, MovementRow, MovementSource, replay_movements
from ledger_engines.statement import (
    Statement,
    StatementEntryType,
    StatementRow,
    StatementSummary,
    StatementTransaction,
    walk_statement,
)
from ledger_engines.stock_movement import (
    MovementKind,
    StockMovement,
    StockMovementResult,
    apply_movement,
)

__all__ = [
    "MovementEvent",
    "MovementKind",
    "MovementRow",
    "MovementSource",
    "Statement",
    "StatementEntryType",
    "StatementRow",
    "StatementSummary",
    "StatementTransaction",
    "StockMovement",
    "StockMovementResult",
    "apply_movement",
    "replay_movements",
    "walk_statement",
]
