"""Record store contract and its in-memory and SQL implementations."""

from ledger_kernel.store.memory import InMemoryRecordStore
from ledger_kernel.store.protocol import (
    DeleteResult,
    InsertResult,
    Record,
    RecordStore,
    UpdateResult,
)

__all__ = [
    "DeleteResult",
    "InMemoryRecordStore",
    "InsertResult",
    "Record",
    "RecordStore",
    "UpdateResult",
]
