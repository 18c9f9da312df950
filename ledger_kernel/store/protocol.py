"""
RecordStore -- the collection-oriented persistence contract.

Responsibility:
    Defines the five operations the ledgers consume (get, get_all, insert,
    update, delete) and the result objects they return.  The store is the
    source of truth; caches are rebuilt from it.

Architecture position:
    Kernel > Store.  Implementations live beside this module
    (``memory.InMemoryRecordStore``, ``sql.SqlRecordStore``).  Services receive
    a store through their constructor; there is no optional or absent store.

Failure modes:
    - Write operations report ``success=False`` instead of raising.  Callers
      convert that into ``StoreFailureError`` (see
      ``ledger_kernel.services.base.StoreBackedService``).
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

Record = dict[str, Any]
Predicate = Callable[[Record], bool]


@dataclass(frozen=True)
class InsertResult:
    success: bool
    id: str | None = None


@dataclass(frozen=True)
class UpdateResult:
    success: bool


@dataclass(frozen=True)
class DeleteResult:
    success: bool
    changes: int = 0


def matches(record: Record, criteria: Mapping[str, Any] | None, predicate: Predicate | None) -> bool:
    """Equality filter on fields, then the optional predicate."""
    if criteria:
        for key, expected in criteria.items():
            if record.get(key) != expected:
                return False
    if predicate is not None and not predicate(record):
        return False
    return True


class RecordStore(ABC):
    """
    Collection-oriented record store keyed by table name.

    Contract:
        - Records are plain dicts; ``id`` is a string assigned on insert when
          the caller does not supply one.
        - ``get_all`` returns records in insertion order.
        - Read-your-writes within a process; no transactions across calls.
    """

    @abstractmethod
    def get(self, table: str, record_id: str) -> Record | None:
        """Fetch one record by id, or None."""

    @abstractmethod
    def get_all(
        self,
        table: str,
        criteria: Mapping[str, Any] | None = None,
        predicate: Predicate | None = None,
    ) -> list[Record]:
        """Fetch every record of a table matching the filter."""

    @abstractmethod
    def insert(self, table: str, record: Mapping[str, Any]) -> InsertResult:
        """Insert a record; ``success=False`` on a duplicate id."""

    @abstractmethod
    def update(self, table: str, record_id: str, changes: Mapping[str, Any]) -> UpdateResult:
        """Merge ``changes`` into an existing record."""

    @abstractmethod
    def delete(self, table: str, record_id: str) -> DeleteResult:
        """Delete a record; ``changes`` is 0 when it did not exist."""
