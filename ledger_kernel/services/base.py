"""
StoreBackedService -- abstract base for services that write to the record store.

Responsibility:
    Holds the injected ``RecordStore`` and ``Clock`` and turns the store's
    ``success=False`` results into ``StoreFailureError``, so a failed step
    aborts the multi-step operation that issued it.

Architecture position:
    Kernel > Services.  Every module service extends this class.

Failure modes:
    - A store failure leaves earlier steps of the operation written.  The
      ledgers' recompute and replay passes are idempotent and tolerate that.
"""

from abc import ABC
from collections.abc import Mapping
from typing import Any

from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import RecordNotFoundError, StoreFailureError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.store.protocol import Record, RecordStore

logger = get_logger("services.base")


class StoreBackedService(ABC):
    """
    Base class for record-store services.

    Contract:
        Subclasses use ``_insert``/``_update``/``_delete`` rather than the raw
        store, so every write is checked and timestamped.

    Non-goals:
        - No transactions: each write is its own durable step.
    """

    def __init__(self, store: RecordStore, clock: Clock):
        self.store = store
        self.clock = clock

    def _require(self, table: str, record_id: str) -> Record:
        """Fetch a record or raise RecordNotFoundError."""
        record = self.store.get(table, record_id)
        if record is None:
            raise RecordNotFoundError(table, record_id)
        return record

    def _insert(self, table: str, record: Mapping[str, Any]) -> Record:
        now = self.clock.now()
        body = {"created_at": now, "updated_at": now, **record}
        result = self.store.insert(table, body)
        if not result.success:
            logger.error("store_insert_failed", extra={"table": table})
            raise StoreFailureError("insert", table, result.id)
        body["id"] = result.id
        return body

    def _update(self, table: str, record_id: str, changes: Mapping[str, Any]) -> None:
        result = self.store.update(
            table, record_id, {**changes, "updated_at": self.clock.now()}
        )
        if not result.success:
            logger.error(
                "store_update_failed",
                extra={"table": table, "record_id": record_id},
            )
            raise StoreFailureError("update", table, record_id)

    def _delete(self, table: str, record_id: str) -> int:
        result = self.store.delete(table, record_id)
        if not result.success:
            logger.error(
                "store_delete_failed",
                extra={"table": table, "record_id": record_id},
            )
            raise StoreFailureError("delete", table, record_id)
        return result.changes
