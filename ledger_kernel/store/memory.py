"""In-process record store backed by dicts, used by tests and embedded callers."""

import copy
from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from ledger_kernel.logging_config import get_logger
from ledger_kernel.store.protocol import (
    DeleteResult,
    InsertResult,
    Predicate,
    Record,
    RecordStore,
    UpdateResult,
    matches,
)

logger = get_logger("store.memory")


class InMemoryRecordStore(RecordStore):
    """
    Dict-of-tables record store.

    Records are deep-copied on the way in and out, so callers never alias
    stored state.  ``fail_next`` arms a one-shot failure for a write
    operation, letting tests exercise the ``success=False`` path.
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Record]] = {}
        self._armed_failures: list[tuple[str, str | None]] = []

    def fail_next(self, operation: str, table: str | None = None) -> None:
        """Make the next ``operation`` (insert/update/delete) on ``table`` fail."""
        if operation not in ("insert", "update", "delete"):
            raise ValueError(f"Unknown store operation: {operation}")
        self._armed_failures.append((operation, table))

    def _should_fail(self, operation: str, table: str) -> bool:
        for armed in self._armed_failures:
            armed_op, armed_table = armed
            if armed_op == operation and armed_table in (None, table):
                self._armed_failures.remove(armed)
                logger.debug(
                    "store_failure_injected",
                    extra={"operation": operation, "table": table},
                )
                return True
        return False

    def get(self, table: str, record_id: str) -> Record | None:
        record = self._tables.get(table, {}).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def get_all(
        self,
        table: str,
        criteria: Mapping[str, Any] | None = None,
        predicate: Predicate | None = None,
    ) -> list[Record]:
        return [
            copy.deepcopy(record)
            for record in self._tables.get(table, {}).values()
            if matches(record, criteria, predicate)
        ]

    def insert(self, table: str, record: Mapping[str, Any]) -> InsertResult:
        if self._should_fail("insert", table):
            return InsertResult(success=False)
        rows = self._tables.setdefault(table, {})
        record_id = str(record.get("id") or uuid4().hex)
        if record_id in rows:
            return InsertResult(success=False, id=record_id)
        stored = copy.deepcopy(dict(record))
        stored["id"] = record_id
        rows[record_id] = stored
        return InsertResult(success=True, id=record_id)

    def update(self, table: str, record_id: str, changes: Mapping[str, Any]) -> UpdateResult:
        if self._should_fail("update", table):
            return UpdateResult(success=False)
        record = self._tables.get(table, {}).get(record_id)
        if record is None:
            return UpdateResult(success=False)
        for key, value in changes.items():
            if key != "id":
                record[key] = copy.deepcopy(value)
        return UpdateResult(success=True)

    def delete(self, table: str, record_id: str) -> DeleteResult:
        if self._should_fail("delete", table):
            return DeleteResult(success=False)
        removed = self._tables.get(table, {}).pop(record_id, None)
        return DeleteResult(success=True, changes=0 if removed is None else 1)

    def count(self, table: str) -> int:
        """Number of records in a table."""
        return len(self._tables.get(table, {}))
