"""
RecordCache -- explicit repository cache over the record store.

Responsibility:
    Holds the per-table records a view keeps in memory (products,
    customers, ...) with the store as the source of truth.  Services mirror
    their writes into it with ``upsert``; views rebuild it with ``reload``.

Invariants enforced:
    - ``get`` is read-through: a miss falls back to the store.
    - Returned records are copies; mutating them does not touch the cache.
"""

import copy

from ledger_kernel.logging_config import get_logger
from ledger_kernel.store.protocol import Record, RecordStore

logger = get_logger("services.cache")


class RecordCache:

    def __init__(self, store: RecordStore):
        self._store = store
        self._tables: dict[str, dict[str, Record]] = {}
        self._loaded: set[str] = set()

    def get(self, table: str, record_id: str) -> Record | None:
        cached = self._tables.get(table, {}).get(record_id)
        if cached is None:
            cached = self._store.get(table, record_id)
            if cached is None:
                return None
            self._tables.setdefault(table, {})[record_id] = cached
        return copy.deepcopy(cached)

    def all(self, table: str) -> list[Record]:
        """Every cached record of ``table``; loads the table on first use."""
        if table not in self._loaded:
            self.reload(table)
        return [copy.deepcopy(r) for r in self._tables.get(table, {}).values()]

    def upsert(self, table: str, record: Record) -> None:
        rows = self._tables.setdefault(table, {})
        existing = rows.get(record["id"], {})
        rows[record["id"]] = {**existing, **copy.deepcopy(record)}

    def invalidate(self, table: str, record_id: str | None = None) -> None:
        """Drop one record, or the whole table when ``record_id`` is None."""
        if record_id is None:
            self._tables.pop(table, None)
            self._loaded.discard(table)
        else:
            self._tables.get(table, {}).pop(record_id, None)

    def reload(self, table: str) -> int:
        """Replace the cached table with the store's contents."""
        records = self._store.get_all(table)
        self._tables[table] = {r["id"]: r for r in records}
        self._loaded.add(table)
        logger.debug("cache_reloaded", extra={"table": table, "record_count": len(records)})
        return len(records)

    def __contains__(self, key: tuple[str, str]) -> bool:
        table, record_id = key
        return record_id in self._tables.get(table, {})
