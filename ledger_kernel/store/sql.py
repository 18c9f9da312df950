"""
SqlRecordStore -- RecordStore over a relational database.

Responsibility:
    Persists ledger records through SQLAlchemy so that a desktop or server
    deployment keeps its stock, balances and consignment documents across
    restarts.  Every record of every logical table is one ``StoredRecord``
    row holding the table name, the record id, an insertion position and
    the record body as JSON.

Architecture position:
    Kernel > Store.  Depends on db/base.py and db/engine.py.

Invariants enforced:
    - (table_name, record_id) is unique; a duplicate insert reports
      ``success=False``.
    - ``get_all`` orders by insertion position, matching the in-memory store.
    - String and id criteria are filtered in SQL; ``matches`` still runs on
      the fetched rows so tagged values compare as Python objects.
    - Decimal, date and datetime values survive the JSON round trip through
      the tagged ``RecordPayload`` codec (never coerced to float).

Failure modes:
    - Each operation runs in its own short transaction: a failed write rolls
      back only itself.  No atomicity spans several calls.
"""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, BigInteger, Index, Integer, String, UniqueConstraint, select, type_coerce
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.types import TypeDecorator

from ledger_kernel.db.base import TrackedBase
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

logger = get_logger("store.sql")

_DECIMAL_TAG = "__decimal__"
_DATE_TAG = "__date__"
_DATETIME_TAG = "__datetime__"


def _encode(value: Any) -> Any:
    if isinstance(value, Decimal):
        return {_DECIMAL_TAG: str(value)}
    # datetime before date: datetime is a date subclass
    if isinstance(value, datetime):
        return {_DATETIME_TAG: value.isoformat()}
    if isinstance(value, date):
        return {_DATE_TAG: value.isoformat()}
    if isinstance(value, Mapping):
        return {key: _encode(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(val) for val in value]
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1:
            (tag, raw), = value.items()
            if tag == _DECIMAL_TAG:
                return Decimal(raw)
            if tag == _DATE_TAG:
                return date.fromisoformat(raw)
            if tag == _DATETIME_TAG:
                return datetime.fromisoformat(raw)
        return {key: _decode(val) for key, val in value.items()}
    if isinstance(value, list):
        return [_decode(val) for val in value]
    return value


class RecordPayload(TypeDecorator):
    """
    JSON column that preserves Decimal and date values.

    Guarantees:
        - process_bind_param: Decimal/date/datetime -> tagged JSON objects.
        - process_result_value: tagged objects -> original Python types.
    """

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return _encode(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return _decode(value)


class StoredRecord(TrackedBase):
    """One record of one logical table."""

    __tablename__ = "ledger_records"

    __table_args__ = (
        UniqueConstraint("table_name", "record_id", name="uq_ledger_records_table_record"),
        Index("idx_ledger_records_table", "table_name", "position"),
    )

    # sqlite only autoincrements INTEGER PRIMARY KEY
    position: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    table_name: Mapped[str] = mapped_column(String(64), nullable=False)
    record_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict] = mapped_column(RecordPayload(), nullable=False)

    def to_record(self) -> Record:
        record = dict(self.payload)
        record["id"] = self.record_id
        return record

    def __repr__(self) -> str:
        return f"<StoredRecord {self.table_name}/{self.record_id}>"


def _criteria_clauses(criteria: Mapping[str, Any] | None) -> list:
    """WHERE clauses for the criteria a JSON text comparison can decide."""
    clauses = []
    for key, expected in (criteria or {}).items():
        if key == "id":
            clauses.append(StoredRecord.record_id == str(expected))
        elif isinstance(expected, str):
            clauses.append(type_coerce(StoredRecord.payload, JSON)[key].as_string() == expected)
    return clauses


class SqlRecordStore(RecordStore):
    """
    RecordStore backed by a SQLAlchemy session factory.

    Usage:
        init_engine_from_url("sqlite:///:memory:")
        create_tables()
        store = SqlRecordStore(get_session_factory())
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _find(session: Session, table: str, record_id: str) -> StoredRecord | None:
        return session.execute(
            select(StoredRecord).where(
                StoredRecord.table_name == table,
                StoredRecord.record_id == record_id,
            )
        ).scalar_one_or_none()

    def get(self, table: str, record_id: str) -> Record | None:
        with self._scope() as session:
            row = self._find(session, table, record_id)
            return row.to_record() if row is not None else None

    def get_all(
        self,
        table: str,
        criteria: Mapping[str, Any] | None = None,
        predicate: Predicate | None = None,
    ) -> list[Record]:
        query = select(StoredRecord).where(
            StoredRecord.table_name == table, *_criteria_clauses(criteria)
        )
        with self._scope() as session:
            rows = session.execute(query.order_by(StoredRecord.position)).scalars().all()
            records = [row.to_record() for row in rows]
        return [r for r in records if matches(r, criteria, predicate)]

    def insert(self, table: str, record: Mapping[str, Any]) -> InsertResult:
        record_id = str(record.get("id") or uuid4().hex)
        body = {key: val for key, val in record.items() if key != "id"}
        try:
            with self._scope() as session:
                session.add(StoredRecord(table_name=table, record_id=record_id, payload=body))
        except IntegrityError:
            logger.warning(
                "store_insert_rejected",
                extra={"table": table, "record_id": record_id},
            )
            return InsertResult(success=False, id=record_id)
        return InsertResult(success=True, id=record_id)

    def update(self, table: str, record_id: str, changes: Mapping[str, Any]) -> UpdateResult:
        with self._scope() as session:
            row = self._find(session, table, record_id)
            if row is None:
                return UpdateResult(success=False)
            merged = dict(row.payload)
            merged.update({key: val for key, val in changes.items() if key != "id"})
            # reassign so the JSON column is flagged dirty
            row.payload = merged
        return UpdateResult(success=True)

    def delete(self, table: str, record_id: str) -> DeleteResult:
        with self._scope() as session:
            row = self._find(session, table, record_id)
            if row is None:
                return DeleteResult(success=True, changes=0)
            session.delete(row)
        return DeleteResult(success=True, changes=1)
