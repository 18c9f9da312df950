"""
Tests for the record store implementations.

Covers:
- In-memory store CRUD, filtering and copy isolation
- Injected write failures
- SQL store over sqlite, including Decimal and date round trips
- Engine lifecycle: session scope commit/rollback, drop_tables
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import event, inspect

from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from ledger_kernel.store import InMemoryRecordStore
from ledger_kernel.store.sql import SqlRecordStore, StoredRecord


class TestInMemoryRecordStore:
    """CRUD behaviour of the dict-backed store."""

    def setup_method(self):
        self.store = InMemoryRecordStore()

    def test_insert_assigns_id(self):
        """Insert without an id generates one."""
        result = self.store.insert("products", {"name": "Rice"})

        assert result.success is True
        assert result.id
        assert self.store.get("products", result.id)["name"] == "Rice"

    def test_insert_duplicate_id_fails(self):
        """A second insert with the same id is rejected."""
        self.store.insert("products", {"id": "p1", "name": "Rice"})
        result = self.store.insert("products", {"id": "p1", "name": "Flour"})

        assert result.success is False
        assert self.store.get("products", "p1")["name"] == "Rice"

    def test_get_missing_returns_none(self):
        assert self.store.get("products", "nope") is None

    def test_get_all_filters_by_criteria(self):
        """Criteria match on field equality."""
        self.store.insert("returns", {"entity_id": "c1", "restore_balance": True})
        self.store.insert("returns", {"entity_id": "c1", "restore_balance": False})
        self.store.insert("returns", {"entity_id": "c2", "restore_balance": True})

        rows = self.store.get_all("returns", {"entity_id": "c1", "restore_balance": True})

        assert len(rows) == 1

    def test_get_all_with_predicate(self):
        self.store.insert("products", {"stock": Decimal("5")})
        self.store.insert("products", {"stock": Decimal("50")})

        rows = self.store.get_all("products", predicate=lambda r: r["stock"] > 10)

        assert [r["stock"] for r in rows] == [Decimal("50")]

    def test_get_all_keeps_insertion_order(self):
        for name in ("a", "b", "c"):
            self.store.insert("products", {"name": name})

        assert [r["name"] for r in self.store.get_all("products")] == ["a", "b", "c"]

    def test_returned_records_are_copies(self):
        """Mutating a fetched record does not change the store."""
        result = self.store.insert("products", {"name": "Rice"})
        fetched = self.store.get("products", result.id)
        fetched["name"] = "changed"

        assert self.store.get("products", result.id)["name"] == "Rice"

    def test_update_merges_changes(self):
        result = self.store.insert("products", {"name": "Rice", "stock": Decimal("1")})

        update = self.store.update("products", result.id, {"stock": Decimal("9"), "id": "other"})

        assert update.success is True
        record = self.store.get("products", result.id)
        assert record["stock"] == Decimal("9")
        assert record["name"] == "Rice"
        assert record["id"] == result.id

    def test_update_missing_record_fails(self):
        assert self.store.update("products", "nope", {"stock": 1}).success is False

    def test_delete_reports_changes(self):
        result = self.store.insert("products", {"name": "Rice"})

        assert self.store.delete("products", result.id).changes == 1
        assert self.store.delete("products", result.id).changes == 0
        assert self.store.count("products") == 0


class TestInjectedFailures:
    """``fail_next`` arms a one-shot write failure."""

    def setup_method(self):
        self.store = InMemoryRecordStore()

    def test_fail_next_insert_once(self):
        self.store.fail_next("insert", "products")

        assert self.store.insert("products", {"name": "a"}).success is False
        assert self.store.insert("products", {"name": "b"}).success is True

    def test_fail_next_scoped_to_table(self):
        """A failure armed for one table leaves other tables alone."""
        self.store.fail_next("insert", "products")

        assert self.store.insert("customers", {"name": "a"}).success is True
        assert self.store.insert("products", {"name": "b"}).success is False

    def test_fail_next_any_table(self):
        result = self.store.insert("products", {"name": "a"})
        self.store.fail_next("delete")

        assert self.store.delete("products", result.id).success is False
        assert self.store.count("products") == 1

    def test_unknown_operation_rejected(self):
        with pytest.raises(ValueError):
            self.store.fail_next("truncate")


class TestSqlRecordStore:
    """The SQLAlchemy-backed store behaves like the in-memory one."""

    def setup_method(self):
        init_engine_from_url("sqlite:///:memory:")
        create_tables()
        self.store = SqlRecordStore(get_session_factory())

    def teardown_method(self):
        reset_engine()

    def test_insert_and_get(self):
        result = self.store.insert("products", {"name": "Rice", "stock": Decimal("12.5")})

        record = self.store.get("products", result.id)

        assert record["id"] == result.id
        assert record["stock"] == Decimal("12.5")
        assert isinstance(record["stock"], Decimal)

    def test_dates_round_trip(self):
        """date and datetime values come back with their original types."""
        created = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        result = self.store.insert(
            "delivery_notes", {"date": date(2024, 3, 1), "created_at": created}
        )

        record = self.store.get("delivery_notes", result.id)

        assert record["date"] == date(2024, 3, 1)
        assert record["created_at"] == created

    def test_duplicate_insert_fails(self):
        self.store.insert("products", {"id": "p1", "name": "Rice"})

        assert self.store.insert("products", {"id": "p1", "name": "Flour"}).success is False

    def test_get_all_order_and_criteria(self):
        self.store.insert("sales_invoices", {"invoice_number": "INV-2024-001", "status": "pending"})
        self.store.insert("sales_invoices", {"invoice_number": "INV-2024-002", "status": "delivered"})
        self.store.insert("sales_invoices", {"invoice_number": "INV-2024-003", "status": "delivered"})
        self.store.insert("products", {"name": "elsewhere"})

        rows = self.store.get_all("sales_invoices", {"status": "delivered"})

        assert [r["invoice_number"] for r in rows] == ["INV-2024-002", "INV-2024-003"]

    def test_string_criteria_filtered_in_query(self):
        """Foreign-key lookups narrow the SELECT instead of scanning the table."""
        for note in ("n1", "n1", "n2"):
            self.store.insert("delivery_note_items", {"delivery_note_id": note, "quantity": Decimal("5")})
        statements = []

        def capture(conn, cursor, statement, parameters, context, executemany):
            statements.append((statement, parameters))

        event.listen(get_engine(), "before_cursor_execute", capture)
        try:
            rows = self.store.get_all("delivery_note_items", {"delivery_note_id": "n1"})
        finally:
            event.remove(get_engine(), "before_cursor_execute", capture)

        assert len(rows) == 2
        statement, parameters = statements[-1]
        assert "JSON_EXTRACT" in statement.upper()
        assert "n1" in tuple(parameters)

    def test_tagged_criteria_still_match(self):
        self.store.insert("products", {"id": "p1", "name": "Rice", "stock": Decimal("12.5")})
        self.store.insert("products", {"id": "p2", "name": "Rice", "stock": Decimal("3")})

        rows = self.store.get_all("products", {"name": "Rice", "stock": Decimal("12.50")})

        assert [r["id"] for r in rows] == ["p1"]
        assert [r["name"] for r in self.store.get_all("products", {"id": "p2"})] == ["Rice"]

    def test_update_and_delete(self):
        result = self.store.insert("products", {"name": "Rice", "stock": Decimal("1")})

        assert self.store.update("products", result.id, {"stock": Decimal("3")}).success is True
        assert self.store.get("products", result.id)["stock"] == Decimal("3")
        assert self.store.delete("products", result.id).changes == 1
        assert self.store.get("products", result.id) is None

    def test_update_missing_record_fails(self):
        assert self.store.update("products", "missing", {"stock": 1}).success is False


class TestEngineLifecycle:
    """Engine initialization, session scope and teardown."""

    def teardown_method(self):
        reset_engine()

    def test_requires_initialization(self):
        reset_engine()

        with pytest.raises(RuntimeError):
            get_session()

    def test_session_scope_commits(self):
        init_engine_from_url("sqlite:///:memory:")
        create_tables()

        with session_scope() as session:
            session.add(StoredRecord(table_name="products", record_id="p1", payload={"name": "Rice"}))

        store = SqlRecordStore(get_session_factory())
        assert store.get("products", "p1") == {"id": "p1", "name": "Rice"}

    def test_session_scope_rolls_back(self):
        init_engine_from_url("sqlite:///:memory:")
        create_tables()

        with pytest.raises(ValueError):
            with session_scope() as session:
                session.add(StoredRecord(table_name="products", record_id="p1", payload={}))
                raise ValueError("abort")

        assert SqlRecordStore(get_session_factory()).get("products", "p1") is None

    def test_drop_tables(self):
        init_engine_from_url("sqlite:///:memory:")
        create_tables()

        drop_tables()

        assert inspect(get_engine()).get_table_names() == []
