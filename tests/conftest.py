"""
Pytest fixtures for the ledger test suite.

Provides:
- Structured logging configured once per session, log capture
- An in-memory record store and a deterministic clock per test
- A fully wired ``LedgerEngine`` plus common master data
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.store import InMemoryRecordStore
from ledger_services import LedgerEngine


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.inventory.create_product("Rice")
            logs = captured_logs()
            assert any(r["message"] == "product_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def engine(store, clock):
    return LedgerEngine(store, clock=clock)


@pytest.fixture
def day():
    """Document date inside the clock's year."""
    return date(2024, 1, 15)


# =============================================================================
# Master data
# =============================================================================


@pytest.fixture
def product(engine):
    """A product opening at 100 units, 12 smallest units per largest."""
    return engine.inventory.create_product(
        "Rice 5kg",
        category="grain",
        smallest_unit="bag",
        largest_unit="carton",
        conversion_factor=Decimal("12"),
        opening_stock=Decimal("100"),
        smallest_price=Decimal("2.50"),
    )


@pytest.fixture
def customer(engine):
    return engine.accounts.create_customer("Nile Traders")


@pytest.fixture
def supplier(engine):
    return engine.accounts.create_supplier("Delta Mills")


@pytest.fixture
def stock_events(engine):
    """Collect ``stock_changed`` payloads published by the engine."""
    received: list[dict] = []
    engine.notifier.subscribe("stock_changed", received.append)
    return received
