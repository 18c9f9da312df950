"""
NumberingService -- document number allocation.

Responsibility:
    Allocates human-facing document numbers (``DN-2024-001``, ``PRD-00042``,
    ...) in the formats existing records already use, so new records
    interoperate with old ones.

Architecture position:
    Kernel > Services.  Called by every module service that creates a
    numbered document or master record.

Invariants enforced:
    - Format is bit-exact: prefix, optional 4-digit year, zero-padded counter.
    - Never reused: the next value is
      ``max(highest existing number, persisted counter) + 1`` and the
      counter row in ``sequence_counters`` is advanced on every allocation,
      so deleting the highest-numbered record does not free its number.
    - Year-scoped series restart at 1 each year; the year comes from the
      injected Clock.

Failure modes:
    - StoreFailureError if the counter row cannot be written.
"""

import re
from dataclasses import dataclass

from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import StoreBackedService
from ledger_kernel.store import tables

logger = get_logger("services.numbering")


@dataclass(frozen=True)
class NumberSeries:
    """A numbered document family and where its numbers are stored."""
    prefix: str
    table: str
    field: str
    width: int = 3
    yearly: bool = True

    def __post_init__(self):
        if self.width <= 0:
            raise ValueError(f"width must be positive, got {self.width}")

    def scope(self, year: int) -> str:
        return f"{self.prefix}-{year}" if self.yearly else self.prefix

    def pattern(self, year: int) -> re.Pattern:
        return re.compile(rf"^{re.escape(self.scope(year))}-(\d+)$")

    def format(self, year: int, value: int) -> str:
        return f"{self.scope(year)}-{value:0{self.width}d}"


DELIVERY_NOTE = NumberSeries("DN", tables.DELIVERY_NOTES, "delivery_note_number")
SETTLEMENT = NumberSeries("STL", tables.DELIVERY_SETTLEMENTS, "settlement_number")
PURCHASE_INVOICE = NumberSeries("PUR", tables.PURCHASE_INVOICES, "invoice_number")
SALES_INVOICE = NumberSeries("INV", tables.SALES_INVOICES, "invoice_number")
RECEIPT = NumberSeries("REC", tables.RECEIPTS, "receipt_number")
PAYMENT = NumberSeries("PAY", tables.PAYMENTS, "payment_number")
RETURN = NumberSeries("RET", tables.RETURNS, "return_number")
ADJUSTMENT = NumberSeries("INV-STK", tables.INVENTORY_ADJUSTMENTS, "adjustment_number")
PRODUCT = NumberSeries("PRD", tables.PRODUCTS, "code", width=5, yearly=False)
CUSTOMER = NumberSeries("CUST", tables.CUSTOMERS, "code", width=5, yearly=False)
SUPPLIER = NumberSeries("SUPP", tables.SUPPLIERS, "code", width=5, yearly=False)


class NumberingService(StoreBackedService):
    """
    Allocates the next number of a series.

    Usage:
        numbering = NumberingService(store, clock)
        numbering.next_number(DELIVERY_NOTE)   # "DN-2024-001"
    """

    def highest_existing(self, series: NumberSeries, year: int) -> int:
        """Largest counter among stored numbers of this series and year."""
        pattern = series.pattern(year)
        highest = 0
        for record in self.store.get_all(series.table):
            match = pattern.match(str(record.get(series.field) or ""))
            if match:
                highest = max(highest, int(match.group(1)))
        return highest

    def current_value(self, series: NumberSeries, year: int | None = None) -> int | None:
        """Persisted counter for the series scope, or None if never used."""
        counter = self._counter(series.scope(year or self.clock.today().year))
        return int(counter["current_value"]) if counter else None

    def next_number(self, series: NumberSeries) -> str:
        """
        Allocate the next number of ``series``.

        Postconditions:
            - The returned number is strictly greater than every number of the
              same scope already stored or previously allocated.
            - The persisted counter equals the returned counter value.
        """
        year = self.clock.today().year
        name = series.scope(year)
        counter = self._counter(name)
        persisted = int(counter["current_value"]) if counter else 0
        value = max(self.highest_existing(series, year), persisted) + 1

        if counter is None:
            self._insert(tables.SEQUENCE_COUNTERS, {"name": name, "current_value": value})
        else:
            self._update(tables.SEQUENCE_COUNTERS, counter["id"], {"current_value": value})

        number = series.format(year, value)
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": value, "number": number},
        )
        return number

    def _counter(self, name: str) -> dict | None:
        rows = self.store.get_all(tables.SEQUENCE_COUNTERS, {"name": name})
        return rows[0] if rows else None
