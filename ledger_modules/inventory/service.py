"""
Inventory Service (``ledger_modules.inventory.service``).

Responsibility
--------------
Product master data and the two stock documents owned by inventory:
manual adjustments (increase, decrease, set) and returns (from a customer
or to a supplier).  All stock writes go through ``StockLedger``.

Architecture
------------
Layer: **Modules** -- orchestration over ``StockLedger``,
``NumberingService`` and ``AccountBalanceLedger``.

Invariants
----------
- A product is created with ``stock == opening_stock``; ``opening_stock``
  is never written again.
- Deleting an adjustment restores the stock recorded before it.  An
  absolute "set" has no inverse of its own, so the recorded prior value is
  the reversal for every adjustment type.
- A return restocks only when its reason is not a non-restock reason; its
  deletion reverses exactly what its creation did.

Failure Modes
-------------
- ``RecordNotFoundError`` for unknown products, accounts or documents.
- ``MissingFieldError`` / ``InvalidQuantityError`` on invalid input, raised
  before any write.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from ledger_engines.stock_movement import MovementKind, StockMovement
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.values import ZERO, Unit, to_date, to_decimal
from ledger_kernel.exceptions import InvalidQuantityError, MissingFieldError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services import numbering as series
from ledger_kernel.services.base import StoreBackedService
from ledger_kernel.services.cache import RecordCache
from ledger_kernel.services.numbering import NumberingService
from ledger_kernel.store import tables
from ledger_kernel.store.protocol import RecordStore
from ledger_modules.accounts.models import AccountKind
from ledger_modules.accounts.service import AccountBalanceLedger
from ledger_modules.inventory.config import InventoryConfig
from ledger_modules.inventory.models import (
    Adjustment,
    AdjustmentType,
    Product,
    ReturnType,
    StockReturn,
)
from ledger_modules.inventory.stock_ledger import StockLedger

logger = get_logger("modules.inventory.service")


class InventoryService(StoreBackedService):
    """
    Products, adjustments and returns.

    Usage:
        product = inventory.create_product("Rice 5kg", opening_stock=Decimal("100"))
        inventory.create_adjustment(product.id, AdjustmentType.DECREASE, Decimal("3"), date.today())
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock,
        stock_ledger: StockLedger,
        numbering: NumberingService,
        accounts: AccountBalanceLedger,
        cache: RecordCache,
        config: InventoryConfig | None = None,
    ):
        super().__init__(store, clock)
        self.stock_ledger = stock_ledger
        self.numbering = numbering
        self.accounts = accounts
        self.cache = cache
        self.config = config or InventoryConfig.with_defaults()

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def create_product(
        self,
        name: str,
        *,
        category: str = "",
        smallest_unit: str = "",
        largest_unit: str = "",
        conversion_factor=None,
        opening_stock=ZERO,
        smallest_price=ZERO,
        largest_price=ZERO,
        notes: str | None = None,
    ) -> Product:
        """
        Create a product with a ``PRD-NNNNN`` code.

        Postconditions:
            - ``stock == opening_stock``.

        Raises:
            MissingFieldError: blank name, or a category outside the
                configured list when one is configured.
            InvalidQuantityError: negative opening stock or a non-positive
                conversion factor.
        """
        if not name or not name.strip():
            raise MissingFieldError("name", "product")
        if self.config.product_categories and category not in self.config.product_categories:
            raise MissingFieldError("category", "product")
        factor = to_decimal(
            conversion_factor if conversion_factor is not None else self.config.default_conversion_factor,
            "conversion_factor",
        )
        if factor <= 0:
            raise InvalidQuantityError("conversion_factor", factor, "must be positive")
        opening = to_decimal(opening_stock, "opening_stock")
        if opening < 0:
            raise InvalidQuantityError("opening_stock", opening, "cannot be negative")

        record = self._insert(
            tables.PRODUCTS,
            {
                "code": self.numbering.next_number(series.PRODUCT),
                "name": name.strip(),
                "category": category,
                "smallest_unit": smallest_unit,
                "largest_unit": largest_unit,
                "conversion_factor": factor,
                "smallest_price": to_decimal(smallest_price, "smallest_price"),
                "largest_price": to_decimal(largest_price, "largest_price"),
                "stock": opening,
                "opening_stock": opening,
                "notes": notes,
                "status": "active",
            },
        )
        self.cache.upsert(tables.PRODUCTS, record)
        logger.info(
            "product_created",
            extra={
                "product_id": record["id"],
                "code": record["code"],
                "opening_stock": str(opening),
                "conversion_factor": str(factor),
            },
        )
        return Product.from_record(record)

    def get_product(self, product_id: str) -> Product:
        return Product.from_record(self._require(tables.PRODUCTS, product_id))

    def list_products(self) -> list[Product]:
        return [Product.from_record(r) for r in self.cache.all(tables.PRODUCTS)]

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    def create_adjustment(
        self,
        product_id: str,
        adjustment_type: AdjustmentType | str,
        quantity,
        adjustment_date: date | str,
        reason: str | None = None,
        notes: str | None = None,
    ) -> Adjustment:
        """
        Adjust a product's stock and record the adjustment.

        ``set`` replaces the stock with ``|quantity|``; increase/decrease need
        a positive quantity.  The record keeps ``old_stock``/``new_stock``.
        """
        kind = AdjustmentType(adjustment_type)
        qty = to_decimal(quantity, "quantity")
        if kind is not AdjustmentType.SET and qty <= 0:
            raise InvalidQuantityError("quantity", qty, "must be positive")
        if self.config.require_adjustment_reason and not reason:
            raise MissingFieldError("reason", "inventory adjustment")
        when = to_date(adjustment_date)
        self._require(tables.PRODUCTS, product_id)

        number = self.numbering.next_number(series.ADJUSTMENT)
        result = self.stock_ledger.apply(
            product_id, StockMovement(kind.movement_kind, abs(qty) if kind is AdjustmentType.SET else qty)
        )
        record = self._insert(
            tables.INVENTORY_ADJUSTMENTS,
            {
                "adjustment_number": number,
                "product_id": product_id,
                "date": when,
                "type": kind.value,
                "quantity": qty,
                "old_stock": result.old_stock,
                "new_stock": result.new_stock,
                "reason": reason,
                "notes": notes,
            },
        )
        logger.info(
            "inventory_adjustment_created",
            extra={
                "adjustment_number": number,
                "product_id": product_id,
                "adjustment_type": kind.value,
                "old_stock": str(result.old_stock),
                "new_stock": str(result.new_stock),
            },
        )
        return Adjustment.from_record(record)

    def delete_adjustment(self, adjustment_id: str) -> Decimal:
        """Restore the stock recorded before the adjustment, then delete it."""
        record = self._require(tables.INVENTORY_ADJUSTMENTS, adjustment_id)
        old_stock = to_decimal(record["old_stock"])
        result = self.stock_ledger.apply(
            record["product_id"], StockMovement(MovementKind.ADJUSTMENT_SET, old_stock)
        )
        self._delete(tables.INVENTORY_ADJUSTMENTS, adjustment_id)
        logger.info(
            "inventory_adjustment_deleted",
            extra={
                "adjustment_number": record["adjustment_number"],
                "product_id": record["product_id"],
                "restored_stock": str(result.new_stock),
            },
        )
        return result.new_stock

    def list_adjustments(self, product_id: str | None = None) -> list[Adjustment]:
        criteria = {"product_id": product_id} if product_id else None
        return [
            Adjustment.from_record(r)
            for r in self.store.get_all(tables.INVENTORY_ADJUSTMENTS, criteria)
        ]

    # ------------------------------------------------------------------
    # Returns
    # ------------------------------------------------------------------

    def is_restockable(self, return_reason: str) -> bool:
        return return_reason.strip().lower() not in self.config.non_restock_reasons

    def create_return(
        self,
        product_id: str,
        return_type: ReturnType | str,
        entity_id: str,
        quantity,
        unit_price,
        return_reason: str,
        return_date: date | str,
        *,
        restore_balance: bool = False,
        unit: Unit | str = Unit.SMALLEST,
        invoice_id: str | None = None,
        notes: str | None = None,
    ) -> StockReturn:
        """
        Record a return and apply its stock and balance effects.

        Stock: from a customer ``+qty``, to a supplier ``-qty``, only when
        the reason allows restocking.  Balance: the account is recomputed
        when ``restore_balance`` is set, which subtracts ``total_amount``.
        """
        kind = ReturnType(return_type)
        qty = to_decimal(quantity, "quantity")
        price = to_decimal(unit_price, "unit_price")
        if qty <= 0:
            raise InvalidQuantityError("quantity", qty, "must be positive")
        if price < 0:
            raise InvalidQuantityError("unit_price", price, "cannot be negative")
        if not return_reason or not return_reason.strip():
            raise MissingFieldError("return_reason", "return")
        if not entity_id:
            raise MissingFieldError("entity_id", "return")
        account_kind = _account_kind(kind)
        self._require(account_kind.table, entity_id)
        self._require(tables.PRODUCTS, product_id)
        the_unit = Unit.parse(unit)
        restored = self.is_restockable(return_reason)

        number = self.numbering.next_number(series.RETURN)
        if restored:
            self.stock_ledger.apply(product_id, StockMovement(kind.movement_kind, qty, the_unit))
        record = self._insert(
            tables.RETURNS,
            {
                "return_number": number,
                "product_id": product_id,
                "date": to_date(return_date),
                "return_type": kind.value,
                "entity_id": entity_id,
                "entity_type": account_kind.value,
                "invoice_id": invoice_id,
                "quantity": qty,
                "unit": the_unit.value,
                "unit_price": price,
                "total_amount": qty * price,
                "return_reason": return_reason.strip(),
                "is_damaged": return_reason.strip().lower() == "damaged",
                "restored_to_stock": restored,
                "restore_balance": bool(restore_balance),
                "notes": notes,
            },
        )
        if restore_balance:
            self.accounts.recompute_balance(account_kind, entity_id)

        logger.info(
            "stock_return_created",
            extra={
                "return_number": number,
                "return_type": kind.value,
                "product_id": product_id,
                "restored_to_stock": restored,
                "restore_balance": bool(restore_balance),
            },
        )
        return StockReturn.from_record(record)

    def delete_return(self, return_id: str) -> None:
        """Reverse a return's stock and balance effects and delete it."""
        record = self._require(tables.RETURNS, return_id)
        kind = ReturnType(record["return_type"])
        if record.get("restored_to_stock"):
            self.stock_ledger.reverse(
                record["product_id"],
                StockMovement(kind.movement_kind, to_decimal(record["quantity"]), Unit.parse(record.get("unit"))),
            )
        self._delete(tables.RETURNS, return_id)
        if record.get("restore_balance"):
            self.accounts.recompute_balance(_account_kind(kind), record["entity_id"])
        logger.info(
            "stock_return_deleted",
            extra={"return_number": record["return_number"], "product_id": record["product_id"]},
        )

    def list_returns(self, product_ids: Iterable[str] | None = None) -> list[StockReturn]:
        wanted = set(product_ids) if product_ids is not None else None
        return [
            StockReturn.from_record(r)
            for r in self.store.get_all(tables.RETURNS)
            if wanted is None or r["product_id"] in wanted
        ]


def _account_kind(return_type: ReturnType) -> AccountKind:
    if return_type is ReturnType.FROM_CUSTOMER:
        return AccountKind.CUSTOMER
    return AccountKind.SUPPLIER
