"""
StockLedger -- the single writer of product stock.

Responsibility:
    Applies ``StockMovement`` values to product records: reads the product,
    runs the pure stock-movement engine, writes the new stock back, mirrors
    it into the repository cache and announces the change.

Architecture position:
    Modules > Inventory.  Every service that moves stock (sales, purchasing,
    consignment, adjustments, returns) goes through this class.

Invariants enforced:
    - Stock is never negative after a write; a clamp is logged at WARNING
      and the operation continues.
    - Corrections are expressed as inverse movements, never as a rebuild.
    - One stock write per call; no retries.

Failure modes:
    - RecordNotFoundError if the product does not exist.
    - StoreFailureError if the store rejects the update.
"""

from collections.abc import Iterable
from decimal import Decimal

from ledger_engines.stock_movement import StockMovement, StockMovementResult, apply_movement
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.values import to_decimal
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import StoreBackedService
from ledger_kernel.services.cache import RecordCache
from ledger_kernel.services.notifications import ChangeNotifier
from ledger_kernel.store import tables
from ledger_kernel.store.protocol import RecordStore

logger = get_logger("modules.inventory.stock_ledger")


class StockLedger(StoreBackedService):
    """
    Applies movements to product stock.

    Contract:
        ``apply`` performs exactly one store update.  With ``notify=True`` it
        publishes ``stock_changed`` for the product; multi-line callers pass
        ``notify=False`` and call ``notify_changed`` once at the end so each
        product is announced once per operation.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock,
        cache: RecordCache,
        notifier: ChangeNotifier,
    ):
        super().__init__(store, clock)
        self.cache = cache
        self.notifier = notifier

    def current_stock(self, product_id: str) -> Decimal:
        return to_decimal(self._require(tables.PRODUCTS, product_id).get("stock"))

    def apply(
        self,
        product_id: str,
        movement: StockMovement,
        notify: bool = True,
    ) -> StockMovementResult:
        """
        Apply ``movement`` to the product's stock.

        Postconditions:
            - products/<product_id>.stock == result.new_stock >= 0.
            - The cached product carries the same stock.
        """
        product = self._require(tables.PRODUCTS, product_id)
        result = apply_movement(
            stock=to_decimal(product.get("stock")),
            movement=movement,
            conversion_factor=to_decimal(product.get("conversion_factor") or 1),
        )

        self._update(tables.PRODUCTS, product_id, {"stock": result.new_stock})
        self.cache.upsert(tables.PRODUCTS, {**product, "stock": result.new_stock})

        if result.clamped:
            logger.warning(
                "stock_clamped_at_zero",
                extra={
                    "product_id": product_id,
                    "movement_kind": movement.kind.value,
                    "computed_stock": str(result.computed_stock),
                },
            )
        logger.info(
            "stock_movement_applied",
            extra={
                "product_id": product_id,
                "movement_kind": movement.kind.value,
                "reversed": movement.reversed,
                "old_stock": str(result.old_stock),
                "new_stock": str(result.new_stock),
            },
        )

        if notify:
            self.notifier.stock_changed(product_id)
        return result

    def reverse(
        self,
        product_id: str,
        movement: StockMovement,
        notify: bool = True,
    ) -> StockMovementResult:
        """Apply the inverse of a previously applied movement."""
        return self.apply(product_id, movement.inverse(), notify=notify)

    def notify_changed(self, product_ids: Iterable[str]) -> None:
        """Publish ``stock_changed`` once per distinct product, in first-seen order."""
        for product_id in dict.fromkeys(product_ids):
            self.notifier.stock_changed(product_id)
