"""
ledger_services.engine -- composition root for the ledger services.

Responsibility:
    Creates every kernel and module service exactly once, wires them to a
    single record store, clock, cache and change notifier, and exposes
    them as attributes.  No service constructs its own collaborators.

Invariants enforced:
    - A record store is required; there is no store-less mode.
    - All services share the same store, clock, cache and notifier.
    - ``StockLedger`` is the only stock writer handed to the modules.

Usage:
    from ledger_kernel.store import InMemoryRecordStore
    from ledger_services import LedgerEngine

    engine = LedgerEngine(InMemoryRecordStore())
    engine.notifier.subscribe("stock_changed", refresh_product_view)
    product = engine.inventory.create_product("Rice 5kg", opening_stock=100)
"""

from __future__ import annotations

from ledger_config import LedgerConfig
from ledger_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.cache import RecordCache
from ledger_kernel.services.notifications import ChangeNotifier
from ledger_kernel.services.numbering import NumberingService
from ledger_kernel.store.protocol import RecordStore
from ledger_kernel.store.sql import SqlRecordStore
from ledger_modules.accounts.service import AccountBalanceLedger
from ledger_modules.consignment.config import ConsignmentConfig
from ledger_modules.consignment.service import ConsignmentService
from ledger_modules.inventory.config import InventoryConfig
from ledger_modules.inventory.service import InventoryService
from ledger_modules.inventory.stock_ledger import StockLedger
from ledger_modules.payments.service import PaymentsService
from ledger_modules.purchasing.service import PurchasingService
from ledger_modules.reporting.service import MovementReportService
from ledger_modules.sales.service import SalesService

logger = get_logger("services.engine")


class LedgerEngine:
    """Central factory for the ledger services.

    Contract:
        Receives a ``RecordStore`` and optional clock and module configs.
        Constructs each service once, in dependency order.

    Non-goals:
        - Does NOT wrap operations in transactions; each store call is its
          own durable step.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock | None = None,
        inventory_config: InventoryConfig | None = None,
        consignment_config: ConsignmentConfig | None = None,
    ) -> None:
        if store is None:
            raise ValueError("LedgerEngine requires a record store")
        self.store = store
        self.clock = clock or SystemClock()

        # Shared infrastructure
        self.cache = RecordCache(store)
        self.notifier = ChangeNotifier()
        self.numbering = NumberingService(store, self.clock)

        # Ledgers
        self.stock_ledger = StockLedger(store, self.clock, self.cache, self.notifier)
        self.accounts = AccountBalanceLedger(
            store, self.clock, self.numbering, self.cache, self.notifier
        )

        # Document services
        self.inventory = InventoryService(
            store,
            self.clock,
            self.stock_ledger,
            self.numbering,
            self.accounts,
            self.cache,
            inventory_config,
        )
        self.consignment = ConsignmentService(
            store, self.clock, self.stock_ledger, self.numbering, consignment_config
        )
        self.sales = SalesService(
            store, self.clock, self.stock_ledger, self.numbering, self.accounts, self.consignment
        )
        self.purchasing = PurchasingService(
            store, self.clock, self.stock_ledger, self.numbering, self.accounts
        )
        self.payments = PaymentsService(store, self.clock, self.numbering, self.accounts)
        self.reports = MovementReportService(store, self.clock, self.cache)

        logger.info(
            "ledger_engine_initialized",
            extra={"store": type(store).__name__, "clock": type(self.clock).__name__},
        )

    @classmethod
    def from_config(cls, config: LedgerConfig, clock: Clock | None = None) -> LedgerEngine:
        """Build an engine on a SQL record store described by ``config``."""
        init_engine_from_url(config.database.url, echo=config.database.echo)
        create_tables()
        return cls(
            SqlRecordStore(get_session_factory()),
            clock=clock,
            inventory_config=config.inventory,
            consignment_config=config.consignment,
        )
