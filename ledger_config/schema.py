"""
Configuration schema (``ledger_config.schema``).

``LedgerConfig`` is the one runtime configuration artifact: database
settings plus each module's config dataclass.
"""

from __future__ import annotations

from dataclasses import dataclass

from ledger_modules.consignment.config import ConsignmentConfig
from ledger_modules.inventory.config import InventoryConfig


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False

    def __post_init__(self):
        if not self.url:
            raise ValueError("database url cannot be empty")


@dataclass(frozen=True)
class LedgerConfig:
    """Loaded configuration.  ``checksum`` identifies the source content."""
    config_id: str
    version: int
    database: DatabaseSettings
    inventory: InventoryConfig
    consignment: ConsignmentConfig
    checksum: str
    source: str
