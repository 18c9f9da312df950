"""
Consignment Configuration Schema.

Defines the structure and defaults for delivery-note and settlement
settings.  Actual values are loaded through
``ledger_config.get_active_config()``.
"""

from dataclasses import dataclass
from typing import Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.consignment.config")


VALID_SETTLEMENT_STATUSES = {"completed", "pending"}


@dataclass
class ConsignmentConfig:
    """
    Configuration schema for the consignment module.

        config = ConsignmentConfig(
            restore_available_on_delete=False,
            check_stock_on_issue=False,
        )
    """

    # Deleting a note adds each item's available quantity back to stock
    restore_available_on_delete: bool = True

    # Refuse notes that issue more than the product has in stock
    check_stock_on_issue: bool = True

    # Status written on new settlements
    settlement_status: str = "completed"

    def __post_init__(self):
        if self.settlement_status not in VALID_SETTLEMENT_STATUSES:
            raise ValueError(
                f"settlement_status must be one of {VALID_SETTLEMENT_STATUSES}, "
                f"got '{self.settlement_status}'"
            )

        logger.info(
            "consignment_config_initialized",
            extra={
                "restore_available_on_delete": self.restore_available_on_delete,
                "check_stock_on_issue": self.check_stock_on_issue,
                "settlement_status": self.settlement_status,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the delivery-note defaults."""
        logger.info("consignment_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from a YAML file)."""
        logger.info(
            "consignment_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
