"""
Inventory Configuration Schema.

Defines the structure and defaults for inventory settings.  Actual values
are loaded through ``ledger_config.get_active_config()``.
"""

from dataclasses import dataclass, field
from typing import Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.inventory.config")


@dataclass
class InventoryConfig:
    """
    Configuration schema for the inventory module.

        config = InventoryConfig(
            non_restock_reasons=("damaged", "expired", "recalled"),
            require_adjustment_reason=True,
        )
    """

    # Return reasons whose goods do not go back on the shelf
    non_restock_reasons: tuple[str, ...] = ("damaged", "expired")

    # Adjustments must say why
    require_adjustment_reason: bool = False

    # Largest-unit conversion used when a product is created without one
    default_conversion_factor: int = 1

    product_categories: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        self.non_restock_reasons = tuple(self.non_restock_reasons)
        self.product_categories = tuple(self.product_categories)
        if self.default_conversion_factor <= 0:
            raise ValueError("default_conversion_factor must be positive")
        if any(not reason for reason in self.non_restock_reasons):
            raise ValueError("non_restock_reasons cannot contain blank reasons")

        logger.info(
            "inventory_config_initialized",
            extra={
                "non_restock_reasons": list(self.non_restock_reasons),
                "require_adjustment_reason": self.require_adjustment_reason,
                "default_conversion_factor": self.default_conversion_factor,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the stock-keeping defaults."""
        logger.info("inventory_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from a YAML file)."""
        logger.info(
            "inventory_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
