"""Read-only query selectors."""

from purchasing_kernel.selectors.inventory_selector import (
    InventorySelector,
    LedgerChainReport,
)
from purchasing_kernel.selectors.order_selector import OrderSelector

__all__ = ["InventorySelector", "LedgerChainReport", "OrderSelector"]
