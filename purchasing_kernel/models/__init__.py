"""Domain models for the purchasing kernel."""

from purchasing_kernel.models.inventory import (
    InventoryTransaction,
    InventoryTransactionType,
)
from purchasing_kernel.models.master_data import Product, Supplier
from purchasing_kernel.models.order_number_counter import OrderNumberCounter
from purchasing_kernel.models.purchase_order import (
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
)
from purchasing_kernel.models.receipt import PurchaseReceipt

__all__ = [
    "InventoryTransaction",
    "InventoryTransactionType",
    "OrderNumberCounter",
    "Product",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PurchaseOrderStatus",
    "PurchaseReceipt",
    "Supplier",
]
