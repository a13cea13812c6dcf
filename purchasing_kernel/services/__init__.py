"""Write-side services and the public purchasing facade."""

from purchasing_kernel.services.inventory_ledger import InventoryLedgerService
from purchasing_kernel.services.order_lifecycle_service import OrderLifecycleService
from purchasing_kernel.services.order_number_service import OrderNumberService
from purchasing_kernel.services.purchase_order_service import PurchaseOrderService
from purchasing_kernel.services.purchasing_facade import (
    OperationResult,
    OperationStatus,
    PurchasingService,
)
from purchasing_kernel.services.receipt_reconciler import ReceiptReconciler

__all__ = [
    "InventoryLedgerService",
    "OperationResult",
    "OperationStatus",
    "OrderLifecycleService",
    "OrderNumberService",
    "PurchaseOrderService",
    "PurchasingService",
    "ReceiptReconciler",
]
