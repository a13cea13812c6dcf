"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Receipts and inventory ledger entries are the evidence that stock moved.  A
stock balance is only trustworthy if the rows it is folded from never
change, so corrections must be new offsetting rows, never edits.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | When Immutable          | Why
-----------------------|-------------------------|-------------------------------
PurchaseReceipt        | ALWAYS (update, delete) | Receiving history is the audit
InventoryTransaction   | ALWAYS (update, delete) | Stock is a fold over the ledger
PurchaseOrderItem      | ALWAYS (update only)    | Coverage is measured against it;
                       |                         | deleted only with a draft order

===============================================================================
USAGE
===============================================================================

    from purchasing_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from purchasing_kernel.exceptions import ImmutabilityViolationError
from purchasing_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_receipt_immutability(mapper, connection, target):
    """Prevent any updates to PurchaseReceipt records."""
    _block("PurchaseReceipt", target, "UPDATE", "Receipts are append-only and cannot be modified")


def _check_receipt_delete(mapper, connection, target):
    """Prevent deletion of PurchaseReceipt records."""
    _block("PurchaseReceipt", target, "DELETE", "Receipts are append-only and cannot be deleted")


def _check_inventory_transaction_immutability(mapper, connection, target):
    """Prevent any updates to InventoryTransaction records."""
    _block(
        "InventoryTransaction", target, "UPDATE",
        "Ledger entries cannot be modified; append an offsetting entry instead",
    )


def _check_inventory_transaction_delete(mapper, connection, target):
    """Prevent deletion of InventoryTransaction records."""
    _block(
        "InventoryTransaction", target, "DELETE",
        "Ledger entries cannot be deleted; append an offsetting entry instead",
    )


def _check_order_item_immutability(mapper, connection, target):
    """Prevent updates to PurchaseOrderItem records once written."""
    _block("PurchaseOrderItem", target, "UPDATE", "Order items cannot be edited once created")


def _listeners():
    from purchasing_kernel.models.inventory import InventoryTransaction
    from purchasing_kernel.models.purchase_order import PurchaseOrderItem
    from purchasing_kernel.models.receipt import PurchaseReceipt

    return (
        (PurchaseReceipt, "before_update", _check_receipt_immutability),
        (PurchaseReceipt, "before_delete", _check_receipt_delete),
        (InventoryTransaction, "before_update", _check_inventory_transaction_immutability),
        (InventoryTransaction, "before_delete", _check_inventory_transaction_delete),
        (PurchaseOrderItem, "before_update", _check_order_item_immutability),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent; call once after models are imported.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
