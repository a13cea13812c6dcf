"""
ReceiptReconciler -- records goods receipts against a purchase order.

Responsibility:
    Given a batch of reported receipts for one order, checks every line
    against the quantity still outstanding, writes the receipts and their
    inventory ledger entries, and moves the order to the status implied by
    its new receipt coverage.

Architecture position:
    Kernel > Services.  Orchestrates OrderSelector (received quantities),
    InventoryLedgerService (stock movements), the pure coverage derivation
    in ``domain/coverage.py`` and OrderLifecycleService (derived status).
    Called by the facade, which owns the transaction.

Invariants enforced:
    - Quantity conservation: for every item, the sum of its receipts never
      exceeds the ordered quantity.  Already-received quantities are read
      only after the order row and all of its item rows are locked, and
      duplicate lines for one item within a batch accumulate.
    - All-or-nothing: every line is checked before the first write; a
      failure leaves the batch unpersisted once the caller rolls back.
    - Lock order is order row, item rows (id order), product rows (sorted
      id order), so concurrent batches cannot deadlock against each other.
    - The new status is derived over every item of the order, not only the
      items in the batch.

Failure modes:
    - ValidationError: empty batch or non-positive quantity (before any lock).
    - NotFoundError: order or item not found in the caller's organization.
    - InvalidStateError: order is not confirmed or partially received.
    - QuantityExceededError: a line asks for more than remains.
    - ConflictError: a concurrent ledger append won the race.
"""

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from purchasing_kernel.db.types import round_money
from purchasing_kernel.domain.clock import Clock, SystemClock
from purchasing_kernel.domain.coverage import ItemCoverage, derive_order_status
from purchasing_kernel.domain.dtos import ReceiptLineRequest, ReceiptView, ReceiveResult
from purchasing_kernel.domain.validation import parse_receipt_lines
from purchasing_kernel.domain.workflow import RECEIVABLE_STATES
from purchasing_kernel.exceptions import (
    InvalidStateError,
    NotFoundError,
    QuantityExceededError,
)
from purchasing_kernel.logging_config import get_logger
from purchasing_kernel.models.inventory import InventoryTransactionType
from purchasing_kernel.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from purchasing_kernel.models.receipt import PurchaseReceipt
from purchasing_kernel.selectors.order_selector import OrderSelector
from purchasing_kernel.services.base import BaseService
from purchasing_kernel.services.inventory_ledger import InventoryLedgerService
from purchasing_kernel.services.order_lifecycle_service import (
    OrderLifecycleService,
    lock_order,
)

logger = get_logger("services.receipt_reconciler")


class ReceiptReconciler(BaseService[PurchaseReceipt]):
    """
    Receives goods against purchase orders.

    Contract:
        receive() flushes but never commits.  The caller commits on success
        and rolls back on any exception.
    """

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._ledger = InventoryLedgerService(session)
        self._lifecycle = OrderLifecycleService(session)
        self._orders = OrderSelector(session)

    def _lock_items(self, order: PurchaseOrder) -> dict[UUID, PurchaseOrderItem]:
        items = self.session.execute(
            select(PurchaseOrderItem)
            .where(PurchaseOrderItem.purchase_order_id == order.id)
            .order_by(PurchaseOrderItem.id)
            .with_for_update()
        ).scalars().all()
        return {item.id: item for item in items}

    def _check_quantities(
        self,
        lines: Sequence[ReceiptLineRequest],
        items: dict[UUID, PurchaseOrderItem],
        received: dict[UUID, Decimal],
    ) -> dict[UUID, Decimal]:
        """Check every line against what remains; return running totals per item."""
        running = dict(received)
        for line in lines:
            item = items.get(line.order_item_id)
            if item is None:
                raise NotFoundError("PurchaseOrderItem", str(line.order_item_id))

            already = running.get(item.id, Decimal("0"))
            remaining = item.quantity - already
            if line.received_quantity > remaining:
                logger.warning(
                    "receive_quantity_exceeded",
                    extra={
                        "order_item_id": str(item.id),
                        "requested": str(line.received_quantity),
                        "remaining": str(remaining),
                    },
                )
                raise QuantityExceededError(
                    order_item_id=str(item.id),
                    requested=line.received_quantity,
                    remaining=remaining,
                )
            running[item.id] = already + line.received_quantity
        return running

    def receive(
        self,
        order_id: UUID,
        organization_id: UUID,
        user_id: UUID,
        items: Sequence[Mapping[str, Any] | ReceiptLineRequest],
        notes: str | None = None,
    ) -> ReceiveResult:
        """
        Record one batch of receipts against an order.

        Preconditions:
            Called inside an active transaction owned by the caller.

        Postconditions:
            One PurchaseReceipt and one purchase ledger entry per line are
            flushed, and the order status reflects coverage over all items.
        """
        lines = parse_receipt_lines(items)

        order = lock_order(self.session, order_id, organization_id)
        if order.status not in RECEIVABLE_STATES:
            raise InvalidStateError(
                entity_type="PurchaseOrder",
                entity_id=str(order.id),
                current_state=order.status,
                operation="receive",
                reason=f"order must be one of {sorted(RECEIVABLE_STATES)}",
            )

        logger.info(
            "receive_started",
            extra={"order_number": order.order_number, "line_count": len(lines)},
        )

        order_items = self._lock_items(order)
        received = self._orders.received_quantities(order.id)
        coverage_after = self._check_quantities(lines, order_items, received)

        self._ledger.lock_products(
            organization_id, (order_items[line.order_item_id].product_id for line in lines),
        )

        today = self._clock.today()
        receipts: list[PurchaseReceipt] = []
        for line in lines:
            item = order_items[line.order_item_id]
            receipt = PurchaseReceipt(
                organization_id=organization_id,
                purchase_order_id=order.id,
                purchase_order_item_id=item.id,
                user_id=user_id,
                quantity=line.received_quantity,
                unit_price=item.unit_price,
                total_amount=round_money(line.received_quantity * item.unit_price),
                received_date=line.received_date or today,
                notes=line.notes if line.notes is not None else notes,
            )
            self.session.add(receipt)
            receipts.append(receipt)

            self._ledger.append(
                organization_id=organization_id,
                product_id=item.product_id,
                quantity_delta=line.received_quantity,
                transaction_type=InventoryTransactionType.PURCHASE,
                user_id=user_id,
                reference=order.order_number,
                notes=receipt.notes,
            )
            logger.info(
                "receipt_line_accepted",
                extra={
                    "order_item_id": str(item.id),
                    "line_number": item.line_number,
                    "quantity": str(line.received_quantity),
                    "received_total": str(coverage_after[item.id]),
                    "ordered": str(item.quantity),
                },
            )
        self.session.flush()

        previous_status = order.status
        coverage = [
            ItemCoverage(
                order_item_id=item.id,
                ordered_quantity=item.quantity,
                received_quantity=coverage_after.get(item.id, Decimal("0")),
            )
            for item in order_items.values()
        ]
        new_status = derive_order_status(previous_status, coverage)
        logger.info(
            "order_status_derived",
            extra={
                "order_number": order.order_number,
                "from_status": previous_status,
                "to_status": new_status,
            },
        )
        self._lifecycle.apply_derived_transition(order, new_status)

        total_value = sum((r.total_amount for r in receipts), Decimal("0"))
        logger.info(
            "receive_completed",
            extra={
                "order_number": order.order_number,
                "receipt_count": len(receipts),
                "total_received_value": str(total_value),
                "status": new_status,
            },
        )
        return ReceiveResult(
            order_id=order.id,
            receipts=tuple(ReceiptView.from_model(r) for r in receipts),
            previous_status=previous_status,
            new_status=new_status,
            total_received_value=total_value,
        )
