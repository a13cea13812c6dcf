"""
OrderLifecycleService -- persists purchase order status changes.

Responsibility:
    The only code that writes ``PurchaseOrder.status`` after creation.
    Explicit changes (send, confirm, cancel) come through update_status();
    receipt-driven changes come through apply_derived_transition().  Both
    are checked against ``PURCHASE_ORDER_WORKFLOW``.

Architecture position:
    Kernel > Services.  Uses the pure workflow table in
    ``domain/workflow.py``; called by the facade and by ReceiptReconciler.

Invariants enforced:
    - Status only moves along edges of the lifecycle table.
    - Derived targets (partially_received, received) are never reachable by
      an explicit request.
    - The order row is locked before its status is read for validation.
"""

from uuid import UUID

from sqlalchemy import select

from purchasing_kernel.domain.validation import parse_status
from purchasing_kernel.domain.workflow import validate_transition
from purchasing_kernel.exceptions import InvalidTransitionError, NotFoundError
from purchasing_kernel.logging_config import get_logger
from purchasing_kernel.models.purchase_order import PurchaseOrder
from purchasing_kernel.services.base import BaseService

logger = get_logger("services.order_lifecycle")


def lock_order(session, order_id: UUID, organization_id: UUID) -> PurchaseOrder:
    """Load an order scoped to its organization under a row lock.

    Raises:
        NotFoundError: no such order in the organization.
    """
    order = session.execute(
        select(PurchaseOrder)
        .where(
            PurchaseOrder.id == order_id,
            PurchaseOrder.organization_id == organization_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if order is None:
        raise NotFoundError("PurchaseOrder", str(order_id))
    return order


class OrderLifecycleService(BaseService[PurchaseOrder]):
    """Validates and applies purchase order status transitions."""

    def update_status(
        self,
        order_id: UUID,
        organization_id: UUID,
        requested_status: str,
        user_id: UUID,
    ) -> PurchaseOrder:
        """
        Apply an explicitly requested status change.

        Raises:
            ValidationError: requested_status is not a lifecycle state.
            NotFoundError: order not in the organization.
            InvalidTransitionError: edge missing, same-state, or derived-only.
        """
        requested = parse_status(requested_status)
        order = lock_order(self.session, order_id, organization_id)
        current = order.status

        try:
            transition = validate_transition(current, requested, explicit=True)
        except InvalidTransitionError:
            logger.warning(
                "order_transition_rejected",
                extra={
                    "order_number": order.order_number,
                    "from_status": current,
                    "to_status": requested,
                },
            )
            raise

        order.status = requested
        self.session.flush()
        logger.info(
            "order_status_changed",
            extra={
                "order_number": order.order_number,
                "from_status": current,
                "to_status": requested,
                "action": transition.action,
                "user_id": str(user_id),
            },
        )
        return order

    def apply_derived_transition(self, order: PurchaseOrder, new_status: str) -> PurchaseOrder:
        """
        Persist a status computed from receipt coverage.

        ``order`` must already be locked by the caller.  A no-op when the
        status is unchanged.
        """
        current = order.status
        if new_status == current:
            return order
        transition = validate_transition(current, new_status, explicit=False)
        order.status = new_status
        self.session.flush()
        logger.info(
            "order_status_changed",
            extra={
                "order_number": order.order_number,
                "from_status": current,
                "to_status": new_status,
                "action": transition.action,
            },
        )
        return order
