"""
Module: purchasing_kernel.selectors.order_selector
Responsibility: Read-only purchase order queries: single order views with
    per-item received quantities, filtered and paginated listings, and an
    order's receipts.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every query is scoped by organization_id; an order in another
      organization is indistinguishable from a missing one.
    - Received quantities are aggregated from PurchaseReceipt rows at query
      time.  Called inside a locked scope (ReceiptReconciler) they reflect
      every committed receipt.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from purchasing_kernel.domain.dtos import (
    OrderFilters,
    OrderPage,
    Pagination,
    PurchaseOrderView,
    ReceiptView,
)
from purchasing_kernel.models.purchase_order import PurchaseOrder
from purchasing_kernel.models.receipt import PurchaseReceipt
from purchasing_kernel.selectors.base import BaseSelector


class OrderSelector(BaseSelector[PurchaseOrder]):
    """Selector for purchase orders and their receipts."""

    def received_quantities(self, order_id: UUID) -> dict[UUID, Decimal]:
        """Sum of receipt quantities per order item; items with none are absent."""
        rows = self.session.execute(
            select(
                PurchaseReceipt.purchase_order_item_id,
                func.sum(PurchaseReceipt.quantity),
            )
            .where(PurchaseReceipt.purchase_order_id == order_id)
            .group_by(PurchaseReceipt.purchase_order_item_id)
        ).all()
        return {item_id: Decimal(str(total)) for item_id, total in rows}

    def receipt_count(self, order_id: UUID) -> int:
        return self.session.execute(
            select(func.count(PurchaseReceipt.id)).where(
                PurchaseReceipt.purchase_order_id == order_id,
            )
        ).scalar_one()

    def get_view(self, order_id: UUID, organization_id: UUID) -> PurchaseOrderView | None:
        order = self.session.execute(
            select(PurchaseOrder).where(
                PurchaseOrder.id == order_id,
                PurchaseOrder.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        if order is None:
            return None
        return PurchaseOrderView.from_model(order, self.received_quantities(order.id))

    def list_orders(
        self,
        organization_id: UUID,
        filters: OrderFilters,
        pagination: Pagination,
    ) -> OrderPage:
        """Orders newest first (order_date desc, then order_number desc)."""
        conditions = [PurchaseOrder.organization_id == organization_id]
        if filters.status is not None:
            conditions.append(PurchaseOrder.status == filters.status)
        if filters.supplier_id is not None:
            conditions.append(PurchaseOrder.supplier_id == filters.supplier_id)
        if filters.date_from is not None:
            conditions.append(PurchaseOrder.order_date >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(PurchaseOrder.order_date <= filters.date_to)
        if filters.order_number_prefix:
            conditions.append(
                PurchaseOrder.order_number.startswith(
                    filters.order_number_prefix, autoescape=True,
                )
            )

        total = self.session.execute(
            select(func.count(PurchaseOrder.id)).where(*conditions)
        ).scalar_one()

        page_size = pagination.page_size
        orders = self.session.execute(
            select(PurchaseOrder)
            .where(*conditions)
            .order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.order_number.desc())
            .offset((pagination.page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()

        return OrderPage(
            orders=tuple(
                PurchaseOrderView.from_model(order, self.received_quantities(order.id))
                for order in orders
            ),
            total=total,
            page=pagination.page,
            page_size=page_size,
        )

    def receipts_for_order(self, order_id: UUID, organization_id: UUID) -> tuple[ReceiptView, ...]:
        receipts = self.session.execute(
            select(PurchaseReceipt)
            .where(
                PurchaseReceipt.purchase_order_id == order_id,
                PurchaseReceipt.organization_id == organization_id,
            )
            .order_by(PurchaseReceipt.received_date, PurchaseReceipt.created_at)
        ).scalars().all()
        return tuple(ReceiptView.from_model(r) for r in receipts)
