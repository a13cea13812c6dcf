"""
PurchaseOrderService -- creation and deletion of purchase orders.

Responsibility:
    Builds a purchase order aggregate (header plus line items) from a
    validated request, allocating its order number, and deletes orders that
    have not left draft.

Architecture position:
    Kernel > Services.  Uses OrderNumberService for numbering and
    OrderSelector for read views.  Called by the facade, which owns the
    transaction.

Invariants enforced:
    - total_amount is the sum of item totals (quantity * unit_price rounded
      to money precision) and is fixed at creation.
    - Header and items are flushed together; an error in any line leaves
      nothing behind once the caller rolls back.
    - Only draft orders with zero receipts are deleted, and deletion never
      touches the inventory ledger.
"""

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from purchasing_kernel.db.types import round_money
from purchasing_kernel.domain.clock import Clock, SystemClock
from purchasing_kernel.domain.dtos import (
    OrderFilters,
    OrderLineRequest,
    OrderPage,
    Pagination,
    PurchaseOrderView,
)
from purchasing_kernel.domain.validation import parse_order_lines, parse_uuid
from purchasing_kernel.domain.workflow import PURCHASE_ORDER_WORKFLOW
from purchasing_kernel.exceptions import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from purchasing_kernel.logging_config import get_logger
from purchasing_kernel.models.master_data import Product, Supplier
from purchasing_kernel.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from purchasing_kernel.selectors.order_selector import OrderSelector
from purchasing_kernel.services.base import BaseService
from purchasing_kernel.services.order_lifecycle_service import lock_order
from purchasing_kernel.services.order_number_service import OrderNumberService

logger = get_logger("services.purchase_order")


class PurchaseOrderService(BaseService[PurchaseOrder]):
    """Creates, reads and deletes purchase orders."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        order_numbers: OrderNumberService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._order_numbers = order_numbers or OrderNumberService(session)
        self._orders = OrderSelector(session)

    def _require_supplier(self, organization_id: UUID, supplier_id: UUID) -> Supplier:
        supplier = self.session.execute(
            select(Supplier).where(
                Supplier.id == supplier_id,
                Supplier.organization_id == organization_id,
                Supplier.is_active.is_(True),
            )
        ).scalar_one_or_none()
        if supplier is None:
            raise NotFoundError("Supplier", str(supplier_id))
        return supplier

    def _require_products(
        self, organization_id: UUID, lines: Sequence[OrderLineRequest],
    ) -> None:
        wanted = {line.product_id for line in lines}
        found = set(
            self.session.execute(
                select(Product.id).where(
                    Product.id.in_(wanted),
                    Product.organization_id == organization_id,
                    Product.is_active.is_(True),
                )
            ).scalars()
        )
        for idx, line in enumerate(lines):
            if line.product_id not in found:
                raise ValidationError(
                    f"items[{idx}].product_id",
                    f"product {line.product_id} does not exist or is inactive",
                )

    def create(
        self,
        organization_id: UUID,
        supplier_id: UUID,
        items: Sequence[Mapping[str, Any] | OrderLineRequest],
        user_id: UUID,
        expected_delivery_date: date | None = None,
        notes: str | None = None,
        order_date: date | None = None,
    ) -> PurchaseOrder:
        """
        Create a draft purchase order with its line items.

        Raises:
            ValidationError: bad lines, or an unknown/inactive product.
            NotFoundError: supplier missing, inactive or in another org.
            ConflictError: order number allocation lost a race.
        """
        lines = parse_order_lines(items)
        supplier_id = parse_uuid(supplier_id, "supplier_id")
        self._require_supplier(organization_id, supplier_id)
        self._require_products(organization_id, lines)

        order_date = order_date or self._clock.today()
        order_number = self._order_numbers.next_order_number(
            organization_id, order_date.year,
        )

        order = PurchaseOrder(
            organization_id=organization_id,
            supplier_id=supplier_id,
            order_number=order_number,
            order_date=order_date,
            status=PURCHASE_ORDER_WORKFLOW.initial_state,
            expected_delivery_date=expected_delivery_date,
            notes=notes,
            created_by_id=user_id,
        )
        total = Decimal("0")
        for line_number, line in enumerate(lines, start=1):
            line_total = round_money(line.quantity * line.unit_price)
            total += line_total
            order.items.append(
                PurchaseOrderItem(
                    line_number=line_number,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_amount=line_total,
                )
            )
        order.total_amount = total

        self.session.add(order)
        self.session.flush()

        logger.info(
            "purchase_order_created",
            extra={
                "order_number": order_number,
                "supplier_id": str(supplier_id),
                "item_count": len(lines),
                "total_amount": str(total),
            },
        )
        return order

    def delete(self, order_id: UUID, organization_id: UUID) -> None:
        """
        Delete a draft order and its items.

        Raises:
            NotFoundError: order not in the organization.
            InvalidStateError: order is past draft or has receipts.
        """
        order = lock_order(self.session, order_id, organization_id)
        if order.status != PURCHASE_ORDER_WORKFLOW.initial_state:
            raise InvalidStateError(
                entity_type="PurchaseOrder",
                entity_id=str(order.id),
                current_state=order.status,
                operation="delete",
                reason="only draft orders can be deleted",
            )
        receipt_count = self._orders.receipt_count(order.id)
        if receipt_count:
            raise InvalidStateError(
                entity_type="PurchaseOrder",
                entity_id=str(order.id),
                current_state=order.status,
                operation="delete",
                reason=f"order has {receipt_count} receipt(s)",
            )

        order_number = order.order_number
        self.session.delete(order)
        self.session.flush()
        logger.info("purchase_order_deleted", extra={"order_number": order_number})

    def get(self, order_id: UUID, organization_id: UUID) -> PurchaseOrderView:
        view = self._orders.get_view(order_id, organization_id)
        if view is None:
            raise NotFoundError("PurchaseOrder", str(order_id))
        return view

    def list(
        self,
        organization_id: UUID,
        filters: OrderFilters,
        pagination: Pagination,
    ) -> OrderPage:
        return self._orders.list_orders(organization_id, filters, pagination)
