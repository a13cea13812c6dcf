"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the kernel boundary:
    validated requests (OrderLineRequest, ReceiptLineRequest, OrderFilters,
    Pagination) going in, and read views (PurchaseOrderView, ReceiptView,
    InventoryTransactionView, StockView, ReceiveResult) coming out.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters invoked only from the service and selector layers.

Invariants enforced:
    - Views are frozen snapshots; callers never hold live ORM rows, so a
      view cannot lazily load or flush after its session is gone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from purchasing_kernel.models.inventory import InventoryTransaction
    from purchasing_kernel.models.purchase_order import (
        PurchaseOrder,
        PurchaseOrderItem,
    )
    from purchasing_kernel.models.receipt import PurchaseReceipt


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderLineRequest:
    """One requested line on a new purchase order."""
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal


@dataclass(frozen=True)
class ReceiptLineRequest:
    """One reported receipt against an existing order item."""
    order_item_id: UUID
    received_quantity: Decimal
    received_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class OrderFilters:
    """Optional filters for order listings."""
    status: str | None = None
    supplier_id: UUID | None = None
    date_from: date | None = None
    date_to: date | None = None
    order_number_prefix: str | None = None


@dataclass(frozen=True)
class Pagination:
    """1-based page request.  ``page_size=None`` uses the configured default."""
    page: int = 1
    page_size: int | None = None


# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItemView:
    id: UUID
    line_number: int
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal
    received_quantity: Decimal = Decimal("0")

    @property
    def remaining_quantity(self) -> Decimal:
        return self.quantity - self.received_quantity

    @classmethod
    def from_model(
        cls, item: PurchaseOrderItem, received_quantity: Decimal = Decimal("0"),
    ) -> OrderItemView:
        return cls(
            id=item.id,
            line_number=item.line_number,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_amount=item.total_amount,
            received_quantity=received_quantity,
        )


@dataclass(frozen=True)
class PurchaseOrderView:
    id: UUID
    organization_id: UUID
    supplier_id: UUID
    order_number: str
    order_date: date
    status: str
    total_amount: Decimal
    expected_delivery_date: date | None
    notes: str | None
    created_by_id: UUID
    items: tuple[OrderItemView, ...] = field(default_factory=tuple)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(
        cls,
        order: PurchaseOrder,
        received_by_item: dict[UUID, Decimal] | None = None,
    ) -> PurchaseOrderView:
        received_by_item = received_by_item or {}
        return cls(
            id=order.id,
            organization_id=order.organization_id,
            supplier_id=order.supplier_id,
            order_number=order.order_number,
            order_date=order.order_date,
            status=order.status,
            total_amount=order.total_amount,
            expected_delivery_date=order.expected_delivery_date,
            notes=order.notes,
            created_by_id=order.created_by_id,
            items=tuple(
                OrderItemView.from_model(
                    item, received_by_item.get(item.id, Decimal("0")),
                )
                for item in order.items
            ),
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


@dataclass(frozen=True)
class OrderPage:
    orders: tuple[PurchaseOrderView, ...]
    total: int
    page: int
    page_size: int

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total


@dataclass(frozen=True)
class ReceiptView:
    id: UUID
    purchase_order_id: UUID
    purchase_order_item_id: UUID
    user_id: UUID
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal
    received_date: date
    notes: str | None

    @classmethod
    def from_model(cls, receipt: PurchaseReceipt) -> ReceiptView:
        return cls(
            id=receipt.id,
            purchase_order_id=receipt.purchase_order_id,
            purchase_order_item_id=receipt.purchase_order_item_id,
            user_id=receipt.user_id,
            quantity=receipt.quantity,
            unit_price=receipt.unit_price,
            total_amount=receipt.total_amount,
            received_date=receipt.received_date,
            notes=receipt.notes,
        )


@dataclass(frozen=True)
class ReceiveResult:
    """Outcome of one receiving batch."""
    order_id: UUID
    receipts: tuple[ReceiptView, ...]
    previous_status: str
    new_status: str
    total_received_value: Decimal

    @property
    def status_changed(self) -> bool:
        return self.previous_status != self.new_status


@dataclass(frozen=True)
class InventoryTransactionView:
    id: UUID
    product_id: UUID
    entry_number: int
    quantity: Decimal
    previous_stock: Decimal
    new_stock: Decimal
    transaction_type: str
    reference_number: str | None
    reverses_transaction_id: UUID | None
    notes: str | None

    @classmethod
    def from_model(cls, txn: InventoryTransaction) -> InventoryTransactionView:
        return cls(
            id=txn.id,
            product_id=txn.product_id,
            entry_number=txn.entry_number,
            quantity=txn.quantity,
            previous_stock=txn.previous_stock,
            new_stock=txn.new_stock,
            transaction_type=txn.transaction_type,
            reference_number=txn.reference_number,
            reverses_transaction_id=txn.reverses_transaction_id,
            notes=txn.notes,
        )


@dataclass(frozen=True)
class StockView:
    organization_id: UUID
    product_id: UUID
    quantity_on_hand: Decimal
    entry_count: int
