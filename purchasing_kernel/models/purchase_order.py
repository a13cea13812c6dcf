"""
Module: purchasing_kernel.models.purchase_order
Responsibility: ORM persistence for purchase order headers and their line
    items.  The header owns its items exclusively; items are deleted only
    together with a draft header.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - order_number is unique within an organization (uq_po_org_number).  The
      number embeds year(order_date), so this also makes it unique within
      (organization, year).
    - total_amount is the sum of item totals at creation; receiving never
      changes it.
    - (purchase_order_id, line_number) is unique.
    - Items are immutable once written (see db/immutability.py).

Failure modes:
    - IntegrityError on duplicate order_number (structural backstop behind
      the locked order number counter).
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from purchasing_kernel.db.base import TimestampedBase


class PurchaseOrderStatus(str, Enum):
    """Purchase order lifecycle states.

    Legal edges between them live in ``domain/workflow.py``.
    """

    DRAFT = "draft"
    SENT = "sent"
    CONFIRMED = "confirmed"
    PARTIALLY_RECEIVED = "partially_received"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class PurchaseOrder(TimestampedBase):
    """
    A purchase order placed against a supplier.

    Guarantees:
        - status starts at DRAFT and only moves along workflow edges.
        - items are loaded eagerly (selectin) in line_number order.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("organization_id", "order_number", name="uq_po_org_number"),
        Index("idx_po_org_status", "organization_id", "status"),
        Index("idx_po_supplier", "supplier_id"),
        Index("idx_po_order_date", "order_date"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("suppliers.id"), nullable=False)
    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=PurchaseOrderStatus.DRAFT.value,
    )
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[UUID] = mapped_column(nullable=False)

    items: Mapped[list["PurchaseOrderItem"]] = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.order_number} [{self.status}]>"


class PurchaseOrderItem(TimestampedBase):
    """
    A line item on a purchase order.

    Guarantees:
        - Belongs to exactly one PurchaseOrder.
        - total_amount = quantity * unit_price.
    """

    __tablename__ = "purchase_order_items"

    __table_args__ = (
        UniqueConstraint(
            "purchase_order_id", "line_number",
            name="uq_po_item_line_number",
        ),
        Index("idx_po_item_order", "purchase_order_id"),
        Index("idx_po_item_product", "product_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False,
    )
    line_number: Mapped[int]
    product_id: Mapped[UUID] = mapped_column(ForeignKey("products.id"), nullable=False)
    quantity: Mapped[Decimal]
    unit_price: Mapped[Decimal]
    total_amount: Mapped[Decimal]

    purchase_order: Mapped["PurchaseOrder"] = relationship(
        "PurchaseOrder",
        back_populates="items",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrderItem #{self.line_number} qty={self.quantity}>"
