"""
Module: purchasing_kernel.models.receipt
Responsibility: ORM persistence for goods receipts recorded against purchase
    order items.  Several receipts may reference one item (partial receiving
    over time).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: receipts are never updated or deleted once written
      (ORM listeners in db/immutability.py).
    - For every item, sum(receipt.quantity) <= item.quantity.  The check is
      made by ReceiptReconciler under row locks; the model only stores the
      outcome.
    - unit_price is copied from the item at receipt time.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from purchasing_kernel.db.base import TimestampedBase


class PurchaseReceipt(TimestampedBase):
    """A quantity of goods received against one purchase order item."""

    __tablename__ = "purchase_receipts"

    __table_args__ = (
        Index("idx_receipt_order", "purchase_order_id"),
        Index("idx_receipt_item", "purchase_order_item_id"),
        Index("idx_receipt_org_date", "organization_id", "received_date"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False,
    )
    purchase_order_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_order_items.id"), nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(nullable=False)
    quantity: Mapped[Decimal]
    unit_price: Mapped[Decimal]
    total_amount: Mapped[Decimal]
    received_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<PurchaseReceipt item={self.purchase_order_item_id} qty={self.quantity}>"
