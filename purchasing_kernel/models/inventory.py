"""
Module: purchasing_kernel.models.inventory
Responsibility: ORM persistence for the append-only inventory ledger.  Each
    row is one stock-affecting event for a (organization, product) pair.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - No stored balances.  Current stock is the signed sum of a product's
      ledger rows; previous_stock/new_stock are a snapshot of that sum taken
      under the product lock when the row was written.
    - new_stock = previous_stock + quantity for every row.
    - entry_number is 1-based and unique per (organization, product)
      (uq_inventory_txn_entry), so two writers that both read a stale
      balance cannot both commit.
    - Append-only: corrections are offsetting rows that point at the
      original through reverses_transaction_id.

Failure modes:
    - IntegrityError on duplicate entry_number (surfaced as ConflictError).
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from purchasing_kernel.db.base import TimestampedBase


class InventoryTransactionType(str, Enum):
    """Kinds of stock-affecting events."""

    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"


class InventoryTransaction(TimestampedBase):
    """One signed stock movement in the inventory ledger."""

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "product_id", "entry_number",
            name="uq_inventory_txn_entry",
        ),
        Index("idx_inventory_txn_product", "organization_id", "product_id"),
        Index("idx_inventory_txn_reference", "reference_number"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    product_id: Mapped[UUID] = mapped_column(ForeignKey("products.id"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(nullable=False)
    entry_number: Mapped[int] = mapped_column(nullable=False)
    quantity: Mapped[Decimal]
    previous_stock: Mapped[Decimal]
    new_stock: Mapped[Decimal]
    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reverses_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inventory_transactions.id"), nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction #{self.entry_number} "
            f"{self.previous_stock} + {self.quantity} = {self.new_stock}>"
        )
