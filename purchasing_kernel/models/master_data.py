"""
Module: purchasing_kernel.models.master_data
Responsibility: ORM persistence for the master data the kernel references but
    does not manage: suppliers and products.  Both are scoped to an
    organization and carry an active flag that gates new purchasing activity.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (organization_id, sku) is unique for products.
    - The product row doubles as the lock anchor for that product's inventory
      ledger: InventoryLedgerService locks it FOR UPDATE before summing the
      ledger, so concurrent appends chain correctly.

Failure modes:
    - IntegrityError on duplicate SKU within an organization.
"""

from uuid import UUID

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from purchasing_kernel.db.base import TimestampedBase


class Supplier(TimestampedBase):
    """
    A supplier purchase orders are placed against.

    Guarantees:
        - Belongs to exactly one organization.
        - Inactive suppliers cannot receive new orders.
    """

    __tablename__ = "suppliers"

    __table_args__ = (
        Index("idx_supplier_org", "organization_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Supplier {self.name} active={self.is_active}>"


class Product(TimestampedBase):
    """
    A stocked product that can be ordered and received.

    Guarantees:
        - sku is unique within the organization.
        - Current stock is never stored here; it is derived from the
          inventory ledger.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("organization_id", "sku", name="uq_product_org_sku"),
        Index("idx_product_org", "organization_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False, default="EA")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Product {self.sku} active={self.is_active}>"
