"""
Module: purchasing_kernel.models.order_number_counter
Responsibility: Locked counter rows backing purchase order numbering.  One
    row per (organization, year) holds the last sequence value handed out.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (organization_id, year) is unique (uq_order_number_counter).
    - current_value only increases, and only through
      OrderNumberService.next_order_number() under SELECT ... FOR UPDATE.
"""

from uuid import UUID

from sqlalchemy import BigInteger, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from purchasing_kernel.db.base import Base


class OrderNumberCounter(Base):
    """
    Order number counter table.

    Row-level locking ensures uniqueness under concurrency.
    """

    __tablename__ = "order_number_counters"

    __table_args__ = (
        UniqueConstraint("organization_id", "year", name="uq_order_number_counter"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<OrderNumberCounter {self.organization_id}/{self.year}={self.current_value}>"
