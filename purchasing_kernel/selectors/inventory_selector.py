"""
Module: purchasing_kernel.selectors.inventory_selector
Responsibility: Read-only inventory ledger queries: current stock, ledger
    history, and chain verification.  Stock is a derived view over
    InventoryTransaction rows; there is no stored balance anywhere.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Current stock is the signed sum of a product's ledger rows at query
      time.
    - verify_chain() checks new_stock = previous_stock + quantity on every
      row, and that each previous_stock equals the running sum of the rows
      before it in entry_number order.

Failure modes:
    - Returns zero stock and an empty history for products with no entries.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from purchasing_kernel.domain.dtos import InventoryTransactionView, StockView
from purchasing_kernel.models.inventory import InventoryTransaction
from purchasing_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LedgerChainReport:
    """Result of walking one product's ledger from its first entry."""

    organization_id: UUID
    product_id: UUID
    entry_count: int
    balance: Decimal
    broken_entries: tuple[int, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.broken_entries


class InventorySelector(BaseSelector[InventoryTransaction]):
    """Selector for the inventory ledger."""

    def balance_and_count(self, organization_id: UUID, product_id: UUID) -> tuple[Decimal, int]:
        """Signed sum and number of ledger rows for (organization, product)."""
        row = self.session.execute(
            select(
                func.coalesce(func.sum(InventoryTransaction.quantity), 0),
                func.count(InventoryTransaction.id),
            ).where(
                InventoryTransaction.organization_id == organization_id,
                InventoryTransaction.product_id == product_id,
            )
        ).one()
        return Decimal(str(row[0])), int(row[1])

    def current_stock(self, organization_id: UUID, product_id: UUID) -> StockView:
        balance, count = self.balance_and_count(organization_id, product_id)
        return StockView(
            organization_id=organization_id,
            product_id=product_id,
            quantity_on_hand=balance,
            entry_count=count,
        )

    def _entries(self, organization_id: UUID, product_id: UUID) -> list[InventoryTransaction]:
        return list(
            self.session.execute(
                select(InventoryTransaction)
                .where(
                    InventoryTransaction.organization_id == organization_id,
                    InventoryTransaction.product_id == product_id,
                )
                .order_by(InventoryTransaction.entry_number)
            ).scalars()
        )

    def history(self, organization_id: UUID, product_id: UUID) -> tuple[InventoryTransactionView, ...]:
        """Ledger rows for the product, oldest first."""
        return tuple(
            InventoryTransactionView.from_model(txn)
            for txn in self._entries(organization_id, product_id)
        )

    def get_transaction(self, organization_id: UUID, transaction_id: UUID) -> InventoryTransactionView | None:
        txn = self.session.execute(
            select(InventoryTransaction).where(
                InventoryTransaction.id == transaction_id,
                InventoryTransaction.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        return InventoryTransactionView.from_model(txn) if txn else None

    def verify_chain(self, organization_id: UUID, product_id: UUID) -> LedgerChainReport:
        running = Decimal("0")
        broken: list[int] = []
        entries = self._entries(organization_id, product_id)
        for expected_number, txn in enumerate(entries, start=1):
            if (
                txn.entry_number != expected_number
                or txn.previous_stock != running
                or txn.new_stock != txn.previous_stock + txn.quantity
            ):
                broken.append(txn.entry_number)
            running += txn.quantity
        return LedgerChainReport(
            organization_id=organization_id,
            product_id=product_id,
            entry_count=len(entries),
            balance=running,
            broken_entries=tuple(broken),
        )
