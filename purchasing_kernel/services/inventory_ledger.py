"""
InventoryLedgerService -- append-only inventory ledger writes.

Responsibility:
    Appends signed stock movements for a (organization, product) pair,
    snapshotting the running balance on each row, and records corrections
    as explicit offsetting entries.

Architecture position:
    Kernel > Services.  Called by ReceiptReconciler for every accepted
    receipt line and directly for adjustments.  Read-side queries live in
    ``selectors/inventory_selector.py``.

Invariants enforced:
    - The product row is the ledger's lock anchor: it is locked
      (``SELECT ... FOR UPDATE``) before the balance is read, so concurrent
      appends for one product serialize and each sees the other's row.
    - previous_stock is the signed sum of all prior rows at the instant the
      entry is computed; new_stock = previous_stock + quantity.
    - No update or delete path exists; a transaction is reversed at most
      once.

Failure modes:
    - NotFoundError: product (or transaction to reverse) not in the
      organization.
    - ValidationError: zero delta or unknown transaction type.
    - ConflictError: the entry_number unique constraint rejected a
      concurrent append.
    - InvalidStateError: reversing an already reversed transaction.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from purchasing_kernel.domain.validation import parse_decimal
from purchasing_kernel.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from purchasing_kernel.logging_config import get_logger
from purchasing_kernel.models.inventory import (
    InventoryTransaction,
    InventoryTransactionType,
)
from purchasing_kernel.models.master_data import Product
from purchasing_kernel.selectors.inventory_selector import InventorySelector
from purchasing_kernel.services.base import BaseService

logger = get_logger("services.inventory_ledger")


class InventoryLedgerService(BaseService[InventoryTransaction]):
    """
    Writes to the inventory ledger.

    Contract:
        Every method runs inside the caller's transaction and only flushes.
    """

    def lock_products(self, organization_id: UUID, product_ids) -> dict[UUID, Product]:
        """Lock product rows in sorted id order.

        Callers that append for several products in one transaction take
        all locks up front through this method so two batches touching the
        same products cannot deadlock.
        """
        locked: dict[UUID, Product] = {}
        for product_id in sorted(set(product_ids), key=str):
            locked[product_id] = self._lock_product(organization_id, product_id)
        return locked

    def _lock_product(self, organization_id: UUID, product_id: UUID) -> Product:
        product = self.session.execute(
            select(Product)
            .where(
                Product.id == product_id,
                Product.organization_id == organization_id,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if product is None:
            raise NotFoundError("Product", str(product_id))
        return product

    def append(
        self,
        organization_id: UUID,
        product_id: UUID,
        quantity_delta: Decimal,
        transaction_type: InventoryTransactionType | str,
        user_id: UUID,
        reference: str | None = None,
        notes: str | None = None,
        reverses_transaction_id: UUID | None = None,
    ) -> InventoryTransaction:
        """
        Append one signed movement to the product's ledger.

        Postconditions:
            The returned row is flushed; its new_stock equals the product's
            stock including this movement.

        Raises:
            ValidationError, NotFoundError, ConflictError.
        """
        quantity_delta = parse_decimal(quantity_delta, "quantity_delta")
        if quantity_delta == 0:
            raise ValidationError("quantity_delta", "must be non-zero")
        try:
            txn_type = InventoryTransactionType(transaction_type)
        except ValueError as exc:
            raise ValidationError(
                "transaction_type", f"unknown transaction type {transaction_type!r}",
            ) from exc

        self._lock_product(organization_id, product_id)

        previous_stock, entry_count = InventorySelector(self.session).balance_and_count(
            organization_id, product_id,
        )

        txn = InventoryTransaction(
            organization_id=organization_id,
            product_id=product_id,
            user_id=user_id,
            entry_number=entry_count + 1,
            quantity=quantity_delta,
            previous_stock=previous_stock,
            new_stock=previous_stock + quantity_delta,
            transaction_type=txn_type.value,
            reference_number=reference,
            reverses_transaction_id=reverses_transaction_id,
            notes=notes,
        )
        self.session.add(txn)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                resource=f"inventory_ledger:{organization_id}:{product_id}",
                reason=f"entry {entry_count + 1} was written concurrently",
            ) from exc

        logger.info(
            "inventory_transaction_appended",
            extra={
                "product_id": str(product_id),
                "entry_number": txn.entry_number,
                "quantity": str(quantity_delta),
                "previous_stock": str(previous_stock),
                "new_stock": str(txn.new_stock),
                "transaction_type": txn_type.value,
                "reference": reference,
            },
        )
        return txn

    def reverse(
        self,
        transaction_id: UUID,
        organization_id: UUID,
        user_id: UUID,
        notes: str | None = None,
    ) -> InventoryTransaction:
        """
        Offset an existing ledger row with an equal and opposite adjustment.

        Raises:
            NotFoundError: transaction not in the organization.
            InvalidStateError: the transaction was already reversed.
        """
        original = self.session.execute(
            select(InventoryTransaction).where(
                InventoryTransaction.id == transaction_id,
                InventoryTransaction.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        if original is None:
            raise NotFoundError("InventoryTransaction", str(transaction_id))

        # Lock before checking for an existing reversal so two reversals of
        # the same row serialize.
        self._lock_product(organization_id, original.product_id)

        existing = self.session.execute(
            select(InventoryTransaction.id).where(
                InventoryTransaction.reverses_transaction_id == transaction_id,
            )
        ).first()
        if existing is not None:
            raise InvalidStateError(
                entity_type="InventoryTransaction",
                entity_id=str(transaction_id),
                current_state="reversed",
                operation="reverse",
                reason=f"already reversed by {existing[0]}",
            )

        reversal = self.append(
            organization_id=organization_id,
            product_id=original.product_id,
            quantity_delta=-original.quantity,
            transaction_type=InventoryTransactionType.ADJUSTMENT,
            user_id=user_id,
            reference=original.reference_number,
            notes=notes or f"Reversal of entry {original.entry_number}",
            reverses_transaction_id=original.id,
        )
        logger.info(
            "inventory_transaction_reversed",
            extra={
                "product_id": str(original.product_id),
                "reversed_entry_number": original.entry_number,
                "reversal_entry_number": reversal.entry_number,
            },
        )
        return reversal
