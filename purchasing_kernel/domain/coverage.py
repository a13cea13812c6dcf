"""
Receipt coverage -- pure derivation of an order's receiving status.

Responsibility:
    Classifies each order item by how much of it has been received and
    folds those classifications into the order's next lifecycle status.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Called by
    ReceiptReconciler after every batch of receipt writes, over *all* items
    of the order (not only the ones in the batch).

Invariants enforced:
    - An item's received quantity never exceeds its ordered quantity;
      ItemCoverage refuses to represent such a state.
    - The derived status is a function of current coverage only; nothing
      is maintained incrementally.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from purchasing_kernel.logging_config import get_logger

logger = get_logger("domain.coverage")


class CoverageState(str, Enum):
    """How much of an order item has been received."""

    NOT_STARTED = "not_started"
    PARTIAL = "partial"
    FULL = "full"


@dataclass(frozen=True)
class ItemCoverage:
    """Cumulative receiving position of one order item."""

    order_item_id: UUID
    ordered_quantity: Decimal
    received_quantity: Decimal

    def __post_init__(self):
        if self.received_quantity > self.ordered_quantity:
            logger.warning(
                "order_item_over_receipt",
                extra={
                    "order_item_id": str(self.order_item_id),
                    "ordered_quantity": str(self.ordered_quantity),
                    "received_quantity": str(self.received_quantity),
                },
            )
            raise ValueError(
                f"received_quantity ({self.received_quantity}) "
                f"cannot exceed ordered_quantity ({self.ordered_quantity})"
            )
        if self.received_quantity < 0:
            raise ValueError(
                f"received_quantity cannot be negative: {self.received_quantity}"
            )

    @property
    def remaining_quantity(self) -> Decimal:
        return self.ordered_quantity - self.received_quantity

    @property
    def state(self) -> CoverageState:
        if self.received_quantity == 0:
            return CoverageState.NOT_STARTED
        if self.received_quantity == self.ordered_quantity:
            return CoverageState.FULL
        return CoverageState.PARTIAL


def derive_order_status(current_status: str, coverage: Iterable[ItemCoverage]) -> str:
    """
    Derive the order status implied by receipt coverage.

    * every item fully covered          -> "received"
    * anything received, not all full   -> "partially_received"
    * nothing received                  -> ``current_status`` (unchanged)

    An order with no items keeps its current status.
    """
    states = [c.state for c in coverage]
    if not states:
        return current_status
    if all(s == CoverageState.FULL for s in states):
        return "received"
    if any(s != CoverageState.NOT_STARTED for s in states):
        return "partially_received"
    return current_status
