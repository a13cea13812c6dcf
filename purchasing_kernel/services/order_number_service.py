"""
OrderNumberService -- per-organization, per-year order number allocation.

Responsibility:
    Hands out human-readable order numbers of the form
    ``<prefix>-<year>-<seq>`` (``PO-2024-0001``), where ``seq`` is strictly
    increasing within (organization, year) and starts at 1.

Architecture position:
    Kernel > Services.  Called by PurchaseOrderService.create() inside the
    caller's transaction.

Invariants enforced:
    - The sequence comes from a locked counter row (``SELECT ... FOR
      UPDATE``).  Counting orders or taking MAX()+1 is never used.
    - The increment is only visible once the caller commits; a rollback
      returns the number.

Failure modes:
    - IntegrityError on a concurrent first-use insert of the counter row:
      the savepoint is rolled back and the winner's row is re-read under
      lock.
    - ConflictError if the counter row cannot be re-acquired after such a
      race.  A duplicate number is never emitted.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from purchasing_kernel.exceptions import ConflictError
from purchasing_kernel.logging_config import get_logger
from purchasing_kernel.models.order_number_counter import OrderNumberCounter

logger = get_logger("services.order_number")


class OrderNumberService:
    """
    Allocates order numbers from locked (organization, year) counters.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller owns the
          transaction.
    """

    DEFAULT_PREFIX = "PO"
    DEFAULT_WIDTH = 4

    def __init__(
        self,
        session: Session,
        prefix: str = DEFAULT_PREFIX,
        width: int = DEFAULT_WIDTH,
    ):
        self._session = session
        self._prefix = prefix
        self._width = width

    def format_number(self, year: int, sequence: int) -> str:
        return f"{self._prefix}-{year}-{sequence:0{self._width}d}"

    def _locked_counter(self, organization_id: UUID, year: int) -> OrderNumberCounter | None:
        return self._session.execute(
            select(OrderNumberCounter)
            .where(
                OrderNumberCounter.organization_id == organization_id,
                OrderNumberCounter.year == year,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_order_number(self, organization_id: UUID, year: int) -> str:
        """
        Allocate the next order number for (organization, year).

        Preconditions:
            The caller is inside an active transaction.

        Postconditions:
            The counter row stays locked until the caller's transaction
            ends; the returned sequence is exactly one more than the last
            committed allocation.

        Raises:
            ConflictError: the counter row vanished after an insert race.
        """
        counter = self._locked_counter(organization_id, year)

        if counter is None:
            # First use for this (organization, year).  Insert inside a
            # savepoint so a lost race does not discard the caller's work.
            savepoint = self._session.begin_nested()
            try:
                counter = OrderNumberCounter(
                    organization_id=organization_id, year=year, current_value=0,
                )
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
            except IntegrityError:
                logger.debug(
                    "order_number_counter_race_retry",
                    extra={"organization_id": str(organization_id), "year": year},
                )
                savepoint.rollback()
                counter = self._locked_counter(organization_id, year)
                if counter is None:
                    raise ConflictError(
                        resource=f"order_number_counter:{organization_id}:{year}",
                        reason="counter row could not be re-acquired after insert race",
                    )

        counter.current_value += 1
        self._session.flush()

        order_number = self.format_number(year, counter.current_value)
        logger.info(
            "order_number_allocated",
            extra={
                "organization_id": str(organization_id),
                "year": year,
                "sequence": counter.current_value,
                "order_number": order_number,
            },
        )
        return order_number

    def current_value(self, organization_id: UUID, year: int) -> int:
        """Last allocated sequence for (organization, year), 0 if none."""
        value = self._session.execute(
            select(OrderNumberCounter.current_value).where(
                OrderNumberCounter.organization_id == organization_id,
                OrderNumberCounter.year == year,
            )
        ).scalar_one_or_none()
        return value or 0
