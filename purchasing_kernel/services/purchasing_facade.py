"""
PurchasingService -- the public entry point of the purchasing kernel.

Responsibility:
    Exposes order creation, lookup, listing, status changes, receiving,
    deletion and stock queries as calls that each run in one transaction
    and return a typed ``OperationResult`` instead of raising.

Architecture position:
    Kernel > Services (outermost).  The only layer that calls
    ``session.commit()`` / ``session.rollback()``.  Everything below it
    only flushes.

Invariants enforced:
    - One call, one transaction: commit on success, rollback on any failure.
    - Kernel errors become typed failures; unexpected exceptions are rolled
      back, logged and re-raised.
    - Lock timeouts, deadlocks and lost uniqueness races from the database
      surface as CONFLICT.  create_order retries them with linear backoff.
    - Values are frozen DTOs built before the commit; callers never receive
      live ORM rows.

Failure modes:
    - Every failure mode of the underlying services, reported through
      ``OperationResult.status`` and ``error_code``.
"""

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from purchasing_kernel.config import PurchasingConfig
from purchasing_kernel.db.immutability import register_immutability_listeners
from purchasing_kernel.domain.clock import Clock, SystemClock
from purchasing_kernel.domain.dtos import (
    InventoryTransactionView,
    OrderFilters,
    OrderPage,
    Pagination,
    PurchaseOrderView,
    ReceiptView,
    ReceiveResult,
    StockView,
)
from purchasing_kernel.domain.validation import (
    parse_filters,
    parse_optional_date,
    parse_pagination,
    parse_uuid,
)
from purchasing_kernel.exceptions import (
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    PurchasingKernelError,
    QuantityExceededError,
    ValidationError,
)
from purchasing_kernel.logging_config import LogContext, get_logger
from purchasing_kernel.selectors.inventory_selector import InventorySelector
from purchasing_kernel.selectors.order_selector import OrderSelector
from purchasing_kernel.services.inventory_ledger import InventoryLedgerService
from purchasing_kernel.services.order_lifecycle_service import OrderLifecycleService
from purchasing_kernel.services.order_number_service import OrderNumberService
from purchasing_kernel.services.purchase_order_service import PurchaseOrderService
from purchasing_kernel.services.receipt_reconciler import ReceiptReconciler

logger = get_logger("services.purchasing")

T = TypeVar("T")

# SQLSTATEs: serialization_failure, deadlock_detected, lock_not_available,
# query_canceled (lock_timeout / statement_timeout)
_PG_LOCK_FAILURES = frozenset({"40001", "40P01", "55P03", "57014"})
_PG_UNIQUE_VIOLATION = "23505"

_SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked", "deadlock")


def is_lock_failure(exc: OperationalError) -> bool:
    """True for lock timeouts, deadlocks and serialization failures."""
    if getattr(exc.orig, "pgcode", None) in _PG_LOCK_FAILURES:
        return True
    message = str(exc.orig).lower()
    return any(fragment in message for fragment in _SQLITE_LOCK_MESSAGES)


def is_uniqueness_race(exc: IntegrityError) -> bool:
    if getattr(exc.orig, "pgcode", None) == _PG_UNIQUE_VIOLATION:
        return True
    message = str(exc.orig).lower()
    return "unique constraint" in message or "duplicate key" in message


class OperationStatus(str, Enum):
    """Outcome of a facade call."""

    OK = "ok"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    INVALID_TRANSITION = "invalid_transition"
    QUANTITY_EXCEEDED = "quantity_exceeded"
    CONFLICT = "conflict"


_STATUS_BY_ERROR: tuple[tuple[type[PurchasingKernelError], OperationStatus], ...] = (
    (ValidationError, OperationStatus.VALIDATION_ERROR),
    (NotFoundError, OperationStatus.NOT_FOUND),
    (InvalidStateError, OperationStatus.INVALID_STATE),
    (InvalidTransitionError, OperationStatus.INVALID_TRANSITION),
    (QuantityExceededError, OperationStatus.QUANTITY_EXCEEDED),
    (ConflictError, OperationStatus.CONFLICT),
)


def _status_for(exc: PurchasingKernelError) -> OperationStatus | None:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return None


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Result of a facade call."""

    status: OperationStatus
    value: T | None = None
    error_code: str | None = None
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.OK

    @classmethod
    def ok(cls, value: T) -> "OperationResult[T]":
        return cls(status=OperationStatus.OK, value=value)

    @classmethod
    def failure(cls, status: OperationStatus, exc: PurchasingKernelError) -> "OperationResult[T]":
        details = {
            key: val for key, val in vars(exc).items()
            if not key.startswith("_") and key != "args"
        }
        return cls(
            status=status,
            error_code=exc.code,
            message=str(exc),
            details=details,
        )


class PurchasingService:
    """
    Transactional facade over the purchasing kernel.

    Contract:
        Each public method runs in its own transaction on ``session`` and
        returns an ``OperationResult``.  The session must not have pending
        work from elsewhere when a method is called.

    Usage:
        with get_session() as session:
            service = PurchasingService(session, config=config)
            result = service.receive(org_id, user_id, order_id, lines)
            if not result.is_success:
                ...
    """

    def __init__(
        self,
        session: Session,
        config: PurchasingConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or PurchasingConfig.with_defaults()
        self._clock = clock or SystemClock()
        register_immutability_listeners()

    # ------------------------------------------------------------------
    # Service wiring
    # ------------------------------------------------------------------

    def _order_service(self) -> PurchaseOrderService:
        return PurchaseOrderService(
            self._session,
            clock=self._clock,
            order_numbers=OrderNumberService(
                self._session,
                prefix=self._config.order_number_prefix,
                width=self._config.order_number_width,
            ),
        )

    # ------------------------------------------------------------------
    # Transaction boundary
    # ------------------------------------------------------------------

    def _execute_once(self, operation: str, work: Callable[[], T]) -> T:
        """Run ``work`` and commit; database concurrency failures become ConflictError.

        Other database errors propagate unchanged.
        """
        try:
            value = work()
            self._session.commit()
            return value
        except OperationalError as exc:
            if not is_lock_failure(exc):
                raise
            raise ConflictError(
                resource=operation, reason=f"database lock or serialization failure: {exc.orig}",
            ) from exc
        except IntegrityError as exc:
            if not is_uniqueness_race(exc):
                raise
            raise ConflictError(
                resource=operation, reason=f"uniqueness race lost: {exc.orig}",
            ) from exc

    def _run(
        self,
        operation: str,
        work: Callable[[], T],
        *,
        retry_conflicts: bool = False,
    ) -> OperationResult[T]:
        attempts = 1 + (self._config.max_conflict_retries if retry_conflicts else 0)
        for attempt in range(attempts):
            try:
                value = self._execute_once(operation, work)
            except PurchasingKernelError as exc:
                self._session.rollback()
                status = _status_for(exc)
                if status is None:
                    logger.exception(
                        "operation_rolled_back",
                        extra={"operation": operation, "error_code": exc.code},
                    )
                    raise
                if status == OperationStatus.CONFLICT and attempt < attempts - 1:
                    logger.warning(
                        "operation_conflict_retry",
                        extra={
                            "operation": operation,
                            "attempt": attempt + 1,
                            "max_retries": attempts - 1,
                        },
                    )
                    time.sleep(self._config.retry_backoff_seconds * (attempt + 1))
                    continue
                logger.info(
                    "operation_rolled_back",
                    extra={
                        "operation": operation,
                        "error_code": exc.code,
                        "reason": str(exc),
                    },
                )
                return OperationResult.failure(status, exc)
            except Exception:
                self._session.rollback()
                logger.exception("operation_rolled_back", extra={"operation": operation})
                raise

            logger.info(
                "operation_committed",
                extra={"operation": operation, "attempt": attempt + 1},
            )
            return OperationResult.ok(value)

        raise AssertionError("unreachable: retry loop exited without a result")

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(
        self,
        organization_id: UUID,
        user_id: UUID,
        supplier_id: UUID,
        items: Sequence[Mapping[str, Any]],
        expected_delivery_date: date | str | None = None,
        notes: str | None = None,
        order_date: date | str | None = None,
    ) -> OperationResult[PurchaseOrderView]:
        def work() -> PurchaseOrderView:
            org = parse_uuid(organization_id, "organization_id")
            order = self._order_service().create(
                organization_id=org,
                supplier_id=supplier_id,
                items=items,
                user_id=parse_uuid(user_id, "user_id"),
                expected_delivery_date=parse_optional_date(
                    expected_delivery_date, "expected_delivery_date",
                ),
                notes=notes,
                order_date=parse_optional_date(order_date, "order_date"),
            )
            return PurchaseOrderView.from_model(order)

        with LogContext.bind(organization_id=organization_id, actor_id=user_id):
            return self._run("create_order", work, retry_conflicts=True)

    def get_order(self, organization_id: UUID, order_id: UUID) -> OperationResult[PurchaseOrderView]:
        def work() -> PurchaseOrderView:
            return self._order_service().get(
                parse_uuid(order_id, "order_id"),
                parse_uuid(organization_id, "organization_id"),
            )

        with LogContext.bind(organization_id=organization_id, order_id=order_id):
            return self._run("get_order", work)

    def list_orders(
        self,
        organization_id: UUID,
        filters: Mapping[str, Any] | OrderFilters | None = None,
        pagination: Mapping[str, Any] | Pagination | None = None,
    ) -> OperationResult[OrderPage]:
        def work() -> OrderPage:
            return self._order_service().list(
                parse_uuid(organization_id, "organization_id"),
                parse_filters(filters),
                parse_pagination(
                    pagination,
                    default_page_size=self._config.default_page_size,
                    max_page_size=self._config.max_page_size,
                ),
            )

        with LogContext.bind(organization_id=organization_id):
            return self._run("list_orders", work)

    def update_status(
        self,
        organization_id: UUID,
        user_id: UUID,
        order_id: UUID,
        status: str,
    ) -> OperationResult[PurchaseOrderView]:
        def work() -> PurchaseOrderView:
            order = OrderLifecycleService(self._session).update_status(
                order_id=parse_uuid(order_id, "order_id"),
                organization_id=parse_uuid(organization_id, "organization_id"),
                requested_status=status,
                user_id=parse_uuid(user_id, "user_id"),
            )
            received = OrderSelector(self._session).received_quantities(order.id)
            return PurchaseOrderView.from_model(order, received)

        with LogContext.bind(
            organization_id=organization_id, actor_id=user_id, order_id=order_id,
        ):
            return self._run("update_status", work)

    def delete_order(self, organization_id: UUID, order_id: UUID) -> OperationResult[UUID]:
        def work() -> UUID:
            oid = parse_uuid(order_id, "order_id")
            self._order_service().delete(oid, parse_uuid(organization_id, "organization_id"))
            return oid

        with LogContext.bind(organization_id=organization_id, order_id=order_id):
            return self._run("delete_order", work)

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    def receive(
        self,
        organization_id: UUID,
        user_id: UUID,
        order_id: UUID,
        items: Sequence[Mapping[str, Any]],
        notes: str | None = None,
    ) -> OperationResult[ReceiveResult]:
        def work() -> ReceiveResult:
            return ReceiptReconciler(self._session, clock=self._clock).receive(
                order_id=parse_uuid(order_id, "order_id"),
                organization_id=parse_uuid(organization_id, "organization_id"),
                user_id=parse_uuid(user_id, "user_id"),
                items=items,
                notes=notes,
            )

        with LogContext.bind(
            organization_id=organization_id, actor_id=user_id, order_id=order_id,
        ):
            return self._run("receive", work)

    def get_receipts(
        self, organization_id: UUID, order_id: UUID,
    ) -> OperationResult[tuple[ReceiptView, ...]]:
        def work() -> tuple[ReceiptView, ...]:
            org = parse_uuid(organization_id, "organization_id")
            oid = parse_uuid(order_id, "order_id")
            self._order_service().get(oid, org)
            return OrderSelector(self._session).receipts_for_order(oid, org)

        with LogContext.bind(organization_id=organization_id, order_id=order_id):
            return self._run("get_receipts", work)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def get_stock(self, organization_id: UUID, product_id: UUID) -> OperationResult[StockView]:
        def work() -> StockView:
            return InventorySelector(self._session).current_stock(
                parse_uuid(organization_id, "organization_id"),
                parse_uuid(product_id, "product_id"),
            )

        with LogContext.bind(organization_id=organization_id):
            return self._run("get_stock", work)

    def get_inventory_transaction(
        self, organization_id: UUID, transaction_id: UUID,
    ) -> OperationResult[InventoryTransactionView]:
        def work() -> InventoryTransactionView:
            tid = parse_uuid(transaction_id, "transaction_id")
            view = InventorySelector(self._session).get_transaction(
                parse_uuid(organization_id, "organization_id"), tid,
            )
            if view is None:
                raise NotFoundError("InventoryTransaction", str(tid))
            return view

        with LogContext.bind(organization_id=organization_id):
            return self._run("get_inventory_transaction", work)

    def reverse_inventory_transaction(
        self,
        organization_id: UUID,
        user_id: UUID,
        transaction_id: UUID,
        notes: str | None = None,
    ) -> OperationResult[InventoryTransactionView]:
        def work() -> InventoryTransactionView:
            reversal = InventoryLedgerService(self._session).reverse(
                transaction_id=parse_uuid(transaction_id, "transaction_id"),
                organization_id=parse_uuid(organization_id, "organization_id"),
                user_id=parse_uuid(user_id, "user_id"),
                notes=notes,
            )
            return InventoryTransactionView.from_model(reversal)

        with LogContext.bind(organization_id=organization_id, actor_id=user_id):
            return self._run("reverse_inventory_transaction", work)
