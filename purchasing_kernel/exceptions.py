"""
Typed Exception Hierarchy for the Purchasing Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from PurchasingKernelError:

    PurchasingKernelError (base)
    |
    +-- ValidationError             malformed / out-of-range input
    |
    +-- NotFoundError               entity absent or outside the caller's org
    |
    +-- StateError
    |   +-- InvalidStateError       operation illegal for current status
    |   +-- InvalidTransitionError  status edge not in the lifecycle table
    |
    +-- QuantityExceededError       receipt exceeds remaining ordered quantity
    |
    +-- ConcurrencyError
    |   +-- ConflictError           lost a concurrency race, retryable
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                    | When Raised
------------------------|------------------------------------------------------
VALIDATION_ERROR        | Bad input, caught before any persistence
NOT_FOUND               | Order, item, supplier or ledger entry not found
INVALID_STATE           | e.g. deleting a non-draft order, receiving a draft
INVALID_TRANSITION      | Explicit status change not permitted (sent -> draft)
QUANTITY_EXCEEDED       | Receipt would exceed remaining quantity on an item
CONFLICT                | Allocator/ledger race or lock timeout; retry
IMMUTABILITY_VIOLATION  | UPDATE/DELETE on an append-only record

===============================================================================
HANDLING PATTERNS
===============================================================================

Catch by type and read structured attributes, never parse messages:

    try:
        reconciler.receive(...)
    except QuantityExceededError as e:
        return {"error": e.code, "item": e.order_item_id, "remaining": e.remaining}
    except ConflictError:
        retry_later()

Codes are class attributes so they are available without instantiation
(``QuantityExceededError.code``) and survive logging and serialization.
"""

from decimal import Decimal


class PurchasingKernelError(Exception):
    """
    Base exception for all purchasing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PURCHASING_KERNEL_ERROR"


class ValidationError(PurchasingKernelError):
    """Input failed validation before any persistence took place."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class NotFoundError(PurchasingKernelError):
    """Referenced entity is absent or not in the caller's organization."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


# State-related exceptions


class StateError(PurchasingKernelError):
    """Base exception for lifecycle state errors."""

    code: str = "STATE_ERROR"


class InvalidStateError(StateError):
    """Operation is not legal for the entity's current status."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        operation: str,
        reason: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.current_state = current_state
        self.operation = operation
        self.reason = reason
        message = (
            f"Cannot {operation} {entity_type} {entity_id} "
            f"in state '{current_state}'"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidTransitionError(StateError):
    """Requested status change is not an edge of the lifecycle table."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, current_status: str, requested_status: str):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Invalid status transition: {current_status} -> {requested_status}"
        )


class QuantityExceededError(PurchasingKernelError):
    """Receiving would push an item over its ordered quantity."""

    code: str = "QUANTITY_EXCEEDED"

    def __init__(self, order_item_id: str, requested: Decimal, remaining: Decimal):
        self.order_item_id = str(order_item_id)
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Cannot receive {requested} on order item {order_item_id}: "
            f"only {remaining} remaining"
        )


# Concurrency-related exceptions


class ConcurrencyError(PurchasingKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """A concurrent writer won the race; the operation may be retried."""

    code: str = "CONFLICT"

    def __init__(self, resource: str, reason: str):
        self.resource = resource
        self.reason = reason
        super().__init__(f"Concurrency conflict on {resource}: {reason}")


# Immutability-related exceptions


class ImmutabilityError(PurchasingKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Receipts and inventory transactions are append-only; order items are
    frozen once written.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
