"""
Input validation -- boundary parsing for kernel requests.

Responsibility:
    Converts loosely-typed request payloads (dicts from the HTTP layer, or
    the request DTOs themselves) into validated, frozen request DTOs.  All
    checks here run before any persistence; every failure is a
    ``ValidationError`` naming the offending field.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from purchasing_kernel.db.types import DECIMAL_PRECISION, DECIMAL_SCALE, to_decimal
from purchasing_kernel.domain.dtos import (
    OrderFilters,
    OrderLineRequest,
    Pagination,
    ReceiptLineRequest,
)
from purchasing_kernel.domain.workflow import PURCHASE_ORDER_WORKFLOW
from purchasing_kernel.exceptions import ValidationError


def parse_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError) as exc:
        raise ValidationError(field, f"not a valid UUID: {value!r}") from exc


def _fractional_digits(value: Decimal) -> int:
    """Significant digits after the decimal point (trailing zeros ignored)."""
    if not value:
        return 0
    _, digits, exponent = value.as_tuple()
    significant = "".join(map(str, digits)).rstrip("0")
    return max(0, -(exponent + len(digits) - len(significant)))


def parse_decimal(value: Any, field: str) -> Decimal:
    """Parse a quantity or amount that must fit the Numeric column exactly."""
    if value is None:
        raise ValidationError(field, "is required")
    try:
        result = to_decimal(value)
    except ValueError as exc:
        raise ValidationError(field, str(exc)) from exc

    # Stored values are never truncated
    if _fractional_digits(result) > DECIMAL_SCALE:
        raise ValidationError(
            field, f"more than {DECIMAL_SCALE} decimal places: {value!r}",
        )
    integer_digits = DECIMAL_PRECISION - DECIMAL_SCALE
    if result and result.adjusted() >= integer_digits:
        raise ValidationError(
            field, f"more than {integer_digits} integer digits: {value!r}",
        )
    return result


def parse_optional_date(value: Any, field: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationError(field, f"not an ISO date: {value!r}") from exc


def parse_status(value: Any, field: str = "status") -> str:
    status = getattr(value, "value", value)
    if status not in PURCHASE_ORDER_WORKFLOW.states:
        raise ValidationError(
            field,
            f"unknown status {value!r}; expected one of "
            f"{list(PURCHASE_ORDER_WORKFLOW.states)}",
        )
    return status


def _get(line: Mapping[str, Any] | object, key: str, default: Any = None) -> Any:
    if isinstance(line, Mapping):
        return line.get(key, default)
    return getattr(line, key, default)


def parse_order_lines(lines: Sequence[Mapping[str, Any] | OrderLineRequest]) -> tuple[OrderLineRequest, ...]:
    """Validate requested order lines: non-empty, quantity > 0, unit_price >= 0."""
    if not lines:
        raise ValidationError("items", "at least one item is required")

    parsed = []
    for idx, line in enumerate(lines):
        prefix = f"items[{idx}]"
        product_id = parse_uuid(_get(line, "product_id"), f"{prefix}.product_id")
        quantity = parse_decimal(_get(line, "quantity"), f"{prefix}.quantity")
        unit_price = parse_decimal(_get(line, "unit_price"), f"{prefix}.unit_price")
        if quantity <= 0:
            raise ValidationError(f"{prefix}.quantity", f"must be > 0, got {quantity}")
        if unit_price < 0:
            raise ValidationError(f"{prefix}.unit_price", f"must be >= 0, got {unit_price}")
        parsed.append(OrderLineRequest(product_id, quantity, unit_price))
    return tuple(parsed)


def parse_receipt_lines(lines: Sequence[Mapping[str, Any] | ReceiptLineRequest]) -> tuple[ReceiptLineRequest, ...]:
    """Validate reported receipt lines: non-empty, received_quantity > 0."""
    if not lines:
        raise ValidationError("items", "at least one receipt line is required")

    parsed = []
    for idx, line in enumerate(lines):
        prefix = f"items[{idx}]"
        order_item_id = parse_uuid(_get(line, "order_item_id"), f"{prefix}.order_item_id")
        quantity = parse_decimal(
            _get(line, "received_quantity"), f"{prefix}.received_quantity",
        )
        if quantity <= 0:
            raise ValidationError(
                f"{prefix}.received_quantity", f"must be > 0, got {quantity}",
            )
        parsed.append(
            ReceiptLineRequest(
                order_item_id=order_item_id,
                received_quantity=quantity,
                received_date=parse_optional_date(
                    _get(line, "received_date"), f"{prefix}.received_date",
                ),
                notes=_get(line, "notes"),
            )
        )
    return tuple(parsed)


def parse_filters(filters: Mapping[str, Any] | OrderFilters | None) -> OrderFilters:
    if filters is None:
        return OrderFilters()
    if isinstance(filters, OrderFilters):
        raw: Mapping[str, Any] = vars(filters)
    else:
        raw = filters
        unknown = sorted(set(raw) - set(OrderFilters.__dataclass_fields__))
        if unknown:
            raise ValidationError("filters", f"unknown filter keys: {unknown}")

    status = raw.get("status")
    supplier_id = raw.get("supplier_id")
    date_from = parse_optional_date(raw.get("date_from"), "filters.date_from")
    date_to = parse_optional_date(raw.get("date_to"), "filters.date_to")
    if date_from and date_to and date_from > date_to:
        raise ValidationError("filters.date_from", "must not be after date_to")
    return OrderFilters(
        status=parse_status(status, "filters.status") if status is not None else None,
        supplier_id=parse_uuid(supplier_id, "filters.supplier_id") if supplier_id is not None else None,
        date_from=date_from,
        date_to=date_to,
        order_number_prefix=raw.get("order_number_prefix"),
    )


def parse_pagination(
    pagination: Mapping[str, Any] | Pagination | None,
    default_page_size: int,
    max_page_size: int,
) -> Pagination:
    """Validate paging; page_size is clamped to ``max_page_size``."""
    if pagination is None:
        return Pagination(page=1, page_size=default_page_size)
    page = _get(pagination, "page", 1)
    page_size = _get(pagination, "page_size") or default_page_size
    if not isinstance(page, int) or page < 1:
        raise ValidationError("pagination.page", f"must be an integer >= 1, got {page!r}")
    if not isinstance(page_size, int) or page_size < 1:
        raise ValidationError(
            "pagination.page_size", f"must be an integer >= 1, got {page_size!r}",
        )
    return Pagination(page=page, page_size=min(page_size, max_page_size))
