"""
Module: purchasing_kernel.db.types
Responsibility: Annotated type aliases and utility functions for quantity and
    money columns.  Centralizes precision and rounding so that every model and
    service uses identical type definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for quantities or amounts.  All values are Decimal with
      explicit precision; to_decimal() refuses float input.
    - round_money() is the only sanctioned rounding function for amounts.

Failure modes:
    - ValueError on non-numeric or float input to to_decimal().
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from sqlalchemy import Numeric, String

# 38 digits total, 9 decimal places
DECIMAL_PRECISION = 38
DECIMAL_SCALE = 9

Money = Annotated[Decimal, Numeric(DECIMAL_PRECISION, DECIMAL_SCALE)]

Quantity = Annotated[Decimal, Numeric(DECIMAL_PRECISION, DECIMAL_SCALE)]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Any) -> Decimal:
    """
    Coerce an int, str or Decimal to Decimal.

    Floats are rejected: binary floating point cannot represent most
    decimal quantities exactly.

    Raises:
        ValueError: If value is a float, a bool, or not numeric.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Expected int, str or Decimal, got {type(value).__name__}")
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value.strip() if isinstance(value, str) else value)
        except InvalidOperation as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    else:
        raise ValueError(f"Expected int, str or Decimal, got {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)
