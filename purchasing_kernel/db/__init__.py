"""Database layer - engine, base classes, types, and immutability."""

from purchasing_kernel.db.base import UUID, Base, TimestampedBase, UUIDString
from purchasing_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
)
from purchasing_kernel.db.types import Money, Quantity, round_money, to_decimal

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TimestampedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Quantity",
    "round_money",
    "to_decimal",
]
