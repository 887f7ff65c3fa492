"""Database layer - engine, base classes and column types."""

from fund_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from fund_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from fund_kernel.db.types import MinorUnits, Money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "MinorUnits",
    "Money",
]
