"""Database layer - engine, base classes and column types."""

from ledger_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    create_tables,
    get_engine,
    get_read_only_session_factory,
    get_session,
    get_session_factory,
    session_scope,
)
from ledger_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from ledger_kernel.db.types import ScaledDecimal, money_type, rate_type

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "get_read_only_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "ScaledDecimal",
    "money_type",
    "rate_type",
    "register_immutability_listeners",
    "unregister_immutability_listeners",
]
