"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention and the TrackedBase mixin for audit columns.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel; every model file imports from here.  MUST NOT import from models/,
    services/, selectors/ or domain/.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key
      stored as String(36) so the schema is identical on PostgreSQL and SQLite.
    - Audit columns: TrackedBase records who created and last modified a row.

Failure modes:
    - IntegrityError if created_by_id is missing on INSERT.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import String, TypeDecorator


def utcnow() -> datetime:
    return datetime.now(UTC)


class UUIDString(TypeDecorator):
    """
    UUID stored as String(36).

    Guarantees:
        - UUID -> str on bind, str -> UUID on load.
        - Plain strings are accepted on bind and normalized through UUID().
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, PyUUID):
            return str(value)
        return str(PyUUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return PyUUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for all ledger models.

    Contract:
        Every ORM model inherits from Base (or TrackedBase) and gets a uuid4
        primary key plus the shared type_annotation_map.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Contract:
        created_at/updated_at/updated_by_id are audit metadata, not financial
        data, so they may change on otherwise immutable rows (see
        db/immutability.py).

    Guarantees:
        - created_at is stamped on INSERT with microsecond precision; it is
          the tiebreaker for chronological ordering of same-day records.
        - created_by_id is required: every record has a creator.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID
