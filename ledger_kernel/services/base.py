"""
BaseService -- common constructor and session contract for kernel services.

Responsibility:
    Every write service receives the caller's SQLAlchemy ``Session`` and
    persists through ``session.flush()`` only.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain.

Invariants enforced:
    - Transaction boundaries belong to the caller.  Services never call
      ``commit()`` or ``rollback()``, so a multi-step operation (allocate,
      write off, post GL entries) succeeds or fails as one unit.

Failure modes:
    - A subclass that commits breaks the atomicity of apply_allocation and
      refund flows.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Contract:
        Uses ``session.flush()`` to persist within the active transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle.
        - Does NOT provide read-only queries; those live in selectors/.
    """

    def __init__(self, session: Session):
        self.session = session
