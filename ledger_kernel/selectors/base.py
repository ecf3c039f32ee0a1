"""
BaseSelector -- read-only query base.

Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/ value types.  MUST NOT import from services/.

Invariants enforced:
    - Selectors never add, delete, flush or commit.  The caller owns the
      session and its transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for selectors.

    Contract:
        Read-only queries over the caller's session, returning DTOs or
        loaded rows the caller treats as read-only.
    """

    def __init__(self, session: Session):
        self.session = session
