"""
Module: ledger_kernel.models.chain_head
Responsibility: The per-chain head row -- last sequence and last hash of one
    (tenant, chain type) hash chain.
Architecture position: Kernel > Models.  Written only by ChainLockService.

Invariants enforced:
    - Exactly one row per (tenant_id, chain_type) (uq_chain_head_scope).
    - last_sequence/last_hash always describe the most recently chained
      record of the scope; both change together under the row lock.

Failure modes:
    - IntegrityError on concurrent first-time creation; ChainLockService
      retries inside a savepoint.

Audit relevance:
    The head row is the serialization point for a chain.  Two writers can
    never read the same previous hash because the read happens under
    SELECT ... FOR UPDATE on this row.
"""

from uuid import UUID

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString

JOURNAL_CHAIN = "journal_entry"
FISCAL_CHAIN_PREFIX = "fiscal:"


def fiscal_chain_type(document_type: str) -> str:
    """Chain type for a document type's fiscal chain, e.g. ``fiscal:invoice``."""
    return f"{FISCAL_CHAIN_PREFIX}{document_type}"


class ChainHead(Base):
    """
    Locked counter row for one hash chain.

    Contract:
        Callers never update this row directly; ChainLockService.acquire()
        returns it locked and ChainLockService.advance() moves it.

    Guarantees:
        - last_sequence starts at 0 (empty chain) with last_hash None.
    """

    __tablename__ = "chain_heads"

    __table_args__ = (
        UniqueConstraint("tenant_id", "chain_type", name="uq_chain_head_scope"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    chain_type: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    last_sequence: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    last_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ChainHead {self.chain_type} tenant={self.tenant_id} seq={self.last_sequence}>"
