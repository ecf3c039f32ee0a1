"""
ChainLockService -- serialized access to the head of a hash chain.

Responsibility:
    Hands out the (tenant, chain type) ChainHead row locked for the rest of
    the caller's transaction, and advances it after a record is chained.
    Journal entry numbering also runs under the journal chain lock.

Architecture position:
    Kernel > Services -- imperative shell.  Used by GeneralLedgerService,
    DocumentPostingService and the backfill tool.

Invariants enforced:
    - Locked counter row: SELECT ... FOR UPDATE on the head row.  No two
      writers can read the same previous hash for one scope.
    - First use creates the row inside a SAVEPOINT; an IntegrityError from a
      concurrent creator rolls back only the savepoint and the row is
      re-read with the lock.
    - A newly created head is seeded from the highest record already chained
      in the scope, so heads can be created lazily for existing data.

Failure modes:
    - ChainLockError if the head cannot be obtained after the create race.

Audit relevance:
    The head row is what makes chain continuity hold under concurrency.
    On SQLite, writers are serialized by BEGIN IMMEDIATE and FOR UPDATE is
    not emitted.
"""

from collections.abc import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.exceptions import ChainLockError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.chain_head import ChainHead
from ledger_kernel.services.base import BaseService

logger = get_logger("services.chain_lock")

# Returns (last_sequence, last_hash) of the scope's existing chain
ChainSeed = Callable[[], tuple[int, str | None]]


class ChainLockService(BaseService[ChainHead]):
    """
    Locked counter row per hash chain.

    Contract:
        ``acquire`` must be called inside the caller's transaction; the lock
        is held until that transaction ends.

    Guarantees:
        - ``advance`` returns last_sequence + 1 and stores the new hash.

    Non-goals:
        - Does NOT compute hashes; callers use FiscalHashService.
    """

    def _select_locked(self, tenant_id: UUID, chain_type: str) -> ChainHead | None:
        return self.session.execute(
            select(ChainHead)
            .where(
                ChainHead.tenant_id == tenant_id,
                ChainHead.chain_type == chain_type,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def acquire(
        self,
        tenant_id: UUID,
        chain_type: str,
        seed: ChainSeed | None = None,
    ) -> ChainHead:
        """
        Return the locked head row for (tenant_id, chain_type).

        Preconditions: caller is inside an active transaction.
        Postconditions: the returned row is locked until commit/rollback.
        """
        head = self._select_locked(tenant_id, chain_type)
        if head is not None:
            return head

        last_sequence, last_hash = seed() if seed is not None else (0, None)

        savepoint = self.session.begin_nested()
        try:
            head = ChainHead(
                tenant_id=tenant_id,
                chain_type=chain_type,
                last_sequence=last_sequence,
                last_hash=last_hash,
            )
            self.session.add(head)
            self.session.flush()
            savepoint.commit()
            logger.debug(
                "chain_head_created",
                extra={
                    "tenant_id": str(tenant_id),
                    "chain_type": chain_type,
                    "last_sequence": last_sequence,
                },
            )
            return head
        except IntegrityError:
            logger.debug(
                "chain_head_race_retry",
                extra={"tenant_id": str(tenant_id), "chain_type": chain_type},
            )
            savepoint.rollback()

        head = self._select_locked(tenant_id, chain_type)
        if head is None:
            raise ChainLockError(str(tenant_id), chain_type)
        return head

    def advance(self, head: ChainHead, record_hash: str) -> int:
        """Move the head past a newly chained record; returns its sequence."""
        head.last_sequence += 1
        head.last_hash = record_hash
        self.session.flush()
        logger.debug(
            "chain_head_advanced",
            extra={
                "tenant_id": str(head.tenant_id),
                "chain_type": head.chain_type,
                "sequence": head.last_sequence,
            },
        )
        return head.last_sequence
