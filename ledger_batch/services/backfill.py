"""
FiscalHashBackfill -- retroactive fiscal chaining of posted documents.

Responsibility:
    Chains posted fiscal documents that carry no fiscal hash yet (data
    posted before chaining existed), per tenant and document type, in
    document_date, created_at, document_number order, continuing from the
    scope's last chained document or from genesis.

Architecture position:
    Batch > Services.  Owns its transactions: one session and one commit per
    document, so progress survives a failure part-way through a scope.

Invariants enforced:
    - Each document is linked under the (tenant, fiscal:<type>) chain head
      lock, exactly as DocumentPostingService links a newly posted document,
      so a backfill can run next to live posting.
    - Serialization uses document_date: number|document_date|total|CUR.
    - A document hashed since the run started is skipped, never re-hashed.
    - Dry run computes the same hashes and sequences and writes nothing.

Failure modes:
    Per-document exceptions are logged, counted and the run continues with
    the next document.  Because a failed document is left unhashed, later
    documents still chain onto the last committed one.

Audit relevance:
    Logs fiscal_backfill_document per chained document and
    fiscal_backfill_completed with totals.  Run verification afterwards.
"""

from collections.abc import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ledger_batch.domain.types import (
    BackfillItemResult,
    BackfillReport,
    BackfillScopeReport,
    BatchItemStatus,
)
from ledger_kernel.db.engine import session_scope
from ledger_kernel.domain.enums import DocumentType
from ledger_kernel.domain.fiscal_hash import FiscalHashService
from ledger_kernel.exceptions import DocumentNotFoundError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.chain_head import fiscal_chain_type
from ledger_kernel.models.document import Document
from ledger_kernel.selectors.document_selector import DocumentSelector
from ledger_kernel.services.chain_lock_service import ChainLockService

logger = get_logger("batch.backfill")

ItemCallback = Callable[[BackfillItemResult], None]


class FiscalHashBackfill:
    """
    Backfills fiscal hashes one committed document at a time.

    Contract:
        Constructed with a session factory; every document gets a fresh
        session from it.

    Non-goals:
        - Does NOT re-hash documents that already have a fiscal hash.
        - Does NOT repair broken chains.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def _scopes(
        self,
        session: Session,
        tenant_id: UUID | None,
        document_type: DocumentType | None,
    ) -> list[tuple[UUID, DocumentType]]:
        types = (
            [DocumentType(document_type)]
            if document_type is not None
            else list(DocumentType.fiscal_types())
        )
        tenants = [tenant_id] if tenant_id else DocumentSelector(session).fiscal_tenants()
        return [(tenant, doc_type) for tenant in tenants for doc_type in types]

    def count_pending(
        self,
        tenant_id: UUID | None = None,
        document_type: DocumentType | None = None,
    ) -> int:
        """Number of posted fiscal documents still lacking a hash."""
        with self._session_factory() as session:
            selector = DocumentSelector(session)
            return sum(
                len(selector.unhashed_document_ids(tenant, doc_type))
                for tenant, doc_type in self._scopes(session, tenant_id, document_type)
            )

    def run(
        self,
        tenant_id: UUID | None = None,
        document_type: DocumentType | None = None,
        dry_run: bool = False,
        on_item: ItemCallback | None = None,
    ) -> BackfillReport:
        """
        Backfill every matching scope, one scope at a time.

        ``on_item`` is called after each document, e.g. for CLI progress.
        """
        with self._session_factory() as session:
            scopes = self._scopes(session, tenant_id, document_type)

        reports = []
        for tenant, doc_type in scopes:
            with LogContext.bind(tenant_id=tenant):
                reports.append(self._run_scope(tenant, doc_type, dry_run, on_item))

        report = BackfillReport(dry_run=dry_run, scopes=tuple(reports))
        logger.info(
            "fiscal_backfill_completed",
            extra={
                "dry_run": dry_run,
                "scopes": len(reports),
                "processed": report.processed,
                "errors": report.errors,
            },
        )
        return report

    def _run_scope(
        self,
        tenant_id: UUID,
        document_type: DocumentType,
        dry_run: bool,
        on_item: ItemCallback | None,
    ) -> BackfillScopeReport:
        with self._session_factory() as session:
            selector = DocumentSelector(session)
            document_ids = selector.unhashed_document_ids(tenant_id, document_type)
            sequence, previous_hash = selector.chain_tail(tenant_id, document_type)

        logger.info(
            "fiscal_backfill_scope_started",
            extra={
                "document_type": document_type.value,
                "pending": len(document_ids),
                "dry_run": dry_run,
            },
        )

        items = []
        for document_id in document_ids:
            if dry_run:
                item = self._preview_one(document_id, sequence, previous_hash)
                if item.status == BatchItemStatus.PREVIEWED:
                    sequence, previous_hash = item.chain_sequence, item.fiscal_hash
            else:
                item = self._backfill_one(tenant_id, document_type, document_id)
            items.append(item)
            if on_item is not None:
                on_item(item)

        return BackfillScopeReport(
            tenant_id=tenant_id,
            document_type=document_type,
            items=tuple(items),
        )

    def _preview_one(
        self, document_id: UUID, sequence: int, previous_hash: str | None
    ) -> BackfillItemResult:
        with self._session_factory() as session:
            document = session.get(Document, document_id)
            if document is None:
                return self._failed(document_id, "", DocumentNotFoundError(str(document_id)))
            fiscal_hash = FiscalHashService.calculate_hash(
                self._serialize(document), previous_hash
            )
            return BackfillItemResult(
                document_id=document.id,
                document_number=document.document_number,
                status=BatchItemStatus.PREVIEWED,
                chain_sequence=sequence + 1,
                fiscal_hash=fiscal_hash,
                previous_hash=previous_hash,
            )

    def _backfill_one(
        self, tenant_id: UUID, document_type: DocumentType, document_id: UUID
    ) -> BackfillItemResult:
        document_number = ""
        try:
            with session_scope(self._session_factory) as session:
                head = ChainLockService(session).acquire(
                    tenant_id,
                    fiscal_chain_type(document_type.value),
                    seed=lambda: DocumentSelector(session).chain_tail(tenant_id, document_type),
                )
                document = session.execute(
                    select(Document)
                    .where(Document.id == document_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
                if document is None:
                    raise DocumentNotFoundError(str(document_id))
                document_number = document.document_number

                if document.fiscal_hash is not None:
                    return BackfillItemResult(
                        document_id=document.id,
                        document_number=document_number,
                        status=BatchItemStatus.SKIPPED,
                        chain_sequence=document.chain_sequence,
                        fiscal_hash=document.fiscal_hash,
                        previous_hash=document.previous_hash,
                    )

                previous_hash = head.last_hash
                fiscal_hash = FiscalHashService.calculate_hash(
                    self._serialize(document), previous_hash
                )
                document.chain_sequence = ChainLockService(session).advance(head, fiscal_hash)
                document.previous_hash = previous_hash
                document.fiscal_hash = fiscal_hash
                session.flush()

                result = BackfillItemResult(
                    document_id=document.id,
                    document_number=document_number,
                    status=BatchItemStatus.SUCCEEDED,
                    chain_sequence=document.chain_sequence,
                    fiscal_hash=fiscal_hash,
                    previous_hash=previous_hash,
                )
        except Exception as exc:
            return self._failed(document_id, document_number, exc)

        logger.info(
            "fiscal_backfill_document",
            extra={
                "document_id": str(result.document_id),
                "document_number": result.document_number,
                "chain_sequence": result.chain_sequence,
                "fiscal_hash": result.fiscal_hash,
            },
        )
        return result

    @staticmethod
    def _serialize(document: Document) -> str:
        return FiscalHashService.serialize_document(
            document.document_number,
            document.document_date,
            document.total,
            document.currency,
        )

    @staticmethod
    def _failed(document_id: UUID, document_number: str, exc: Exception) -> BackfillItemResult:
        logger.error(
            "fiscal_backfill_document_failed",
            extra={
                "document_id": str(document_id),
                "document_number": document_number,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        return BackfillItemResult(
            document_id=document_id,
            document_number=document_number,
            status=BatchItemStatus.FAILED,
            error_message=f"{type(exc).__name__}: {exc}",
        )
