"""
DocumentPostingService -- posts commercial documents to the ledger.

Responsibility:
    Moves a DRAFT document to POSTED, links fiscal documents (invoices,
    credit notes) onto their (tenant, document type) fiscal hash chain, and
    creates and posts the matching GL entry.

Architecture position:
    Kernel > Services -- imperative shell.  Fiscal chain serialization
    comes from FiscalHashService; the chain head lock from ChainLockService.

Invariants enforced:
    - Fiscal link: fiscal_hash == SHA-256((previous_hash or "") + "|" +
      "number|document_date|total|CUR"), previous_hash NULL at genesis,
      chain_sequence == head sequence + 1.  Assigned under the
      (tenant, fiscal:<type>) chain lock.
    - balance_due == total at posting.
    - Cancelling a posted document reverses its GL entry; the document
      keeps its place in the fiscal chain.

Failure modes:
    - DocumentNotPostableError for a non-draft document or a type with no
      ledger impact (quotes), and when cancelling a document that is not
      POSTED or already carries payments.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.enums import DocumentStatus, DocumentType
from ledger_kernel.domain.fiscal_hash import FiscalHashService
from ledger_kernel.exceptions import DocumentNotPostableError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.chain_head import fiscal_chain_type
from ledger_kernel.models.document import Document
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.selectors.document_selector import DocumentSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.chain_lock_service import ChainLockService
from ledger_kernel.services.general_ledger_service import GeneralLedgerService

logger = get_logger("services.document_posting")


class DocumentPostingService(BaseService[Document]):
    """
    Document posting and cancellation.

    Contract:
        Operates within the caller's transaction and flushes only.

    Guarantees:
        - A fiscal document is chained exactly once.
        - The GL entry is posted in the same transaction as the document.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._gl = GeneralLedgerService(session, clock=clock)
        self._chains = ChainLockService(session)
        self._documents = DocumentSelector(session)

    @staticmethod
    def requires_fiscal_chain(document_type: DocumentType | str) -> bool:
        return DocumentType(document_type) in DocumentType.fiscal_types()

    def post_document(self, document: Document, actor_id: UUID) -> Document:
        """
        Post a DRAFT document.

        Raises:
            DocumentNotPostableError: not DRAFT, or a quote.
        """
        document_type = DocumentType(document.document_type)
        if document.status != DocumentStatus.DRAFT:
            raise DocumentNotPostableError(
                str(document.id),
                f"only draft documents can be posted (status {DocumentStatus(document.status).value})",
            )
        if document_type is DocumentType.QUOTE:
            raise DocumentNotPostableError(str(document.id), "quotes have no ledger impact")

        with LogContext.bind(tenant_id=document.tenant_id, document_id=document.id):
            if self.requires_fiscal_chain(document_type):
                self._link_fiscal_chain(document, document_type)

            document.status = DocumentStatus.POSTED
            document.balance_due = document.total
            document.updated_by_id = actor_id
            self.session.flush()

            entry = self._create_gl_entry(document, document_type, actor_id)
            self._gl.post_entry(entry, actor_id)
            document.journal_entry_id = entry.id
            self.session.flush()

            logger.info(
                "document_posted",
                extra={
                    "document_number": document.document_number,
                    "document_type": document_type.value,
                    "chain_sequence": document.chain_sequence,
                    "fiscal_hash": document.fiscal_hash,
                    "entry_id": str(entry.id),
                },
            )
        return document

    def cancel_document(self, document: Document, actor_id: UUID) -> Document:
        """
        Cancel a posted, unpaid document and reverse its GL entry.

        Raises:
            DocumentNotPostableError: not POSTED, or payments are allocated.
        """
        if document.status != DocumentStatus.POSTED:
            raise DocumentNotPostableError(
                str(document.id),
                f"only posted documents can be cancelled (status {DocumentStatus(document.status).value})",
            )
        if document.balance_due != document.total:
            raise DocumentNotPostableError(
                str(document.id), "document has allocated payments"
            )

        if document.journal_entry_id is not None:
            entry = self.session.get(JournalEntry, document.journal_entry_id)
            if entry is not None and entry.is_posted:
                self._gl.reverse_entry(
                    entry,
                    actor_id,
                    description=f"Cancellation of {document.document_number}",
                )

        document.status = DocumentStatus.CANCELLED
        document.balance_due = document.total
        document.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "document_cancelled",
            extra={
                "document_id": str(document.id),
                "document_number": document.document_number,
                "fiscal_hash": document.fiscal_hash,
            },
        )
        return document

    def _link_fiscal_chain(self, document: Document, document_type: DocumentType) -> None:
        head = self._chains.acquire(
            document.tenant_id,
            fiscal_chain_type(document_type.value),
            seed=lambda: self._documents.chain_tail(document.tenant_id, document_type),
        )
        previous_hash = head.last_hash
        serialized = FiscalHashService.serialize_document(
            document.document_number,
            document.document_date,
            document.total,
            document.currency,
        )
        fiscal_hash = FiscalHashService.calculate_hash(serialized, previous_hash)

        document.chain_sequence = self._chains.advance(head, fiscal_hash)
        document.previous_hash = previous_hash
        document.fiscal_hash = fiscal_hash

    def _create_gl_entry(
        self, document: Document, document_type: DocumentType, actor_id: UUID
    ) -> JournalEntry:
        if document_type is DocumentType.INVOICE:
            return self._gl.create_entry_from_invoice(document, actor_id)
        if document_type is DocumentType.CREDIT_NOTE:
            return self._gl.create_entry_from_credit_note(document, actor_id)
        return self._gl.create_supplier_invoice_entry(
            document.tenant_id,
            document.partner_id,
            document.id,
            document.total,
            document.subtotal,
            document.tax_amount,
            document.document_date,
            actor_id,
            description=f"Supplier invoice {document.document_number}",
        )
