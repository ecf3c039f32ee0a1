"""
DocumentSelector -- read-only document queries.

Responsibility:
    Open invoices for allocation, documents awaiting a fiscal hash, the
    fiscal chain tail, and chain-ordered documents for verification.

Invariants enforced:
    - The open balance of an invoice is its balance_due, maintained under
      the document row lock by allocation, refund and reversal.  Compared
      in Python: SQLite stores amounts as text.
    - Backfill order: document_date, created_at, document_number.
"""

from collections.abc import Iterator
from uuid import UUID

from sqlalchemy import or_, select

from ledger_kernel.domain.dtos import OpenInvoice
from ledger_kernel.domain.enums import DocumentStatus, DocumentType
from ledger_kernel.domain.values import ZERO
from ledger_kernel.exceptions import DocumentNotFoundError
from ledger_kernel.models.document import Document
from ledger_kernel.selectors.base import BaseSelector

# Statuses a document can have once it has been posted
_POSTED_STATUSES = (DocumentStatus.POSTED.value, DocumentStatus.PAID.value)


class DocumentSelector(BaseSelector[Document]):
    """Read-only document queries."""

    def get(self, document_id: UUID) -> Document:
        document = self.session.get(Document, document_id)
        if document is None:
            raise DocumentNotFoundError(str(document_id))
        return document

    def open_invoices(self, tenant_id: UUID, partner_id: UUID) -> list[OpenInvoice]:
        """Posted invoices of the partner with a positive balance_due."""
        documents = self.session.execute(
            select(Document).where(
                Document.tenant_id == tenant_id,
                Document.partner_id == partner_id,
                Document.document_type == DocumentType.INVOICE.value,
                Document.status == DocumentStatus.POSTED.value,
            )
        ).scalars()
        return [
            OpenInvoice(
                document_id=document.id,
                document_number=document.document_number,
                document_date=document.document_date,
                due_date=document.due_date,
                balance=document.balance_due,
            )
            for document in documents
            if document.balance_due > ZERO
        ]

    def chain_tail(self, tenant_id: UUID, document_type: DocumentType) -> tuple[int, str | None]:
        """(chain_sequence, fiscal_hash) of the last chained document, or (0, None)."""
        row = self.session.execute(
            select(Document.chain_sequence, Document.fiscal_hash)
            .where(
                Document.tenant_id == tenant_id,
                Document.document_type == document_type.value,
                Document.chain_sequence.is_not(None),
            )
            .order_by(Document.chain_sequence.desc())
            .limit(1)
        ).first()
        if row is None:
            return 0, None
        return int(row.chain_sequence), row.fiscal_hash

    def chained_documents(
        self, tenant_id: UUID, document_type: DocumentType
    ) -> Iterator[Document]:
        yield from self.session.execute(
            select(Document)
            .where(
                Document.tenant_id == tenant_id,
                Document.document_type == document_type.value,
                Document.chain_sequence.is_not(None),
            )
            .order_by(Document.chain_sequence)
        ).scalars()

    def unhashed_document_ids(
        self, tenant_id: UUID, document_type: DocumentType
    ) -> list[UUID]:
        """Posted documents still lacking a fiscal hash, in backfill order."""
        return list(
            self.session.execute(
                select(Document.id)
                .where(
                    Document.tenant_id == tenant_id,
                    Document.document_type == document_type.value,
                    Document.status.in_(_POSTED_STATUSES),
                    Document.fiscal_hash.is_(None),
                )
                .order_by(
                    Document.document_date,
                    Document.created_at,
                    Document.document_number,
                )
            ).scalars()
        )

    def fiscal_tenants(self, document_type: DocumentType | None = None) -> list[UUID]:
        """Tenants owning at least one posted or chained fiscal document."""
        types = [document_type] if document_type else list(DocumentType.fiscal_types())
        return list(
            self.session.execute(
                select(Document.tenant_id)
                .where(
                    Document.document_type.in_([t.value for t in types]),
                    or_(
                        Document.status.in_(_POSTED_STATUSES),
                        Document.chain_sequence.is_not(None),
                    ),
                )
                .distinct()
                .order_by(Document.tenant_id)
            ).scalars()
        )
