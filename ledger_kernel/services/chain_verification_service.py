"""
ChainVerificationService -- recomputes persisted hash chains.

Responsibility:
    Loads chained records for one scope (a tenant's journal chain, or a
    tenant's fiscal chain for one document type), rebuilds their canonical
    serialization and walks them through FiscalHashService.verify_chain.

Architecture position:
    Kernel > Services -- read-only; takes no locks and never writes.

Invariants enforced:
    - Journal scope: every entry with a chain_sequence (posted or since
      reversed), ordered by chain_sequence, lines by line_order.
    - Fiscal scope: every document with a chain_sequence, in chain order,
      serialized as number|document_date|total|CUR.
    - Verifying an unchanged chain twice gives identical results.

Failure modes:
    Never raises for bad data; returns ChainVerificationResult with the
    first failing sequence.  ``ensure_valid`` converts a failure into
    ChainBrokenError for callers that must stop.

Audit relevance:
    Logs chain_verified / chain_verification_failed per scope.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from uuid import UUID

from ledger_kernel.domain.enums import DocumentType
from ledger_kernel.domain.fiscal_hash import (
    ChainLink,
    ChainVerificationResult,
    FiscalHashService,
)
from ledger_kernel.exceptions import ChainBrokenError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.chain_head import JOURNAL_CHAIN, fiscal_chain_type
from ledger_kernel.selectors.document_selector import DocumentSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.base import BaseService

logger = get_logger("services.chain_verification")


@dataclass(frozen=True)
class ChainScopeResult:
    """Verification outcome for one (tenant, chain type) scope."""

    tenant_id: UUID
    chain_type: str
    result: ChainVerificationResult

    @property
    def valid(self) -> bool:
        return self.result.valid


class ChainVerificationService(BaseService):
    """
    Read-only chain verifier.

    Contract:
        Uses the caller's session for reads only.

    Non-goals:
        - Does NOT repair chains; failures are reported.
        - Does NOT cross-check the fiscal chain against the journal chain.
    """

    def __init__(self, session):
        super().__init__(session)
        self._journals = JournalSelector(session)
        self._documents = DocumentSelector(session)

    def journal_links(self, tenant_id: UUID) -> Iterator[ChainLink]:
        for entry in self._journals.chained_entries(tenant_id):
            lines = sorted(entry.lines, key=lambda line: line.line_order)
            yield ChainLink(
                record_id=entry.entry_number,
                sequence=entry.chain_sequence,
                serialized=FiscalHashService.serialize_journal_entry(
                    entry.entry_number,
                    entry.entry_date,
                    entry.description,
                    [(line.account_id, line.debit, line.credit) for line in lines],
                ),
                previous_hash=entry.previous_hash,
                stored_hash=entry.hash,
            )

    def fiscal_links(self, tenant_id: UUID, document_type: DocumentType) -> Iterator[ChainLink]:
        for document in self._documents.chained_documents(tenant_id, document_type):
            yield ChainLink(
                record_id=document.document_number,
                sequence=document.chain_sequence,
                serialized=FiscalHashService.serialize_document(
                    document.document_number,
                    document.document_date,
                    document.total,
                    document.currency,
                ),
                previous_hash=document.previous_hash,
                stored_hash=document.fiscal_hash,
            )

    def verify_journal_chain(self, tenant_id: UUID) -> ChainVerificationResult:
        result = FiscalHashService.verify_chain(self.journal_links(tenant_id))
        self._log(tenant_id, JOURNAL_CHAIN, result)
        return result

    def verify_fiscal_chain(
        self, tenant_id: UUID, document_type: DocumentType
    ) -> ChainVerificationResult:
        document_type = DocumentType(document_type)
        result = FiscalHashService.verify_chain(self.fiscal_links(tenant_id, document_type))
        self._log(tenant_id, fiscal_chain_type(document_type.value), result)
        return result

    def verify_scopes(
        self,
        tenant_id: UUID | None = None,
        document_type: DocumentType | None = None,
        include_journal: bool = False,
    ) -> list[ChainScopeResult]:
        """
        Verify every fiscal scope matching the filters, plus journal chains
        when ``include_journal`` is set.
        """
        types = (
            [DocumentType(document_type)]
            if document_type is not None
            else list(DocumentType.fiscal_types())
        )
        fiscal_tenants = [tenant_id] if tenant_id else self._documents.fiscal_tenants()

        results = []
        for tenant in fiscal_tenants:
            for doc_type in types:
                results.append(
                    ChainScopeResult(
                        tenant,
                        fiscal_chain_type(doc_type.value),
                        self.verify_fiscal_chain(tenant, doc_type),
                    )
                )

        if include_journal:
            journal_tenants = [tenant_id] if tenant_id else self._journals.tenants_with_entries()
            for tenant in journal_tenants:
                results.append(
                    ChainScopeResult(tenant, JOURNAL_CHAIN, self.verify_journal_chain(tenant))
                )
        return results

    def ensure_valid(self, scope: ChainScopeResult) -> None:
        """
        Raises:
            ChainBrokenError: the scope failed verification.
        """
        result = scope.result
        if not result.valid:
            raise ChainBrokenError(
                scope.chain_type,
                result.failed_at or 0,
                result.record_id or "",
                result.reason or "",
            )

    @staticmethod
    def _log(tenant_id: UUID, chain_type: str, result: ChainVerificationResult) -> None:
        if result.valid:
            logger.info(
                "chain_verified",
                extra={
                    "tenant_id": str(tenant_id),
                    "chain_type": chain_type,
                    "checked": result.checked,
                },
            )
        else:
            logger.warning(
                "chain_verification_failed",
                extra={
                    "tenant_id": str(tenant_id),
                    "chain_type": chain_type,
                    "failed_at": result.failed_at,
                    "record_id": result.record_id,
                    "failure_kind": result.failure_kind.value if result.failure_kind else None,
                    "reason": result.reason,
                },
            )
