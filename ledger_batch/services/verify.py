"""
ChainVerifier -- read-only verification run across tenants.

Opens one session from the factory, delegates every scope to
ChainVerificationService and closes the session without committing.  The
command line hands it get_read_only_session_factory(), so a run never holds
or waits for the SQLite write lock.
"""

from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from ledger_batch.domain.types import VerifyReport
from ledger_kernel.domain.enums import DocumentType
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.chain_verification_service import ChainVerificationService

logger = get_logger("batch.verify")


class ChainVerifier:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def run(
        self,
        tenant_id: UUID | None = None,
        document_type: DocumentType | None = None,
        include_journal: bool = False,
    ) -> VerifyReport:
        with self._session_factory() as session:
            scopes = ChainVerificationService(session).verify_scopes(
                tenant_id=tenant_id,
                document_type=document_type,
                include_journal=include_journal,
            )
            session.rollback()

        report = VerifyReport(scopes=tuple(scopes))
        logger.info(
            "chain_verification_completed",
            extra={
                "scopes": len(report.scopes),
                "checked": report.total_checked,
                "invalid": report.invalid_count,
            },
        )
        return report
