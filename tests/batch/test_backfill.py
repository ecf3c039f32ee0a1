"""
FiscalHashBackfill tests.

Uses committing sessions: every backfilled document is its own
transaction, so the rollback ``session`` fixture cannot observe it.
"""

from datetime import date
from uuid import uuid4

import pytest

from ledger_batch.domain.types import BatchItemStatus
from ledger_batch.services.backfill import FiscalHashBackfill
from ledger_batch.services.verify import ChainVerifier
from ledger_kernel.db.engine import session_scope
from ledger_kernel.domain.enums import DocumentStatus, DocumentType
from ledger_kernel.models.chain_head import ChainHead, fiscal_chain_type
from ledger_kernel.models.document import Document
from ledger_kernel.services.document_posting_service import DocumentPostingService
from tests.conftest import build_document, seed_system_accounts
from tests.domain.test_fiscal_hash import REFERENCE_CHAIN


@pytest.fixture
def tenant():
    return uuid4()


@pytest.fixture
def add_legacy_documents(committing_session_factory, tenant, test_actor_id):
    """Posted documents from before fiscal chaining: no hash, no sequence."""

    def _add(rows, document_type=DocumentType.INVOICE, status=DocumentStatus.POSTED):
        ids = []
        with session_scope(committing_session_factory) as session:
            for number, document_date, total in rows:
                document = build_document(
                    tenant,
                    uuid4(),
                    test_actor_id,
                    number,
                    total,
                    document_date=document_date,
                    document_type=document_type,
                    status=status,
                )
                session.add(document)
                session.flush()
                ids.append(document.id)
        return ids

    return _add


def _reference_rows():
    return [(number, document_date, total) for number, document_date, total, _ in REFERENCE_CHAIN]


def _load(factory, document_ids):
    with factory() as session:
        documents = [session.get(Document, i) for i in document_ids]
        return [(d.document_number, d.chain_sequence, d.previous_hash, d.fiscal_hash) for d in documents]


class TestBackfill:
    def test_backfill_reproduces_reference_chain(
        self, committing_session_factory, add_legacy_documents, tenant
    ):
        ids = add_legacy_documents(_reference_rows())
        backfill = FiscalHashBackfill(committing_session_factory)

        report = backfill.run(tenant_id=tenant)

        assert report.succeeded
        assert report.processed == 3
        loaded = _load(committing_session_factory, ids)
        expected_hashes = [row[3] for row in REFERENCE_CHAIN]
        assert [row[3] for row in loaded] == expected_hashes
        assert [row[1] for row in loaded] == [1, 2, 3]
        assert [row[2] for row in loaded] == [None] + expected_hashes[:2]
        assert backfill.count_pending(tenant_id=tenant) == 0

        verify = ChainVerifier(committing_session_factory).run(tenant_id=tenant)
        assert verify.valid
        assert verify.total_checked == 3

    def test_order_is_by_document_date(
        self, committing_session_factory, add_legacy_documents, tenant
    ):
        rows = _reference_rows()
        add_legacy_documents([rows[2], rows[0], rows[1]])

        report = FiscalHashBackfill(committing_session_factory).run(tenant_id=tenant)

        (scope, _) = report.scopes
        assert [item.document_number for item in scope.items] == [
            "INV-2025-0001",
            "INV-2025-0002",
            "INV-2025-0003",
        ]

    def test_dry_run_writes_nothing(
        self, committing_session_factory, add_legacy_documents, tenant
    ):
        ids = add_legacy_documents(_reference_rows())
        backfill = FiscalHashBackfill(committing_session_factory)

        report = backfill.run(tenant_id=tenant, document_type=DocumentType.INVOICE, dry_run=True)

        (scope,) = report.scopes
        assert [item.status for item in scope.items] == [BatchItemStatus.PREVIEWED] * 3
        assert [item.fiscal_hash for item in scope.items] == [row[3] for row in REFERENCE_CHAIN]
        assert [item.chain_sequence for item in scope.items] == [1, 2, 3]
        assert report.dry_run
        assert all(row[3] is None for row in _load(committing_session_factory, ids))
        assert backfill.count_pending(tenant_id=tenant) == 3

    def test_continues_existing_chain(
        self, committing_session_factory, add_legacy_documents, tenant, test_actor_id
    ):
        with session_scope(committing_session_factory) as session:
            seed_system_accounts(session, tenant, test_actor_id)
            live = build_document(tenant, uuid4(), test_actor_id, "INV-LIVE-1", "80.00")
            session.add(live)
            session.flush()
            DocumentPostingService(session).post_document(live, test_actor_id)
            live_hash = live.fiscal_hash
        (legacy_id,) = add_legacy_documents([("INV-OLD-1", date(2024, 12, 1), "10.00")])

        FiscalHashBackfill(committing_session_factory).run(tenant_id=tenant)

        ((_, sequence, previous_hash, fiscal_hash),) = _load(committing_session_factory, [legacy_id])
        assert sequence == 2
        assert previous_hash == live_hash
        with committing_session_factory() as session:
            head = session.query(ChainHead).filter_by(
                tenant_id=tenant, chain_type=fiscal_chain_type("invoice")
            ).one()
            assert head.last_sequence == 2
            assert head.last_hash == fiscal_hash

        with session_scope(committing_session_factory) as session:
            later = build_document(tenant, uuid4(), test_actor_id, "INV-LIVE-2", "5.00")
            session.add(later)
            session.flush()
            DocumentPostingService(session).post_document(later, test_actor_id)
            assert later.chain_sequence == 3
            assert later.previous_hash == fiscal_hash

    def test_only_posted_fiscal_documents_pending(
        self, committing_session_factory, add_legacy_documents, tenant
    ):
        add_legacy_documents([("INV-D", date(2025, 1, 1), "1.00")], status=DocumentStatus.DRAFT)
        add_legacy_documents(
            [("BILL-1", date(2025, 1, 1), "1.00")], document_type=DocumentType.SUPPLIER_INVOICE
        )
        add_legacy_documents([("INV-P", date(2025, 1, 1), "1.00")], status=DocumentStatus.PAID)
        add_legacy_documents(
            [("CN-1", date(2025, 1, 1), "1.00")], document_type=DocumentType.CREDIT_NOTE
        )
        backfill = FiscalHashBackfill(committing_session_factory)

        assert backfill.count_pending(tenant_id=tenant) == 2
        assert backfill.count_pending(tenant_id=tenant, document_type=DocumentType.CREDIT_NOTE) == 1

    def test_already_hashed_document_skipped(
        self, committing_session_factory, add_legacy_documents, tenant
    ):
        (document_id,) = add_legacy_documents([("INV-1", date(2025, 1, 1), "1.00")])
        backfill = FiscalHashBackfill(committing_session_factory)
        backfill.run(tenant_id=tenant)

        item = backfill._backfill_one(tenant, DocumentType.INVOICE, document_id)

        assert item.status == BatchItemStatus.SKIPPED
        assert item.chain_sequence == 1


class TestBackfillFailures:
    def test_failed_document_does_not_stop_the_run(
        self, committing_session_factory, add_legacy_documents, tenant, monkeypatch, captured_logs
    ):
        ids = add_legacy_documents(_reference_rows())
        original = FiscalHashBackfill._serialize

        def _serialize(document):
            if document.document_number == "INV-2025-0002":
                raise RuntimeError("corrupt row")
            return original(document)

        monkeypatch.setattr(FiscalHashBackfill, "_serialize", staticmethod(_serialize))
        seen = []

        report = FiscalHashBackfill(committing_session_factory).run(
            tenant_id=tenant, document_type=DocumentType.INVOICE, on_item=seen.append
        )

        assert [item.status for item in seen] == [
            BatchItemStatus.SUCCEEDED,
            BatchItemStatus.FAILED,
            BatchItemStatus.SUCCEEDED,
        ]
        assert report.errors == 1
        assert not report.succeeded
        assert seen[1].error_message == "RuntimeError: corrupt row"

        first, second, third = _load(committing_session_factory, ids)
        assert second[3] is None
        assert third[1] == 2
        assert third[2] == first[3]

        failures = [r for r in captured_logs() if r["message"] == "fiscal_backfill_document_failed"]
        assert failures[-1]["document_number"] == "INV-2025-0002"
        assert failures[-1]["error_type"] == "RuntimeError"
