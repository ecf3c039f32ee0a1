"""
Concurrent posting onto one hash chain.

Threads post through their own committing sessions and meet at a barrier
so they contend for the same chain head row.  On SQLite the writers are
serialized by BEGIN IMMEDIATE; on PostgreSQL by SELECT ... FOR UPDATE.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from threading import Barrier
from uuid import uuid4

import pytest
from sqlalchemy import select

from ledger_kernel.db.engine import session_scope
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.enums import DocumentType, SystemAccountPurpose as P
from ledger_kernel.models.chain_head import ChainHead
from ledger_kernel.models.document import Document
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.services.chain_verification_service import ChainVerificationService
from ledger_kernel.services.document_posting_service import DocumentPostingService
from ledger_kernel.services.general_ledger_service import GeneralLedgerService
from tests.conftest import build_document, seed_system_accounts

pytestmark = pytest.mark.slow_locks

THREADS = 8
PER_THREAD = 3


@pytest.fixture
def tenant(committing_session_factory, test_actor_id):
    tenant_id = uuid4()
    with session_scope(committing_session_factory) as session:
        accounts = seed_system_accounts(session, tenant_id, test_actor_id)
        account_ids = {purpose: account.id for purpose, account in accounts.items()}
    return tenant_id, account_ids


def _run_threads(worker):
    barrier = Barrier(THREADS)

    def _start(index):
        barrier.wait()
        return worker(index)

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        return list(pool.map(_start, range(THREADS)))


class TestConcurrentJournalPosting:
    def test_sequences_unique_and_chain_valid(
        self, committing_session_factory, tenant, test_actor_id
    ):
        tenant_id, account_ids = tenant

        def worker(index):
            posted = []
            for n in range(PER_THREAD):
                with session_scope(committing_session_factory) as session:
                    entry = GeneralLedgerService(session).create_and_post(
                        tenant_id,
                        date(2025, 1, 5),
                        f"Thread {index} entry {n}",
                        [
                            LineSpec.dr(account_ids[P.BANK], "10.00"),
                            LineSpec.cr(account_ids[P.PRODUCT_REVENUE], "10.00"),
                        ],
                        test_actor_id,
                    )
                    posted.append(entry.entry_number)
            return posted

        numbers = [n for batch in _run_threads(worker) for n in batch]

        total = THREADS * PER_THREAD
        assert len(set(numbers)) == total
        with committing_session_factory() as session:
            sequences = session.execute(
                select(JournalEntry.chain_sequence)
                .where(JournalEntry.tenant_id == tenant_id)
                .order_by(JournalEntry.chain_sequence)
            ).scalars().all()
            assert sequences == list(range(1, total + 1))

            head = session.execute(
                select(ChainHead).where(ChainHead.tenant_id == tenant_id)
            ).scalar_one()
            assert head.last_sequence == total

            result = ChainVerificationService(session).verify_journal_chain(tenant_id)
            assert result.valid
            assert result.checked == total


class TestConcurrentDocumentPosting:
    def test_fiscal_chain_has_no_gaps_or_forks(
        self, committing_session_factory, tenant, test_actor_id
    ):
        tenant_id, _ = tenant

        def worker(index):
            with session_scope(committing_session_factory) as session:
                document = build_document(
                    tenant_id, uuid4(), test_actor_id, f"INV-T{index:02d}", "25.00"
                )
                session.add(document)
                session.flush()
                DocumentPostingService(session).post_document(document, test_actor_id)
                return document.chain_sequence

        sequences = _run_threads(worker)

        assert sorted(sequences) == list(range(1, THREADS + 1))
        with committing_session_factory() as session:
            previous_hashes = session.execute(
                select(Document.previous_hash).where(Document.tenant_id == tenant_id)
            ).scalars().all()
            assert len(set(previous_hashes)) == THREADS

            result = ChainVerificationService(session).verify_fiscal_chain(
                tenant_id, DocumentType.INVOICE
            )
            assert result.valid
            assert result.checked == THREADS
