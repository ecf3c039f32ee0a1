"""
ledger_batch.domain.types -- frozen result types for backfill and verify.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.enums import DocumentType
from ledger_kernel.services.chain_verification_service import ChainScopeResult


class BatchItemStatus(str, Enum):
    """Per-document outcome within a backfill run."""

    SUCCEEDED = "succeeded"  # Hash written and committed
    PREVIEWED = "previewed"  # Dry run; hash computed, nothing written
    SKIPPED = "skipped"  # Hashed by someone else since the run started
    FAILED = "failed"


@dataclass(frozen=True)
class BackfillItemResult:
    document_id: UUID
    document_number: str
    status: BatchItemStatus
    chain_sequence: int | None = None
    fiscal_hash: str | None = None
    previous_hash: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class BackfillScopeReport:
    """Backfill outcome for one (tenant, document type) chain."""

    tenant_id: UUID
    document_type: DocumentType
    items: tuple[BackfillItemResult, ...] = ()

    @property
    def processed(self) -> int:
        return sum(
            1
            for item in self.items
            if item.status in (BatchItemStatus.SUCCEEDED, BatchItemStatus.PREVIEWED)
        )

    @property
    def errors(self) -> int:
        return sum(1 for item in self.items if item.status == BatchItemStatus.FAILED)


@dataclass(frozen=True)
class BackfillReport:
    dry_run: bool
    scopes: tuple[BackfillScopeReport, ...] = ()

    @property
    def processed(self) -> int:
        return sum(scope.processed for scope in self.scopes)

    @property
    def errors(self) -> int:
        return sum(scope.errors for scope in self.scopes)

    @property
    def succeeded(self) -> bool:
        return self.errors == 0


@dataclass(frozen=True)
class VerifyReport:
    scopes: tuple[ChainScopeResult, ...] = ()

    @property
    def valid(self) -> bool:
        return all(scope.valid for scope in self.scopes)

    @property
    def total_checked(self) -> int:
        return sum(scope.result.checked for scope in self.scopes)

    @property
    def invalid_count(self) -> int:
        return sum(1 for scope in self.scopes if not scope.valid)
