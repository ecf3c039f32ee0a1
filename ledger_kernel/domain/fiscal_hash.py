"""
FiscalHashService -- SHA-256 chain links over canonical record text.

Responsibility:
    Computes and verifies the links of both hash chains in the system:
    the journal-entry chain (per tenant) and the fiscal document chain
    (per tenant and document type).  Serialization formats live here so
    that posting, verification and backfill share one definition.

Architecture position:
    Kernel > Domain -- pure functional core.  Depends only on its inputs;
    callers load the records and the previous hash under the chain lock.

Invariants enforced:
    - link hash == SHA-256((previous_hash or "") + "|" + serialized)
    - Genesis uses the empty previous hash; a stored null and a stored ""
      are the same genesis marker.
    - Field order and formatting are part of the contract: dates as ISO
      YYYY-MM-DD, amounts as fixed 2-decimal strings.

Failure modes:
    verify_chain never raises for bad data; it returns the first failing
    position with a ChainFailureKind:
    - BROKEN_LINK: stored previous_hash differs from the prior link's hash.
    - HASH_MISMATCH: stored hash differs from the recomputed hash
      (payload tampered or hash missing).

Audit relevance:
    Any edit, deletion or reordering of a posted record changes either a
    recomputed hash or a continuity link, so the chain is tamper-evident.
"""

from __future__ import annotations

import hmac
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.enums import ChainFailureKind
from ledger_kernel.domain.values import format_amount
from ledger_kernel.utils.hashing import CHAIN_SEPARATOR, chain_hash, ordered_json

GENESIS_HASH = ""


@dataclass(frozen=True)
class ChainLink:
    """One persisted record as seen by the verifier."""

    record_id: str
    sequence: int
    serialized: str
    previous_hash: str | None
    stored_hash: str | None


@dataclass(frozen=True)
class ChainVerificationResult:
    """
    Outcome of walking one chain.

    ``failed_at`` is the chain sequence of the first bad record.
    """

    valid: bool
    checked: int
    failed_at: int | None = None
    record_id: str | None = None
    failure_kind: ChainFailureKind | None = None
    reason: str | None = None
    last_hash: str | None = None

    @classmethod
    def ok(cls, checked: int, last_hash: str | None) -> ChainVerificationResult:
        return cls(valid=True, checked=checked, last_hash=last_hash)


def _same_previous(stored: str | None, expected: str | None) -> bool:
    return hmac.compare_digest(stored or GENESIS_HASH, expected or GENESIS_HASH)


class FiscalHashService:
    """
    Stateless hash-chain functions.

    Contract:
        Every method is a pure function of its arguments.

    Non-goals:
        - Does NOT read or write the database.
        - Does NOT lock; the caller reads the previous hash under the chain
          lock and passes it in.
    """

    @staticmethod
    def calculate_hash(serialized: str, previous_hash: str | None) -> str:
        return chain_hash(serialized, previous_hash)

    @staticmethod
    def serialize_document(
        document_number: str,
        document_date: date,
        total: Decimal | str | None,
        currency: str,
    ) -> str:
        """``number|YYYY-MM-DD|total|CUR``, e.g. ``INV-0001|2025-01-01|100.00|USD``."""
        return CHAIN_SEPARATOR.join(
            (
                document_number,
                document_date.isoformat(),
                format_amount(total),
                currency.upper(),
            )
        )

    @staticmethod
    def serialize_journal_entry(
        entry_number: str,
        entry_date: date,
        description: str | None,
        lines: Sequence[tuple[UUID | str, Decimal, Decimal]],
    ) -> str:
        """
        Compact JSON over the entry header and the ordered line set.

        ``lines`` are ``(account_id, debit, credit)`` tuples in line order.
        """
        payload = {
            "entry_number": entry_number,
            "entry_date": entry_date.isoformat(),
            "description": description,
            "lines": [
                {
                    "account_id": str(account_id),
                    "debit": format_amount(debit),
                    "credit": format_amount(credit),
                }
                for account_id, debit, credit in lines
            ],
        }
        return ordered_json(payload)

    @classmethod
    def verify_hash(
        cls,
        serialized: str,
        previous_hash: str | None,
        stored_hash: str | None,
    ) -> bool:
        if not stored_hash:
            return False
        return hmac.compare_digest(
            cls.calculate_hash(serialized, previous_hash), stored_hash
        )

    @classmethod
    def verify_chain(cls, links: Iterable[ChainLink]) -> ChainVerificationResult:
        """
        Walk links in chain order and stop at the first failure.

        Preconditions: ``links`` is ordered by chain sequence, starting at the
            genesis record of the scope.
        Postconditions: returns valid=True with the count and final hash, or
            the first failing position.  Re-running on unchanged links gives
            an identical result.
        """
        expected_previous: str | None = GENESIS_HASH
        checked = 0

        for link in links:
            if not _same_previous(link.previous_hash, expected_previous):
                return ChainVerificationResult(
                    valid=False,
                    checked=checked,
                    failed_at=link.sequence,
                    record_id=link.record_id,
                    failure_kind=ChainFailureKind.BROKEN_LINK,
                    reason=(
                        f"Previous hash mismatch for {link.record_id}: "
                        f"expected '{expected_previous or GENESIS_HASH}', "
                        f"found '{link.previous_hash or GENESIS_HASH}'"
                    ),
                )

            if not cls.verify_hash(link.serialized, expected_previous, link.stored_hash):
                return ChainVerificationResult(
                    valid=False,
                    checked=checked,
                    failed_at=link.sequence,
                    record_id=link.record_id,
                    failure_kind=ChainFailureKind.HASH_MISMATCH,
                    reason=f"Hash verification failed for {link.record_id}",
                )

            expected_previous = link.stored_hash
            checked += 1

        return ChainVerificationResult.ok(checked, expected_previous or None)
