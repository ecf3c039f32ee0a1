"""
ledger-chain -- verify and backfill hash chains from the command line.

Usage:
    ledger-chain verify [--tenant ID] [--type TYPE] [--journal]
    ledger-chain backfill [--tenant ID] [--type TYPE] [--dry-run] [--force]

Global options (before the subcommand):
    --config PATH        YAML settings file (default: LEDGER_CONFIG or packaged defaults)
    --database-url URL   overrides database.url and DATABASE_URL

Exit status is 0 when every chain is valid / every document was processed,
1 otherwise.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from uuid import UUID

from ledger_batch.domain.types import BackfillItemResult, BatchItemStatus
from ledger_batch.services.backfill import FiscalHashBackfill
from ledger_batch.services.verify import ChainVerifier
from ledger_config import get_settings
from ledger_kernel.db.engine import (
    get_read_only_session_factory,
    get_session_factory,
    init_engine_from_url,
)
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.domain.enums import DocumentType
from ledger_kernel.logging_config import configure_logging

EXIT_OK = 0
EXIT_FAILURE = 1

_FISCAL_TYPE_CHOICES = [t.value for t in DocumentType.fiscal_types()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-chain",
        description="Verify or backfill ledger hash chains.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML settings file.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL; overrides the settings file and DATABASE_URL.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    verify = subparsers.add_parser("verify", help="Verify fiscal (and journal) hash chains.")
    verify.add_argument("--tenant", type=UUID, default=None, help="Only this tenant.")
    verify.add_argument(
        "--type",
        dest="document_type",
        choices=_FISCAL_TYPE_CHOICES,
        default=None,
        help="Only this document type.",
    )
    verify.add_argument(
        "--journal",
        action="store_true",
        help="Also verify the journal entry chain.",
    )

    backfill = subparsers.add_parser(
        "backfill", help="Chain posted documents that have no fiscal hash yet."
    )
    backfill.add_argument("--tenant", type=UUID, default=None, help="Only this tenant.")
    backfill.add_argument(
        "--type",
        dest="document_type",
        choices=_FISCAL_TYPE_CHOICES,
        default=None,
        help="Only this document type.",
    )
    backfill.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview hashes and sequences without writing.",
    )
    backfill.add_argument(
        "--force",
        action="store_true",
        help="Skip the confirmation prompt.",
    )
    return parser


def _confirm(prompt: str) -> bool:
    answer = input(f"{prompt} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def run_verify(args: argparse.Namespace) -> int:
    document_type = DocumentType(args.document_type) if args.document_type else None
    report = ChainVerifier(get_read_only_session_factory()).run(
        tenant_id=args.tenant,
        document_type=document_type,
        include_journal=args.journal,
    )

    print("Verifying hash chains...")
    if not report.scopes:
        print("No chained records found.")
        return EXIT_OK

    for scope in report.scopes:
        label = f"{scope.tenant_id} {scope.chain_type}"
        result = scope.result
        if result.valid:
            print(f"  {label}: OK ({result.checked} records)")
        else:
            print(f"  {label}: INVALID at sequence {result.failed_at}")
            if result.reason:
                print(f"    -> {result.reason}")

    print()
    print("Verification Summary:")
    print(f"  Total records verified: {report.total_checked}")
    if report.valid:
        print("  Status: ALL CHAINS VALID")
        return EXIT_OK
    print(f"  Status: {report.invalid_count} CHAIN(S) INVALID")
    return EXIT_FAILURE


def _print_item(item: BackfillItemResult) -> None:
    if item.status == BatchItemStatus.PREVIEWED:
        print(
            f"    -> Would update {item.document_number}: "
            f"hash={item.fiscal_hash}, seq={item.chain_sequence}"
        )
    elif item.status == BatchItemStatus.SUCCEEDED:
        print(f"    Updated {item.document_number} (seq={item.chain_sequence})")
    elif item.status == BatchItemStatus.SKIPPED:
        print(f"    Skipped {item.document_number}: already hashed")
    else:
        print(f"    Failed to process {item.document_number or item.document_id}: {item.error_message}")


def run_backfill(args: argparse.Namespace) -> int:
    document_type = DocumentType(args.document_type) if args.document_type else None
    backfill = FiscalHashBackfill(get_session_factory())

    print("DRY RUN - No changes will be made" if args.dry_run else "Starting fiscal hash backfill...")

    pending = backfill.count_pending(tenant_id=args.tenant, document_type=document_type)
    if pending == 0:
        print("No documents require backfill. All posted documents already have fiscal hashes.")
        return EXIT_OK

    print(f"Found {pending} document(s) without fiscal hashes.")
    if not args.dry_run and not args.force:
        if not _confirm("Do you want to proceed with backfilling?"):
            print("Backfill cancelled.")
            return EXIT_OK

    report = backfill.run(
        tenant_id=args.tenant,
        document_type=document_type,
        dry_run=args.dry_run,
        on_item=_print_item,
    )

    print()
    print("Backfill Summary:")
    print(f"  Documents processed: {report.processed}")
    if report.errors:
        print(f"  Errors: {report.errors}")
        return EXIT_FAILURE
    if args.dry_run:
        print("  This was a dry run. Run without --dry-run to apply changes.")
    else:
        print("  Status: SUCCESS")
        print('  Run "ledger-chain verify" to verify the hash chains.')
    return EXIT_OK


_COMMANDS = {
    "verify": run_verify,
    "backfill": run_backfill,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings(args.config, database_url=args.database_url)
    configure_logging(level=settings.logging.level)
    init_engine_from_url(
        settings.database.url,
        echo=settings.database.echo,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
        busy_timeout=settings.database.busy_timeout,
    )
    register_immutability_listeners()

    return _COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
