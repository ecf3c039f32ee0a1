"""
ORM-level immutability enforcement for posted ledger records.

Posted journal entries, their lines, and hashed fiscal documents must be
tamper-proof: corrections are new reversing records, never edits.  This
module registers SQLAlchemy mapper listeners that intercept UPDATE and
DELETE before SQL is emitted:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete() --------^
         |
         v
    SQL sent to database (only if checks pass)

Protected entities:

Entity          | When immutable                 | Allowed changes
----------------|--------------------------------|------------------------------
JournalEntry    | status POSTED or REVERSED      | POSTED -> REVERSED with
                |                                | reversed_by_id (once)
JournalLine     | parent entry POSTED/REVERSED   | none
Document        | fiscal_hash assigned           | status, balance_due,
                |                                | journal_entry_id

Audit metadata (updated_at, updated_by_id) may change on any row.

Bulk/Core statements (``session.execute(update(...))``) bypass mapper
events.  Tamper-detection tests use exactly that path; the hash chain
then catches the change.

Usage:

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    # tests only
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

# Fields a posted entry may still change, as part of its reversal
_REVERSAL_FIELDS = frozenset({"status", "reversed_by_id"})

# Document fields that stay mutable after hashing (settlement state)
_DOCUMENT_SETTLEMENT_FIELDS = frozenset({"status", "balance_due", "journal_entry_id"})

_FROZEN_ENTRY_STATUSES = ("posted", "reversed")


def _previous_value(target, key):
    """Value the attribute had before this flush (current value if unchanged)."""
    history = get_history(target, key)
    if history.unchanged:
        return history.unchanged[0]
    if history.deleted:
        return history.deleted[0]
    if history.added:
        # None -> value records no deleted side
        return None
    return getattr(target, key)


def _changed_fields(target, allowed: frozenset[str]) -> list[str]:
    changed = []
    for attr in inspect(target).attrs:
        if attr.key in allowed or attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            changed.append(attr.key)
    return changed


def _block(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_journal_entry_immutability(mapper, connection, target):
    """
    Block changes to an entry that was already posted before this flush.

    DRAFT -> POSTED is the posting itself and is allowed.  POSTED -> REVERSED
    may only touch status and reversed_by_id; a REVERSED entry is frozen.
    """
    old_status = _previous_value(target, "status")
    if old_status not in _FROZEN_ENTRY_STATUSES:
        return

    if old_status == "reversed":
        allowed: frozenset[str] = frozenset()
    else:
        new_status = target.status
        if new_status not in ("posted", "reversed"):
            _block(
                "JournalEntry",
                target.id,
                "UPDATE",
                f"Cannot change status of posted journal entry to '{new_status}'",
                field="status",
            )
        reversed_by_before = _previous_value(target, "reversed_by_id")
        allowed = _REVERSAL_FIELDS if reversed_by_before is None else frozenset({"status"})

    for field in _changed_fields(target, allowed):
        _block(
            "JournalEntry",
            target.id,
            "UPDATE",
            f"Cannot modify field '{field}' on posted journal entry",
            field=field,
        )


def _check_journal_entry_delete(mapper, connection, target):
    if _previous_value(target, "status") in _FROZEN_ENTRY_STATUSES:
        _block(
            "JournalEntry",
            target.id,
            "DELETE",
            "Posted journal entries cannot be deleted",
        )


def _parent_is_frozen(target) -> bool:
    entry = target.entry
    if entry is None:
        return False
    return _previous_value(entry, "status") in _FROZEN_ENTRY_STATUSES


def _check_journal_line_immutability(mapper, connection, target):
    if _parent_is_frozen(target) and _changed_fields(target, frozenset()):
        _block(
            "JournalLine",
            target.id,
            "UPDATE",
            "Journal lines cannot be modified after parent entry is posted",
        )


def _check_journal_line_delete(mapper, connection, target):
    if _parent_is_frozen(target):
        _block(
            "JournalLine",
            target.id,
            "DELETE",
            "Journal lines cannot be deleted after parent entry is posted",
        )


def _check_document_immutability(mapper, connection, target):
    """Freeze the fiscal payload and chain link once a hash is assigned."""
    if _previous_value(target, "fiscal_hash") is None:
        return
    for field in _changed_fields(target, _DOCUMENT_SETTLEMENT_FIELDS):
        _block(
            "Document",
            target.id,
            "UPDATE",
            f"Cannot modify field '{field}' on a fiscally chained document",
            field=field,
        )


def _check_document_delete(mapper, connection, target):
    if _previous_value(target, "fiscal_hash") is not None:
        _block(
            "Document",
            target.id,
            "DELETE",
            "Fiscally chained documents cannot be deleted",
        )


def _listeners():
    from ledger_kernel.models.document import Document
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    return (
        (JournalEntry, "before_update", _check_journal_entry_immutability),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalLine, "before_update", _check_journal_line_immutability),
        (JournalLine, "before_delete", _check_journal_line_delete),
        (Document, "before_update", _check_document_immutability),
        (Document, "before_delete", _check_document_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability listeners.  Safe to call more than once.

    Call after models are importable and before any database work.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the listeners.

    WARNING: tests only, for simulating tampering through the ORM.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
