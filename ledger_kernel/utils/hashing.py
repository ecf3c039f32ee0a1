"""
Deterministic hashing utilities.

Every hash in the ledger is SHA-256 over UTF-8 text, rendered as 64
lowercase hex characters.  The serializers here are byte-stable: the same
input always produces the same text, so verification years later
reproduces the hash computed at posting time.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

CHAIN_SEPARATOR = "|"


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Decimals are rendered with their own exponent (``Decimal("100.00")`` ->
    ``"100.00"``); callers quantize before serializing.
    """
    if isinstance(obj, Decimal):
        return format(obj, "f")
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def ordered_json(data: dict | list) -> str:
    """
    Compact JSON that keeps the caller's key order.

    Key order is part of the hash contract, so keys are NOT sorted; callers
    build dicts in the documented field order.
    """
    return json.dumps(
        data,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_serializer,
    )


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def chain_hash(serialized: str, previous_hash: str | None) -> str:
    """
    Hash of one chain link: SHA-256(previous + "|" + serialized).

    A missing previous hash (genesis) is the empty string.
    """
    return sha256_hex(f"{previous_hash or ''}{CHAIN_SEPARATOR}{serialized}")
