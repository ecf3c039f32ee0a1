"""
Settings loader (``ledger_config.loader``).

Responsibility
--------------
Reads a YAML settings file and parses it into the frozen dataclasses of
``ledger_config.schema``.  Callers go through ``ledger_config.get_settings()``.

Invariants enforced
-------------------
* Amounts and rates are parsed to Decimal via their text form; a YAML float
  such as ``0.005`` becomes ``Decimal("0.005")``, never a binary float.
* ``database.url`` is required; every other key has a default.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``database.url``  -> ``KeyError``.
* Non-numeric tolerance values  -> ``ValueError``.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    ToleranceDefaults,
)
from ledger_kernel.domain.tolerance import (
    DEFAULT_MAX_TOLERANCE_AMOUNT,
    DEFAULT_TOLERANCE_ENABLED,
    DEFAULT_TOLERANCE_PERCENTAGE,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: expected a number, got {value!r}") from exc


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    """Parse the ``database`` section; ``url`` is required."""
    return DatabaseSettings(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        busy_timeout=int(data.get("busy_timeout", 30)),
    )


def parse_tolerance(data: dict[str, Any]) -> ToleranceDefaults:
    return ToleranceDefaults(
        enabled=bool(data.get("enabled", DEFAULT_TOLERANCE_ENABLED)),
        percentage=parse_decimal(
            data.get("percentage", DEFAULT_TOLERANCE_PERCENTAGE), "tolerance.percentage"
        ),
        max_amount=parse_decimal(
            data.get("max_amount", DEFAULT_MAX_TOLERANCE_AMOUNT), "tolerance.max_amount"
        ),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    return LoggingSettings(level=str(data.get("level", "INFO")).upper())


def parse_settings(
    data: dict[str, Any],
    database_url: str | None = None,
) -> LedgerSettings:
    """
    Build LedgerSettings from a parsed YAML mapping.

    ``database_url``, when given, replaces ``database.url``.
    """
    database = dict(data.get("database") or {})
    if database_url:
        database["url"] = database_url
    return LedgerSettings(
        database=parse_database(database),
        tolerance=parse_tolerance(data.get("tolerance") or {}),
        logging=parse_logging(data.get("logging") or {}),
    )
