"""
ledger_config -- single entrypoint for ledger settings.

Responsibility:
    ``get_settings()`` is the only way the command-line tools obtain
    database, tolerance and logging settings.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and beside
    ``ledger_batch``.  The kernel MUST NEVER import from ``ledger_config``;
    services receive plain values (a database URL, ToleranceSettings).

Resolution order:
    1. ``path`` argument
    2. ``LEDGER_CONFIG`` environment variable
    3. packaged ``defaults.yaml``
    ``DATABASE_URL`` in the environment overrides ``database.url`` from any
    of them.

Failure modes:
    - ``FileNotFoundError`` -- the selected file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or malformed values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ledger_config.loader import load_yaml_file, parse_settings
from ledger_config.schema import (
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    ToleranceDefaults,
)

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_ENV_VAR = "LEDGER_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def get_settings(
    path: Path | str | None = None,
    database_url: str | None = None,
) -> LedgerSettings:
    """
    Load and parse the ledger settings.

    ``database_url`` wins over ``DATABASE_URL``, which wins over the file.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    path = Path(path)

    data = load_yaml_file(path)
    settings = parse_settings(
        data,
        database_url=database_url or os.environ.get(DATABASE_URL_ENV_VAR),
    )

    _logger.info(
        "ledger_settings_loaded",
        extra={
            "config_path": str(path),
            "tolerance_enabled": settings.tolerance.enabled,
            "logging_level": settings.logging.level,
        },
    )
    return settings


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DatabaseSettings",
    "LedgerSettings",
    "LoggingSettings",
    "ToleranceDefaults",
    "get_settings",
]
