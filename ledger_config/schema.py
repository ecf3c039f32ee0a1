"""
LedgerSettings schema.

Typed, frozen view of the YAML settings file.  The loader parses raw
mappings into these types; nothing else reads the YAML directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.domain.enums import ToleranceSource
from ledger_kernel.domain.tolerance import ToleranceSettings
from ledger_kernel.domain.values import to_rate


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings handed to init_engine_from_url()."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    busy_timeout: int = 30


@dataclass(frozen=True)
class ToleranceDefaults:
    """System-level payment tolerance, used when neither company nor country override."""

    enabled: bool
    percentage: Decimal
    max_amount: Decimal

    def to_settings(self) -> ToleranceSettings:
        return ToleranceSettings(
            enabled=self.enabled,
            percentage=to_rate(self.percentage),
            max_amount=to_rate(self.max_amount),
            source=ToleranceSource.SYSTEM_DEFAULT,
        )


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class LedgerSettings:
    """Root settings object returned by ledger_config.get_settings()."""

    database: DatabaseSettings
    tolerance: ToleranceDefaults
    logging: LoggingSettings
