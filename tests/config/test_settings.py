"""
Tests for ledger_config: packaged defaults, file and environment
resolution, and value parsing.
"""

from decimal import Decimal

import pytest
import yaml

from ledger_config import (
    DEFAULT_CONFIG_PATH,
    LedgerSettings,
    ToleranceDefaults,
    get_settings,
)
from ledger_config.loader import parse_decimal, parse_settings
from ledger_kernel.domain.enums import ToleranceSource
from ledger_kernel.domain.tolerance import ToleranceSettings


@pytest.fixture(autouse=True)
def _no_env(monkeypatch):
    monkeypatch.delenv("LEDGER_CONFIG", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)


@pytest.fixture
def write_config(tmp_path):
    def _write(data: dict):
        path = tmp_path / "ledger.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestPackagedDefaults:
    def test_defaults_load(self):
        settings = get_settings()

        assert isinstance(settings, LedgerSettings)
        assert settings.database.url == "sqlite:///ledger.db"
        assert settings.database.busy_timeout == 30
        assert settings.logging.level == "INFO"

    def test_default_tolerance_matches_system_default(self):
        settings = get_settings(DEFAULT_CONFIG_PATH)

        assert settings.tolerance.to_settings() == ToleranceSettings.system_default()


class TestResolution:
    def test_explicit_path(self, write_config):
        path = write_config({"database": {"url": "sqlite:///other.db", "pool_size": 3}})

        settings = get_settings(path)

        assert settings.database.url == "sqlite:///other.db"
        assert settings.database.pool_size == 3
        assert settings.tolerance.enabled is True

    def test_env_config_path(self, write_config, monkeypatch):
        path = write_config({"database": {"url": "sqlite:///env.db"}})
        monkeypatch.setenv("LEDGER_CONFIG", str(path))

        assert get_settings().database.url == "sqlite:///env.db"

    def test_database_url_env_overrides_file(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://ledger@localhost/ledger")

        assert get_settings().database.url == "postgresql://ledger@localhost/ledger"

    def test_argument_beats_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///env.db")

        settings = get_settings(database_url="sqlite:///arg.db")

        assert settings.database.url == "sqlite:///arg.db"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_settings(tmp_path / "absent.yaml")

    def test_missing_database_url(self, write_config):
        path = write_config({"logging": {"level": "debug"}})

        with pytest.raises(KeyError):
            get_settings(path)


class TestParsing:
    def test_yaml_float_becomes_exact_decimal(self):
        settings = parse_settings(
            {"database": {"url": "sqlite://"}, "tolerance": {"percentage": 0.01, "max_amount": 2}}
        )

        assert settings.tolerance.percentage == Decimal("0.01")
        assert settings.tolerance.max_amount == Decimal("2")

    def test_tolerance_defaults_to_settings(self):
        defaults = ToleranceDefaults(
            enabled=False, percentage=Decimal("0.01"), max_amount=Decimal("1")
        )

        settings = defaults.to_settings()

        assert settings.enabled is False
        assert str(settings.percentage) == "0.0100"
        assert str(settings.max_amount) == "1.0000"
        assert settings.source == ToleranceSource.SYSTEM_DEFAULT

    def test_logging_level_uppercased(self):
        settings = parse_settings({"database": {"url": "sqlite://"}, "logging": {"level": "debug"}})

        assert settings.logging.level == "DEBUG"

    @pytest.mark.parametrize("value", ["abc", True, None])
    def test_bad_decimal_rejected(self, value):
        with pytest.raises(ValueError):
            parse_decimal(value, "tolerance.percentage")
