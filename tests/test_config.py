"""Tests for settings loading."""

import pytest

from timesheet_payroll.config import DEFAULT_PAYABLE_STATUSES, Settings, get_settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "DATABASE_URL",
        "ENGINE_VERSION",
        "HOST",
        "PORT",
        "DEBUG",
        "LOG_LEVEL",
        "PAYROLL_COUNTRY_CODE",
        "PAYROLL_CALCULATION_WORKERS",
        "PAYROLL_PAYABLE_STATUSES",
    ):
        monkeypatch.delenv(name, raising=False)
    # Keep a stray .env from leaking into the environment
    monkeypatch.setattr("timesheet_payroll.config.load_dotenv", lambda: False)
    return monkeypatch


class TestSettings:
    """Test settings from environment."""

    def test_defaults(self, clean_env):
        """Test values without any environment configuration."""
        settings = Settings.from_env()

        assert settings.database_url.startswith("postgresql+asyncpg://")
        assert settings.port == 8000
        assert settings.debug is False
        assert settings.default_country_code == "CO"
        assert settings.calculation_workers == 4
        assert settings.payable_timesheet_statuses == DEFAULT_PAYABLE_STATUSES

    def test_overrides(self, clean_env):
        """Test environment variables override defaults."""
        clean_env.setenv("PORT", "9000")
        clean_env.setenv("DEBUG", "TRUE")
        clean_env.setenv("LOG_LEVEL", "debug")
        clean_env.setenv("PAYROLL_COUNTRY_CODE", "mx")
        clean_env.setenv("PAYROLL_CALCULATION_WORKERS", "8")
        clean_env.setenv("PAYROLL_PAYABLE_STATUSES", "approved, submitted")

        settings = Settings.from_env()

        assert settings.port == 9000
        assert settings.debug is True
        assert settings.log_level == "DEBUG"
        assert settings.default_country_code == "MX"
        assert settings.calculation_workers == 8
        assert settings.payable_timesheet_statuses == ("approved", "submitted")

    def test_invalid_worker_count(self, clean_env):
        """Test the worker pool must have at least one worker."""
        clean_env.setenv("PAYROLL_CALCULATION_WORKERS", "0")

        with pytest.raises(ValueError, match="calculation_workers"):
            Settings.from_env()

    def test_empty_payable_statuses(self, clean_env):
        """Test at least one payable status is required."""
        clean_env.setenv("PAYROLL_PAYABLE_STATUSES", " , ")

        with pytest.raises(ValueError, match="payable_timesheet_statuses"):
            Settings.from_env()

    def test_invalid_country_code(self, clean_env):
        """Test the default country must be a two-letter code."""
        clean_env.setenv("PAYROLL_COUNTRY_CODE", "COL")

        with pytest.raises(ValueError, match="default_country_code"):
            Settings.from_env()

    def test_get_settings_is_cached(self, clean_env):
        """Test settings are loaded once."""
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
