"""Tests for configuration loading and validation."""

import pytest

from src.core.config import Constants, Settings


def test_require_credential_with_valid_value() -> None:
    """Test require_credential returns value when credential is set."""
    settings = Settings(storage_api_key="key-123")

    assert settings.require_credential("storage_api_key", "File storage") == "key-123"


def test_require_credential_with_none_raises_error() -> None:
    settings = Settings(storage_api_key=None)

    with pytest.raises(ValueError, match="File storage credential not configured"):
        settings.require_credential("storage_api_key", "File storage")


def test_require_credential_error_message_includes_field_name() -> None:
    settings = Settings(storage_api_key="")

    with pytest.raises(ValueError, match="STORAGE_API_KEY"):
        settings.require_credential("storage_api_key", "File storage")


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment variable names are case-insensitive."""
    monkeypatch.setenv("TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("environment", "Production")

    settings = Settings()

    assert settings.timezone == "Europe/Berlin"
    assert settings.is_production is True


def test_limits() -> None:
    assert Constants.MAX_BULK_DELETE_IDS == 50
    assert Constants.CACHE_TTL_ANALYTICS_SECONDS == 300
    assert Constants.MAX_ANALYTICS_PERIOD_DAYS == 365


def test_pagination_limits() -> None:
    assert Constants.DEFAULT_PAGE_SIZE == 10
    assert Constants.MAX_PAGE_SIZE == 100
    assert (Constants.DEFAULT_UPCOMING_LIMIT, Constants.MAX_UPCOMING_LIMIT) == (5, 50)


def test_log_level_defaults_to_info(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    assert Settings().log_level == "INFO"
