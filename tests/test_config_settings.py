"""Regression tests for runtime settings loading and validation."""

from __future__ import annotations

import pytest

from clmm_ledger.config import AppSettings, SettingsLoadError, config_load_database_url, config_load_settings


def _clear_settings_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Isolate settings from the host environment and dotenv files.

    Args:
        monkeypatch: Pytest monkeypatch fixture.
        tmp_path: Temporary working directory without a `.env` file.

    Returns:
        None: Environment is modified as a side effect.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    monkeypatch.chdir(tmp_path)
    for field_name in AppSettings.model_fields:
        monkeypatch.delenv(field_name.upper(), raising=False)


def test_config_load_settings_parses_rpc_urls_and_normalizes_values(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Load settings from environment variables with JSON endpoint mapping.

    Args:
        monkeypatch: Pytest monkeypatch fixture.
        tmp_path: Temporary working directory.

    Returns:
        None: Assertions validate parsed settings.

    Raises:
        AssertionError: Raised when parsing diverges.
    """

    _clear_settings_environment(monkeypatch, tmp_path)
    monkeypatch.setenv("ETHERSCAN_API_KEY", "  key-123  ")
    monkeypatch.setenv("RPC_URLS", '{"1": " https://eth.example ", "42161": "https://arb.example"}')
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("PRICE_FALLBACK_TO_LATEST", "true")

    settings = config_load_settings()

    assert settings.etherscan_api_key == "key-123"
    assert settings.rpc_urls == {1: "https://eth.example", 42161: "https://arb.example"}
    assert settings.log_level == "DEBUG"
    assert settings.price_fallback_to_latest is True
    assert settings.etherscan_page_size == 1000


def test_config_load_settings_requires_indexer_api_key(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Fail startup when the indexer API key is missing.

    Args:
        monkeypatch: Pytest monkeypatch fixture.
        tmp_path: Temporary working directory.

    Returns:
        None: Assertions validate startup validation.

    Raises:
        AssertionError: Raised when missing keys are accepted.
    """

    _clear_settings_environment(monkeypatch, tmp_path)

    with pytest.raises(SettingsLoadError, match="Startup configuration validation failed"):
        config_load_settings()


@pytest.mark.parametrize(
    ("variable_name", "variable_value"),
    [
        ("RPC_URLS", '{"1": "   "}'),
        ("RPC_URLS", '{"0": "https://eth.example"}'),
        ("LOG_LEVEL", "verbose"),
        ("ETHERSCAN_PAGE_SIZE", "5000"),
        ("HTTP_BACKOFF_MAX_SECONDS", "0.5"),
    ],
)
def test_config_load_settings_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path,
    variable_name: str,
    variable_value: str,
) -> None:
    """Reject invalid endpoint maps, log levels, page sizes, and backoff caps.

    Args:
        monkeypatch: Pytest monkeypatch fixture.
        tmp_path: Temporary working directory.
        variable_name: Environment variable under test.
        variable_value: Invalid value.

    Returns:
        None: Assertions validate rejection.

    Raises:
        AssertionError: Raised when invalid values are accepted.
    """

    _clear_settings_environment(monkeypatch, tmp_path)
    monkeypatch.setenv("ETHERSCAN_API_KEY", "key-123")
    monkeypatch.setenv(variable_name, variable_value)

    with pytest.raises(SettingsLoadError):
        config_load_settings()


def test_config_load_database_url_reads_dotenv(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Read the database URL from a dotenv file without requiring other settings.

    Args:
        monkeypatch: Pytest monkeypatch fixture.
        tmp_path: Temporary working directory.

    Returns:
        None: Assertions validate migration URL loading.

    Raises:
        AssertionError: Raised when dotenv loading diverges.
    """

    _clear_settings_environment(monkeypatch, tmp_path)
    (tmp_path / ".env").write_text("DATABASE_URL=postgresql+psycopg://ledger:ledger@db:5432/ledger\n", encoding="utf-8")

    assert config_load_database_url() == "postgresql+psycopg://ledger:ledger@db:5432/ledger"
