from __future__ import annotations

import allure
import pytest

from sambala.config import ConnectionSettings, PoolSettings, Settings
from sambala.gardener.session import DEFAULT_CLIENT_COMMAND

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment Settings"),
]

_ENV_NAMES = (
    "SAMBALA_HOST",
    "SAMBALA_SHARE",
    "SAMBALA_USER",
    "SAMBALA_PASSWORD",
    "SAMBALA_DOMAIN",
    "SAMBALA_CLIENT_COMMAND",
    "SAMBALA_THREADS",
    "SAMBALA_INIT_TIMEOUT_SECONDS",
    "SAMBALA_INIT_ATTEMPTS",
    "SAMBALA_RESPONSE_READ_TIMEOUT_SECONDS",
    "SAMBALA_RESPONSE_RETRY_BUDGET",
    "SAMBALA_SHUTDOWN_GRACE_SECONDS",
    "SAMBALA_HANDSHAKE_BANNER",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def _valid() -> Settings:
    return Settings(connection=ConnectionSettings(host="files", share="public"))


def test_from_env_defaults() -> None:
    settings = Settings.from_env()
    assert settings.connection.domain == "WORKGROUP"
    assert settings.connection.client_command == DEFAULT_CLIENT_COMMAND
    assert settings.pool == PoolSettings()


def test_from_env_reads_sambala_variables(monkeypatch) -> None:
    monkeypatch.setenv("SAMBALA_HOST", "files.example.com")
    monkeypatch.setenv("SAMBALA_SHARE", "team")
    monkeypatch.setenv("SAMBALA_USER", "alice")
    monkeypatch.setenv("SAMBALA_PASSWORD", "s3cret")
    monkeypatch.setenv("SAMBALA_DOMAIN", "CORP")
    monkeypatch.setenv("SAMBALA_THREADS", "3")
    monkeypatch.setenv("SAMBALA_INIT_TIMEOUT_SECONDS", "1.5")
    monkeypatch.setenv("SAMBALA_RESPONSE_RETRY_BUDGET", "5")
    monkeypatch.setenv("SAMBALA_HANDSHAKE_BANNER", r"Server=\[Samba")

    settings = Settings.from_env()
    settings.validate()

    assert settings.connection == ConnectionSettings(
        host="files.example.com",
        share="team",
        user="alice",
        password="s3cret",
        domain="CORP",
    )
    assert settings.pool.threads == 3
    assert settings.pool.init_timeout_seconds == 1.5
    assert settings.pool.response_retry_budget == 5
    assert settings.pool.handshake_banner == r"Server=\[Samba"


def test_blank_numeric_variable_falls_back_to_default(monkeypatch) -> None:
    monkeypatch.setenv("SAMBALA_THREADS", "  ")
    assert Settings.from_env().pool.threads == 1


def test_invalid_integer_names_the_variable(monkeypatch) -> None:
    monkeypatch.setenv("SAMBALA_THREADS", "many")
    with pytest.raises(ValueError, match="SAMBALA_THREADS"):
        Settings.from_env()


def test_invalid_number_names_the_variable(monkeypatch) -> None:
    monkeypatch.setenv("SAMBALA_SHUTDOWN_GRACE_SECONDS", "soon")
    with pytest.raises(ValueError, match="SAMBALA_SHUTDOWN_GRACE_SECONDS"):
        Settings.from_env()


@pytest.mark.parametrize(
    ("field", "value", "variable"),
    [
        ("host", "  ", "SAMBALA_HOST"),
        ("share", "", "SAMBALA_SHARE"),
    ],
)
def test_validate_requires_connection_target(field: str, value: str, variable: str) -> None:
    settings = _valid()
    setattr(settings.connection, field, value)
    with pytest.raises(ValueError, match=variable):
        settings.validate()


@pytest.mark.parametrize(
    ("field", "value", "variable"),
    [
        ("threads", 0, "SAMBALA_THREADS"),
        ("init_timeout_seconds", 0.0, "SAMBALA_INIT_TIMEOUT_SECONDS"),
        ("init_attempts", 0, "SAMBALA_INIT_ATTEMPTS"),
        ("response_read_timeout_seconds", -1.0, "SAMBALA_RESPONSE_READ_TIMEOUT_SECONDS"),
        ("response_retry_budget", 0, "SAMBALA_RESPONSE_RETRY_BUDGET"),
        ("shutdown_grace_seconds", -0.5, "SAMBALA_SHUTDOWN_GRACE_SECONDS"),
    ],
)
def test_validate_rejects_unusable_pool_bounds(field: str, value: float, variable: str) -> None:
    settings = _valid()
    setattr(settings.pool, field, value)
    with pytest.raises(ValueError, match=variable):
        settings.validate()


def test_zero_shutdown_grace_is_allowed() -> None:
    settings = _valid()
    settings.pool.shutdown_grace_seconds = 0
    settings.validate()
