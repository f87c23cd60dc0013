"""Tests for environment-driven configuration."""

import pytest

from invtrack.utils import config as config_module


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    for name in (
        config_module.ENV_VAR_ENVIRONMENT,
        config_module.ENV_VAR_DATABASE_URL,
        config_module.ENV_VAR_PORT,
        config_module.ENV_VAR_LOG_LEVEL,
    ):
        monkeypatch.delenv(name, raising=False)
    config_module.reset_config()
    yield
    config_module.reset_config()


def test_defaults_to_sqlite_file():
    config = config_module.get_config()

    assert config.is_production
    assert config.database_url.startswith("sqlite:///")
    assert config.database_url.endswith(".db")
    assert config.api_port == 8000
    assert config.log_level == "INFO"


def test_database_url_override(monkeypatch):
    monkeypatch.setenv(config_module.ENV_VAR_DATABASE_URL, "postgresql://localhost/inv")

    assert config_module.get_config().database_url == "postgresql://localhost/inv"


def test_development_environment(monkeypatch):
    monkeypatch.setenv(config_module.ENV_VAR_ENVIRONMENT, "development")
    monkeypatch.setenv(config_module.ENV_VAR_PORT, "9100")

    config = config_module.get_config()

    assert config.is_development
    assert config.log_level == "DEBUG"
    assert config.api_port == 9100


def test_singleton_keeps_first_environment():
    first = config_module.get_config("production")

    assert config_module.get_config("development") is first
    assert first.environment == "production"
