"""Tests for application configuration."""

import pytest

from bakery_trace.utils import config
from bakery_trace.utils.config import Config, get_config, reset_config


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


class TestConfig:
    def test_database_url_override(self):
        cfg = Config("production", database_url="sqlite:///:memory:")

        assert cfg.database_url == "sqlite:///:memory:"
        assert cfg.is_production

    def test_development_uses_project_data_dir(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Config, "_get_project_data_dir", lambda self: tmp_path / "data")

        cfg = Config("development")

        assert cfg.is_development
        assert cfg.database_path.parent == tmp_path / "data"
        assert cfg.database_url.startswith("sqlite:///")
        assert (tmp_path / "data").is_dir()
        assert not cfg.database_exists()

    def test_unknown_environment(self):
        with pytest.raises(ValueError):
            Config("staging")


class TestGetConfig:
    def test_reads_environment_variables(self, monkeypatch):
        monkeypatch.setenv(config.ENV_VAR_ENVIRONMENT, "production")
        monkeypatch.setenv(config.ENV_VAR_DATABASE_URL, "sqlite:///:memory:")

        cfg = get_config()

        assert cfg.environment == "production"
        assert config.get_database_url() == "sqlite:///:memory:"

    def test_singleton_keeps_first_environment(self, monkeypatch):
        monkeypatch.setenv(config.ENV_VAR_DATABASE_URL, "sqlite:///:memory:")

        first = get_config("production")
        second = get_config("development")

        assert second is first
        assert second.environment == "production"
