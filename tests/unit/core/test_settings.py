"""Tests for environment-driven settings."""

import pytest

from permitflow.core.config import Settings

pytestmark = pytest.mark.unit


class TestSettings:
    """Tests for Settings defaults and overrides."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DISCUSSION_SERVICE_URL", raising=False)
        settings = Settings(_env_file=None)
        assert settings.app_name == "PermitFlow"
        assert settings.log_level == "INFO"
        assert settings.file_logging is False
        assert settings.discussion_timeout == 10
        assert settings.discussion_enabled is False

    def test_env_override(self, monkeypatch):
        """Test values are read from the environment, case-insensitively."""
        monkeypatch.setenv("DATABASE_URL", "sqlite:///permits.db")
        monkeypatch.setenv("discussion_service_url", "http://chat.internal")
        settings = Settings(_env_file=None)
        assert settings.database_url == "sqlite:///permits.db"
        assert settings.discussion_enabled is True

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, cors_origins="http://a.test, http://b.test,")
        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]

    def test_unknown_env_vars_ignored(self, monkeypatch):
        monkeypatch.setenv("PERMITFLOW_SOMETHING_ELSE", "1")
        Settings(_env_file=None)
