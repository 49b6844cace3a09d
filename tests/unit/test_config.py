"""
Unit tests for settings loading.
"""

import pytest
from pydantic import ValidationError

from recall.config import Settings, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ["OPENAI_API_KEY", "LOG_LEVEL", "DATA_DIR", "DATABASE_PATH", "INGEST_WORKERS"]:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.desired_retention == 0.9
        assert settings.learn_ahead_minutes == 20
        assert settings.document_extensions == ["md"]
        assert settings.openai_api_key is None
        assert settings.max_concurrent_llm_requests == 4
        assert settings.log_level == "WARNING"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("INGEST_WORKERS", "2")

        settings = Settings(_env_file=None)

        assert settings.openai_api_key == "sk-test"
        assert settings.log_level == "DEBUG"
        assert settings.resolved_ingest_workers() == 2

    def test_invalid_log_level_rejected(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_database_path_defaults_under_data_dir(self, tmp_path):
        settings = Settings(_env_file=None, data_dir=tmp_path / "data")
        path = settings.resolved_database_path()
        assert path == tmp_path / "data" / "cards.db"
        assert not path.parent.exists()

    def test_explicit_database_path(self, tmp_path):
        settings = Settings(_env_file=None, database_path=tmp_path / "x" / "schedule.db")
        assert settings.resolved_database_path() == tmp_path / "x" / "schedule.db"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
