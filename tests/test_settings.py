"""Tests for fbspine.settings module.

Covers:
- FrontbaseSettings defaults
- FRONTBASE_* environment overrides
- get_settings caching
"""

from pathlib import Path

from fbspine.settings import FrontbaseSettings, configure_from_settings, get_settings


class TestFrontbaseSettingsDefaults:
    def test_default_library_path(self):
        assert FrontbaseSettings().library_path is None

    def test_default_worker_prefix(self):
        assert FrontbaseSettings().worker_name_prefix == "fbspine-worker"

    def test_default_log_level(self):
        assert FrontbaseSettings().log_level == "INFO"

    def test_default_session_name_is_process_name(self):
        assert FrontbaseSettings().session_name


class TestFrontbaseSettingsEnvOverride:
    def test_library_path_from_env(self, monkeypatch):
        monkeypatch.setenv("FRONTBASE_LIBRARY_PATH", "/opt/frontbase/lib")
        assert FrontbaseSettings().library_path == Path("/opt/frontbase/lib")

    def test_session_name_from_env(self, monkeypatch):
        monkeypatch.setenv("FRONTBASE_SESSION_NAME", "reporting")
        assert FrontbaseSettings().session_name == "reporting"

    def test_json_logs_from_env(self, monkeypatch):
        monkeypatch.setenv("FRONTBASE_JSON_LOGS", "true")
        assert FrontbaseSettings().json_logs is True

    def test_unprefixed_env_ignored(self, monkeypatch):
        monkeypatch.setenv("SESSION_NAME", "ignored")
        assert FrontbaseSettings().session_name != "ignored"


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_cache_clear_rereads_env(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("FRONTBASE_WORKER_NAME_PREFIX", "db")
        get_settings.cache_clear()
        second = get_settings()
        assert second is not first
        assert second.worker_name_prefix == "db"

    def test_configure_from_settings(self):
        configure_from_settings(FrontbaseSettings(log_level="DEBUG", json_logs=False))
