"""Tests for mongoline.core.settings module."""

import pytest

from mongoline.core.errors import InvalidConfigError
from mongoline.core.settings import MongoSettings, clear_settings_cache, get_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """No MONGOLINE_* variables and no stray .env file."""
    for name in ("URL", "SERVER_SELECTION_TIMEOUT_MS", "CONNECT_TIMEOUT_MS", "LOG_LEVEL", "LOG_JSON"):
        monkeypatch.delenv(f"MONGOLINE_{name}", raising=False)
    monkeypatch.chdir(tmp_path)


class TestMongoSettings:

    def test_defaults(self):
        settings = MongoSettings()
        assert settings.url == "mongodb://localhost:27017/mongoline"
        assert settings.server_selection_timeout_ms == 5000
        assert settings.connect_timeout_ms == 10000
        assert settings.log_level == "INFO"
        assert settings.log_json is None

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("MONGOLINE_URL", "mongodb://db:27018/shop")
        monkeypatch.setenv("MONGOLINE_LOG_JSON", "true")
        settings = MongoSettings()
        assert settings.url == "mongodb://db:27018/shop"
        assert settings.log_json is True

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("MONGOLINE_URL=mongodb://envfile:27017/fromfile\n")
        assert MongoSettings().url == "mongodb://envfile:27017/fromfile"

    def test_to_config_adds_timeouts(self):
        config = MongoSettings(url="mongodb://db:27017/shop", connect_timeout_ms=1500).to_config()
        assert config.host == "db"
        assert config.database == "shop"
        assert config.options == {"serverSelectionTimeoutMS": 5000, "connectTimeoutMS": 1500}

    def test_to_config_keeps_url_options(self):
        config = MongoSettings(url="mongodb://db/shop?serverSelectionTimeoutMS=200").to_config()
        assert config.options["serverSelectionTimeoutMS"] == 200

    def test_to_config_rejects_bad_url(self):
        with pytest.raises(InvalidConfigError):
            MongoSettings(url="postgres://db/shop").to_config()


class TestGetSettings:

    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("MONGOLINE_URL", "mongodb://other:27017/x")
        assert get_settings() is first
        reloaded = get_settings(_force_reload=True)
        assert reloaded is not first
        assert reloaded.url == "mongodb://other:27017/x"

    def test_clear_cache(self):
        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first
