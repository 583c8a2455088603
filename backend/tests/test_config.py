"""
Test Suite: Environment Configuration
"""
import pytest
import sys
import os
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import (
    DEFAULT_GEMINI_MODEL,
    RECORD_STORE_LOCAL,
    RECORD_STORE_SQL,
    Settings,
)
from app.errors import ConfigurationError


class TestFromEnv:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.database_url is None
        assert settings.google_api_key is None
        assert settings.access_token_expire_hours == 24
        assert settings.gemini_model == DEFAULT_GEMINI_MODEL
        assert settings.record_store == RECORD_STORE_SQL
        assert settings.seed_demo_data is True
        assert settings.log_level == "INFO"

    def test_overrides(self):
        settings = Settings.from_env({
            "DATABASE_URL": "postgresql://u:p@db/letters",
            "GOOGLE_API_KEY": "key",
            "ACCESS_TOKEN_EXPIRE_HOURS": "2",
            "RECORD_STORE": "LOCAL",
            "LOCAL_STORE_DIR": "/tmp/ld",
            "APP_BASE_URL": "https://letters.example.com/",
            "SEED_DEMO_DATA": "no",
            "LOG_LEVEL": "debug",
        })
        assert settings.access_token_expire_hours == 2
        assert settings.record_store == RECORD_STORE_LOCAL
        assert settings.local_store_dir == Path("/tmp/ld")
        assert settings.app_base_url == "https://letters.example.com"
        assert settings.seed_demo_data is False
        assert settings.log_level == "DEBUG"

    def test_unknown_record_store(self):
        with pytest.raises(ConfigurationError):
            Settings.from_env({"RECORD_STORE": "redis"})

    def test_bad_expiry(self):
        with pytest.raises(ConfigurationError):
            Settings.from_env({"ACCESS_TOKEN_EXPIRE_HOURS": "soon"})


class TestRequireStartupSettings:
    def test_missing_both(self):
        with pytest.raises(ConfigurationError) as exc:
            Settings.from_env({}).require_startup_settings()
        assert "DATABASE_URL" in exc.value.message
        assert "GOOGLE_API_KEY" in exc.value.message

    def test_missing_generation_key(self):
        with pytest.raises(ConfigurationError) as exc:
            Settings.from_env({"DATABASE_URL": "sqlite://"}).require_startup_settings()
        assert "DATABASE_URL" not in exc.value.message

    def test_local_store_needs_no_database(self):
        Settings.from_env({"RECORD_STORE": "local", "GOOGLE_API_KEY": "key"}).require_startup_settings()

    def test_complete(self):
        Settings.from_env({"DATABASE_URL": "sqlite://", "GOOGLE_API_KEY": "key"}).require_startup_settings()
