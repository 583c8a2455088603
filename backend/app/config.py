"""
LetterDesk - Application Configuration
Environment-driven settings for the database backend, token signing and the
draft generation service.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigurationError


# Defaults
DEFAULT_JWT_SECRET = "letterdesk-secret-key-change-in-production"
DEFAULT_TOKEN_EXPIRE_HOURS = 24
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_LOCAL_STORE_DIR = ".letterdesk"
DEFAULT_APP_BASE_URL = "http://localhost:3000"

RECORD_STORE_SQL = "sql"
RECORD_STORE_LOCAL = "local"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""
    database_url: Optional[str]
    google_api_key: Optional[str]
    jwt_secret_key: str = DEFAULT_JWT_SECRET
    access_token_expire_hours: int = DEFAULT_TOKEN_EXPIRE_HOURS
    gemini_model: str = DEFAULT_GEMINI_MODEL
    record_store: str = RECORD_STORE_SQL
    local_store_dir: Path = field(default_factory=lambda: Path(DEFAULT_LOCAL_STORE_DIR))
    app_base_url: str = DEFAULT_APP_BASE_URL
    seed_demo_data: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        record_store = env.get("RECORD_STORE", RECORD_STORE_SQL).strip().lower()
        if record_store not in (RECORD_STORE_SQL, RECORD_STORE_LOCAL):
            raise ConfigurationError(
                f"RECORD_STORE must be '{RECORD_STORE_SQL}' or '{RECORD_STORE_LOCAL}', got '{record_store}'"
            )
        try:
            expire_hours = int(env.get("ACCESS_TOKEN_EXPIRE_HOURS", DEFAULT_TOKEN_EXPIRE_HOURS))
        except ValueError:
            raise ConfigurationError("ACCESS_TOKEN_EXPIRE_HOURS must be an integer")

        return cls(
            database_url=env.get("DATABASE_URL") or None,
            google_api_key=env.get("GOOGLE_API_KEY") or None,
            jwt_secret_key=env.get("JWT_SECRET_KEY", DEFAULT_JWT_SECRET),
            access_token_expire_hours=expire_hours,
            gemini_model=env.get("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
            record_store=record_store,
            local_store_dir=Path(env.get("LOCAL_STORE_DIR", DEFAULT_LOCAL_STORE_DIR)),
            app_base_url=env.get("APP_BASE_URL", DEFAULT_APP_BASE_URL).rstrip("/"),
            seed_demo_data=env.get("SEED_DEMO_DATA", "true").strip().lower() in _TRUTHY,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )

    def require_startup_settings(self) -> None:
        """
        Fail fast when the backend endpoint or the generation key is missing.
        The local store variant does not need a database URL.
        """
        missing = []
        if self.record_store == RECORD_STORE_SQL and not self.database_url:
            missing.append("DATABASE_URL")
        if not self.google_api_key:
            missing.append("GOOGLE_API_KEY")
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Settings loaded once from the process environment."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
