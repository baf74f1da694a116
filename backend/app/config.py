"""Configuration settings for the VocabLoop sync backend."""

from functools import lru_cache

from pydantic_settings import BaseSettings

from vocabloop.types import HISTORY_LIMIT, HISTORY_TIMESTAMP_KEY, HistoryTruncation


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Supabase (hosted record store); local SQLite is used when unset
    supabase_url: str | None = None
    supabase_secret_key: str | None = None  # Backend/admin access
    # Legacy key name (deprecated)
    supabase_service_role_key: str | None = None

    # Local SQLite fallback
    sqlite_path: str = "/tmp/vocabloop.db"
    # Set in deployed environments so a missing Supabase config fails loudly
    # instead of silently writing to an ephemeral local file
    require_remote_store: bool = False

    # JWT
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    token_expire_days: int = 30

    # Merge behaviour
    history_limit: int = HISTORY_LIMIT
    history_truncation: HistoryTruncation = HistoryTruncation.POSITION
    history_timestamp_key: str = HISTORY_TIMESTAMP_KEY
    serialize_merges: bool = True
    compare_and_set: bool = True

    # Rate limits (slowapi syntax)
    sync_rate_limit: str = "60/minute"
    auth_rate_limit: str = "10/minute"

    # App
    debug: bool = False
    log_level: str = "INFO"
    max_body_bytes: int = 2 * 1024 * 1024
    # CORS: Allowed origins for cross-origin requests
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model

    @property
    def supabase_key(self) -> str | None:
        # Prefer new secret key, fall back to legacy service_role_key
        return self.supabase_secret_key or self.supabase_service_role_key


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
