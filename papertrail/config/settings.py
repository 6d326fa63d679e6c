from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, computed_field

load_dotenv()


class Settings(BaseSettings):
    """Base settings for the server and the offline client."""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "PaperTrail Sync"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Document metadata tracker with offline-first device sync"
    APP_AUTHOR: str = "PaperTrail Development Team"

    DATABASE_URL: str = ""
    LOCAL_SQLITE_PATH: str = "sqlite+aiosqlite:///./papertrail.db"

    # Local auth (JWT)
    LOCAL_AUTH_SECRET: str = "JWT_SECRET_KEY"
    LOCAL_AUTH_TOKEN_EXP_SECONDS: int = 3600

    # Seed user created on startup (development convenience)
    SEED_ADMIN_ON_STARTUP: bool = True
    SEED_ADMIN_EMAIL: str = "admin@papertrail.app"
    SEED_ADMIN_PASSWORD: str = "Password123!"

    # Document rules
    TOMBSTONE_RETENTION_DAYS: int = Field(default=30, ge=1, description="Days a deleted document is kept for propagation")
    STATS_EXPIRING_WINDOW_DAYS: int = Field(default=30, ge=0)
    DEFAULT_EXPIRING_DAYS: int = Field(default=90, ge=0)
    # Sync cursors handed to devices lag the server clock by this much, so a write
    # stamped just before a fetch but committed after it is still pulled next time
    SYNC_CURSOR_OVERLAP_SECONDS: float = Field(default=5.0, ge=0)

    # Offline client settings
    PAPERTRAIL_API_URL: str = "http://localhost:8000"
    LOCAL_STORE_URL: str = "sqlite+aiosqlite:///./papertrail-local.db"
    HTTP_TIMEOUT_SECONDS: float = 30.0
    SYNC_INTERVAL_MINUTES: float = 15
    SYNC_MAX_RETRIES: int = Field(default=3, ge=1)
    SYNC_BACKOFF_BASE_SECONDS: float = 1.0
    HEARTBEAT_RETRIES: int = Field(default=2, ge=1)
    SYNC_LOCK_TTL_SECONDS: int = 300

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """Resolve the server database URL.

        Priority:
        1. Explicit DATABASE_URL (Postgres, SQLite, etc.)
        2. Local SQLite fallback for development: LOCAL_SQLITE_PATH
        """
        if self.DATABASE_URL and self.DATABASE_URL.strip():
            return self.DATABASE_URL.strip()
        if self.LOCAL_SQLITE_PATH and self.LOCAL_SQLITE_PATH.strip():
            return self.LOCAL_SQLITE_PATH.strip()
        return "sqlite+aiosqlite:///./papertrail.db"


settings = Settings()
