"""Application configuration using Pydantic Settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict


# Timer policy constants. Fixed for every entry, not per-entry parameters.
TICK_INTERVAL_SECONDS = 1.0
IDLE_THRESHOLD_SECONDS = 15 * 60
HARD_CAP_SECONDS = 3 * 60 * 60
REMINDER_INTERVAL_SECONDS = 60 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "timetrack"
    # Multi-document transactions need a replica set (Atlas, or rs0 locally)
    mongodb_transactions: bool = True

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


settings = Settings()
