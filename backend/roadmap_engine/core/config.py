"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    APP_NAME: str = "Roadmap Engine"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENV: str = "development"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./roadmap_engine.db"
    DATABASE_ECHO: bool = False

    # LLM
    LLM_API_KEY: str | None = None
    LLM_API_BASE_URL: str | None = None
    LLM_MODEL: str = "gpt-5-mini"
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 8000
    LLM_TIMEOUT_SECONDS: float = 120.0
    LLM_JSON_MAX_RETRIES: int = 2

    # Quota
    QUOTA_DAILY_LIMIT: int = 100
    QUOTA_MONTHLY_LIMIT: int = 2000
    QUOTA_TIMEZONE: str = "Asia/Seoul"

    # Exports
    EXPORT_DIR: Path = Path("./exports")
    EXPORT_SIGNING_KEY: str = "change-me"
    EXPORT_URL_TTL_SECONDS: int = 3600

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENV == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
