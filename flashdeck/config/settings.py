"""
Application Configuration

Two sources: environment variables (and .env) for deployment-specific values
such as the database URL and media directory, read through pydantic-settings;
and config/default.yaml for tunables (pool sizes, scheduling weights).

Usage:
    from flashdeck.config import settings

    # Access settings
    db_url = settings.DATABASE_URL or settings.POSTGRES_URL
    media_dir = settings.MEDIA_DIR
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Flashdeck"
    DEBUG: bool = False

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "flashdeck"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "flashdeck"

    # Full SQLAlchemy URL; overrides the POSTGRES_* settings when set.
    # Example: sqlite+aiosqlite:///./flashdeck.db
    DATABASE_URL: str = ""

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def DATABASE_URL_RESOLVED(self) -> str:
        """URL the engine connects to."""
        return self.DATABASE_URL or self.POSTGRES_URL

    # Archive import/export
    # Media files extracted from imported archives land here.
    MEDIA_DIR: str = "/tmp/flashdeck_media"
    APKG_MAX_UPLOAD_MB: int = 200

    # Default owner for decks created through the API until auth is wired in.
    DEFAULT_OWNER: str = "local"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
