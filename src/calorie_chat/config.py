"""Application configuration."""

import os
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

DEVELOPMENT_DATA_DIR = Path("./data")
PRODUCTION_DATA_DIR = Path("/app/data")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    environment: str = _ENVIRONMENT
    log_level: str = "INFO"
    data_dir: Path | None = None
    database_filename: str = "calorieChat.db"
    legacy_filename: str = "calorieChat.json"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3001
    api_base_url: str = "http://localhost:3001"
    autosave_delay_seconds: float = 0.5
    request_timeout_seconds: float = 10.0
    cache_path: Path | None = None
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        if self.data_dir is None:
            self.data_dir = resolve_data_dir(self.environment)
        if self.cache_path is None:
            self.cache_path = self.data_dir / "client-cache.json"
        return self

    @property
    def database_path(self) -> Path:
        """Path of the SQLite store file."""
        return self.data_dir / self.database_filename

    @property
    def legacy_path(self) -> Path:
        """Path of the legacy flat JSON snapshot."""
        return self.data_dir / self.legacy_filename


def resolve_data_dir(environment: str) -> Path:
    """Pick the data directory for a runtime mode."""
    if environment.strip().lower() == "production":
        return PRODUCTION_DATA_DIR
    return DEVELOPMENT_DATA_DIR
