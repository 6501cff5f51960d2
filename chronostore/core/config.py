"""Application configuration."""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Store settings loaded from environment (CHRONOSTORE_* variables)."""

    app_name: str = "Chronostore"

    # Storage
    database_url: str | None = None
    data_dir: str = "data"
    database_file: str = "chronostore.db"
    echo_sql: bool = False

    # Identity allocation
    sequence_start: int = Field(default=1000, ge=0)
    sequence_increment: int = Field(default=1, ge=1)

    # Serialized form of the INFINITY sentinel
    infinity: str = "9999-12-01T23:59:00+00:00"

    log_level: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix="CHRONOSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level

    def sqlite_path(self) -> Path:
        """Default SQLite file used when no database URL is configured."""
        return Path(self.data_dir) / self.database_file


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Apply the configured log level to the chronostore logger tree."""
    settings = settings or get_settings()
    logger = logging.getLogger("chronostore")
    logger.setLevel(settings.log_level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
        logger.addHandler(handler)
