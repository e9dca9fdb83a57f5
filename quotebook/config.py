"""Configuration settings for quotebook."""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

from quotebook.utils import get_quotebook_home


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Remote relational database. Absent means local-only.
    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("QUOTEBOOK_DATABASE_URL", "DATABASE_URL"),
    )
    data_dir: Path = Field(default_factory=get_quotebook_home)
    log_level: str = "INFO"

    class Config:
        env_prefix = "QUOTEBOOK_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model
        populate_by_name = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
