"""Configuration management for Novel Ledger."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, loaded from environment and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="NL_",
    )

    # Paths
    data_dir: Path = Field(default=Path("data"))

    # Remote store (PostgREST endpoint); empty means local-only
    remote_url: str = Field(default="")
    remote_api_key: str = Field(default="")
    remote_timeout: float = Field(default=10.0, description="Seconds per remote request")

    # Mention search
    search_limit: int = Field(default=10, description="Maximum candidates returned by search")
    suggestion_limit: int = Field(default=5, description="Maximum type-ahead suggestions")
    min_query_length: int = Field(default=1, description="Shorter partial names match nothing")

    # Books
    trash_retention_days: int = Field(default=30, description="Days a deleted book stays in the trash")

    # Notifications and logging
    notification_history: int = Field(default=50)
    log_level: str = Field(default="INFO")

    @property
    def session_file(self) -> Path:
        return self.data_dir / "session.json"

    @property
    def remote_enabled(self) -> bool:
        return bool(self.remote_url)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
