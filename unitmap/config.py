"""Application configuration loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "unit-economic-map"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Remote services
    hierarchy_base_url: str = "https://unit-economic.punchapps.cool/api/v1"
    aggregation_base_url: str = "https://unit-economic.punchapps.cool/api/v1"
    default_page_size: int = Field(default=100, ge=1)
    request_timeout_seconds: float = 30.0

    # Selection defaults
    default_window_days: int = Field(default=30, ge=0)

    # Map sessions (idle sessions are evicted after this many seconds)
    session_ttl_seconds: float = Field(default=3600, gt=0)

    # Classification tables (packaged defaults when unset)
    bucket_tables_path: Optional[Path] = None

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
