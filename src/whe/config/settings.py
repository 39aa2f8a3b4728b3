"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend data service (PostgREST / Supabase)
    supabase_url: Optional[str] = Field(None, description="Base URL of the backend data service")
    supabase_key: Optional[str] = Field(None, description="API key sent as apikey and bearer token")

    # Offline record snapshot, used when no backend URL is configured
    snapshot_path: Optional[Path] = Field(None, description="JSON snapshot of workspace records")

    # HTTP behaviour
    request_timeout: float = Field(30.0, gt=0)
    max_retries: int = Field(3, ge=1, le=10)
    retry_backoff_factor: float = Field(1.0, ge=0)
    retry_max_wait: float = Field(30.0, gt=0)
    in_filter_chunk_size: int = Field(100, ge=1, le=1000)

    # Hierarchy
    max_workspace_depth: int = Field(4, ge=1)

    # Exports
    export_dir: Path = Field(Path("exports"))

    # Logging
    log_level: str = Field("INFO")
    log_format: str = Field("json", pattern="^(json|text)$")


# Instantiate global settings
settings = Settings()
