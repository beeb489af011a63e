"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    api_base_url: str = "https://api.frindr.app"
    api_token: str
    cache_dir: Path = Path(".frindr-cache")
    request_timeout_seconds: float = 30.0
    reachability_timeout_seconds: float = 5.0
    image_max_size_kb: int = 500
    sync_interval_seconds: float = 300.0
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
