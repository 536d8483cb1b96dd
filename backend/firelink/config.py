"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Storage
    database_url: str = "sqlite+aiosqlite:///./firelink.db"
    storage_backend: Literal["memory", "sql"] = "sql"

    # Proximity fan-out
    alert_radius_km: float = 0.2  # 200m around the reported incident

    # Realtime transport
    send_timeout_seconds: float = 5.0
    heartbeat_timeout_seconds: int = 90
    liveness_sweep_seconds: int = 30

    # Auth collaborator: bearer token -> responder subscriber id
    responder_tokens: dict[str, str] = {}

    # API settings
    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = ["*"]  # Restrict in production
    rate_limit_per_minute: int = 60

    # Environment
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
