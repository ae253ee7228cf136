"""mediasync configuration — Pydantic BaseSettings loaded from .env."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Agent settings for the field device."""

    app_name: str = "mediasync"
    debug: bool = False
    log_level: str = "INFO"

    # Local agent API (loopback, consumed by the capture UI)
    host: str = "127.0.0.1"
    port: int = 8010
    api_prefix: str = "/api"
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:5000",
    ]

    # Inspection server
    server_url: str = "http://localhost:5000"
    health_path: str = "/api/health"

    # Storage paths (relative resolved from backend/ at runtime)
    data_dir: str = "./data"
    spool_dir: str = "./data/spool"
    database_path: str = "./data/mediasync.db"

    # Background sync
    sync_interval_seconds: int = 120  # 2 minutes
    max_retries: int = 10
    background_upload_timeout: float = 90.0  # slow links, large video

    # Interactive (capture) uploads
    interactive_upload_timeout: float = 60.0
    interactive_retries: int = 1
    interactive_retry_delay: float = 1.0

    # Connectivity monitor
    connectivity_poll_interval: int = 30
    connectivity_timeout: float = 5.0
    connectivity_failure_threshold: int = 3

    max_db_connections: int = 5

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        env_prefix="MEDIASYNC_",
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: list[str] | str) -> list[str]:
        if isinstance(value, str) and not value.startswith("["):
            return [o.strip() for o in value.split(",") if o.strip()]
        if isinstance(value, list):
            return value
        return ["http://localhost:5173"]

    @field_validator("server_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Ensure data directories are absolute."""
        base = Path(__file__).resolve().parent.parent  # backend/
        for field in ("data_dir", "spool_dir", "database_path"):
            val = getattr(self, field)
            if not Path(val).is_absolute():
                setattr(self, field, str(base / val))
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
