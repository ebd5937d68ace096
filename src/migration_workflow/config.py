"""Application configuration and settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ACCEPTED_UPLOAD_TYPES = [
    ".csv",
    ".xlsx",
    ".xls",
    "text/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Application
    app_name: str = "Migration Workflow"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Logging
    log_level: str = "INFO"

    # Migration API
    api_base_url: str = "http://localhost:8080"
    api_prefix: str = "/api/v1/migration"
    api_token: str | None = None
    request_timeout_seconds: float = 60.0

    # Polling
    import_poll_interval_seconds: float = 2.0
    export_poll_interval_seconds: float = 3.0
    poll_max_interval_seconds: float = 30.0  # Ceiling for backoff after fetch errors
    poll_error_backoff_factor: float = 1.0  # 1.0 keeps a fixed interval

    # Uploads
    max_upload_size_bytes: int = 100 * 1024 * 1024  # 100MB
    accepted_upload_types: list[str] = DEFAULT_ACCEPTED_UPLOAD_TYPES

    # Preview and duplicate review
    duplicate_skip_threshold: int = 90  # Confidence at or above defaults to skip
    issue_preview_limit: int = 5
    error_page_size: int = 50

    # Export history
    export_history_path: str = ".migration/export_history.json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
