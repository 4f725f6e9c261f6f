"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Server settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    storage_bucket: str = "recordings"
    cron_secret: str | None = None
    admin_token: str
    merge_interval_seconds: float | None = None
    merge_min_chunks: int = 2
    delete_chunks_after_merge: bool = False
    list_page_size: int = 1000
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


class RecorderSettings(BaseSettings):
    """Client-side recorder settings, read from RECORDER_* variables."""

    endpoint_url: str = "http://localhost:8000/api/recordings/chunks"
    debounce_seconds: float = 3.0
    upload_interval_seconds: float = 30.0
    max_batch_events: int = 100
    teardown_grace_seconds: float = 2.0
    request_timeout_seconds: float = 10.0

    model_config = SettingsConfigDict(
        env_prefix="RECORDER_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_bearer_token(header: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer`` header."""
    if header is None:
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
