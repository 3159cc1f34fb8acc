"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    storage_bucket: str = "galleries"
    service_token: str
    archive_task_url: str | None = None
    archive_task_token: str | None = None
    archive_task_timeout_seconds: float = 60
    email_api_url: str | None = None
    email_api_key: str | None = None
    sender_email: str | None = None
    currency: str = "PLN"
    allow_empty_restore: bool = False
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def email_enabled(self) -> bool:
        """Return True when every email setting is present."""
        return bool(self.email_api_url and self.email_api_key and self.sender_email)
