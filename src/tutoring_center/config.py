"""Application configuration."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_anon_key: str
    console_token: str
    site_url: str = "http://localhost:8000"
    environment: str = _ENVIRONMENT
    log_level: str = "INFO"

    session_cache_ttl_seconds: float = Field(default=30.0, gt=0)
    session_force_cache_ttl_seconds: float = Field(default=1.0, ge=0)
    session_timeout_seconds: float = Field(default=20.0, gt=0)
    session_debounce_seconds: float = Field(default=2.0, ge=0)
    session_focus_debounce_seconds: float = Field(default=30.0, ge=0)
    session_focus_settle_seconds: float = Field(default=0.5, ge=0)
    session_max_retries: int = Field(default=2, ge=0)
    session_retry_delay_seconds: float = Field(default=2.0, ge=0)

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
