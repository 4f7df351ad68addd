"""Application configuration for the channel viewer and token service."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    cors_allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])

    # Defaults used when no credentials were saved locally.
    agora_app_id: str = Field(default="")
    agora_app_certificate: str = Field(default="")

    agora_token_server_url: str = Field(default="https://webdemo-for-agora-io.agora.io")
    token_service_url: str = Field(default="http://127.0.0.1:8000")
    token_endpoint_path: str = Field(default="/api/agora/token")
    token_request_timeout: float = Field(default=10.0, gt=0)

    default_token_expiry: int = Field(default=3600, ge=1)
    demo_token_expiry: int = Field(default=7200, ge=1)

    credentials_path: Path = Field(default=Path(".agora_credentials.json"))

    remote_user_poll_interval: float = Field(default=1.0, gt=0)
    render_retry_delay: float = Field(default=0.5, gt=0)
    render_retry_limit: int = Field(default=20, ge=1)

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: object) -> object:
        """Allow comma-separated env values for CORS origins."""

        if isinstance(value, str):
            parts = [item.strip() for item in value.split(",") if item.strip()]
            return parts
        return value


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
