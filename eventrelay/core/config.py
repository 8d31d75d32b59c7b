"""Application configuration using Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Service configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="EVR_",
        extra="ignore",
    )

    environment: Literal["local", "test", "staging", "production"] = Field(default="local")
    service_name: str = Field(default="event-relay")
    database_url: str = Field(default="sqlite:///./data/relay.db")
    sql_echo: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)

    upstream_events_url: str = Field(default="https://api.omnisend.com/v5/events")
    upstream_api_key_header: str = Field(default="X-API-KEY")
    upstream_timeout_seconds: float = Field(default=5.0, gt=0)
    retry_after_default_ms: int = Field(default=1000, ge=0)
    retry_after_cap_ms: int = Field(default=2000, ge=0)
    retry_jitter_min_ms: int = Field(default=300, ge=0)
    retry_jitter_max_ms: int = Field(default=800, ge=0)

    storefront_session_secret: str | None = Field(default=None)
    storefront_token_issuer: str = Field(default="event-relay")
    storefront_token_audience: str = Field(default="storefront")
    allowed_origin_hosts: List[str] | str = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("allowed_origin_hosts")
    @classmethod
    def parse_origin_hosts(cls, value: str | List[str] | None) -> List[str]:
        if value is None or value == "":
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [host.strip().lower() for host in value if host.strip()]

    @field_validator("storefront_session_secret", mode="before")
    @classmethod
    def empty_string_to_none(cls, value: str | None) -> str | None:
        if value == "":
            return None
        return value

    @field_validator("retry_jitter_max_ms")
    @classmethod
    def jitter_window_ordered(cls, value: int, info) -> int:
        lower = info.data.get("retry_jitter_min_ms", 0)
        if value < lower:
            raise ValueError("retry_jitter_max_ms must be >= retry_jitter_min_ms")
        return value


@lru_cache
def get_settings() -> AppSettings:
    """Return cached application settings instance."""

    return AppSettings()
