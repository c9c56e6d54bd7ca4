"""Client settings powered by Pydantic BaseSettings."""

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.features.core.constants import (
    DEFAULT_HOSTNAME,
    DEFAULT_TIMEOUT_SECONDS,
    MAX_REDIRECTS,
)
from src.features.core.models import RuntimeCapabilities


class ClientSettings(BaseSettings):
    """Environment defaults for clients, transports and logging."""

    model_config = SettingsConfigDict(
        env_prefix="NETLAYER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    protocol: str = Field(default="http", description="Protocol of the current origin")
    hostname: str = Field(default=DEFAULT_HOSTNAME, description="Current hostname")
    is_browser: bool = Field(default=False, description="Behave as a browser-like runtime")
    supports_default_decryption: bool = True
    user_agent: str | None = Field(default=None, description="Default User-Agent header")
    default_timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    max_redirects: int = Field(default=MAX_REDIRECTS, ge=0)
    log_level: str = "INFO"
    log_json: bool = True

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept standard logging level names."""
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v}")
        return level

    @property
    def log_level_number(self) -> int:
        """Numeric logging level."""
        return logging.getLevelNamesMapping()[self.log_level]

    def capabilities(self) -> RuntimeCapabilities:
        """Runtime description derived from the settings."""
        return RuntimeCapabilities(
            is_browser=self.is_browser,
            supports_default_decryption=self.supports_default_decryption,
            protocol=self.protocol,
            hostname=self.hostname,
        )


def get_settings() -> ClientSettings:
    """Get a settings instance."""
    return ClientSettings()
