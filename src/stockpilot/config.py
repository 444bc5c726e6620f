# Settings — environment-driven configuration for the client and token proxy.
# Created: 2026-10-19
#
# Values come from STOCKPILOT_* environment variables or a .env file.
# The proxy credentials also accept the unprefixed ML_APP_ID / ML_CLIENT_SECRET
# names used by most hosting dashboards.

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".stockpilot"


class Settings(BaseSettings):
    """StockPilot configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STOCKPILOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Proxy credentials (server side only)
    ml_app_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("STOCKPILOT_ML_APP_ID", "ML_APP_ID", "ml_app_id"),
    )
    ml_client_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "STOCKPILOT_ML_CLIENT_SECRET", "ML_CLIENT_SECRET", "ml_client_secret"
        ),
    )

    # Client side
    ml_client_id: str | None = None
    app_origin: str | None = "http://localhost:3000"
    proxy_base_url: str = "http://localhost:3001"

    # Marketplace endpoints
    auth_url: str = "https://auth.mercadolivre.com.br/authorization"
    token_url: str = "https://api.mercadolibre.com/oauth/token"
    api_base_url: str = "https://api.mercadolibre.com"

    http_timeout: float = 15.0
    # Comma-separated in the environment
    api_cors_allowed_origins: str | list[str] = Field(default_factory=list)
    config_dir: Path = DEFAULT_CONFIG_DIR
    log_level: str = "INFO"

    @field_validator("api_cors_allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, v: object) -> object:
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v

    @property
    def client_id(self) -> str | None:
        """Client id used for the authorization redirect (defaults to the app id)."""
        return self.ml_client_id or self.ml_app_id

    @property
    def proxy_configured(self) -> bool:
        return bool(self.ml_app_id and self.ml_client_secret)

    @property
    def token_proxy_url(self) -> str:
        return f"{self.proxy_base_url.rstrip('/')}/api/v1/mercadolivre/token"

    @classmethod
    def load(cls) -> Settings:
        """Build settings from the current environment, bypassing the cache."""
        return cls()


@lru_cache
def get_settings() -> Settings:
    return Settings.load()


def get_config_dir() -> Path:
    """Get/create the config directory."""
    d = get_settings().config_dir
    d.mkdir(parents=True, exist_ok=True)
    return d
