"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the credential store and
the Pesapal client share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

PESAPAL_LIVE_BASE_URL = "https://pay.pesapal.com/v3/api"


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file into the environment."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return tuple(item.strip() for item in value.split(",") if item.strip())


class PesapalSettings(BaseSettings):
    """Credentials and order defaults for the Pesapal v3 API."""

    consumer_key: str
    consumer_secret: str
    base_url: AnyHttpUrl = Field(PESAPAL_LIVE_BASE_URL)
    callback_url: AnyHttpUrl = Field(
        ...,
        description="Browser redirect target once the customer completes payment.",
    )
    currency: str = Field("KES", min_length=3, max_length=3)
    country_code: str = Field("KE", min_length=2, max_length=2)
    order_description: str = Field("Movie Ticket Payment", max_length=100)
    request_timeout_seconds: float = Field(10.0, gt=0)
    token_lease_minutes: int = Field(
        55,
        gt=0,
        description="How long a fetched token is trusted locally.",
    )
    token_lifetime_minutes: int = Field(
        60,
        gt=0,
        description="Real validity of a token as issued by Pesapal.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PESAPAL_",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _lease_within_lifetime(self) -> "PesapalSettings":
        if self.token_lease_minutes >= self.token_lifetime_minutes:
            raise ValueError(
                "PESAPAL_TOKEN_LEASE_MINUTES must be shorter than "
                "PESAPAL_TOKEN_LIFETIME_MINUTES."
            )
        return self


class StorageSettings(BaseSettings):
    """Location of the SQLite database holding the gateway credential."""

    db_path: str = Field("data/checkout.db")
    db_timeout_seconds: float = Field(
        5.0,
        gt=0,
        description="How long a connection waits on a locked database.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CREDENTIAL_",
        extra="ignore",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    token_encryption_previous_secrets: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        description="Retired secrets that may still decrypt stored tokens.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("token_encryption_previous_secrets", mode="before")
    @classmethod
    def _split_secrets(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing secrets as a comma-separated string."""
        return _split_csv(value)


class ServerSettings(BaseSettings):
    """HTTP binding and cross-origin policy."""

    host: str = Field("0.0.0.0")
    port: int = Field(8000, gt=0, lt=65536)
    cors_allowed_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        ("http://localhost:5173",),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def _split_origins(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing origins as a comma-separated string."""
        return _split_csv(value)


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development")
    log_level: str = Field("INFO")
    pesapal: PesapalSettings = Field(default_factory=PesapalSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="APP_",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "PESAPAL_LIVE_BASE_URL",
    "PesapalSettings",
    "SecuritySettings",
    "ServerSettings",
    "StorageSettings",
    "get_settings",
]
