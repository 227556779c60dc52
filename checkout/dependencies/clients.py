"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Each provider builds its object once per process and hands collaborators in
explicitly, so the token manager shared by every request owns a direct
handle to its store and gateway client.
"""

from datetime import timedelta
from functools import lru_cache

from checkout.clients import PesapalClient, SQLiteCredentialStore
from checkout.core.config import AppSettings, get_settings
from checkout.core.crypto import CredentialCipher
from checkout.services import OrderSubmissionService, TokenLifecycleManager


@lru_cache()
def _settings() -> AppSettings:
    """Internal helper to cache settings for client factories."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings()


@lru_cache()
def get_credential_cipher() -> CredentialCipher:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = (
        settings.security.token_encryption_secret
        or settings.pesapal.consumer_secret
    )
    return CredentialCipher(
        secret=secret,
        previous_secrets=settings.security.token_encryption_previous_secrets,
    )


@lru_cache()
def get_credential_store() -> SQLiteCredentialStore:
    """Provide the SQLite store holding the current gateway token."""
    settings = _settings()
    return SQLiteCredentialStore(
        settings.storage.db_path,
        cipher=get_credential_cipher(),
        timeout_seconds=settings.storage.db_timeout_seconds,
    )


@lru_cache()
def get_pesapal_client() -> PesapalClient:
    """Create a singleton Pesapal API client."""
    return PesapalClient(_settings().pesapal)


@lru_cache()
def get_token_manager() -> TokenLifecycleManager:
    """Provide the process-wide token lifecycle manager."""
    pesapal = _settings().pesapal
    return TokenLifecycleManager(
        store=get_credential_store(),
        gateway=get_pesapal_client(),
        lease=timedelta(minutes=pesapal.token_lease_minutes),
        lifetime=timedelta(minutes=pesapal.token_lifetime_minutes),
    )


def get_order_submission_service() -> OrderSubmissionService:
    """Build an order submission workflow over the shared token manager."""
    return OrderSubmissionService(
        token_manager=get_token_manager(),
        gateway=get_pesapal_client(),
        settings=_settings().pesapal,
    )


__all__ = [
    "get_app_settings",
    "get_credential_cipher",
    "get_credential_store",
    "get_order_submission_service",
    "get_pesapal_client",
    "get_token_manager",
]
