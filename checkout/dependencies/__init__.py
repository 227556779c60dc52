"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_app_settings,
    get_credential_cipher,
    get_credential_store,
    get_order_submission_service,
    get_pesapal_client,
    get_token_manager,
)

__all__ = [
    "get_app_settings",
    "get_credential_cipher",
    "get_credential_store",
    "get_order_submission_service",
    "get_pesapal_client",
    "get_token_manager",
]
