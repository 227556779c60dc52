"""Expose constructed client wrappers."""

from .credential_store import SQLiteCredentialStore, StorageUnavailable
from .pesapal import (
    AuthenticationFailed,
    GatewaySubmissionFailed,
    PesapalAPIError,
    PesapalClient,
    TransactionStatusFailed,
)

__all__ = [
    "AuthenticationFailed",
    "GatewaySubmissionFailed",
    "PesapalAPIError",
    "PesapalClient",
    "SQLiteCredentialStore",
    "StorageUnavailable",
    "TransactionStatusFailed",
]
