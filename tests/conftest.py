"""Pytest configuration shared across the suite."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone

import pytest

from checkout.core.config import PesapalSettings
from checkout.core.crypto import CredentialCipher
from checkout.clients import SQLiteCredentialStore


class FrozenClock:
    """Callable clock that tests move forward by hand."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def cipher() -> CredentialCipher:
    return CredentialCipher(secret="store-secret")


@pytest.fixture
def store(tmp_path, cipher) -> SQLiteCredentialStore:
    return SQLiteCredentialStore(str(tmp_path / "credentials.db"), cipher=cipher)


@pytest.fixture
def pesapal_settings() -> PesapalSettings:
    return PesapalSettings(
        consumer_key="key-123",
        consumer_secret="secret-456",
        base_url="https://pesapal.test/v3/api",
        callback_url="https://shop.example.com/payment-callback",
    )
