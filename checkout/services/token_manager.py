"""
Lifecycle management for the Pesapal bearer token.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from checkout.clients import PesapalClient, SQLiteCredentialStore
from checkout.clients.pesapal import AuthenticationFailed
from checkout.core.logging import mask_secret
from checkout.models.credential import GatewayCredential

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenLifecycleManager:
    """Hands out a valid Pesapal token, refreshing it at most once at a time.

    The persisted credential is trusted for ``lease``, which must be shorter
    than the gateway's real ``lifetime`` so clock or latency skew never lets
    an expired token reach Pesapal.

    Concurrent callers that find the cache stale join a single refresh task.
    Waiters await it through :func:`asyncio.shield`, so a cancelled request
    leaves the refresh running for everyone else. The store's conditional
    write covers other processes sharing the same database.
    """

    def __init__(
        self,
        *,
        store: SQLiteCredentialStore,
        gateway: PesapalClient,
        lease: timedelta = timedelta(minutes=55),
        lifetime: timedelta = timedelta(minutes=60),
        clock: Clock = utc_now,
    ) -> None:
        if lease <= timedelta(0):
            raise ValueError("Token lease must be positive.")
        if lease >= lifetime:
            raise ValueError("Token lease must be shorter than the token lifetime.")
        self._store = store
        self._gateway = gateway
        self._lease = lease
        self._clock = clock
        self._refresh_task: Optional[asyncio.Task[str]] = None

    @property
    def lease(self) -> timedelta:
        return self._lease

    async def get_valid_token(self) -> str:
        """Return a token that is valid now, authenticating only if needed."""
        credential = await self._load()
        if credential is not None and credential.is_valid_at(self._clock()):
            logger.debug("Using stored Pesapal token")
            return credential.access_token
        return await self._join_refresh()

    async def _load(self) -> Optional[GatewayCredential]:
        return await asyncio.to_thread(self._store.get)

    async def _join_refresh(self) -> str:
        task = self._refresh_task
        if task is None:
            task = asyncio.create_task(self._refresh())
            task.add_done_callback(self._on_refresh_done)
            self._refresh_task = task
        return await asyncio.shield(task)

    def _on_refresh_done(self, task: asyncio.Task[str]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        # Mark the outcome as observed even if every waiter was cancelled.
        if not task.cancelled():
            task.exception()

    async def _refresh(self) -> str:
        # Another task or process may have refreshed since the caller looked.
        current = await self._load()
        if current is not None and current.is_valid_at(self._clock()):
            return current.access_token

        try:
            access_token = await self._gateway.authenticate()
        except AuthenticationFailed as exc:
            logger.error("Error getting Pesapal access token: %s", exc.details or exc)
            raise

        expires_at = self._clock() + self._lease
        stored = await asyncio.to_thread(
            self._store.put,
            access_token,
            expires_at,
            expected_expires_at=current.expires_at if current else None,
        )
        if stored.access_token != access_token and stored.is_valid_at(self._clock()):
            logger.info("Pesapal token was refreshed elsewhere; adopting stored token")
            return stored.access_token

        logger.info(
            "New Pesapal token %s stored, valid until %s",
            mask_secret(access_token),
            expires_at.isoformat(),
        )
        return access_token


__all__ = ["Clock", "TokenLifecycleManager", "utc_now"]
