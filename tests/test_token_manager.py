from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from checkout.clients import AuthenticationFailed, SQLiteCredentialStore
from checkout.services.token_manager import TokenLifecycleManager


class RecordingGateway:
    def __init__(self, *, delay: float = 0.0, error: Exception | None = None) -> None:
        self.delay = delay
        self.error = error
        self.calls = 0
        self.release: asyncio.Event | None = None

    async def authenticate(self) -> str:
        self.calls += 1
        if self.release is not None:
            await self.release.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return f"token-{self.calls}"


def _manager(store, gateway, clock) -> TokenLifecycleManager:
    return TokenLifecycleManager(store=store, gateway=gateway, clock=clock)


@pytest.mark.asyncio
async def test_returns_stored_token_without_authenticating(store, clock) -> None:
    store.put("cached-token", clock() + timedelta(minutes=10))
    gateway = RecordingGateway()

    token = await _manager(store, gateway, clock).get_valid_token()

    assert token == "cached-token"
    assert gateway.calls == 0


@pytest.mark.asyncio
async def test_authenticates_and_persists_when_store_is_empty(store, clock) -> None:
    gateway = RecordingGateway()

    token = await _manager(store, gateway, clock).get_valid_token()

    assert token == "token-1"
    assert gateway.calls == 1
    stored = store.get()
    assert stored.access_token == "token-1"
    assert stored.expires_at == clock() + timedelta(minutes=55)


@pytest.mark.asyncio
async def test_token_expiring_exactly_now_is_refreshed(store, clock) -> None:
    store.put("stale-token", clock())
    gateway = RecordingGateway()

    token = await _manager(store, gateway, clock).get_valid_token()

    assert token == "token-1"
    assert store.get().access_token == "token-1"


@pytest.mark.asyncio
async def test_refresh_updates_the_existing_record(store, clock) -> None:
    manager = _manager(store, RecordingGateway(), clock)
    await manager.get_valid_token()
    first = store.get()

    clock.advance(minutes=56)
    token = await manager.get_valid_token()

    second = store.get()
    assert token == "token-2"
    assert second.created_at == first.created_at
    assert second.expires_at == clock() + timedelta(minutes=55)


@pytest.mark.asyncio
async def test_concurrent_callers_share_a_single_refresh(store, clock) -> None:
    gateway = RecordingGateway(delay=0.05)
    manager = _manager(store, gateway, clock)

    tokens = await asyncio.gather(*(manager.get_valid_token() for _ in range(25)))

    assert gateway.calls == 1
    assert set(tokens) == {"token-1"}


@pytest.mark.asyncio
async def test_concurrent_callers_share_refresh_of_expired_token(store, clock) -> None:
    store.put("stale-token", clock() - timedelta(seconds=1))
    gateway = RecordingGateway(delay=0.05)
    manager = _manager(store, gateway, clock)

    tokens = await asyncio.gather(*(manager.get_valid_token() for _ in range(10)))

    assert gateway.calls == 1
    assert set(tokens) == {"token-1"}


@pytest.mark.asyncio
async def test_lease_stays_inside_gateway_lifetime(store, clock) -> None:
    manager = _manager(store, RecordingGateway(), clock)

    await manager.get_valid_token()

    assert store.get().expires_at < clock() + timedelta(minutes=60)
    assert manager.lease < timedelta(minutes=60)


def test_lease_must_be_shorter_than_lifetime(store) -> None:
    with pytest.raises(ValueError):
        TokenLifecycleManager(
            store=store,
            gateway=RecordingGateway(),
            lease=timedelta(minutes=60),
            lifetime=timedelta(minutes=60),
        )


@pytest.mark.asyncio
async def test_authentication_failure_leaves_stored_credential(store, clock) -> None:
    expired_at = clock() - timedelta(minutes=1)
    store.put("stale-token", expired_at)
    gateway = RecordingGateway(error=AuthenticationFailed("No token returned"))

    with pytest.raises(AuthenticationFailed):
        await _manager(store, gateway, clock).get_valid_token()

    stored = store.get()
    assert stored.access_token == "stale-token"
    assert stored.expires_at == expired_at


@pytest.mark.asyncio
async def test_failed_refresh_does_not_block_the_next_attempt(store, clock) -> None:
    gateway = RecordingGateway(error=AuthenticationFailed("boom"))
    manager = _manager(store, gateway, clock)

    with pytest.raises(AuthenticationFailed):
        await manager.get_valid_token()

    gateway.error = None
    assert await manager.get_valid_token() == "token-2"


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_refresh(store, clock) -> None:
    gateway = RecordingGateway()
    gateway.release = asyncio.Event()
    manager = _manager(store, gateway, clock)

    first = asyncio.create_task(manager.get_valid_token())
    second = asyncio.create_task(manager.get_valid_token())
    while gateway.calls == 0:
        await asyncio.sleep(0.01)
    await asyncio.sleep(0.05)

    first.cancel()
    gateway.release.set()

    assert await second == "token-1"
    with pytest.raises(asyncio.CancelledError):
        await first
    assert gateway.calls == 1
    assert store.get().access_token == "token-1"


@pytest.mark.asyncio
async def test_adopts_token_written_by_another_process(tmp_path, cipher, clock) -> None:
    db_path = str(tmp_path / "shared.db")
    ours = SQLiteCredentialStore(db_path, cipher=cipher)
    theirs = SQLiteCredentialStore(db_path, cipher=cipher)
    ours.put("stale-token", clock() - timedelta(minutes=1))
    stale = ours.get()

    class RacingGateway:
        calls = 0

        async def authenticate(self) -> str:
            self.calls += 1
            # The other instance finishes its refresh while ours is in flight.
            theirs.put(
                "their-token",
                clock() + timedelta(minutes=55),
                expected_expires_at=stale.expires_at,
            )
            return "our-token"

    token = await _manager(ours, RacingGateway(), clock).get_valid_token()

    assert token == "their-token"
    assert ours.get().access_token == "their-token"


@pytest.mark.asyncio
async def test_second_instance_reuses_token_from_shared_store(
    tmp_path, cipher, clock
) -> None:
    db_path = str(tmp_path / "shared.db")
    first_gateway = RecordingGateway()
    second_gateway = RecordingGateway()
    first = _manager(SQLiteCredentialStore(db_path, cipher=cipher), first_gateway, clock)
    second = _manager(
        SQLiteCredentialStore(db_path, cipher=cipher), second_gateway, clock
    )

    assert await first.get_valid_token() == "token-1"
    assert await second.get_valid_token() == "token-1"
    assert second_gateway.calls == 0
