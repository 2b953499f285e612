"""Unit tests for state managers."""

import asyncio

import pytest

from listening_player.state_managers import SpotifyTokenStore, UserSessionStore

# SpotifyTokenStore Tests


@pytest.mark.asyncio
async def test_token_store_save_and_get():
    """Test saving and reading a user's token."""
    store = SpotifyTokenStore()
    await store.initialize()

    await store.save("user-1", "access-1", 3600, "refresh-1")

    stored = await store.get("user-1")
    assert stored.access_token == "access-1"
    assert stored.refresh_token == "refresh-1"
    assert stored.is_expired() is False
    assert 3590 <= stored.expires_in <= 3600


@pytest.mark.asyncio
async def test_token_store_keeps_refresh_token():
    """Test a refreshed token without a new refresh token keeps the old one."""
    store = SpotifyTokenStore()
    await store.save("user-1", "access-1", 3600, "refresh-1")

    await store.save("user-1", "access-2", 3600)

    stored = await store.get("user-1")
    assert stored.access_token == "access-2"
    assert stored.refresh_token == "refresh-1"


@pytest.mark.asyncio
async def test_token_store_expiry_with_leeway():
    store = SpotifyTokenStore()
    await store.save("user-1", "access-1", 20)

    stored = await store.get("user-1")
    assert stored.is_expired() is False
    assert stored.is_expired(leeway=30) is True


@pytest.mark.asyncio
async def test_token_store_remove_and_cleanup():
    store = SpotifyTokenStore()
    await store.save("user-1", "a", 3600)
    await store.save("user-2", "b", 3600)

    await store.remove("user-1")
    assert await store.get("user-1") is None
    assert await store.count() == 1

    await store.cleanup()
    assert await store.count() == 0


# UserSessionStore Tests


@pytest.mark.asyncio
async def test_session_store_create_and_lookup():
    sessions = UserSessionStore()
    await sessions.initialize()

    session_id = await sessions.create("user-1")

    assert len(session_id) >= 32
    assert await sessions.get_user_id(session_id) == "user-1"
    assert await sessions.get_user_id("unknown") is None
    assert await sessions.get_user_id(None) is None


@pytest.mark.asyncio
async def test_session_store_sessions_are_unique():
    sessions = UserSessionStore()

    first = await sessions.create("user-1")
    second = await sessions.create("user-1")

    assert first != second
    assert await sessions.count() == 2


@pytest.mark.asyncio
async def test_session_store_expiry():
    """Test expired sessions no longer resolve."""
    sessions = UserSessionStore(ttl_seconds=0)

    session_id = await sessions.create("user-1")
    await asyncio.sleep(0.01)

    assert await sessions.get_user_id(session_id) is None
    assert await sessions.count() == 0


@pytest.mark.asyncio
async def test_session_store_delete():
    sessions = UserSessionStore()
    session_id = await sessions.create("user-1")

    await sessions.delete(session_id)
    await sessions.delete(None)

    assert await sessions.get_user_id(session_id) is None


@pytest.mark.asyncio
async def test_session_store_concurrent_creates():
    """Test concurrent access is safe."""
    sessions = UserSessionStore()

    ids = await asyncio.gather(*(sessions.create(f"user-{i}") for i in range(10)))

    assert len(set(ids)) == 10
    assert await sessions.count() == 10
