"""
Unit tests for the transcription session registry.
"""

from uuid import uuid4

import pytest

from conftest import make_websocket, settle
from voxchat.realtime.protocol import LiveOptions
from voxchat.transcription.client import BackendOpened
from voxchat.transcription.deepgram import DeepgramClient
from voxchat.transcription.registry import (
    SessionRegistry,
    get_session_registry,
    registry,
)


@pytest.fixture
def session_registry(fake_client) -> SessionRegistry:
    return SessionRegistry(client=fake_client, options=LiveOptions(), keepalive_interval=10.0)


class TestSessionRegistry:
    """Test supervisor bookkeeping."""

    @pytest.mark.asyncio
    async def test_get_or_create_returns_same_supervisor(
        self, session_registry, connection_manager
    ):
        conn = await connection_manager.connect(make_websocket())

        first = session_registry.get_or_create(conn, connection_manager)
        second = session_registry.get_or_create(conn, connection_manager)

        assert first is second
        assert len(session_registry) == 1
        assert conn.connection_id in session_registry
        assert session_registry.get(conn.connection_id) is first

    @pytest.mark.asyncio
    async def test_supervisors_are_per_connection(self, session_registry, connection_manager):
        alice = await connection_manager.connect(make_websocket())
        bob = await connection_manager.connect(make_websocket())

        assert session_registry.get_or_create(
            alice, connection_manager
        ) is not session_registry.get_or_create(bob, connection_manager)
        assert len(session_registry) == 2

    def test_get_unknown(self, session_registry):
        assert session_registry.get(uuid4()) is None

    @pytest.mark.asyncio
    async def test_release_closes_session(
        self, session_registry, connection_manager, fake_client
    ):
        conn = await connection_manager.connect(make_websocket())
        supervisor = session_registry.get_or_create(conn, connection_manager)
        await supervisor.start_session()
        fake_client.latest.emit(BackendOpened())
        await settle()

        await session_registry.release(conn.connection_id)

        assert conn.connection_id not in session_registry
        assert fake_client.open_streams == []
        assert supervisor.state.value == "closed"

    @pytest.mark.asyncio
    async def test_release_unknown_is_noop(self, session_registry):
        await session_registry.release(uuid4())

        assert len(session_registry) == 0

    @pytest.mark.asyncio
    async def test_close_all(self, session_registry, connection_manager, fake_client):
        for _ in range(3):
            conn = await connection_manager.connect(make_websocket())
            await session_registry.get_or_create(conn, connection_manager).start_session()

        await session_registry.close_all()

        assert len(session_registry) == 0
        assert fake_client.open_streams == []

    @pytest.mark.asyncio
    async def test_get_stats(self, session_registry, connection_manager, fake_client):
        ready = await connection_manager.connect(make_websocket())
        await session_registry.get_or_create(ready, connection_manager).start_session()
        fake_client.latest.emit(BackendOpened())
        idle = await connection_manager.connect(make_websocket())
        session_registry.get_or_create(idle, connection_manager)
        await settle()

        stats = session_registry.get_stats()

        assert stats == {"supervisors": 2, "sessions_by_state": {"ready": 1}}

        await session_registry.close_all()


class TestRegistryDefaults:
    """Test defaults resolved from settings."""

    @pytest.mark.asyncio
    async def test_defaults_from_settings(self, connection_manager, monkeypatch):
        monkeypatch.setenv("TRANSCRIPTION_MODEL", "nova-2")
        monkeypatch.setenv("TRANSCRIPTION_KEEPALIVE_INTERVAL", "5")
        conn = await connection_manager.connect(make_websocket())

        supervisor = SessionRegistry().get_or_create(conn, connection_manager)

        assert isinstance(supervisor.client, DeepgramClient)
        assert supervisor.client.api_key == "test-deepgram-key"
        assert supervisor.options.model == "nova-2"
        assert supervisor.keepalive_interval == 5.0

    @pytest.mark.asyncio
    async def test_explicit_values_win(self, connection_manager, fake_client):
        conn = await connection_manager.connect(make_websocket())
        options = LiveOptions(model="base")

        supervisor = SessionRegistry(
            client=fake_client, options=options, keepalive_interval=1.5
        ).get_or_create(conn, connection_manager)

        assert supervisor.client is fake_client
        assert supervisor.options is options
        assert supervisor.keepalive_interval == 1.5

    @pytest.mark.asyncio
    async def test_get_session_registry(self):
        assert await get_session_registry() is registry
