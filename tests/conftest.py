"""
Pytest Configuration and Fixtures

Shared fixtures for unit and integration tests.
"""

import asyncio
import os
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

# Settings require a Deepgram key; set one before any voxchat import
os.environ.setdefault("DEEPGRAM_API_KEY", "test-deepgram-key")

from voxchat.config import Settings, get_settings  # noqa: E402
from voxchat.core.models import ReadyState  # noqa: E402
from voxchat.realtime.connection import ChatConnection, ConnectionManager  # noqa: E402
from voxchat.realtime.protocol import LiveOptions  # noqa: E402
from voxchat.transcription.client import (  # noqa: E402
    BackendClosed,
    BackendError,
    BackendOpened,
)


# ══════════════════════════════════════════════════════════════
# Settings Fixtures
# ══════════════════════════════════════════════════════════════


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Drop cached settings between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with a fake credential."""
    return Settings(
        app_env="development",
        debug=True,
        deepgram_api_key="test-deepgram-key",
        static_dir="/nonexistent/voxchat-static",
    )


# ══════════════════════════════════════════════════════════════
# Fake Transcription Backend
# ══════════════════════════════════════════════════════════════


class FakeStream:
    """Scripted transcription stream; tests push backend events with emit()."""

    def __init__(self) -> None:
        self.sent: list[bytes] = []
        self.keepalives = 0
        self.close_calls = 0
        self._ready_state = ReadyState.CONNECTING
        self._queue: asyncio.Queue = asyncio.Queue()

    @property
    def ready_state(self) -> ReadyState:
        return self._ready_state

    def set_ready_state(self, state: ReadyState) -> None:
        self._ready_state = state

    def emit(self, event) -> None:
        if isinstance(event, BackendOpened):
            self._ready_state = ReadyState.OPEN
        self._queue.put_nowait(event)
        if isinstance(event, (BackendClosed, BackendError)):
            self._ready_state = ReadyState.CLOSED
            self._queue.put_nowait(None)

    def end(self) -> None:
        """End the event stream without a terminal event."""
        self._queue.put_nowait(None)

    def fail(self, error: Exception) -> None:
        """Make the event iterator raise."""
        self._queue.put_nowait(error)

    async def send(self, chunk: bytes) -> None:
        self.sent.append(chunk)

    async def keep_alive(self) -> None:
        self.keepalives += 1

    async def close(self) -> None:
        self.close_calls += 1
        if self._ready_state is not ReadyState.CLOSED:
            self._ready_state = ReadyState.CLOSED
            self._queue.put_nowait(None)

    async def events(self):
        while True:
            event = await self._queue.get()
            if event is None:
                return
            if isinstance(event, Exception):
                raise event
            yield event


class FakeClient:
    """Transcription client handing out FakeStreams."""

    def __init__(self) -> None:
        self.streams: list[FakeStream] = []
        self.options: list[LiveOptions] = []
        self.fail_with: Exception | None = None
        self.open_gate: asyncio.Event | None = None
        # Events every new stream emits as soon as it is opened
        self.script: list = []

    async def open(self, options: LiveOptions) -> FakeStream:
        self.options.append(options)
        if self.fail_with is not None:
            raise self.fail_with
        if self.open_gate is not None:
            await self.open_gate.wait()
        stream = FakeStream()
        for event in self.script:
            stream.emit(event)
        self.streams.append(stream)
        return stream

    @property
    def open_streams(self) -> list[FakeStream]:
        return [s for s in self.streams if s.ready_state is not ReadyState.CLOSED]

    @property
    def latest(self) -> FakeStream:
        return self.streams[-1]


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


# ══════════════════════════════════════════════════════════════
# Connection Fixtures
# ══════════════════════════════════════════════════════════════


def make_websocket() -> MagicMock:
    """Create a mock WebSocket."""
    ws = MagicMock()
    ws.accept = AsyncMock()
    ws.close = AsyncMock()
    ws.receive = AsyncMock()
    ws.send_json = AsyncMock()
    return ws


def sent_events(ws: MagicMock, event_type: str | None = None) -> list[dict]:
    """Messages sent through a mock WebSocket, optionally filtered by type."""
    messages = [call.args[0] for call in ws.send_json.call_args_list]
    if event_type is None:
        return messages
    return [m for m in messages if m["type"] == event_type]


async def settle(rounds: int = 20) -> None:
    """Let background tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def mock_websocket() -> MagicMock:
    return make_websocket()


@pytest.fixture
def connection_manager() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def connection(mock_websocket) -> ChatConnection:
    """A named connection that is not registered with any manager."""
    return ChatConnection(
        connection_id=uuid4(),
        websocket=mock_websocket,
        display_name="Alice",
    )
