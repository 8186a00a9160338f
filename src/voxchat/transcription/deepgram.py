"""
Deepgram Live Transcription Client

Streams raw audio to Deepgram's live ``/v1/listen`` WebSocket endpoint and
turns its JSON messages into backend events.
"""

import asyncio
from typing import Any, AsyncIterator
from urllib.parse import urlencode

import orjson
import structlog
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException
from websockets.protocol import State

from voxchat.core.models import ReadyState
from voxchat.realtime.protocol import LiveOptions
from .client import (
    BackendClosed,
    BackendError,
    BackendEvent,
    BackendOpened,
    BackendTranscript,
)

logger = structlog.get_logger()

DEFAULT_URL = "wss://api.deepgram.com/v1/listen"

KEEPALIVE_MESSAGE = orjson.dumps({"type": "KeepAlive"}).decode()
CLOSE_STREAM_MESSAGE = orjson.dumps({"type": "CloseStream"}).decode()

_READY_STATES = {
    State.CONNECTING: ReadyState.CONNECTING,
    State.OPEN: ReadyState.OPEN,
    State.CLOSING: ReadyState.CLOSING,
    State.CLOSED: ReadyState.CLOSED,
}


def parse_message(raw: str | bytes) -> BackendEvent | None:
    """
    Parse a Deepgram server message.

    Only ``Results`` messages with a non-empty transcript produce an event;
    metadata, speech markers and malformed frames yield None.
    """
    try:
        message: Any = orjson.loads(raw)
    except orjson.JSONDecodeError:
        logger.warning("Unparseable Deepgram message", size=len(raw))
        return None

    if not isinstance(message, dict) or message.get("type") != "Results":
        return None

    channel = message.get("channel")
    if not isinstance(channel, dict):
        return None

    alternatives = channel.get("alternatives")
    if not isinstance(alternatives, list) or not alternatives:
        return None
    if not isinstance(alternatives[0], dict):
        return None

    transcript = alternatives[0].get("transcript")
    if not isinstance(transcript, str) or not transcript:
        return None

    return BackendTranscript(text=transcript, is_final=bool(message.get("is_final")))


class DeepgramStream:
    """
    One live Deepgram connection.

    The handshake runs in a background reader task started by ``start()``;
    its outcome arrives as the first event.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str],
        open_timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._headers = headers
        self._open_timeout = open_timeout

        self._ws: ClientConnection | None = None
        self._events: asyncio.Queue[BackendEvent | None] = asyncio.Queue()
        self._reader: asyncio.Task | None = None
        self._closing = False
        self._finished = False

    @property
    def ready_state(self) -> ReadyState:
        if self._finished:
            return ReadyState.CLOSED
        if self._ws is None:
            return ReadyState.CLOSING if self._closing else ReadyState.CONNECTING
        return _READY_STATES[self._ws.state]

    def start(self) -> None:
        """Begin the handshake in the background."""
        self._reader = asyncio.create_task(self._run())
        self._reader.add_done_callback(self._finish)

    def _finish(self, _task: asyncio.Task) -> None:
        # Runs even when the reader is cancelled before its first step
        self._finished = True
        self._events.put_nowait(None)

    async def _run(self) -> None:
        try:
            self._ws = await connect(
                self._url,
                additional_headers=self._headers,
                open_timeout=self._open_timeout,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.warning("Deepgram handshake failed", error=str(e))
            self._events.put_nowait(
                BackendError(f"Could not connect to transcription service: {e}")
            )
            return

        self._events.put_nowait(BackendOpened())

        try:
            async for message in self._ws:
                event = parse_message(message)
                if event is not None:
                    self._events.put_nowait(event)
        except ConnectionClosedError as e:
            logger.warning("Deepgram connection lost", error=str(e))
            self._events.put_nowait(BackendError(f"Transcription connection lost: {e}"))
        except Exception as e:
            logger.exception("Deepgram reader failed")
            self._events.put_nowait(BackendError(f"Transcription stream failed: {e}"))
        else:
            self._events.put_nowait(BackendClosed())

    async def send(self, chunk: bytes) -> None:
        """Forward an audio chunk; dropped if the socket is not open."""
        if self._ws is None or self._ws.state is not State.OPEN:
            logger.debug("Deepgram socket not open, chunk dropped", size=len(chunk))
            return
        try:
            await self._ws.send(chunk)
        except ConnectionClosed as e:
            logger.warning("Deepgram send on closed socket", error=str(e))

    async def keep_alive(self) -> None:
        if self._ws is None or self._ws.state is not State.OPEN:
            return
        try:
            await self._ws.send(KEEPALIVE_MESSAGE)
        except ConnectionClosed as e:
            logger.warning("Deepgram keep-alive on closed socket", error=str(e))

    async def close(self) -> None:
        """Gracefully close the stream. Safe to call repeatedly."""
        if self._closing or self._finished:
            return
        self._closing = True

        if self._ws is None:
            # Still handshaking
            if self._reader is not None:
                self._reader.cancel()
            return

        try:
            await self._ws.send(CLOSE_STREAM_MESSAGE)
        except ConnectionClosed:
            pass
        await self._ws.close()

    async def events(self) -> AsyncIterator[BackendEvent]:
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event


class DeepgramClient:
    """Opens live transcription streams against Deepgram."""

    def __init__(
        self,
        api_key: str,
        url: str = DEFAULT_URL,
        open_timeout: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.open_timeout = open_timeout

    @classmethod
    def from_settings(cls, settings: Any) -> "DeepgramClient":
        return cls(api_key=settings.deepgram_api_key, url=settings.deepgram_url)

    def build_url(self, options: LiveOptions) -> str:
        return f"{self.url}?{urlencode(options.to_query_params())}"

    async def open(self, options: LiveOptions) -> DeepgramStream:
        stream = DeepgramStream(
            self.build_url(options),
            headers={"Authorization": f"Token {self.api_key}"},
            open_timeout=self.open_timeout,
        )
        stream.start()

        logger.info(
            "Deepgram stream opening",
            model=options.model,
            encoding=options.encoding,
            sample_rate=options.sample_rate,
        )

        return stream
