"""
Transcription Session Supervisor

Owns at most one live transcription session per chat connection. Audio from
the participant is forwarded to the backend stream; backend events are turned
into chat events for the owner (ready/error) or for everyone (transcripts).

Session lifecycle::

    start_session() -> CONNECTING --opened--> READY
    CONNECTING --error--> FAILED
    READY --error--> FAILED
    READY --closed / stop_session()--> CLOSED
    CONNECTING --stop_session() / replacement--> CLOSED

CLOSED and FAILED are terminal; every start builds a new session object.
Events belonging to a session that is no longer current are discarded.
"""

import asyncio
import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from uuid import UUID, uuid4

import structlog

from voxchat.core.models import ReadyState, SessionState, TranscriptionResultPayload
from voxchat.realtime.connection import ChatConnection, ConnectionManager
from voxchat.realtime.protocol import ChatEventType, LiveOptions
from .client import (
    BackendClosed,
    BackendError,
    BackendEvent,
    BackendOpened,
    BackendTranscript,
    TranscriptionClient,
    TranscriptionStream,
)

logger = structlog.get_logger()

INIT_FAILURE_MESSAGE = "Failed to initialize transcription service."
STREAM_FAILURE_MESSAGE = "Transcription service connection lost."


class KeepAliveTimer:
    """
    Periodic background tick.

    ``start()`` is a no-op while running and ``cancel()`` is a no-op when
    stopped, so both may be called from any exit path.
    """

    def __init__(self, interval: float, tick: Callable[[], Awaitable[None]]) -> None:
        self.interval = interval
        self._tick = tick
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.active:
            self._task = asyncio.create_task(self._loop())

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._tick()
            except Exception as e:
                logger.warning("Keep-alive tick failed", error=str(e))


@dataclass
class TranscriptionSession:
    """One live link to the transcription backend."""

    session_id: UUID = field(default_factory=uuid4)
    state: SessionState = SessionState.CONNECTING
    handle: TranscriptionStream | None = field(default=None, repr=False)
    keepalive: KeepAliveTimer | None = field(default=None, repr=False)
    pump: asyncio.Task | None = field(default=None, repr=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def decode_audio(data: str) -> bytes | None:
    """Decode a base64 audio chunk, or None if it is not valid base64."""
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        return None


class TranscriptionSupervisor:
    """
    Supervises the transcription session of a single chat connection.

    Args:
        connection: The owning chat connection
        manager: Connection hub used for broadcasting transcripts
        client: Backend used to open live streams
        options: Stream options requested from the backend
        keepalive_interval: Seconds between keep-alive ticks while ready
    """

    def __init__(
        self,
        connection: ChatConnection,
        manager: ConnectionManager,
        client: TranscriptionClient,
        options: LiveOptions | None = None,
        keepalive_interval: float = 10.0,
    ) -> None:
        self.connection = connection
        self.manager = manager
        self.client = client
        self.options = options or LiveOptions()
        self.keepalive_interval = keepalive_interval

        self._session: TranscriptionSession | None = None

    @property
    def session(self) -> TranscriptionSession | None:
        """The most recent session, which may already be terminal."""
        return self._session

    @property
    def state(self) -> SessionState | None:
        return self._session.state if self._session else None

    @property
    def is_active(self) -> bool:
        return self._session is not None and not self._session.state.is_terminal

    def _log_context(self, session: TranscriptionSession) -> dict[str, Any]:
        return {
            "connection_id": str(self.connection.connection_id),
            "session_id": str(session.session_id),
        }

    # ──────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────

    async def start_session(self) -> TranscriptionSession:
        """
        Open a new backend stream, tearing down any active session first.

        Returns:
            The new session, in CONNECTING or (if opening failed) FAILED state
        """
        await self.stop_session()

        session = TranscriptionSession()
        session.keepalive = KeepAliveTimer(
            self.keepalive_interval,
            lambda: self._send_keepalive(session),
        )
        self._session = session

        logger.info("Starting transcription session", **self._log_context(session))

        try:
            handle = await self.client.open(self.options)
        except Exception as e:
            logger.error(
                "Failed to open transcription stream",
                error=str(e),
                **self._log_context(session),
            )
            if self._is_current(session):
                self._transition(session, SessionState.FAILED)
                await self._notify_owner(ChatEventType.TRANSCRIPTION_ERROR, INIT_FAILURE_MESSAGE)
            return session

        if not self._is_current(session):
            logger.info(
                "Transcription session ended during open, closing late stream",
                **self._log_context(session),
            )
            await handle.close()
            return session

        session.handle = handle
        session.pump = asyncio.create_task(self._pump(session))

        return session

    async def stop_session(self) -> None:
        """Close the active session. No-op when there is none."""
        session = self._session
        if session is None or session.state.is_terminal:
            return

        self._transition(session, SessionState.CLOSED)

        if session.handle is not None:
            try:
                await session.handle.close()
            except Exception as e:
                logger.warning(
                    "Error closing transcription stream",
                    error=str(e),
                    **self._log_context(session),
                )

        if session.pump is not None and session.pump is not asyncio.current_task():
            session.pump.cancel()

    async def shutdown(self) -> None:
        """Tear everything down for a disconnecting participant."""
        session = self._session
        await self.stop_session()

        if session is not None:
            if session.keepalive is not None:
                session.keepalive.cancel()
            if session.pump is not None and not session.pump.done():
                session.pump.cancel()

    # ──────────────────────────────────────────────────────────
    # Audio
    # ──────────────────────────────────────────────────────────

    async def forward_audio(self, data: bytes | str) -> bool:
        """
        Forward one audio chunk to the backend.

        Chunks arriving while the session is not ready are dropped, as are
        strings that are not valid base64.

        Returns:
            True if the chunk was sent
        """
        session = self._session
        if session is None or session.state is not SessionState.READY or session.handle is None:
            logger.debug(
                "Transcription not ready, audio chunk dropped",
                connection_id=str(self.connection.connection_id),
                state=session.state.value if session else None,
            )
            return False

        if session.handle.ready_state is not ReadyState.OPEN:
            logger.debug(
                "Transcription socket not open, audio chunk dropped",
                ready_state=session.handle.ready_state.value,
                **self._log_context(session),
            )
            return False

        if isinstance(data, str):
            chunk = decode_audio(data)
            if chunk is None:
                logger.warning(
                    "Dropping undecodable audio chunk",
                    size=len(data),
                    **self._log_context(session),
                )
                return False
        else:
            chunk = bytes(data)

        # An empty frame asks the backend to end the stream
        if not chunk:
            return False

        await session.handle.send(chunk)
        return True

    # ──────────────────────────────────────────────────────────
    # Backend events
    # ──────────────────────────────────────────────────────────

    async def _pump(self, session: TranscriptionSession) -> None:
        assert session.handle is not None
        try:
            async for event in session.handle.events():
                await self.handle_event(session, event)
        except Exception as e:
            logger.error(
                "Transcription event stream failed",
                error=str(e),
                **self._log_context(session),
            )
            detail = (
                INIT_FAILURE_MESSAGE
                if session.state is SessionState.CONNECTING
                else STREAM_FAILURE_MESSAGE
            )
            await self.handle_event(session, BackendError(detail))
            return

        logger.debug("Transcription event stream ended", **self._log_context(session))

        # Stream ended without a terminal event
        if self._is_current(session):
            if session.state is SessionState.CONNECTING:
                await self.handle_event(session, BackendError(INIT_FAILURE_MESSAGE))
            else:
                await self.handle_event(session, BackendClosed())

    async def handle_event(self, session: TranscriptionSession, event: BackendEvent) -> None:
        """Apply one backend event to its session."""
        if not self._is_current(session):
            logger.debug(
                "Discarding stale backend event",
                backend_event=type(event).__name__,
                state=session.state.value,
                **self._log_context(session),
            )
            return

        if isinstance(event, BackendOpened):
            if session.state is SessionState.CONNECTING:
                self._transition(session, SessionState.READY)
                await self._notify_owner(ChatEventType.TRANSCRIPTION_READY)

        elif isinstance(event, BackendTranscript):
            if session.state is not SessionState.READY or not event.text:
                return
            payload = TranscriptionResultPayload(
                username=self.connection.display_name,
                transcript=event.text,
            )
            await self.manager.broadcast(
                ChatEventType.TRANSCRIPTION_RESULT,
                payload.model_dump(),
            )

        elif isinstance(event, BackendClosed):
            self._transition(session, SessionState.CLOSED)

        elif isinstance(event, BackendError):
            self._transition(session, SessionState.FAILED)
            await self._notify_owner(ChatEventType.TRANSCRIPTION_ERROR, event.detail)

        else:
            logger.warning("Unknown backend event", backend_event=repr(event))

    # ──────────────────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────────────────

    def _is_current(self, session: TranscriptionSession) -> bool:
        return session is self._session and not session.state.is_terminal

    def _transition(self, session: TranscriptionSession, new_state: SessionState) -> None:
        old_state = session.state
        session.state = new_state

        # Keep-alive runs exactly while READY
        if session.keepalive is not None:
            if new_state is SessionState.READY:
                session.keepalive.start()
            else:
                session.keepalive.cancel()

        logger.info(
            "Transcription session state changed",
            old_state=old_state.value,
            new_state=new_state.value,
            **self._log_context(session),
        )

    async def _send_keepalive(self, session: TranscriptionSession) -> None:
        handle = session.handle
        if handle is None or handle.ready_state is not ReadyState.OPEN:
            logger.debug("Skipping keep-alive, socket not open", **self._log_context(session))
            return
        await handle.keep_alive()

    async def _notify_owner(self, event_type: ChatEventType, data: Any = None) -> None:
        try:
            await self.connection.send_event(event_type, data)
        except Exception as e:
            logger.warning(
                "Could not notify connection",
                connection_id=str(self.connection.connection_id),
                event_type=event_type.value,
                error=str(e),
            )

    def get_stats(self) -> dict[str, Any]:
        session = self._session
        return {
            "connection_id": str(self.connection.connection_id),
            "session_id": str(session.session_id) if session else None,
            "state": session.state.value if session else None,
            "keepalive_active": bool(session and session.keepalive and session.keepalive.active),
        }
