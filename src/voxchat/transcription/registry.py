"""
Transcription Session Registry

Explicit mapping from chat connection to its transcription supervisor.
Entries are removed, and their sessions torn down, when the connection goes away.
"""

from collections import Counter
from typing import Any
from uuid import UUID

import structlog

from voxchat.config import get_settings
from voxchat.realtime.connection import ChatConnection, ConnectionManager
from voxchat.realtime.protocol import LiveOptions
from .client import TranscriptionClient
from .supervisor import TranscriptionSupervisor

logger = structlog.get_logger()


class SessionRegistry:
    """
    Tracks one TranscriptionSupervisor per connection.

    The backend client, stream options and keep-alive interval default to
    values built from application settings on first use.
    """

    def __init__(
        self,
        client: TranscriptionClient | None = None,
        options: LiveOptions | None = None,
        keepalive_interval: float | None = None,
    ) -> None:
        self._client = client
        self._options = options
        self._keepalive_interval = keepalive_interval

        self._supervisors: dict[UUID, TranscriptionSupervisor] = {}

    def _resolve_defaults(self) -> None:
        if self._client is not None and self._options is not None and self._keepalive_interval is not None:
            return

        settings = get_settings()

        if self._client is None:
            from .deepgram import DeepgramClient

            self._client = DeepgramClient.from_settings(settings)
        if self._options is None:
            self._options = LiveOptions.from_settings(settings)
        if self._keepalive_interval is None:
            self._keepalive_interval = settings.transcription_keepalive_interval

    def __len__(self) -> int:
        return len(self._supervisors)

    def __contains__(self, connection_id: UUID) -> bool:
        return connection_id in self._supervisors

    def get(self, connection_id: UUID) -> TranscriptionSupervisor | None:
        return self._supervisors.get(connection_id)

    def get_or_create(
        self,
        connection: ChatConnection,
        manager: ConnectionManager,
    ) -> TranscriptionSupervisor:
        """Get the connection's supervisor, creating it on first use."""
        supervisor = self._supervisors.get(connection.connection_id)
        if supervisor is None:
            self._resolve_defaults()
            supervisor = TranscriptionSupervisor(
                connection=connection,
                manager=manager,
                client=self._client,
                options=self._options,
                keepalive_interval=self._keepalive_interval,
            )
            self._supervisors[connection.connection_id] = supervisor

            logger.debug(
                "Transcription supervisor registered",
                connection_id=str(connection.connection_id),
            )

        return supervisor

    async def release(self, connection_id: UUID) -> None:
        """Remove a connection's supervisor and tear down its session."""
        supervisor = self._supervisors.pop(connection_id, None)
        if supervisor is None:
            return

        await supervisor.shutdown()

        logger.debug(
            "Transcription supervisor released",
            connection_id=str(connection_id),
        )

    async def close_all(self) -> None:
        """Release every supervisor."""
        for connection_id in list(self._supervisors):
            await self.release(connection_id)

    def get_stats(self) -> dict[str, Any]:
        states = Counter(
            supervisor.state.value
            for supervisor in self._supervisors.values()
            if supervisor.state is not None
        )
        return {
            "supervisors": len(self._supervisors),
            "sessions_by_state": dict(states),
        }


# Global registry instance
registry = SessionRegistry()


async def get_session_registry() -> SessionRegistry:
    """Dependency to get the session registry."""
    return registry
