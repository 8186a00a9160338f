"""
WebSocket Connection Manager

Tracks connected chat participants and fans events out to one or all of them.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import structlog
from fastapi import WebSocket

from .protocol import ChatEvent, ChatEventType, ErrorPayload

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatConnection:
    """Represents one participant's live WebSocket connection."""

    connection_id: UUID
    websocket: WebSocket
    display_name: str | None = None

    # State
    connected_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)
    sequence_counter: int = 0

    def __hash__(self) -> int:
        return hash(self.connection_id)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, ChatConnection):
            return self.connection_id == other.connection_id
        return False

    async def send_message(self, message: ChatEvent) -> None:
        """Send a message to the client."""
        try:
            message.sequence = self.sequence_counter
            self.sequence_counter += 1
            await self.websocket.send_json(message.model_dump(mode="json"))
        except Exception as e:
            logger.error(
                "Failed to send WebSocket message",
                connection_id=str(self.connection_id),
                error=str(e),
            )
            raise

    async def send_event(self, event_type: ChatEventType, data: Any = None) -> None:
        """Send a single named event to this client only."""
        await self.send_message(ChatEvent(type=event_type, data=data))

    async def send_error(self, code: str, message: str) -> None:
        """Send an error message to the client."""
        await self.send_event(
            ChatEventType.ERROR,
            ErrorPayload(code=code, message=message).model_dump(),
        )

    def update_activity(self) -> None:
        """Update last activity timestamp."""
        self.last_activity = _utcnow()


class ConnectionManager:
    """
    Manages all active chat connections.

    Handles connection lifecycle, the participant roster and broadcast
    fan-out to every connected client.
    """

    def __init__(self) -> None:
        # Active connections by connection_id, in connect order
        self._connections: dict[UUID, ChatConnection] = {}

        self._lock = asyncio.Lock()

        logger.info("ConnectionManager initialized")

    @property
    def active_connection_count(self) -> int:
        """Get number of active connections."""
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> ChatConnection:
        """
        Accept a new WebSocket connection.

        Args:
            websocket: The FastAPI WebSocket instance

        Returns:
            ChatConnection instance
        """
        await websocket.accept()

        connection_id = uuid4()
        connection = ChatConnection(
            connection_id=connection_id,
            websocket=websocket,
        )

        async with self._lock:
            self._connections[connection_id] = connection

        logger.info("WebSocket connected", connection_id=str(connection_id))

        return connection

    async def disconnect(self, connection: ChatConnection) -> None:
        """Remove a connection from the hub."""
        async with self._lock:
            self._connections.pop(connection.connection_id, None)

        logger.info(
            "WebSocket disconnected",
            connection_id=str(connection.connection_id),
            username=connection.display_name,
        )

    async def get_connection(self, connection_id: UUID) -> ChatConnection | None:
        """Get a connection by ID."""
        return self._connections.get(connection_id)

    def usernames(self) -> list[str]:
        """Display names of every named participant, in connect order."""
        return [
            connection.display_name
            for connection in self._connections.values()
            if connection.display_name
        ]

    async def broadcast(self, event_type: ChatEventType, data: Any = None) -> int:
        """
        Send an event to every connected participant.

        A failed send to one connection is logged and skipped.

        Returns:
            Number of connections notified
        """
        notified = 0

        for connection in list(self._connections.values()):
            try:
                await connection.send_event(event_type, data)
                notified += 1
            except Exception as e:
                logger.warning(
                    "Broadcast to connection failed",
                    connection_id=str(connection.connection_id),
                    event_type=event_type.value,
                    error=str(e),
                )

        return notified

    async def broadcast_user_list(self) -> int:
        """Broadcast the current roster."""
        return await self.broadcast(ChatEventType.USER_LIST, self.usernames())

    def get_stats(self) -> dict[str, Any]:
        """Get connection manager statistics."""
        return {
            "active_connections": len(self._connections),
            "named_participants": len(self.usernames()),
        }


# Global connection manager instance
manager = ConnectionManager()


async def get_connection_manager() -> ConnectionManager:
    """Dependency to get the connection manager."""
    return manager
