"""
Chat WebSocket Routes

Relays chat messages and presence events, and drives each participant's
live transcription session.
"""

from typing import Any

import orjson
import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from voxchat.core.models import ChatMessagePayload
from voxchat.realtime.connection import (
    ChatConnection,
    ConnectionManager,
    get_connection_manager,
)
from voxchat.realtime.protocol import ChatEventType, InboundEvent
from voxchat.transcription.registry import SessionRegistry, get_session_registry

logger = structlog.get_logger()

router = APIRouter()


# ══════════════════════════════════════════════════════════════
# WebSocket Endpoint
# ══════════════════════════════════════════════════════════════


@router.websocket("/chat")
async def chat_websocket(
    websocket: WebSocket,
    manager: ConnectionManager = Depends(get_connection_manager),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """
    Group chat WebSocket endpoint.

    Protocol:
    1. Client connects to /ws/chat
    2. Client sends {"type": "new-user", "data": "<name>"}
    3. Client sends chat-message events; everyone receives them
    4. Client sends start-audio-stream, waits for transcription-ready,
       then streams audio as binary frames (or base64 audio-data events)
    5. Everyone receives transcription-result events
    6. Client sends stop-audio-stream or disconnects
    """
    connection = await manager.connect(websocket)

    try:
        while True:
            raw_data = await websocket.receive()

            if raw_data.get("type") == "websocket.disconnect":
                break

            if raw_data.get("bytes") is not None:
                await _handle_audio_data(connection, raw_data["bytes"], registry)
            elif raw_data.get("text") is not None:
                await _dispatch_text(connection, raw_data["text"], manager, registry)

            connection.update_activity()

    except WebSocketDisconnect:
        pass

    except Exception as e:
        logger.error(
            "WebSocket error",
            connection_id=str(connection.connection_id),
            error=str(e),
        )

    finally:
        await _handle_disconnect(connection, manager, registry)


async def _parse_json_message(text: str) -> InboundEvent:
    """Parse a text frame into an inbound event."""
    return InboundEvent.model_validate(orjson.loads(text))


async def _dispatch_text(
    connection: ChatConnection,
    text: str,
    manager: ConnectionManager,
    registry: SessionRegistry,
) -> None:
    """Route one JSON text frame to its handler."""
    try:
        event = await _parse_json_message(text)
    except Exception as e:
        logger.warning(
            "Malformed message",
            connection_id=str(connection.connection_id),
            error=str(e),
        )
        await connection.send_error("malformed_message", "Message must be a JSON object with a type")
        return

    if event.type == ChatEventType.NEW_USER.value:
        await _handle_new_user(connection, event.data, manager)

    elif event.type == ChatEventType.CHAT_MESSAGE.value:
        await _handle_chat_message(connection, event.data, manager)

    elif event.type == ChatEventType.START_AUDIO_STREAM.value:
        await _handle_start_audio_stream(connection, manager, registry)

    elif event.type == ChatEventType.STOP_AUDIO_STREAM.value:
        await _handle_stop_audio_stream(connection, registry)

    elif event.type == ChatEventType.AUDIO_DATA.value:
        await _handle_audio_data(connection, event.data, registry)

    else:
        logger.warning(f"Unknown message type: {event.type}")
        await connection.send_error("unknown_event", f"Unknown event type: {event.type}")


# ══════════════════════════════════════════════════════════════
# Chat Relay
# ══════════════════════════════════════════════════════════════


async def _handle_new_user(
    connection: ChatConnection,
    data: Any,
    manager: ConnectionManager,
) -> None:
    """Handle new-user: record the display name and announce it."""
    if not isinstance(data, str) or not data.strip():
        logger.warning("Ignoring empty username", connection_id=str(connection.connection_id))
        return

    if connection.display_name is not None:
        logger.warning(
            "Username already set",
            connection_id=str(connection.connection_id),
            username=connection.display_name,
        )
        return

    connection.display_name = data.strip()

    logger.info(
        "User joined",
        connection_id=str(connection.connection_id),
        username=connection.display_name,
    )

    await manager.broadcast(ChatEventType.USER_CONNECTED, connection.display_name)
    await manager.broadcast_user_list()


async def _handle_chat_message(
    connection: ChatConnection,
    data: Any,
    manager: ConnectionManager,
) -> None:
    """Handle chat-message: relay it to everyone."""
    if data is None:
        return

    payload = ChatMessagePayload(username=connection.display_name, message=str(data))
    await manager.broadcast(ChatEventType.CHAT_MESSAGE, payload.model_dump())


async def _handle_disconnect(
    connection: ChatConnection,
    manager: ConnectionManager,
    registry: SessionRegistry,
) -> None:
    """Tear down transcription, drop the connection and announce the departure."""
    try:
        await registry.release(connection.connection_id)
    finally:
        await manager.disconnect(connection)

    if connection.display_name:
        await manager.broadcast(ChatEventType.USER_DISCONNECTED, connection.display_name)
    await manager.broadcast_user_list()


# ══════════════════════════════════════════════════════════════
# Transcription Control
# ══════════════════════════════════════════════════════════════


async def _handle_start_audio_stream(
    connection: ChatConnection,
    manager: ConnectionManager,
    registry: SessionRegistry,
) -> None:
    """Handle start-audio-stream: open (or replace) the transcription session."""
    supervisor = registry.get_or_create(connection, manager)
    await supervisor.start_session()


async def _handle_stop_audio_stream(
    connection: ChatConnection,
    registry: SessionRegistry,
) -> None:
    """Handle stop-audio-stream."""
    supervisor = registry.get(connection.connection_id)
    if supervisor is not None:
        await supervisor.stop_session()


async def _handle_audio_data(
    connection: ChatConnection,
    data: Any,
    registry: SessionRegistry,
) -> None:
    """Handle audio-data from a binary frame or a base64 string."""
    supervisor = registry.get(connection.connection_id)
    if supervisor is None:
        logger.debug(
            "Audio received without transcription session",
            connection_id=str(connection.connection_id),
        )
        return

    if not isinstance(data, (bytes, str)):
        logger.warning(
            "Dropping audio chunk of unsupported type",
            connection_id=str(connection.connection_id),
            data_type=type(data).__name__,
        )
        return

    await supervisor.forward_audio(data)


# ══════════════════════════════════════════════════════════════
# HTTP Endpoints for Connection Info
# ══════════════════════════════════════════════════════════════


@router.get("/connections")
async def get_connections(
    manager: ConnectionManager = Depends(get_connection_manager),
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict[str, Any]:
    """Get connection and transcription statistics."""
    return {
        **manager.get_stats(),
        "transcription": registry.get_stats(),
    }
