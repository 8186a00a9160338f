"""
VoxChat Realtime Module

WebSocket connection hub and the chat event protocol.
"""

from .connection import ChatConnection, ConnectionManager
from .protocol import (
    ChatEvent,
    ChatEventType,
    InboundEvent,
    LiveOptions,
)

__all__ = [
    # Connection management
    "ChatConnection",
    "ConnectionManager",
    # Protocol
    "ChatEvent",
    "ChatEventType",
    "InboundEvent",
    "LiveOptions",
]
