"""
Realtime WebSocket Protocol

Defines the chat event names and message envelopes exchanged with browsers,
and the options sent to the live transcription backend.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatEventType(str, Enum):
    """WebSocket event names."""

    # Client -> Server
    NEW_USER = "new-user"
    CHAT_MESSAGE = "chat-message"
    START_AUDIO_STREAM = "start-audio-stream"
    STOP_AUDIO_STREAM = "stop-audio-stream"
    AUDIO_DATA = "audio-data"

    # Server -> Client (connection-scoped)
    TRANSCRIPTION_READY = "transcription-ready"
    TRANSCRIPTION_ERROR = "transcription-error"
    ERROR = "error"

    # Server -> All (broadcast)
    TRANSCRIPTION_RESULT = "transcription-result"
    USER_CONNECTED = "user-connected"
    USER_DISCONNECTED = "user-disconnected"
    USER_LIST = "user-list"


class ChatEvent(BaseModel):
    """Server -> client message envelope."""

    model_config = ConfigDict(use_enum_values=True)

    type: ChatEventType
    data: Any = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sequence: int | None = None


class InboundEvent(BaseModel):
    """Client -> server message envelope for text frames."""

    type: str
    data: Any = None


class ErrorPayload(BaseModel):
    """Payload for error message."""

    code: str
    message: str


# ══════════════════════════════════════════════════════════════
# Transcription Backend Options
# ══════════════════════════════════════════════════════════════


class LiveOptions(BaseModel):
    """Options requested when opening a live transcription stream."""

    model: str = "nova"
    language: str | None = None
    encoding: str = "linear16"
    sample_rate: int = Field(default=16000, ge=8000, le=48000)
    channels: int = Field(default=1, ge=1, le=2)
    punctuate: bool = True
    interim_results: bool = True

    @classmethod
    def from_settings(cls, settings: Any) -> "LiveOptions":
        """Build options from application settings."""
        return cls(
            model=settings.transcription_model,
            language=settings.transcription_language,
            encoding=settings.transcription_encoding,
            sample_rate=settings.transcription_sample_rate,
            channels=settings.transcription_channels,
        )

    def to_query_params(self) -> dict[str, str]:
        """Render options as URL query parameters, dropping unset values."""
        params: dict[str, str] = {}
        for key, value in self.model_dump().items():
            if value is None:
                continue
            if isinstance(value, bool):
                params[key] = "true" if value else "false"
            else:
                params[key] = str(value)
        return params
