"""
VoxChat Core Domain Models

Pydantic models for the transient payloads broadcast over the chat channel,
plus the enums shared by the transcription layer.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════
# Enums
# ══════════════════════════════════════════════════════════════


class SessionState(str, Enum):
    """Lifecycle state of a live transcription session."""

    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.CLOSED, SessionState.FAILED)


class ReadyState(str, Enum):
    """Socket readiness reported by a backend transcription stream."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


# ══════════════════════════════════════════════════════════════
# Broadcast Payloads
# ══════════════════════════════════════════════════════════════


def format_time(moment: datetime | None = None) -> str:
    """Format a wall-clock time the way chat entries display it."""
    return (moment or datetime.now()).strftime("%H:%M:%S")


class ChatMessagePayload(BaseModel):
    """A chat line relayed to every participant."""

    username: str | None = None
    message: str
    time: str = Field(default_factory=format_time)


class TranscriptionResultPayload(BaseModel):
    """A transcript fragment relayed to every participant."""

    username: str | None = None
    transcript: str
    time: str = Field(default_factory=format_time)
