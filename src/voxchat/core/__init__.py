"""Core domain models."""

from .models import (
    ChatMessagePayload,
    ReadyState,
    SessionState,
    TranscriptionResultPayload,
    format_time,
)

__all__ = [
    "ChatMessagePayload",
    "ReadyState",
    "SessionState",
    "TranscriptionResultPayload",
    "format_time",
]
