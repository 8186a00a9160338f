"""
VoxChat Transcription Module

Live speech-to-text sessions supervised per chat connection.
"""

from .client import (
    BackendClosed,
    BackendError,
    BackendEvent,
    BackendOpened,
    BackendTranscript,
    TranscriptionClient,
    TranscriptionStream,
)
from .registry import SessionRegistry
from .supervisor import KeepAliveTimer, TranscriptionSession, TranscriptionSupervisor

__all__ = [
    # Backend contract
    "BackendClosed",
    "BackendError",
    "BackendEvent",
    "BackendOpened",
    "BackendTranscript",
    "TranscriptionClient",
    "TranscriptionStream",
    # Supervision
    "KeepAliveTimer",
    "SessionRegistry",
    "TranscriptionSession",
    "TranscriptionSupervisor",
]
