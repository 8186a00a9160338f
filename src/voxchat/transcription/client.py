"""
Streaming Transcription Client Protocol

The interface every live transcription backend implements. The supervisor
depends only on these types, so backends are swappable and fakeable.

A client opens a stream; the stream accepts audio and yields backend events
through a single async iterator:

- ``BackendOpened``: the backend accepted the stream and is ready for audio.
- ``BackendTranscript``: an interim or final transcript fragment.
- ``BackendClosed``: the backend closed the stream normally.
- ``BackendError``: the handshake failed or the stream broke.

The iterator ends once the stream has finished for any reason.
"""

from dataclasses import dataclass
from typing import AsyncIterator, Protocol, Union

from voxchat.core.models import ReadyState
from voxchat.realtime.protocol import LiveOptions


@dataclass(frozen=True)
class BackendOpened:
    """Stream is open and accepting audio."""


@dataclass(frozen=True)
class BackendTranscript:
    """A transcript fragment."""

    text: str
    is_final: bool = False


@dataclass(frozen=True)
class BackendClosed:
    """Stream closed normally."""


@dataclass(frozen=True)
class BackendError:
    """Stream failed."""

    detail: str


BackendEvent = Union[BackendOpened, BackendTranscript, BackendClosed, BackendError]


class TranscriptionStream(Protocol):
    """One live connection to a transcription backend."""

    @property
    def ready_state(self) -> ReadyState: ...

    async def send(self, chunk: bytes) -> None: ...

    async def keep_alive(self) -> None: ...

    async def close(self) -> None: ...

    def events(self) -> AsyncIterator[BackendEvent]: ...


class TranscriptionClient(Protocol):
    """Factory for live transcription streams."""

    async def open(self, options: LiveOptions) -> TranscriptionStream: ...
