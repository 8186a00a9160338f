"""
Unit tests for the chat protocol and core payload models.
"""

from datetime import datetime

import pytest
from pydantic import ValidationError

from voxchat.config import Settings
from voxchat.core.models import (
    ChatMessagePayload,
    SessionState,
    TranscriptionResultPayload,
    format_time,
)
from voxchat.realtime.protocol import (
    ChatEvent,
    ChatEventType,
    InboundEvent,
    LiveOptions,
)


class TestSessionState:
    """Test session state helpers."""

    @pytest.mark.parametrize(
        "state,terminal",
        [
            (SessionState.CONNECTING, False),
            (SessionState.READY, False),
            (SessionState.CLOSED, True),
            (SessionState.FAILED, True),
        ],
    )
    def test_is_terminal(self, state, terminal):
        assert state.is_terminal is terminal


class TestPayloads:
    """Test broadcast payloads."""

    def test_format_time(self):
        assert format_time(datetime(2024, 1, 1, 9, 5, 7)) == "09:05:07"

    def test_chat_message_payload(self):
        payload = ChatMessagePayload(username="Alice", message="hi", time="10:00:00")

        assert payload.model_dump() == {
            "username": "Alice",
            "message": "hi",
            "time": "10:00:00",
        }

    def test_transcription_result_defaults_time(self):
        payload = TranscriptionResultPayload(username="Alice", transcript="hello world")

        assert len(payload.time) == 8
        assert payload.time.count(":") == 2

    def test_unnamed_sender_allowed(self):
        assert ChatMessagePayload(message="hi").username is None


class TestChatEvent:
    """Test the server message envelope."""

    def test_event_type_serializes_as_name(self):
        event = ChatEvent(type=ChatEventType.TRANSCRIPTION_RESULT, data={"transcript": "x"})

        dumped = event.model_dump(mode="json")

        assert dumped["type"] == "transcription-result"
        assert dumped["data"] == {"transcript": "x"}
        assert dumped["sequence"] is None

    def test_inbound_event_requires_type(self):
        with pytest.raises(ValidationError):
            InboundEvent.model_validate({"data": "hi"})

    def test_inbound_event_data_optional(self):
        event = InboundEvent.model_validate({"type": "start-audio-stream"})

        assert event.type == "start-audio-stream"
        assert event.data is None


class TestLiveOptions:
    """Test transcription stream options."""

    def test_defaults(self):
        options = LiveOptions()

        assert options.model == "nova"
        assert options.encoding == "linear16"
        assert options.sample_rate == 16000
        assert options.channels == 1
        assert options.punctuate is True
        assert options.interim_results is True

    def test_query_params(self):
        params = LiveOptions().to_query_params()

        assert params == {
            "model": "nova",
            "encoding": "linear16",
            "sample_rate": "16000",
            "channels": "1",
            "punctuate": "true",
            "interim_results": "true",
        }

    def test_query_params_include_language(self):
        params = LiveOptions(language="en-US", interim_results=False).to_query_params()

        assert params["language"] == "en-US"
        assert params["interim_results"] == "false"

    def test_sample_rate_bounds(self):
        with pytest.raises(ValidationError):
            LiveOptions(sample_rate=1000)

    def test_from_settings(self, test_settings: Settings):
        test_settings.transcription_model = "nova-2"
        test_settings.transcription_language = "es"

        options = LiveOptions.from_settings(test_settings)

        assert options.model == "nova-2"
        assert options.language == "es"
        assert options.sample_rate == 16000
