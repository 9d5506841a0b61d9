"""Unit tests for the calendar query classifier and the chat assistant."""

import os
import sys
from unittest.mock import Mock

import anthropic
import httpx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../src"))

from lifeassist.assistant import (
    ChatAssistant,
    is_calendar_query,
    matched_calendar_keywords,
)
from lifeassist.utils.errors import RemoteServiceError

MESSAGES_URL = "https://api.anthropic.com/v1/messages"


def _response(text="Hello!", **usage):
    counts = {
        "input_tokens": 12,
        "output_tokens": 4,
        "cache_creation_input_tokens": 0,
        "cache_read_input_tokens": 0,
    }
    counts.update(usage)
    return Mock(content=[Mock(type="text", text=text)], usage=Mock(**counts))


class TestCalendarClassifier:
    @pytest.mark.parametrize(
        "message",
        [
            "Any meetings tomorrow?",
            "Can you reschedule my dentist visit",
            "What's on my AGENDA",
            "Set a reminder for Friday",
        ],
    )
    def test_calendar_questions(self, message):
        assert is_calendar_query(message)

    @pytest.mark.parametrize("message", ["Tell me a joke", "", "   "])
    def test_other_questions(self, message):
        assert not is_calendar_query(message)

    def test_matched_keywords(self):
        assert matched_calendar_keywords("Calendar event at noon") == ["calendar", "event"]


class TestChatAssistant:
    def setup_method(self):
        self.client = Mock()
        self.client.messages.create.return_value = _response()
        self.assistant = ChatAssistant(self.client, model="claude-test", max_tokens=256)

    def test_system_prompt_without_events(self):
        system = self.assistant.build_system_prompt([])

        assert len(system) == 1
        assert system[0]["cache_control"] == {"type": "ephemeral"}

    def test_system_prompt_with_events(self):
        system = self.assistant.build_system_prompt([{"title": "Standup"}])

        assert len(system) == 2
        assert "Standup" in system[1]["text"]
        assert "cache_control" not in system[1]

    def test_reply_sends_conversation(self):
        messages = [
            {"role": "assistant", "content": "Welcome!"},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello, how can I help?"},
            {"role": "user", "content": "What's the weather?"},
            {"role": "assistant", "content": ""},
        ]

        reply = self.assistant.reply(messages)

        assert reply.content == "Hello!"
        kwargs = self.client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 256
        assert [m["role"] for m in kwargs["messages"]] == ["user", "assistant", "user"]
        assert kwargs["messages"][-1]["content"] == "What's the weather?"

    def test_model_override(self):
        self.assistant.reply([{"role": "user", "content": "Hi"}], model="claude-other")

        assert self.client.messages.create.call_args.kwargs["model"] == "claude-other"

    def test_usage_is_reported(self):
        self.client.messages.create.return_value = _response(cache_read_input_tokens=900)

        reply = self.assistant.reply([{"role": "user", "content": "Hi"}])

        assert reply.usage == {
            "input_tokens": 12,
            "output_tokens": 4,
            "cache_creation_input_tokens": 0,
            "cache_read_input_tokens": 900,
        }

    def test_events_reach_the_system_prompt(self):
        self.assistant.reply(
            [{"role": "user", "content": "My schedule?"}], events=[{"title": "Run"}]
        )

        system = self.client.messages.create.call_args.kwargs["system"]
        assert "Run" in system[1]["text"]

    def test_conversation_without_user_message(self):
        with pytest.raises(ValueError):
            self.assistant.reply([{"role": "assistant", "content": "Hi"}])
        self.client.messages.create.assert_not_called()

    def test_rate_limit_is_kept(self):
        request = httpx.Request("POST", MESSAGES_URL)
        self.client.messages.create.side_effect = anthropic.RateLimitError(
            "rate limited", response=httpx.Response(429, request=request), body=None
        )

        with pytest.raises(RemoteServiceError) as exc_info:
            self.assistant.reply([{"role": "user", "content": "Hi"}])

        assert exc_info.value.status == 429

    def test_server_error_maps_to_bad_gateway(self):
        request = httpx.Request("POST", MESSAGES_URL)
        self.client.messages.create.side_effect = anthropic.InternalServerError(
            "overloaded", response=httpx.Response(500, request=request), body=None
        )

        with pytest.raises(RemoteServiceError) as exc_info:
            self.assistant.reply([{"role": "user", "content": "Hi"}])

        assert exc_info.value.status == 502

    def test_connection_error_maps_to_bad_gateway(self):
        self.client.messages.create.side_effect = anthropic.APIConnectionError(
            request=httpx.Request("POST", MESSAGES_URL)
        )

        with pytest.raises(RemoteServiceError) as exc_info:
            self.assistant.reply([{"role": "user", "content": "Hi"}])

        assert exc_info.value.status == 502

    def test_from_config_without_api_key(self):
        config = Mock(anthropic_api_key=None)

        with pytest.raises(RemoteServiceError) as exc_info:
            ChatAssistant.from_config(config)

        assert exc_info.value.status == 503

    def test_from_config(self):
        config = Mock(
            anthropic_api_key="sk-test", chat_model="claude-test", chat_max_tokens=512
        )

        assistant = ChatAssistant.from_config(config)

        assert isinstance(assistant.client, anthropic.Anthropic)
        assert assistant.model == "claude-test"
        assert assistant.max_tokens == 512
