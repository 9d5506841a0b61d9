"""
Claude-backed chat assistant.

The system prompt has a static instruction block, marked for prompt caching,
and an optional block with the user's upcoming calendar events.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import anthropic

from ..auth.oauth_config import OAuthConfig, get_oauth_config
from ..utils.errors import RemoteServiceError

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTIONS = """You are a helpful AI assistant that can help with various tasks including
calendar management.

When the user asks about calendar-related topics, you can:
1. Discuss calendar events - Provide information about their schedule
2. Summarize calendar - Provide a summary of upcoming events
3. Suggest scheduling - Help them find good times for new events

For calendar events, include relevant details like the title, date and time,
location and description when available.

When summarizing calendar events, group events by day, highlight important
events, and mention conflicts or busy periods.

For all other topics, be a helpful and informative assistant that provides
accurate and thoughtful responses.

Always respond in a friendly, conversational manner."""


@dataclass(frozen=True)
class ChatReply:
    """Assistant text plus token usage reported by the API."""

    content: str
    usage: Dict[str, int] = field(default_factory=dict)


def _conversation(messages: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Keep user/assistant text turns, starting at the first user turn and ending at the last."""
    turns = [
        {"role": m["role"], "content": m["content"]}
        for m in messages
        if isinstance(m, dict)
        and m.get("role") in ("user", "assistant")
        and isinstance(m.get("content"), str)
        and m["content"].strip()
    ]
    user_indexes = [i for i, t in enumerate(turns) if t["role"] == "user"]
    if not user_indexes:
        return []
    return turns[user_indexes[0] : user_indexes[-1] + 1]


class ChatAssistant:
    """Sends conversations to the Anthropic Messages API."""

    def __init__(
        self,
        client: Any,
        model: str = "claude-3-7-sonnet-20250219",
        max_tokens: int = 1024,
    ) -> None:
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    @classmethod
    def from_config(cls, config: OAuthConfig) -> "ChatAssistant":
        """
        Build an assistant from configuration.

        Raises:
            RemoteServiceError: If no Anthropic API key is configured.
        """
        if not config.anthropic_api_key:
            raise RemoteServiceError("Chat is not configured: set ANTHROPIC_API_KEY", 503)
        return cls(
            anthropic.Anthropic(api_key=config.anthropic_api_key),
            model=config.chat_model,
            max_tokens=config.chat_max_tokens,
        )

    def build_system_prompt(
        self, events: Optional[List[Dict[str, Any]]] = None
    ) -> List[Dict[str, Any]]:
        system: List[Dict[str, Any]] = [
            {
                "type": "text",
                "text": SYSTEM_INSTRUCTIONS,
                "cache_control": {"type": "ephemeral"},
            }
        ]
        if events:
            system.append(
                {
                    "type": "text",
                    "text": (
                        "The user's Google Calendar events are:\n"
                        f"{json.dumps(events, indent=2)}\n\n"
                        "The app is connected to Google Calendar, so these are the "
                        "user's actual events."
                    ),
                }
            )
        return system

    def reply(
        self,
        messages: List[Dict[str, Any]],
        events: Optional[List[Dict[str, Any]]] = None,
        model: Optional[str] = None,
    ) -> ChatReply:
        """
        Answer the conversation's last user message.

        Args:
            messages: Conversation turns as {"role", "content"} dicts.
            events: App-shaped calendar events to include as context.
            model: Model override for this request.

        Raises:
            ValueError: If the conversation has no user message.
            RemoteServiceError: If the Anthropic API call fails.
        """
        conversation = _conversation(messages)
        if not conversation:
            raise ValueError("No user message found in the conversation.")

        try:
            response = self.client.messages.create(
                model=model or self.model,
                max_tokens=self.max_tokens,
                system=self.build_system_prompt(events),
                messages=conversation,
            )
        except anthropic.APIStatusError as e:
            logger.error(f"Anthropic API error (HTTP {e.status_code}): {e}")
            status = 429 if e.status_code == 429 else 502
            raise RemoteServiceError(f"Chat request failed: {e.message}", status)
        except anthropic.APIError as e:
            logger.error(f"Anthropic API unreachable: {e}")
            raise RemoteServiceError(f"Chat request failed: {e.message}", 502)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = {
            name: getattr(response.usage, name, None) or 0
            for name in (
                "input_tokens",
                "output_tokens",
                "cache_creation_input_tokens",
                "cache_read_input_tokens",
            )
        }
        logger.info(f"Chat reply generated ({usage})")
        return ChatReply(content=text, usage=usage)


# Global instance
_chat_assistant: Optional[ChatAssistant] = None


def get_chat_assistant() -> ChatAssistant:
    """Get the global chat assistant, built on first use."""
    global _chat_assistant
    if _chat_assistant is None:
        _chat_assistant = ChatAssistant.from_config(get_oauth_config())
    return _chat_assistant
