"""Chat assistant for LifeAssist, with calendar context for calendar questions."""

from .classifier import CALENDAR_KEYWORDS, is_calendar_query, matched_calendar_keywords
from .chat import ChatAssistant, ChatReply, get_chat_assistant

__all__ = [
    "CALENDAR_KEYWORDS",
    "is_calendar_query",
    "matched_calendar_keywords",
    "ChatAssistant",
    "ChatReply",
    "get_chat_assistant",
]
