"""Chat endpoint; calendar questions get the user's events as context."""

import logging
from typing import Any, Dict, List

from fastapi import Body, Depends, Request
from fastapi.responses import JSONResponse

from .main import (
    app,
    get_assistant_factory,
    get_broker,
    get_calendar_factory,
    get_config,
    request_session,
)
from ..assistant import matched_calendar_keywords
from ..auth.models import UserCredential, now_ms
from ..auth.oauth_config import OAuthConfig
from ..auth.session_broker import SessionBroker
from ..calendar import format_event_for_app
from ..utils.errors import RemoteServiceError, SessionNotFound

logger = logging.getLogger(__name__)

CHAT_EVENT_LIMIT = 20


def _calendar_context(credential: UserCredential, factory: Any) -> List[Dict[str, Any]]:
    """Upcoming events for the prompt; calendar failures yield no events."""
    try:
        calendar = factory(credential.access_token)
        google_events = calendar.list_events(max_results=CHAT_EVENT_LIMIT)
    except RemoteServiceError as e:
        logger.error(f"Error fetching calendar events for chat: {e.message}")
        return []
    return [e for e in (format_event_for_app(g) for g in google_events) if e]


def _last_user_message(messages: Any) -> str:
    if not isinstance(messages, list):
        return ""
    for message in reversed(messages):
        if isinstance(message, dict) and message.get("role") == "user":
            content = message.get("content")
            if isinstance(content, str) and content.strip():
                return content
    return ""


@app.post("/api/chat")
def chat(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    broker: SessionBroker = Depends(get_broker),
    config: OAuthConfig = Depends(get_config),
    calendar_factory: Any = Depends(get_calendar_factory),
    assistant_factory: Any = Depends(get_assistant_factory),
):
    """Answer the conversation's last user message."""
    user_id = request_session(request, config).last_user_id
    if not user_id:
        raise SessionNotFound("You must be signed in to use chat")
    credential = broker.get_active_session(user_id)

    messages = payload.get("messages")
    user_message = _last_user_message(messages)
    if not user_message:
        return JSONResponse(
            status_code=400,
            content={"error": "No user message found in the conversation."},
        )

    events: List[Dict[str, Any]] = []
    matched = matched_calendar_keywords(user_message)
    if matched:
        logger.info(f"Calendar query detected (keywords: {matched})")
        events = _calendar_context(credential, calendar_factory)

    reply = assistant_factory().reply(messages, events=events, model=payload.get("model"))
    return {
        "success": True,
        "data": {
            "role": "assistant",
            "content": reply.content,
            "id": str(now_ms()),
        },
    }
