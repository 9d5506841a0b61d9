"""Calendar endpoints for the signed-in user."""

import logging
from typing import Any, Dict, Optional

from fastapi import Body, Depends, Request
from fastapi.responses import JSONResponse

from .main import app, get_broker, get_calendar_factory, get_config, request_session
from ..auth.oauth_config import OAuthConfig
from ..auth.session_broker import SessionBroker
from ..calendar import EventDetails, format_event_for_app
from ..utils.errors import SessionNotFound

logger = logging.getLogger(__name__)


def _calendar_for_request(
    request: Request,
    broker: SessionBroker,
    config: OAuthConfig,
    factory: Any,
    time_zone: Optional[str] = None,
) -> Any:
    """Build a calendar client with the user's active access token.

    Raises:
        SessionNotFound: If the request carries no user pointer.
        SessionExpired: If the token cannot be refreshed.
    """
    user_id = request_session(request, config).last_user_id
    if not user_id:
        raise SessionNotFound("Authentication required")
    access_token = broker.get_active_access_token(user_id)
    return factory(access_token, time_zone=time_zone or "UTC")


def _details_or_error(payload: Dict[str, Any]):
    try:
        return EventDetails.from_request(payload), None
    except ValueError as e:
        return None, JSONResponse(
            status_code=400, content={"success": False, "message": f"Invalid date: {e}"}
        )


@app.get("/api/calendar")
def get_calendar_events(
    request: Request,
    eventId: Optional[str] = None,
    calendarId: str = "primary",
    maxResults: int = 10,
    timeZone: Optional[str] = None,
    maxAttendees: Optional[int] = None,
    broker: SessionBroker = Depends(get_broker),
    config: OAuthConfig = Depends(get_config),
    factory: Any = Depends(get_calendar_factory),
):
    """List events, or fetch one event when eventId is given."""
    calendar = _calendar_for_request(request, broker, config, factory, timeZone)

    if eventId:
        event = calendar.get_event(
            eventId, calendar_id=calendarId, time_zone=timeZone, max_attendees=maxAttendees
        )
        return {
            "success": True,
            "message": "Event retrieved successfully",
            "events": [format_event_for_app(event)],
        }

    google_events = calendar.list_events(max_results=maxResults, calendar_id=calendarId)
    events = [e for e in (format_event_for_app(g) for g in google_events) if e]
    return {"success": True, "events": events}


@app.post("/api/calendar")
def create_calendar_event(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    broker: SessionBroker = Depends(get_broker),
    config: OAuthConfig = Depends(get_config),
    factory: Any = Depends(get_calendar_factory),
):
    """Create an event from title/start/end (or date/time) fields."""
    details, error_response = _details_or_error(payload)
    if error_response is not None:
        return error_response
    if not details.title or not details.start_date_time or not details.end_date_time:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "title, start and end are required"},
        )

    calendar = _calendar_for_request(request, broker, config, factory, payload.get("timeZone"))
    created = calendar.create_event(details)
    return {"success": True, "event": format_event_for_app(created)}


@app.put("/api/calendar")
def update_calendar_event(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    broker: SessionBroker = Depends(get_broker),
    config: OAuthConfig = Depends(get_config),
    factory: Any = Depends(get_calendar_factory),
):
    """Update an event; fields left out keep their current values."""
    event_id = payload.get("eventId")
    if not event_id:
        return JSONResponse(
            status_code=400, content={"success": False, "message": "eventId is required"}
        )
    details, error_response = _details_or_error(payload)
    if error_response is not None:
        return error_response

    calendar = _calendar_for_request(request, broker, config, factory, payload.get("timeZone"))
    updated = calendar.update_event(event_id, details)
    return {"success": True, "event": format_event_for_app(updated)}


@app.delete("/api/calendar")
def delete_calendar_event(
    request: Request,
    eventId: Optional[str] = None,
    broker: SessionBroker = Depends(get_broker),
    config: OAuthConfig = Depends(get_config),
    factory: Any = Depends(get_calendar_factory),
):
    """Delete an event by id."""
    if not eventId:
        return JSONResponse(
            status_code=400, content={"success": False, "message": "eventId is required"}
        )

    calendar = _calendar_for_request(request, broker, config, factory)
    calendar.delete_event(eventId)
    return {"success": True, "message": "Event deleted"}
