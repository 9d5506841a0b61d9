"""Conversion between Google Calendar events and the app's event shape."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_EVENT_DURATION = timedelta(hours=1)


@dataclass
class EventDetails:
    """Fields the app sends when creating or updating an event.

    Start and end are ISO-8601 timestamps. On update, None means "keep".
    """

    title: Optional[str] = None
    start_date_time: Optional[str] = None
    end_date_time: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None

    @classmethod
    def from_request(cls, data: Dict[str, Any]) -> "EventDetails":
        """Build from a JSON body using the app's camelCase keys.

        Accepts either explicit startDateTime/endDateTime or a date plus an
        optional time, which becomes a one-hour event.
        """
        start = data.get("startDateTime")
        end = data.get("endDateTime")
        if not start and data.get("date"):
            start_dt = datetime.fromisoformat(f"{data['date']}T{data.get('time') or '00:00'}")
            start = start_dt.isoformat()
            end = end or (start_dt + DEFAULT_EVENT_DURATION).isoformat()
        return cls(
            title=data.get("title"),
            start_date_time=start,
            end_date_time=end,
            description=data.get("description"),
            location=data.get("location"),
        )


def to_google_event(details: EventDetails, time_zone: str = "UTC") -> Dict[str, Any]:
    """Format new event details as a Calendar API resource."""
    return {
        "summary": details.title,
        "description": details.description or "",
        "location": details.location or "",
        "start": {"dateTime": details.start_date_time, "timeZone": time_zone},
        "end": {"dateTime": details.end_date_time, "timeZone": time_zone},
        "reminders": {"useDefault": True},
    }


def merge_google_event(
    existing: Dict[str, Any], details: EventDetails, time_zone: str = "UTC"
) -> Dict[str, Any]:
    """Overlay provided details onto an existing Calendar API resource."""
    updated = dict(existing)
    if details.title:
        updated["summary"] = details.title
    if details.description:
        updated["description"] = details.description
    if details.location:
        updated["location"] = details.location
    if details.start_date_time:
        updated["start"] = {"dateTime": details.start_date_time, "timeZone": time_zone}
    if details.end_date_time:
        updated["end"] = {"dateTime": details.end_date_time, "timeZone": time_zone}
    return updated


def format_event_for_app(google_event: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Convert a Calendar API event to the app's event shape.

    Returns None for events without a usable start.
    """
    if not google_event:
        return None

    start = google_event.get("start") or {}
    raw_start = start.get("dateTime") or start.get("date")
    if not raw_start:
        logger.warning(f"Calendar event missing start: {google_event.get('id')}")
        return None

    try:
        start_dt = datetime.fromisoformat(raw_start.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable start '{raw_start}' for event {google_event.get('id')}")
        return None

    return {
        "title": google_event.get("summary") or "Untitled Event",
        "date": start_dt.date().isoformat(),
        # All-day events carry a date only
        "time": start_dt.strftime("%H:%M") if start.get("dateTime") else None,
        "location": google_event.get("location") or None,
        "description": google_event.get("description") or None,
        "googleEventId": google_event.get("id"),
    }
