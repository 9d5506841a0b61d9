"""Google Calendar access for the signed-in user."""
from .client import CalendarClient
from .formatting import EventDetails, format_event_for_app

__all__ = ["CalendarClient", "EventDetails", "format_event_for_app"]
