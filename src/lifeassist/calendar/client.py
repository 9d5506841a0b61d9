"""Google Calendar client for the signed-in user's calendars."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .formatting import EventDetails, merge_google_event, to_google_event
from ..utils.errors import handle_http_error

logger = logging.getLogger(__name__)

PRIMARY_CALENDAR = "primary"


class CalendarClient:
    """Calendar API calls authorized by one access token."""

    def __init__(
        self,
        access_token: str,
        time_zone: str = "UTC",
        service: Optional[Any] = None,
    ) -> None:
        """Initialize with an access token from the session broker.

        Args:
            access_token: Bearer token with a calendar scope.
            time_zone: Time zone applied to created/updated event times.
            service: Prebuilt Calendar API service (tests).
        """
        self.time_zone = time_zone
        if service is None:
            creds = Credentials(token=access_token)
            service = build("calendar", "v3", credentials=creds, cache_discovery=False)
        self.calendar_service = service

    def list_events(
        self,
        max_results: int = 10,
        calendar_id: str = PRIMARY_CALENDAR,
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """List events from 30 days ago to a year ahead by default.

        Failures are logged and yield an empty list so a calendar outage
        degrades only the calendar panel.
        """
        now = datetime.now(timezone.utc)
        time_min = time_min or now - timedelta(days=30)
        time_max = time_max or now + timedelta(days=365)

        try:
            response = self.calendar_service.events().list(
                calendarId=calendar_id,
                timeMin=time_min.isoformat(),
                timeMax=time_max.isoformat(),
                maxResults=max_results,
                singleEvents=True,
                orderBy="startTime",
            ).execute()
        except HttpError as e:
            logger.error(f"Error listing calendar events: {handle_http_error(e).message}")
            return []
        except Exception as e:
            logger.error(f"Error listing calendar events: {e}", exc_info=True)
            return []

        items = response.get("items", [])
        logger.info(f"Listed {len(items)} events from calendar {calendar_id}")
        return items

    def get_event(
        self,
        event_id: str,
        calendar_id: str = PRIMARY_CALENDAR,
        time_zone: Optional[str] = None,
        max_attendees: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Get one event.

        Raises:
            RemoteServiceError: If the API call fails.
        """
        params: Dict[str, Any] = {"calendarId": calendar_id, "eventId": event_id}
        if time_zone:
            params["timeZone"] = time_zone
        if max_attendees:
            params["maxAttendees"] = max_attendees

        try:
            return self.calendar_service.events().get(**params).execute()
        except HttpError as e:
            raise handle_http_error(e, event_id)

    def create_event(self, details: EventDetails) -> Dict[str, Any]:
        """Create an event in the primary calendar.

        Raises:
            RemoteServiceError: If the API call fails.
        """
        try:
            event = self.calendar_service.events().insert(
                calendarId=PRIMARY_CALENDAR,
                body=to_google_event(details, self.time_zone),
            ).execute()
        except HttpError as e:
            raise handle_http_error(e)
        logger.info(f"Created calendar event {event.get('id')}")
        return event

    def update_event(self, event_id: str, details: EventDetails) -> Dict[str, Any]:
        """Update an event, keeping fields the details leave unset.

        Raises:
            RemoteServiceError: If the API call fails.
        """
        existing = self.get_event(event_id)
        try:
            event = self.calendar_service.events().update(
                calendarId=PRIMARY_CALENDAR,
                eventId=event_id,
                body=merge_google_event(existing, details, self.time_zone),
            ).execute()
        except HttpError as e:
            raise handle_http_error(e, event_id)
        logger.info(f"Updated calendar event {event_id}")
        return event

    def delete_event(self, event_id: str) -> None:
        """Delete an event from the primary calendar.

        Raises:
            RemoteServiceError: If the API call fails.
        """
        try:
            self.calendar_service.events().delete(
                calendarId=PRIMARY_CALENDAR, eventId=event_id
            ).execute()
        except HttpError as e:
            raise handle_http_error(e, event_id)
        logger.info(f"Deleted calendar event {event_id}")
