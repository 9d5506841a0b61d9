"""
Google OAuth Scopes for LifeAssist.

This module defines the OAuth scopes requested at sign-in: the user's profile
and email plus read/write access to their calendars.
"""

from typing import List

# Base OAuth scopes required for user identification
USERINFO_EMAIL_SCOPE = "https://www.googleapis.com/auth/userinfo.email"
USERINFO_PROFILE_SCOPE = "https://www.googleapis.com/auth/userinfo.profile"
OPENID_SCOPE = "openid"

BASE_SCOPES = [OPENID_SCOPE, USERINFO_EMAIL_SCOPE, USERINFO_PROFILE_SCOPE]

# Google Calendar scopes
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"
CALENDAR_EVENTS_SCOPE = "https://www.googleapis.com/auth/calendar.events"

CALENDAR_SCOPES = [CALENDAR_SCOPE, CALENDAR_EVENTS_SCOPE]

SCOPES = BASE_SCOPES + CALENDAR_SCOPES


def get_scopes() -> List[str]:
    """
    Get the list of OAuth scopes requested during interactive sign-in.

    Returns:
        List of unique OAuth scopes, in a stable order.
    """
    return list(dict.fromkeys(SCOPES))
