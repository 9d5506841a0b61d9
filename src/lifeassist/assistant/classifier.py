"""Keyword check for chat messages that ask about the user's calendar."""

from typing import List

CALENDAR_KEYWORDS = [
    "calendar",
    "schedule",
    "event",
    "appointment",
    "meeting",
    "reminder",
    "agenda",
]


def matched_calendar_keywords(message: str) -> List[str]:
    """
    Return the calendar keywords found in a message.

    A keyword matches when it appears inside any whitespace-separated word,
    so "meetings" and "rescheduled" both count.
    """
    words = (message or "").lower().split()
    return [k for k in CALENDAR_KEYWORDS if any(k in word for word in words)]


def is_calendar_query(message: str) -> bool:
    return bool(matched_calendar_keywords(message))
