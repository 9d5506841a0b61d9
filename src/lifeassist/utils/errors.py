"""Custom exceptions for LifeAssist.

This module provides structured error handling with specific exception types
for the session lifecycle and remote service failures. All exceptions inherit
from LifeAssistError.
"""
from typing import Optional, Any


class LifeAssistError(Exception):
    """Base exception for all LifeAssist errors.

    Attributes:
        message: Human-readable error description.
        user_id: Optional user id related to the error.
    """

    def __init__(self, message: str, user_id: Optional[str] = None) -> None:
        self.message = message
        self.user_id = user_id
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the error message, optionally including the user id."""
        if self.user_id:
            return f"{self.message} (user: {self.user_id})"
        return self.message


class SignInError(LifeAssistError):
    """Raised when the authorization code exchange or profile fetch fails."""
    pass


class SessionNotFound(LifeAssistError):
    """Raised when no stored credential exists for the presented identity."""
    pass


class SessionExpired(LifeAssistError):
    """Raised when the access token is expired and cannot be refreshed."""
    pass


class RefreshError(LifeAssistError):
    """Raised when the token endpoint rejects a refresh token."""
    pass


class StoreUnavailableError(LifeAssistError):
    """Raised when the credential store cannot be read or written."""
    pass


class InvalidCredentialError(LifeAssistError):
    """Raised when a stored document or provider response is malformed."""
    pass


class RemoteServiceError(LifeAssistError):
    """Raised when a call to a remote API (e.g. Google Calendar) fails.

    Attributes:
        status: HTTP status returned by the remote service, if any.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> None:
        self.status = status
        super().__init__(message, user_id)


def handle_http_error(error: Any, resource_id: Optional[str] = None) -> RemoteServiceError:
    """Convert googleapiclient HttpError to a RemoteServiceError.

    Args:
        error: The HttpError from googleapiclient.
        resource_id: Optional event id for context.

    Returns:
        A RemoteServiceError carrying the HTTP status.
    """
    try:
        status = error.resp.status
    except AttributeError:
        return RemoteServiceError(f"API error: {str(error)}")

    suffix = f" ({resource_id})" if resource_id else ""
    if status == 401:
        return RemoteServiceError(
            f"Calendar access was rejected. Please sign in again.{suffix}", status
        )
    elif status == 403:
        return RemoteServiceError(
            f"Access denied. The calendar scope may not have been granted.{suffix}",
            status,
        )
    elif status == 404:
        return RemoteServiceError(
            f"Event not found. It may have been deleted.{suffix}", status
        )
    elif status == 429:
        return RemoteServiceError(
            "API quota exceeded. Please wait a moment and try again.", status
        )
    else:
        return RemoteServiceError(f"API error (HTTP {status}): {str(error)}", status)


def format_error(action: str, error: Exception) -> str:
    """Format an error message consistently.

    Args:
        action: The action that failed (e.g., "List events", "Sign in").
        error: The exception that occurred.

    Returns:
        Formatted error string.
    """
    if isinstance(error, LifeAssistError):
        return f"{action} failed: {error.message}"
    return f"{action} failed: {str(error)}"
