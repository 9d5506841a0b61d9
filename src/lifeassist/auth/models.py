"""
Credential value types for LifeAssist.

UserCredential is the single representation of a signed-in user's OAuth
credential. It is built and validated at each boundary where credential data
enters the process: a stored document, a provider token response, or a
provider profile.
"""

import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..utils.errors import InvalidCredentialError

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def expiry_to_ms(expiry: Optional[datetime]) -> Optional[int]:
    """
    Convert a google-auth expiry to epoch milliseconds.

    google-auth uses timezone-naive UTC datetimes; aware datetimes are
    converted to UTC first.
    """
    if expiry is None:
        return None
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return int(expiry.timestamp() * 1000)


@dataclass(frozen=True)
class UserCredential:
    """OAuth credential and profile fields for one authenticated user."""

    id: str
    access_token: str
    access_token_expires_at_ms: int
    refresh_token: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    image_url: Optional[str] = None
    last_updated: Optional[datetime] = None

    def expires_within(self, seconds: float, at_ms: Optional[int] = None) -> bool:
        """True when the access token expires less than `seconds` from now."""
        current = now_ms() if at_ms is None else at_ms
        return self.access_token_expires_at_ms - current <= seconds * 1000

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def with_refreshed_token(
        self,
        access_token: str,
        expires_at_ms: int,
        refresh_token: Optional[str] = None,
    ) -> "UserCredential":
        """Copy with a new access token; keeps the old refresh token unless rotated."""
        return replace(
            self,
            access_token=access_token,
            access_token_expires_at_ms=expires_at_ms,
            refresh_token=refresh_token or self.refresh_token,
        )

    def to_document(self) -> Dict[str, Any]:
        """
        Serialize to the stored document shape.

        `lastUpdated` is omitted; stores stamp it themselves on every save.
        """
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "imageUrl": self.image_url,
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "accessTokenExpiresAtMs": self.access_token_expires_at_ms,
        }

    def to_profile(self) -> Dict[str, Any]:
        """Profile fields safe to return to a browser (no tokens)."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "image": self.image_url,
        }

    @classmethod
    def from_document(
        cls, data: Dict[str, Any], user_id: Optional[str] = None
    ) -> "UserCredential":
        """
        Build a credential from a stored document.

        Args:
            data: Stored document fields.
            user_id: Document key, used when the document lacks an `id` field.

        Raises:
            InvalidCredentialError: If required fields are missing or malformed.
        """
        credential_id = data.get("id") or user_id
        if not credential_id:
            raise InvalidCredentialError("Stored credential has no user id")

        access_token = data.get("accessToken")
        if not access_token or not isinstance(access_token, str):
            raise InvalidCredentialError(
                "Stored credential has no access token", str(credential_id)
            )

        expires_at = data.get("accessTokenExpiresAtMs")
        try:
            expires_at_ms = int(expires_at)
        except (TypeError, ValueError):
            raise InvalidCredentialError(
                f"Stored credential has invalid expiry: {expires_at!r}",
                str(credential_id),
            )

        last_updated = data.get("lastUpdated")
        if isinstance(last_updated, str):
            try:
                last_updated = datetime.fromisoformat(last_updated)
            except ValueError:
                logger.debug("Could not parse lastUpdated '%s'", last_updated)
                last_updated = None
        elif not isinstance(last_updated, datetime):
            last_updated = None

        return cls(
            id=str(credential_id),
            access_token=access_token,
            access_token_expires_at_ms=expires_at_ms,
            refresh_token=data.get("refreshToken") or None,
            email=data.get("email"),
            name=data.get("name"),
            image_url=data.get("imageUrl"),
            last_updated=last_updated,
        )

    @classmethod
    def from_provider(
        cls,
        user_info: Dict[str, Any],
        access_token: Optional[str],
        expiry: Optional[datetime],
        refresh_token: Optional[str] = None,
        default_lifetime_seconds: int = 3600,
    ) -> "UserCredential":
        """
        Build a credential from a token exchange and a userinfo profile.

        Args:
            user_info: Google userinfo response (`id` or `sub`, `email`, ...).
            access_token: Access token from the token exchange.
            expiry: Token expiry reported by google-auth, if any.
            refresh_token: Refresh token, present on consent grants.
            default_lifetime_seconds: Lifetime assumed when no expiry is given.

        Raises:
            InvalidCredentialError: If the profile has no subject id or no
                access token was issued.
        """
        subject = user_info.get("id") or user_info.get("sub")
        if not subject:
            raise InvalidCredentialError("Provider profile has no subject id")
        if not access_token:
            raise InvalidCredentialError("Provider issued no access token", str(subject))

        expires_at_ms = expiry_to_ms(expiry)
        if expires_at_ms is None:
            expires_at_ms = now_ms() + default_lifetime_seconds * 1000

        return cls(
            id=str(subject),
            access_token=access_token,
            access_token_expires_at_ms=expires_at_ms,
            refresh_token=refresh_token,
            email=user_info.get("email"),
            name=user_info.get("name"),
            image_url=user_info.get("picture"),
        )


@dataclass(frozen=True)
class SignInRedirect:
    """Where to send the browser to start interactive sign-in."""

    url: str
    state: str


@dataclass(frozen=True)
class AuthenticatedSession:
    """Result of a completed interactive sign-in."""

    credential: UserCredential
    return_to: str = "/"
