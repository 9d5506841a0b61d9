"""
Token refresh against Google's OAuth token endpoint.

A refresh is a single attempt. Any failure means the user must re-authenticate
interactively; callers must not treat it as transient.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from google.auth import exceptions as google_auth_exceptions
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from ..utils.errors import RefreshError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


@dataclass(frozen=True)
class RefreshResult:
    """New access token minted from a refresh token."""

    access_token: str
    expires_in_sec: int
    # Set only when the provider rotated the refresh token
    refresh_token: Optional[str] = None


class TokenRefresher:
    """Exchanges refresh tokens for access tokens."""

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        token_uri: str = DEFAULT_TOKEN_URI,
        request_factory: Callable[[], Any] = Request,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_uri = token_uri
        self._request_factory = request_factory

    @classmethod
    def from_client_config(cls, client_config: Dict[str, Any]) -> "TokenRefresher":
        """Build from a client secrets "web"/"installed" section."""
        return cls(
            client_id=client_config.get("client_id"),
            client_secret=client_config.get("client_secret"),
            token_uri=client_config.get("token_uri") or DEFAULT_TOKEN_URI,
        )

    def refresh(self, refresh_token: Optional[str]) -> RefreshResult:
        """
        Exchange a refresh token for a new access token.

        Args:
            refresh_token: The long-lived refresh token.

        Returns:
            RefreshResult with the new token, its lifetime, and the rotated
            refresh token when the provider issued one.

        Raises:
            RefreshError: If the token is empty, or the provider rejected the
                exchange, or the token endpoint could not be reached.
        """
        if not refresh_token:
            raise RefreshError("No refresh token available")

        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.token_uri,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )

        try:
            credentials.refresh(self._request_factory())
        except google_auth_exceptions.RefreshError as e:
            logger.warning(f"Token endpoint rejected refresh: {e}")
            raise RefreshError(f"Refresh token rejected: {e}")
        except google_auth_exceptions.TransportError as e:
            logger.warning(f"Token endpoint unreachable: {e}")
            raise RefreshError(f"Token endpoint unreachable: {e}")

        if not credentials.token:
            raise RefreshError("Token endpoint returned no access token")

        expires_in = DEFAULT_TOKEN_LIFETIME_SECONDS
        if credentials.expiry is not None:
            # google-auth reports expiry as naive UTC
            now = datetime.now(timezone.utc).replace(tzinfo=None)
            expires_in = int((credentials.expiry - now).total_seconds())

        rotated = credentials.refresh_token
        if rotated == refresh_token:
            rotated = None

        logger.info(
            f"Refreshed access token {credentials.token[:8]}... "
            f"(expires in {expires_in}s, rotated: {bool(rotated)})"
        )
        return RefreshResult(
            access_token=credentials.token,
            expires_in_sec=expires_in,
            refresh_token=rotated,
        )
