"""
Google identity provider adapter for LifeAssist.

This module wraps the Google OAuth 2.0 web flow (with PKCE): building the
consent URL, exchanging the authorization code, and reading the user's
profile from the userinfo endpoint.
"""

import json
import logging
import os
from typing import Dict, Any, List, Optional, Tuple

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .scopes import get_scopes
from .oauth_config import get_oauth_config
from ..utils.errors import SignInError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def load_client_secrets_from_env() -> Optional[Dict[str, Any]]:
    """
    Load client secrets from environment variables.

    Returns:
        Client secrets configuration dict or None if not set.
    """
    config = get_oauth_config()

    if config.client_id and config.client_secret:
        client_config = {
            "web": {
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
            }
        }
        logger.debug("Loaded OAuth client from environment variables")
        return client_config

    return None


def load_client_config() -> Dict[str, Any]:
    """
    Load the OAuth client configuration from environment variables or file.

    Returns:
        Client secrets configuration dict with a "web" or "installed" section.

    Raises:
        FileNotFoundError: If neither environment variables nor a
            client_secret.json file are available.
        ValueError: If the client secrets file has an invalid format.
    """
    env_config = load_client_secrets_from_env()
    if env_config:
        return env_config

    config = get_oauth_config()
    if not os.path.exists(config.client_secrets_path):
        raise FileNotFoundError(
            f"OAuth client secrets not found at {config.client_secrets_path}"
        )

    with open(config.client_secrets_path, "r") as f:
        client_config = json.load(f)

    if "web" not in client_config and "installed" not in client_config:
        raise ValueError("Invalid client secrets file format")

    logger.info(f"Loaded OAuth client from {config.client_secrets_path}")
    return client_config


def client_section(client_config: Dict[str, Any]) -> Dict[str, Any]:
    """Return the "web" or "installed" section of a client configuration."""
    return client_config.get("web") or client_config.get("installed") or {}


def check_client_secrets() -> Optional[str]:
    """
    Check if OAuth client secrets are available.

    Returns:
        Error message if secrets not found, None otherwise.
    """
    config = get_oauth_config()
    if config.is_configured():
        return None

    return (
        f"OAuth client credentials not found. Please either:\n"
        f"1. Set GOOGLE_OAUTH_CLIENT_ID and GOOGLE_OAUTH_CLIENT_SECRET environment variables\n"
        f"2. Place client_secret.json in {config.client_secrets_path}"
    )


def _allow_local_transport(redirect_uri: str) -> None:
    """Allow HTTP redirect URIs for localhost development."""
    if "OAUTHLIB_INSECURE_TRANSPORT" not in os.environ and (
        "localhost" in redirect_uri or "127.0.0.1" in redirect_uri
    ):
        os.environ["OAUTHLIB_INSECURE_TRANSPORT"] = "1"
    # Google adds "openid" and reorders granted scopes
    os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")


def create_oauth_flow(
    client_config: Dict[str, Any],
    scopes: List[str],
    redirect_uri: str,
    state: Optional[str] = None,
) -> Flow:
    """
    Create an OAuth flow with PKCE enabled.

    Args:
        client_config: Client secrets configuration
        scopes: List of OAuth scopes
        redirect_uri: OAuth redirect URI
        state: Optional state parameter

    Returns:
        Configured OAuth Flow object
    """
    _allow_local_transport(redirect_uri)
    flow = Flow.from_client_config(
        client_config,
        scopes=scopes,
        redirect_uri=redirect_uri,
        state=state,
        autogenerate_code_verifier=True,  # PKCE enabled
    )
    logger.debug("Created OAuth flow with PKCE")
    return flow


class GoogleIdentityProvider:
    """Google OAuth 2.0 endpoints used by the session broker."""

    def __init__(
        self,
        client_config: Dict[str, Any],
        redirect_uri: str,
        scopes: Optional[List[str]] = None,
    ) -> None:
        self.client_config = client_config
        self.redirect_uri = redirect_uri
        self.scopes = scopes or get_scopes()

    def authorization_url(self, state: str) -> Tuple[str, Optional[str]]:
        """
        Build the consent screen URL for a new sign-in.

        Returns:
            Tuple of (auth_url, code_verifier)
        """
        flow = create_oauth_flow(
            self.client_config, self.scopes, self.redirect_uri, state=state
        )
        auth_url, _ = flow.authorization_url(
            access_type="offline",
            prompt="consent",
            include_granted_scopes="true",
        )
        return auth_url, getattr(flow, "code_verifier", None)

    def exchange_code(
        self, code: str, state: str, code_verifier: Optional[str]
    ) -> Credentials:
        """
        Exchange an authorization code for tokens.

        Raises:
            SignInError: If the token endpoint rejects the code.
        """
        if not code_verifier:
            raise SignInError("Missing code verifier - PKCE flow incomplete")

        flow = create_oauth_flow(
            self.client_config, self.scopes, self.redirect_uri, state=state
        )
        flow.code_verifier = code_verifier
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.error(f"Authorization code exchange failed: {e}")
            raise SignInError(f"Authorization code exchange failed: {e}")

        logger.info("Successfully exchanged authorization code for tokens")
        return flow.credentials

    def fetch_user_info(self, credentials: Credentials) -> Dict[str, Any]:
        """
        Fetch the user's profile from the userinfo endpoint.

        Raises:
            SignInError: If the profile cannot be fetched.
        """
        try:
            service = build(
                "oauth2", "v2", credentials=credentials, cache_discovery=False
            )
            user_info = service.userinfo().get().execute()
        except HttpError as e:
            logger.error(f"HttpError fetching user info: {e.status_code}")
            raise SignInError(f"Could not fetch user profile (HTTP {e.status_code})")
        except Exception as e:
            logger.error(f"Error fetching user info: {e}")
            raise SignInError(f"Could not fetch user profile: {e}")

        logger.info(f"Fetched user info: {user_info.get('email')}")
        return user_info


def get_identity_provider() -> GoogleIdentityProvider:
    """Create an identity provider from the current configuration."""
    config = get_oauth_config()
    return GoogleIdentityProvider(load_client_config(), config.redirect_uri)
