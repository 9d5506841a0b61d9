"""
OAuth credential lifecycle for LifeAssist.

This package provides:
- A credential store abstraction with merge-upsert semantics (local JSON or Firestore)
- Token refresh against Google's token endpoint
- A session broker for sign-in, active-token reads and sign-out
- PKCE-enforced interactive sign-in with persisted OAuth state
"""

from .scopes import SCOPES, CALENDAR_SCOPES, get_scopes
from .models import UserCredential, SignInRedirect, AuthenticatedSession
from .credential_store import (
    CredentialStore,
    LocalDirectoryCredentialStore,
    get_credential_store,
    set_credential_store,
)
from .token_refresher import TokenRefresher, RefreshResult
from .oauth_state_store import OAuthStateStore, get_oauth_state_store
from .google_auth import GoogleIdentityProvider, check_client_secrets
from .session_broker import SessionBroker, get_session_broker, set_session_broker

__all__ = [
    # Scopes
    "SCOPES",
    "CALENDAR_SCOPES",
    "get_scopes",
    # Models
    "UserCredential",
    "SignInRedirect",
    "AuthenticatedSession",
    # Credential Store
    "CredentialStore",
    "LocalDirectoryCredentialStore",
    "get_credential_store",
    "set_credential_store",
    # Token Refresher
    "TokenRefresher",
    "RefreshResult",
    # OAuth State
    "OAuthStateStore",
    "get_oauth_state_store",
    # Session Broker
    "GoogleIdentityProvider",
    "check_client_secrets",
    "SessionBroker",
    "get_session_broker",
    "set_session_broker",
]
