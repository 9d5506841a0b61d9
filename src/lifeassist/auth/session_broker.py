"""
Session Broker for LifeAssist.

Orchestrates the credential lifecycle:

- interactive sign-in (consent redirect, code exchange, credential persistence)
- active token reads (return the stored token while fresh, refresh near expiry)
- sign-out (clear client pointers)

Refreshes are single-flight per user id: concurrent callers for the same user
wait on one lock, and whoever acquires it second re-reads the store and finds
the token the first caller persisted.
"""

import logging
import os
from contextlib import contextmanager
from threading import Lock
from typing import Callable, Dict, Iterator, Optional, TYPE_CHECKING

from .credential_store import CredentialStore, get_credential_store
from .google_auth import (
    GoogleIdentityProvider,
    client_section,
    get_identity_provider,
    load_client_config,
)
from .models import AuthenticatedSession, SignInRedirect, UserCredential, now_ms
from .oauth_config import get_oauth_config
from .oauth_state_store import OAuthStateStore, get_oauth_state_store
from .token_refresher import TokenRefresher
from ..utils.errors import (
    InvalidCredentialError,
    RefreshError,
    SessionExpired,
    SessionNotFound,
    SignInError,
)

if TYPE_CHECKING:
    from ..session.cache import ClientSessionCache

logger = logging.getLogger(__name__)


class _UserLock:
    """Refresh lock for one user plus the number of callers holding or awaiting it."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.holders = 0


def safe_return_to(return_to: Optional[str]) -> str:
    """Only allow same-site relative paths as post-sign-in targets."""
    if not return_to or not return_to.startswith("/") or return_to.startswith("//"):
        return "/"
    return return_to


class SessionBroker:
    """Sign-in, token and sign-out operations over a credential store."""

    def __init__(
        self,
        store: CredentialStore,
        refresher: Optional[TokenRefresher] = None,
        provider: Optional[GoogleIdentityProvider] = None,
        state_store: Optional[OAuthStateStore] = None,
        refresh_margin_seconds: int = 300,
        state_ttl_seconds: int = 600,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._refresher = refresher
        self._provider = provider
        self._state_store = state_store
        self.refresh_margin_seconds = refresh_margin_seconds
        self.state_ttl_seconds = state_ttl_seconds
        self._clock = clock
        self._locks: Dict[str, _UserLock] = {}
        self._locks_guard = Lock()

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def provider(self) -> GoogleIdentityProvider:
        if self._provider is None:
            self._provider = get_identity_provider()
        return self._provider

    @property
    def refresher(self) -> TokenRefresher:
        if self._refresher is None:
            self._refresher = TokenRefresher.from_client_config(
                client_section(load_client_config())
            )
        return self._refresher

    @property
    def state_store(self) -> OAuthStateStore:
        if self._state_store is None:
            self._state_store = get_oauth_state_store()
        return self._state_store

    @contextmanager
    def _user_lock(self, user_id: str) -> Iterator[None]:
        """Hold the user's refresh lock; the entry is dropped with its last holder."""
        with self._locks_guard:
            entry = self._locks.get(user_id)
            if entry is None:
                entry = _UserLock()
                self._locks[user_id] = entry
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[user_id]

    # Interactive sign-in

    def begin_interactive_sign_in(self, return_to: str = "/") -> SignInRedirect:
        """
        Start an interactive sign-in.

        Args:
            return_to: Application path to land on after the callback.

        Returns:
            SignInRedirect with the consent URL and its state value.
        """
        state = os.urandom(16).hex()
        auth_url, code_verifier = self.provider.authorization_url(state)
        self.state_store.store_oauth_state(
            state,
            code_verifier=code_verifier,
            return_to=safe_return_to(return_to),
            expires_in_seconds=self.state_ttl_seconds,
        )
        logger.info(f"Interactive sign-in started. State: {state[:8]}...")
        return SignInRedirect(url=auth_url, state=state)

    def complete_interactive_sign_in(
        self, code: Optional[str], state: Optional[str]
    ) -> AuthenticatedSession:
        """
        Finish an interactive sign-in from the provider callback.

        Authorization codes are single-use; a failure here must be shown to
        the user rather than retried.

        Raises:
            SignInError: If the state is invalid, the code exchange fails, or
                the profile cannot be read.
        """
        if not code:
            raise SignInError("No authorization code received")

        try:
            state_info = self.state_store.validate_and_consume_oauth_state(state or "")
        except ValueError as e:
            raise SignInError(str(e))

        provider_credentials = self.provider.exchange_code(
            code, state or "", state_info.get("code_verifier")
        )
        user_info = self.provider.fetch_user_info(provider_credentials)

        try:
            credential = UserCredential.from_provider(
                user_info,
                access_token=provider_credentials.token,
                expiry=provider_credentials.expiry,
                refresh_token=provider_credentials.refresh_token,
            )
        except InvalidCredentialError as e:
            raise SignInError(e.message)

        # Merge keeps an earlier refresh token when consent did not issue one
        self._store.save_credential(credential)
        stored = self._store.get(credential.id) or credential

        logger.info(
            f"Authenticated user {stored.email} ({stored.id}), "
            f"refresh token: {stored.can_refresh}"
        )
        return AuthenticatedSession(
            credential=stored,
            return_to=safe_return_to(state_info.get("return_to")),
        )

    # Active token

    def _load(self, user_id: str) -> UserCredential:
        credential = self._store.get(user_id) if user_id else None
        if credential is None:
            raise SessionNotFound("No stored credential", user_id)
        return credential

    def _is_fresh(self, credential: UserCredential) -> bool:
        return not credential.expires_within(
            self.refresh_margin_seconds, at_ms=self._clock()
        )

    def get_active_session(self, user_id: str) -> UserCredential:
        """
        Return the user's credential with an access token usable right now.

        Raises:
            SessionNotFound: If no credential is stored for the user.
            SessionExpired: If the token is stale and cannot be refreshed.
        """
        credential = self._load(user_id)
        if self._is_fresh(credential):
            return credential

        if not credential.can_refresh:
            if credential.expires_within(0, at_ms=self._clock()):
                logger.info(f"Access token expired without refresh token for {user_id}")
                raise SessionExpired("Access token expired; sign in again", user_id)
            # Still valid, nothing to refresh with
            return credential

        with self._user_lock(user_id):
            # Another caller may have refreshed while we waited
            credential = self._load(user_id)
            if self._is_fresh(credential):
                logger.debug(f"Token for {user_id} already refreshed by a concurrent call")
                return credential

            try:
                result = self.refresher.refresh(credential.refresh_token)
            except RefreshError as e:
                logger.warning(f"Refresh failed for {user_id}: {e.message}")
                raise SessionExpired("Refresh token rejected; sign in again", user_id)

            expires_at_ms = self._clock() + result.expires_in_sec * 1000
            self._store.save(
                user_id,
                {
                    "accessToken": result.access_token,
                    "accessTokenExpiresAtMs": expires_at_ms,
                    "refreshToken": result.refresh_token,
                },
            )
            logger.info(f"Refreshed and persisted access token for {user_id}")
            return credential.with_refreshed_token(
                result.access_token, expires_at_ms, result.refresh_token
            )

    def get_active_access_token(self, user_id: str) -> str:
        """
        Return a non-expired access token for the user, refreshing if needed.

        Raises:
            SessionNotFound: If no credential is stored for the user.
            SessionExpired: If the token is stale and cannot be refreshed.
        """
        return self.get_active_session(user_id).access_token

    # Sign-out

    def end_session(
        self, user_id: Optional[str], cache: Optional["ClientSessionCache"] = None
    ) -> None:
        """
        Sign the user out on this client.

        Clears the client session pointers and sets the intentional sign-out
        flag. The stored credential is kept and the refresh token is not
        revoked, so the next explicit sign-in can reuse it.
        """
        if cache is not None:
            cache.sign_out()
        logger.info(f"Ended session for {user_id or 'unknown user'}")


# Global instance
_session_broker: Optional[SessionBroker] = None


def get_session_broker() -> SessionBroker:
    """Get the global session broker."""
    global _session_broker
    if _session_broker is None:
        config = get_oauth_config()
        _session_broker = SessionBroker(
            store=get_credential_store(),
            refresh_margin_seconds=config.refresh_margin_seconds,
            state_ttl_seconds=config.oauth_state_ttl_seconds,
        )
    return _session_broker


def set_session_broker(broker: Optional[SessionBroker]) -> None:
    """Set (or with None, reset) the global session broker."""
    global _session_broker
    _session_broker = broker
