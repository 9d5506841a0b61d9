"""
Silent session restore.

Runs once per page load (or whenever the client does not know whether it is
signed in) and moves through an explicit state machine:

    UNKNOWN -> RESTORING -> AUTHENTICATED | SIGNED_OUT

Restore paths, in order:

1. The intentional sign-out flag ends the pass immediately.
2. The remembered user id is hydrated through the session broker.
3. The remembered email is looked up in the credential store, at most once
   per debounce window for the same email, and the found user is hydrated.

Store outages are retried a bounded number of times with exponential
backoff. Authentication failures are never retried.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .cache import ClientSessionCache
from ..auth.models import UserCredential
from ..auth.session_broker import SessionBroker
from ..utils.errors import SessionExpired, SessionNotFound, StoreUnavailableError

logger = logging.getLogger(__name__)


class RestoreState(Enum):
    UNKNOWN = "unknown"
    RESTORING = "restoring"
    AUTHENTICATED = "authenticated"
    SIGNED_OUT = "signed_out"


@dataclass(frozen=True)
class RestoreResult:
    """Outcome of a restore pass."""

    state: RestoreState
    credential: Optional[UserCredential] = None
    # "user_id" or "email" when authenticated
    source: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.state is RestoreState.AUTHENTICATED


SIGNED_OUT = RestoreResult(RestoreState.SIGNED_OUT)


class SessionRestorer:
    """One silent-restore run for one client."""

    def __init__(
        self,
        broker: SessionBroker,
        cache: ClientSessionCache,
        debounce_seconds: float = 10.0,
        max_attempts: int = 3,
        backoff_base_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._broker = broker
        self._cache = cache
        self.debounce_seconds = debounce_seconds
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self._sleep = sleep
        self._state = RestoreState.UNKNOWN
        self._result: Optional[RestoreResult] = None
        self._attempted_email: Optional[str] = None

    @property
    def state(self) -> RestoreState:
        return self._state

    def restore(self) -> RestoreResult:
        """
        Run the restore pass, or return the result of the one already run.

        Returns:
            RestoreResult in state AUTHENTICATED or SIGNED_OUT.
        """
        if self._result is not None:
            return self._result

        self._state = RestoreState.RESTORING
        result = SIGNED_OUT
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = self._run_pass()
                break
            except StoreUnavailableError as e:
                if attempt == self.max_attempts:
                    logger.warning(
                        f"Session restore gave up after {attempt} attempts: {e.message}"
                    )
                    break
                delay = self.backoff_base_seconds * (2 ** (attempt - 1))
                logger.info(
                    f"Credential store unavailable (attempt {attempt}), "
                    f"retrying in {delay:.1f}s"
                )
                self._sleep(delay)

        self._state = result.state
        self._result = result
        return result

    def _hydrate(self, user_id: str) -> Optional[UserCredential]:
        try:
            credential = self._broker.get_active_session(user_id)
        except (SessionNotFound, SessionExpired) as e:
            logger.info(f"Could not restore session for {user_id}: {e.message}")
            return None
        self._cache.remember(credential)
        return credential

    def _run_pass(self) -> RestoreResult:
        if self._cache.signed_out_intentionally:
            logger.debug("Intentional sign-out flag set; skipping restore")
            return SIGNED_OUT

        user_id = self._cache.last_user_id
        if user_id:
            credential = self._hydrate(user_id)
            if credential is not None:
                logger.info(f"Restored session for {user_id} from user id pointer")
                return RestoreResult(RestoreState.AUTHENTICATED, credential, "user_id")
            self._cache.forget_user_id()

        email = self._cache.last_user_email
        if not email:
            return SIGNED_OUT

        # A retry of this same run is not a new attempt
        if email != self._attempted_email:
            if self._cache.email_attempted_within(email, self.debounce_seconds):
                logger.info("Skipping email restore attempt - already tried recently")
                return SIGNED_OUT
            self._cache.record_email_attempt(email)
            self._attempted_email = email

        found = self._broker.store.get_by_email(email)
        if found is None:
            logger.info("No stored credential for remembered email")
            self._cache.forget_user_email()
            return SIGNED_OUT

        credential = self._hydrate(found.id)
        if credential is None:
            self._cache.forget_user_email()
            return SIGNED_OUT

        logger.info(f"Restored session for {found.id} from email pointer")
        return RestoreResult(RestoreState.AUTHENTICATED, credential, "email")
