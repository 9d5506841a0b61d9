"""
Client session pointer cache.

Remembers which user last signed in on this client so a reload can restore
the session without interactive consent. Holds pointers only, never tokens.
The user id pointer and the sign-out flag persist until cleared; the email
pointer expires after the pointer TTL (30 days by default).
"""

import logging
import time
from typing import Callable, Optional

from .storage import ClientStorage
from ..auth.models import UserCredential

logger = logging.getLogger(__name__)

LAST_USER_ID_KEY = "userId"
LAST_USER_EMAIL_KEY = "userEmail"
SIGN_OUT_FLAG_KEY = "intentionalSignOut"
LAST_EMAIL_ATTEMPT_KEY = "lastEmailAttempt"
LAST_ATTEMPT_TIME_KEY = "lastAttemptTime"

DEFAULT_POINTER_TTL_SECONDS = 30 * 24 * 60 * 60


class ClientSessionCache:
    """Typed access to the session pointers kept in a ClientStorage."""

    def __init__(
        self,
        storage: ClientStorage,
        pointer_ttl_seconds: int = DEFAULT_POINTER_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.pointer_ttl_seconds = pointer_ttl_seconds
        self._clock = clock

    @property
    def last_user_id(self) -> Optional[str]:
        return self.storage.get(LAST_USER_ID_KEY)

    @property
    def last_user_email(self) -> Optional[str]:
        return self.storage.get(LAST_USER_EMAIL_KEY)

    @property
    def signed_out_intentionally(self) -> bool:
        return self.storage.get(SIGN_OUT_FLAG_KEY) == "true"

    def remember(self, credential: UserCredential) -> None:
        """Record a successfully established session and clear the sign-out flag."""
        self.storage.remove(SIGN_OUT_FLAG_KEY)
        self.storage.set(LAST_USER_ID_KEY, credential.id)
        if credential.email:
            self.storage.set(
                LAST_USER_EMAIL_KEY, credential.email, self.pointer_ttl_seconds
            )
        else:
            # A previous user's email must not outlive their id pointer
            self.storage.remove(LAST_USER_EMAIL_KEY)
        logger.debug(f"Remembered session pointer for {credential.id}")

    def forget_user_id(self) -> None:
        self.storage.remove(LAST_USER_ID_KEY)

    def forget_user_email(self) -> None:
        self.storage.remove(LAST_USER_EMAIL_KEY)

    def sign_out(self) -> None:
        """Clear every pointer and suppress silent restore until the next sign-in."""
        self.forget_user_id()
        self.forget_user_email()
        self.storage.remove(LAST_EMAIL_ATTEMPT_KEY)
        self.storage.remove(LAST_ATTEMPT_TIME_KEY)
        self.storage.set(SIGN_OUT_FLAG_KEY, "true")
        logger.debug("Cleared session pointers and set sign-out flag")

    def email_attempted_within(self, email: str, window_seconds: float) -> bool:
        """True when a silent login for this exact email ran inside the window."""
        if self.storage.get(LAST_EMAIL_ATTEMPT_KEY) != email:
            return False
        raw_time = self.storage.get(LAST_ATTEMPT_TIME_KEY)
        try:
            attempted_at = float(raw_time) if raw_time is not None else None
        except ValueError:
            return False
        if attempted_at is None:
            return False
        return self._clock() - attempted_at < window_seconds

    def record_email_attempt(self, email: str) -> None:
        self.storage.set(LAST_EMAIL_ATTEMPT_KEY, email, self.pointer_ttl_seconds)
        self.storage.set(
            LAST_ATTEMPT_TIME_KEY, str(self._clock()), self.pointer_ttl_seconds
        )
