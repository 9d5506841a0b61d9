"""
Pending OAuth state store for LifeAssist.

Each interactive sign-in records its `state` value together with the PKCE
code verifier and the page to return to. States are persisted to disk so a
server restart between redirect and callback does not break the sign-in.
"""

import json
import logging
import os
import tempfile
from typing import Dict, Optional, Any
from threading import RLock
from datetime import datetime, timedelta, timezone

from .oauth_config import get_data_dir

logger = logging.getLogger(__name__)


def _get_oauth_states_file_path() -> str:
    """Get the file path for persisting OAuth states."""
    return os.path.join(get_data_dir(), "oauth_states.json")


class OAuthStateStore:
    """
    Store for OAuth `state` values awaiting their callback.

    States are single-use: validation consumes them.
    """

    def __init__(self, states_file_path: Optional[str] = None) -> None:
        self._oauth_states: Dict[str, Dict[str, Any]] = {}
        self._lock = RLock()
        self._states_file_path = states_file_path or _get_oauth_states_file_path()

        # Load persisted OAuth states on initialization
        self._load_oauth_states_from_disk()

    def _cleanup_expired_oauth_states_locked(self) -> None:
        """Remove expired OAuth state entries. Caller must hold lock."""
        now = datetime.now(timezone.utc)
        expired_states = [
            state
            for state, data in self._oauth_states.items()
            if data.get("expires_at") and data["expires_at"] <= now
        ]
        for state in expired_states:
            del self._oauth_states[state]
            logger.debug("Removed expired OAuth state: %s...", state[:8])

    def _load_oauth_states_from_disk(self) -> None:
        """Load persisted OAuth states from disk on initialization."""
        try:
            if not os.path.exists(self._states_file_path):
                logger.debug("No persisted OAuth states file found")
                return

            with open(self._states_file_path, "r") as f:
                persisted_data = json.load(f)

            if not isinstance(persisted_data, dict):
                logger.warning("Invalid OAuth states file format, ignoring")
                return

            loaded_count = 0
            for state, data in persisted_data.items():
                try:
                    if data.get("expires_at"):
                        data["expires_at"] = datetime.fromisoformat(data["expires_at"])
                    if data.get("created_at"):
                        data["created_at"] = datetime.fromisoformat(data["created_at"])
                    self._oauth_states[state] = data
                    loaded_count += 1
                except (ValueError, TypeError, AttributeError) as e:
                    logger.warning("Failed to parse OAuth state: %s", e)

            self._cleanup_expired_oauth_states_locked()
            logger.info(
                "Loaded %d OAuth states from disk (%d after cleanup)",
                loaded_count,
                len(self._oauth_states),
            )

        except json.JSONDecodeError as e:
            logger.warning("Failed to parse OAuth states file: %s", e)
        except OSError as e:
            logger.warning("Failed to read OAuth states file: %s", e)

    def _save_oauth_states_to_disk(self) -> None:
        """Persist OAuth states to disk atomically. Caller must hold lock."""
        serializable_data = {}
        for state, data in self._oauth_states.items():
            serializable_data[state] = {
                "code_verifier": data.get("code_verifier"),
                "return_to": data.get("return_to"),
                "expires_at": data["expires_at"].isoformat()
                if data.get("expires_at")
                else None,
                "created_at": data["created_at"].isoformat()
                if data.get("created_at")
                else None,
            }

        try:
            target_dir = os.path.dirname(self._states_file_path)
            fd, temp_path = tempfile.mkstemp(dir=target_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(serializable_data, f, indent=2)
                os.replace(temp_path, self._states_file_path)
            except Exception:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise

            logger.debug("Persisted %d OAuth states to disk", len(serializable_data))

        except OSError as e:
            # The in-memory copy still serves callbacks to this process
            logger.error("Failed to persist OAuth states to disk: %s", e)

    def store_oauth_state(
        self,
        state: str,
        code_verifier: Optional[str] = None,
        return_to: str = "/",
        expires_in_seconds: int = 600,
    ) -> None:
        """
        Persist an OAuth state value for later validation.

        Args:
            state: Random state sent to the authorization endpoint.
            code_verifier: PKCE verifier matching the sent code challenge.
            return_to: Application path to redirect to after sign-in.
            expires_in_seconds: How long the state stays valid.
        """
        if not state:
            raise ValueError("OAuth state must be provided")
        if expires_in_seconds < 0:
            raise ValueError("expires_in_seconds must be non-negative")

        with self._lock:
            self._cleanup_expired_oauth_states_locked()
            now = datetime.now(timezone.utc)
            expiry = now + timedelta(seconds=expires_in_seconds)
            self._oauth_states[state] = {
                "code_verifier": code_verifier,
                "return_to": return_to,
                "expires_at": expiry,
                "created_at": now,
            }

            self._save_oauth_states_to_disk()

            logger.debug(
                "Stored OAuth state %s... (expires at %s)",
                state[:8],
                expiry.isoformat(),
            )

    def validate_and_consume_oauth_state(self, state: str) -> Dict[str, Any]:
        """
        Validate that a state value exists and consume it.

        Args:
            state: The OAuth state returned by Google.

        Returns:
            Metadata associated with the state (code_verifier, return_to).

        Raises:
            ValueError: If the state is missing, unknown, or expired.
        """
        if not state:
            raise ValueError("Missing OAuth state parameter")

        with self._lock:
            self._cleanup_expired_oauth_states_locked()
            state_info = self._oauth_states.pop(state, None)

            if not state_info:
                logger.error("OAuth callback received unknown or expired state")
                raise ValueError("Invalid or expired OAuth state parameter")

            self._save_oauth_states_to_disk()
            logger.debug("Validated OAuth state %s...", state[:8])
            return state_info

    def pending_count(self) -> int:
        """Number of states still awaiting a callback."""
        with self._lock:
            self._cleanup_expired_oauth_states_locked()
            return len(self._oauth_states)


# Global instance
_global_store: Optional[OAuthStateStore] = None


def get_oauth_state_store() -> OAuthStateStore:
    """Get the global OAuth state store."""
    global _global_store
    if _global_store is None:
        _global_store = OAuthStateStore()
    return _global_store
