"""
Credential Store for LifeAssist.

This module provides a standardized interface for credential storage and
retrieval. Records are keyed by the provider's user id and written with
merge-upsert semantics: a save overlays only the given fields onto the stored
record, creating it when absent.
"""

import os
import json
import logging
import base64
import tempfile
from abc import ABC, abstractmethod
from threading import RLock
from typing import Any, Dict, Iterator, Optional
from datetime import datetime, timezone

from .models import UserCredential
from .oauth_config import get_oauth_config
from ..utils.errors import InvalidCredentialError, StoreUnavailableError

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """Abstract base class for credential storage."""

    @abstractmethod
    def save(self, user_id: str, fields: Dict[str, Any]) -> None:
        """Merge `fields` into the record for `user_id`, stamping lastUpdated."""
        pass

    @abstractmethod
    def get(self, user_id: str) -> Optional[UserCredential]:
        """Get the credential for a user id, or None when not found."""
        pass

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[UserCredential]:
        """Get the first credential whose email matches, or None."""
        pass

    def save_credential(self, credential: UserCredential) -> None:
        """Merge a full credential into the store."""
        self.save(credential.id, credential.to_document())


def _merge_fields(existing: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay non-None fields onto an existing document."""
    merged = dict(existing)
    for key, value in fields.items():
        if value is not None:
            merged[key] = value
    return merged


class LocalDirectoryCredentialStore(CredentialStore):
    """Credential store that uses one local JSON file per user."""

    def __init__(self, base_dir: Optional[str] = None) -> None:
        """
        Initialize the local credential store.

        Args:
            base_dir: Base directory for credential files. If None, uses
                     <LIFEASSIST_DATA_DIR>/credentials
        """
        if base_dir is None:
            base_dir = os.path.join(get_oauth_config().data_dir, "credentials")

        self.base_dir = base_dir
        self._lock = RLock()
        self._ensure_dir_exists()
        logger.info(f"LocalDirectoryCredentialStore initialized: {base_dir}")

    def _ensure_dir_exists(self) -> None:
        """Ensure the credentials directory exists."""
        if not os.path.exists(self.base_dir):
            os.makedirs(self.base_dir, exist_ok=True)
            logger.info(f"Created credentials directory: {self.base_dir}")

    def _user_id_to_filename(self, user_id: str) -> str:
        """Convert a user id to a safe, reversible filename."""
        encoded = base64.urlsafe_b64encode(user_id.encode("utf-8")).decode("ascii")
        # Remove padding for cleaner filenames
        return encoded.rstrip("=")

    def _get_credential_path(self, user_id: str) -> str:
        """Get the file path for a user's credential document."""
        self._ensure_dir_exists()
        return os.path.join(self.base_dir, f"{self._user_id_to_filename(user_id)}.json")

    def _read_document(self, path: str) -> Optional[Dict[str, Any]]:
        """Read a raw document. Caller must hold lock."""
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt credential document {path}: {e}")
            return None
        except OSError as e:
            raise StoreUnavailableError(f"Could not read credential store: {e}")
        if not isinstance(data, dict):
            logger.error(f"Invalid credential document format: {path}")
            return None
        return data

    def _write_document(self, path: str, data: Dict[str, Any]) -> None:
        """Write a document atomically. Caller must hold lock."""
        try:
            fd, temp_path = tempfile.mkstemp(dir=self.base_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f, indent=2)
                os.replace(temp_path, path)
            except Exception:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise
        except OSError as e:
            raise StoreUnavailableError(f"Could not write credential store: {e}")

    def _to_credential(
        self, data: Dict[str, Any], user_id: Optional[str] = None
    ) -> Optional[UserCredential]:
        try:
            return UserCredential.from_document(data, user_id=user_id)
        except InvalidCredentialError as e:
            logger.warning(f"Ignoring invalid stored credential: {e}")
            return None

    def save(self, user_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into the user's JSON document."""
        if not user_id:
            raise ValueError("user_id must be provided")

        with self._lock:
            creds_path = self._get_credential_path(user_id)
            existing = self._read_document(creds_path) or {}
            merged = _merge_fields(existing, fields)
            merged["id"] = user_id
            merged["lastUpdated"] = datetime.now(timezone.utc).isoformat()
            self._write_document(creds_path, merged)

        logger.info(f"Stored credential fields for {user_id}: {sorted(fields)}")

    def get(self, user_id: str) -> Optional[UserCredential]:
        """Get the credential from the user's JSON document."""
        if not user_id:
            return None

        with self._lock:
            data = self._read_document(self._get_credential_path(user_id))

        if data is None:
            logger.debug(f"No credential document found for {user_id}")
            return None

        return self._to_credential(data, user_id=user_id)

    def _iter_documents(self) -> Iterator[Dict[str, Any]]:
        """Yield every stored document. Caller must hold lock."""
        try:
            filenames = sorted(os.listdir(self.base_dir))
        except OSError as e:
            raise StoreUnavailableError(f"Could not list credential store: {e}")

        for filename in filenames:
            if not filename.endswith(".json"):
                continue
            data = self._read_document(os.path.join(self.base_dir, filename))
            if data is not None:
                yield data

    def get_by_email(self, email: str) -> Optional[UserCredential]:
        """
        Find a credential by email.

        Email uniqueness is not enforced; when several records match, the most
        recently updated one wins.
        """
        if not email:
            return None

        with self._lock:
            matches = [
                data for data in self._iter_documents() if data.get("email") == email
            ]

        if not matches:
            logger.debug(f"No credential document found for email {email}")
            return None

        if len(matches) > 1:
            logger.warning(f"{len(matches)} credential records share email {email}")
        matches.sort(key=lambda data: data.get("lastUpdated") or "", reverse=True)
        return self._to_credential(matches[0])


# Global credential store instance
_credential_store: Optional[CredentialStore] = None


def _create_configured_store() -> CredentialStore:
    config = get_oauth_config()
    if config.credential_backend == "firestore":
        from .firestore_store import FirestoreCredentialStore

        return FirestoreCredentialStore.from_config(config)
    if config.credential_backend != "local":
        raise ValueError(f"Unknown credential backend: {config.credential_backend}")
    return LocalDirectoryCredentialStore()


def get_credential_store() -> CredentialStore:
    """Get the global credential store instance."""
    global _credential_store

    if _credential_store is None:
        _credential_store = _create_configured_store()
        logger.info(f"Initialized credential store: {type(_credential_store).__name__}")

    return _credential_store


def set_credential_store(store: Optional[CredentialStore]) -> None:
    """Set (or with None, reset) the global credential store instance."""
    global _credential_store
    _credential_store = store
    if store is not None:
        logger.info(f"Set credential store: {type(store).__name__}")
