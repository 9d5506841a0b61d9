"""
Cloud Firestore credential store for LifeAssist.

Credentials live in `users/{user_id}` documents, written with
`set(..., merge=True)` so refreshes never drop profile fields.
"""

import logging
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions

from .credential_store import CredentialStore
from .models import UserCredential
from .oauth_config import OAuthConfig
from ..utils.errors import InvalidCredentialError, StoreUnavailableError

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"


class FirestoreCredentialStore(CredentialStore):
    """Credential store backed by a Firestore collection."""

    def __init__(self, client: Any, collection: str = USERS_COLLECTION) -> None:
        self._client = client
        self._collection_name = collection
        logger.info(f"FirestoreCredentialStore initialized: collection '{collection}'")

    @classmethod
    def from_config(cls, config: OAuthConfig) -> "FirestoreCredentialStore":
        """
        Initialize the default Firebase app and return a store for it.

        Uses the service account at FIREBASE_CREDENTIALS_PATH when set, otherwise
        application default credentials.
        """
        if not firebase_admin._apps:
            if config.firebase_credentials_path:
                cred = credentials.Certificate(config.firebase_credentials_path)
                logger.info(
                    f"Firebase credentials loaded from {config.firebase_credentials_path}"
                )
            else:
                cred = credentials.ApplicationDefault()
                logger.info("Using application default credentials for Firebase")
            firebase_admin.initialize_app(cred)
        return cls(firestore.client())

    @property
    def _collection(self) -> Any:
        return self._client.collection(self._collection_name)

    def _to_credential(
        self, data: Optional[Dict[str, Any]], user_id: str
    ) -> Optional[UserCredential]:
        if not data:
            return None
        try:
            return UserCredential.from_document(data, user_id=user_id)
        except InvalidCredentialError as e:
            logger.warning(f"Ignoring invalid stored credential: {e}")
            return None

    def save(self, user_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into `users/{user_id}` with a server timestamp."""
        if not user_id:
            raise ValueError("user_id must be provided")

        document = {key: value for key, value in fields.items() if value is not None}
        document["id"] = user_id
        document["lastUpdated"] = firestore.SERVER_TIMESTAMP

        try:
            self._collection.document(user_id).set(document, merge=True)
        except google_exceptions.GoogleAPICallError as e:
            raise StoreUnavailableError(f"Firestore write failed: {e}", user_id)

        logger.info(f"Stored credential fields for {user_id}: {sorted(fields)}")

    def get(self, user_id: str) -> Optional[UserCredential]:
        """Read `users/{user_id}`."""
        if not user_id:
            return None

        try:
            snapshot = self._collection.document(user_id).get()
        except google_exceptions.GoogleAPICallError as e:
            raise StoreUnavailableError(f"Firestore read failed: {e}", user_id)

        if not snapshot.exists:
            logger.debug(f"No credential document found for {user_id}")
            return None

        return self._to_credential(snapshot.to_dict(), user_id)

    def get_by_email(self, email: str) -> Optional[UserCredential]:
        """Return the first document whose email field matches."""
        if not email:
            return None

        query = self._collection.where(
            filter=firestore.FieldFilter("email", "==", email)
        ).limit(1)
        try:
            snapshots = list(query.stream())
        except google_exceptions.GoogleAPICallError as e:
            raise StoreUnavailableError(f"Firestore query failed: {e}")

        if not snapshots:
            logger.debug(f"No credential document found for email {email}")
            return None

        snapshot = snapshots[0]
        return self._to_credential(snapshot.to_dict(), snapshot.id)
