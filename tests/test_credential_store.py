"""Unit tests for the credential stores."""

import os
import sys
import json
import shutil
import tempfile
import time
from unittest.mock import Mock

import pytest
from google.api_core import exceptions as google_exceptions

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../src"))

from lifeassist.auth.credential_store import LocalDirectoryCredentialStore
from lifeassist.auth.firestore_store import FirestoreCredentialStore
from lifeassist.auth.models import UserCredential
from lifeassist.utils.errors import StoreUnavailableError


def _document(**overrides):
    data = {
        "id": "u1",
        "email": "ada@example.com",
        "name": "Ada",
        "accessToken": "at1",
        "refreshToken": "rt1",
        "accessTokenExpiresAtMs": 1_700_000_000_000,
    }
    data.update(overrides)
    return data


class TestLocalDirectoryCredentialStore:
    """Tests for the JSON file store."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store = LocalDirectoryCredentialStore(base_dir=self.temp_dir)

    def teardown_method(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_get_missing_returns_none(self):
        assert self.store.get("nobody") is None

    def test_save_then_get_round_trip(self):
        self.store.save("u1", _document())

        credential = self.store.get("u1")

        assert credential.id == "u1"
        assert credential.email == "ada@example.com"
        assert credential.access_token == "at1"
        assert credential.refresh_token == "rt1"
        assert credential.access_token_expires_at_ms == 1_700_000_000_000
        assert credential.last_updated is not None

    def test_save_merges_instead_of_replacing(self):
        self.store.save("u1", _document())
        self.store.save(
            "u1", {"accessToken": "at2", "accessTokenExpiresAtMs": 1_800_000_000_000}
        )

        credential = self.store.get("u1")

        assert credential.access_token == "at2"
        assert credential.access_token_expires_at_ms == 1_800_000_000_000
        # Fields not in the second write survive
        assert credential.refresh_token == "rt1"
        assert credential.name == "Ada"

    def test_none_fields_do_not_erase_stored_values(self):
        self.store.save("u1", _document())
        self.store.save("u1", {"accessToken": "at2", "refreshToken": None})

        assert self.store.get("u1").refresh_token == "rt1"

    def test_save_stamps_last_updated_every_time(self):
        self.store.save("u1", _document())
        first = self.store.get("u1").last_updated
        self.store.save("u1", {"name": "Ada L."})
        second = self.store.get("u1").last_updated

        assert second >= first

    def test_save_credential_value(self):
        credential = UserCredential(
            id="u3", access_token="at3", access_token_expires_at_ms=5, email="c@x.io"
        )
        self.store.save_credential(credential)

        assert self.store.get("u3").email == "c@x.io"

    def test_ids_with_special_characters(self):
        self.store.save("a/b_c@d", _document(id="a/b_c@d"))

        assert self.store.get("a/b_c@d").id == "a/b_c@d"
        assert len(os.listdir(self.temp_dir)) == 1

    def test_get_by_email(self):
        self.store.save("u1", _document())
        self.store.save("u2", _document(id="u2", email="bob@example.com"))

        assert self.store.get_by_email("bob@example.com").id == "u2"
        assert self.store.get_by_email("carol@example.com") is None
        assert self.store.get_by_email("") is None

    def test_get_by_email_prefers_most_recent(self):
        self.store.save("old", _document(id="old"))
        time.sleep(0.01)
        self.store.save("new", _document(id="new"))

        assert self.store.get_by_email("ada@example.com").id == "new"

    def test_corrupt_document_is_treated_as_missing(self):
        self.store.save("u1", _document())
        path = os.path.join(self.temp_dir, os.listdir(self.temp_dir)[0])
        with open(path, "w") as f:
            f.write("{not json")

        assert self.store.get("u1") is None

    def test_document_without_token_is_ignored(self):
        self.store.save("u1", {"email": "ada@example.com"})

        assert self.store.get("u1") is None
        assert self.store.get_by_email("ada@example.com") is None

    def test_save_requires_user_id(self):
        with pytest.raises(ValueError):
            self.store.save("", _document())

    def test_stored_document_uses_camel_case_keys(self):
        self.store.save("u1", _document())
        path = os.path.join(self.temp_dir, os.listdir(self.temp_dir)[0])
        with open(path) as f:
            data = json.load(f)

        assert data["accessTokenExpiresAtMs"] == 1_700_000_000_000
        assert "lastUpdated" in data


class TestFirestoreCredentialStore:
    """Tests for the Firestore store against a mocked client."""

    def setup_method(self):
        self.client = Mock()
        self.collection = self.client.collection.return_value
        self.doc_ref = self.collection.document.return_value
        self.store = FirestoreCredentialStore(self.client)

    def test_save_merges_with_server_timestamp(self):
        from firebase_admin import firestore

        self.store.save("u1", {"accessToken": "at2", "refreshToken": None})

        self.client.collection.assert_called_with("users")
        self.collection.document.assert_called_with("u1")
        args, kwargs = self.doc_ref.set.call_args
        assert kwargs == {"merge": True}
        assert args[0]["accessToken"] == "at2"
        assert "refreshToken" not in args[0]
        assert args[0]["lastUpdated"] is firestore.SERVER_TIMESTAMP

    def test_get_missing(self):
        self.doc_ref.get.return_value = Mock(exists=False)

        assert self.store.get("u1") is None

    def test_get_existing(self):
        self.doc_ref.get.return_value = Mock(
            exists=True, to_dict=Mock(return_value=_document())
        )

        assert self.store.get("u1").access_token == "at1"

    def test_get_by_email(self):
        snapshot = Mock(id="u1", to_dict=Mock(return_value=_document()))
        query = self.collection.where.return_value.limit.return_value
        query.stream.return_value = iter([snapshot])

        credential = self.store.get_by_email("ada@example.com")

        assert credential.id == "u1"
        self.collection.where.return_value.limit.assert_called_with(1)

    def test_get_by_email_not_found(self):
        query = self.collection.where.return_value.limit.return_value
        query.stream.return_value = iter([])

        assert self.store.get_by_email("ada@example.com") is None

    def test_backend_failure_raises_store_unavailable(self):
        self.doc_ref.get.side_effect = google_exceptions.ServiceUnavailable("down")

        with pytest.raises(StoreUnavailableError):
            self.store.get("u1")

    def test_write_failure_raises_store_unavailable(self):
        self.doc_ref.set.side_effect = google_exceptions.DeadlineExceeded("slow")

        with pytest.raises(StoreUnavailableError):
            self.store.save("u1", {"accessToken": "at2"})
