"""Unit tests for client session storage, the pointer cache and silent restore."""

import os
import sys
import shutil
import tempfile
from unittest.mock import Mock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../src"))

from lifeassist.auth.credential_store import (
    CredentialStore,
    LocalDirectoryCredentialStore,
)
from lifeassist.auth.models import UserCredential
from lifeassist.auth.session_broker import SessionBroker
from lifeassist.auth.token_refresher import TokenRefresher
from lifeassist.session.cache import ClientSessionCache
from lifeassist.session.restorer import RestoreState, SessionRestorer
from lifeassist.session.storage import MemoryClientStorage, SessionClientStorage
from lifeassist.utils.errors import (
    SessionExpired,
    SessionNotFound,
    StoreUnavailableError,
)


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _credential(user_id="u1", email="ada@example.com"):
    return UserCredential(
        id=user_id,
        access_token="at1",
        access_token_expires_at_ms=9_999_999_999_999,
        refresh_token="rt1",
        email=email,
    )


class TestMemoryClientStorage:
    def test_values_expire(self):
        clock = FakeClock()
        storage = MemoryClientStorage(clock=clock)
        storage.set("a", "1", ttl_seconds=10)
        storage.set("b", "2")

        clock.advance(11)

        assert storage.get("a") is None
        assert storage.get("b") == "2"

    def test_remove_missing_key(self):
        storage = MemoryClientStorage()
        storage.remove("missing")

        assert storage.get("missing") is None


class TestSessionClientStorage:
    def test_entries_live_in_the_session_mapping(self):
        session = {}
        storage = SessionClientStorage(session)
        storage.set("userId", "u1")
        storage.set("intentionalSignOut", "true")
        storage.remove("intentionalSignOut")

        assert storage.get("userId") == "u1"
        assert storage.get("intentionalSignOut") is None
        assert session == {"userId": {"value": "u1", "expiresAt": None}}

    def test_values_expire(self):
        clock = FakeClock()
        session = {}
        storage = SessionClientStorage(session, clock=clock)
        storage.set("userEmail", "ada@example.com", ttl_seconds=60)

        clock.advance(61)

        assert storage.get("userEmail") is None
        assert "userEmail" not in session

    def test_malformed_entries_are_ignored(self):
        storage = SessionClientStorage({"userId": "u1", "userEmail": {"value": 5}})

        assert storage.get("userId") is None
        assert storage.get("userEmail") is None


class TestClientSessionCache:
    def setup_method(self):
        self.clock = FakeClock()
        self.storage = MemoryClientStorage(clock=self.clock)
        self.cache = ClientSessionCache(self.storage, clock=self.clock)

    def test_remember_sets_pointers_and_clears_flag(self):
        self.cache.sign_out()
        self.cache.remember(_credential())

        assert self.cache.last_user_id == "u1"
        assert self.cache.last_user_email == "ada@example.com"
        assert not self.cache.signed_out_intentionally

    def test_only_email_pointer_expires_after_thirty_days(self):
        self.cache.remember(_credential())

        self.clock.advance(30 * 24 * 60 * 60 + 1)

        assert self.cache.last_user_id == "u1"
        assert self.cache.last_user_email is None

    def test_sign_out_flag_does_not_expire(self):
        self.cache.sign_out()

        self.clock.advance(365 * 24 * 60 * 60)

        assert self.cache.signed_out_intentionally

    def test_remember_without_email_drops_previous_email(self):
        self.cache.remember(_credential("u1", "ada@example.com"))
        self.cache.remember(_credential("u2", None))

        assert self.cache.last_user_id == "u2"
        assert self.cache.last_user_email is None

    def test_sign_out(self):
        self.cache.remember(_credential())
        self.cache.record_email_attempt("ada@example.com")

        self.cache.sign_out()

        assert self.cache.last_user_id is None
        assert self.cache.last_user_email is None
        assert self.cache.signed_out_intentionally
        assert not self.cache.email_attempted_within("ada@example.com", 10)

    def test_email_attempt_window(self):
        self.cache.record_email_attempt("ada@example.com")

        assert self.cache.email_attempted_within("ada@example.com", 10)
        assert not self.cache.email_attempted_within("bob@example.com", 10)
        self.clock.advance(10)
        assert not self.cache.email_attempted_within("ada@example.com", 10)


class TestSessionRestorer:
    """Tests for the silent restore state machine."""

    def setup_method(self):
        self.clock = FakeClock()
        self.storage = MemoryClientStorage(clock=self.clock)
        self.cache = ClientSessionCache(self.storage, clock=self.clock)
        self.store = Mock(spec=CredentialStore)
        self.broker = Mock(spec=SessionBroker)
        self.broker.store = self.store
        self.sleep = Mock()

    def _restorer(self, **kwargs):
        kwargs.setdefault("sleep", self.sleep)
        return SessionRestorer(self.broker, self.cache, **kwargs)

    def test_sign_out_flag_skips_all_lookups(self):
        self.cache.remember(_credential())
        self.cache.sign_out()

        result = self._restorer().restore()

        assert result.state is RestoreState.SIGNED_OUT
        self.broker.get_active_session.assert_not_called()
        self.store.get_by_email.assert_not_called()

    def test_nothing_remembered(self):
        restorer = self._restorer()
        assert restorer.state is RestoreState.UNKNOWN

        result = restorer.restore()

        assert result.state is RestoreState.SIGNED_OUT
        assert restorer.state is RestoreState.SIGNED_OUT
        self.store.get_by_email.assert_not_called()

    def test_restore_from_user_id(self):
        self.storage.set("userId", "u1")
        self.broker.get_active_session.return_value = _credential()

        restorer = self._restorer()
        result = restorer.restore()

        assert result.authenticated
        assert result.source == "user_id"
        assert restorer.state is RestoreState.AUTHENTICATED
        assert self.cache.last_user_email == "ada@example.com"
        self.store.get_by_email.assert_not_called()

    def test_falls_back_to_email_when_user_id_is_stale(self):
        self.storage.set("userId", "gone")
        self.storage.set("userEmail", "ada@example.com")
        self.store.get_by_email.return_value = _credential()

        def hydrate(user_id):
            if user_id == "gone":
                raise SessionNotFound("No stored credential", user_id)
            return _credential()

        self.broker.get_active_session.side_effect = hydrate

        result = self._restorer().restore()

        assert result.authenticated
        assert result.source == "email"
        assert result.credential.id == "u1"
        assert self.cache.last_user_id == "u1"

    def test_unknown_email_is_forgotten(self):
        self.storage.set("userEmail", "ada@example.com")
        self.store.get_by_email.return_value = None

        result = self._restorer().restore()

        assert result.state is RestoreState.SIGNED_OUT
        assert self.cache.last_user_email is None

    def test_expired_session_is_not_retried(self):
        self.storage.set("userId", "u1")
        self.broker.get_active_session.side_effect = SessionExpired("expired", "u1")

        result = self._restorer().restore()

        assert result.state is RestoreState.SIGNED_OUT
        assert self.cache.last_user_id is None
        assert self.broker.get_active_session.call_count == 1
        self.sleep.assert_not_called()

    def test_email_attempts_are_debounced(self):
        self.storage.set("userEmail", "ada@example.com")
        self.store.get_by_email.side_effect = StoreUnavailableError("down")

        first = self._restorer(max_attempts=1).restore()
        self.clock.advance(5)
        second = self._restorer(max_attempts=1).restore()

        assert first.state is RestoreState.SIGNED_OUT
        assert second.state is RestoreState.SIGNED_OUT
        assert self.store.get_by_email.call_count == 1

    def test_email_attempt_allowed_after_window(self):
        self.storage.set("userEmail", "ada@example.com")
        self.store.get_by_email.side_effect = StoreUnavailableError("down")

        self._restorer(max_attempts=1).restore()
        self.clock.advance(11)
        self._restorer(max_attempts=1).restore()

        assert self.store.get_by_email.call_count == 2

    def test_store_outage_is_retried_with_backoff(self):
        self.storage.set("userEmail", "ada@example.com")
        self.store.get_by_email.side_effect = [
            StoreUnavailableError("down"),
            _credential(),
        ]
        self.broker.get_active_session.return_value = _credential()

        result = self._restorer(max_attempts=3).restore()

        assert result.authenticated
        assert self.store.get_by_email.call_count == 2
        self.sleep.assert_called_once_with(0.5)

    def test_gives_up_after_max_attempts(self):
        self.storage.set("userId", "u1")
        self.broker.get_active_session.side_effect = StoreUnavailableError("down")

        result = self._restorer(max_attempts=3).restore()

        assert result.state is RestoreState.SIGNED_OUT
        assert self.broker.get_active_session.call_count == 3
        assert [c.args[0] for c in self.sleep.call_args_list] == [0.5, 1.0]
        # Pointers survive an outage
        assert self.cache.last_user_id == "u1"

    def test_restore_runs_once(self):
        self.storage.set("userId", "u1")
        self.broker.get_active_session.return_value = _credential()
        restorer = self._restorer()

        first = restorer.restore()
        second = restorer.restore()

        assert first is second
        assert self.broker.get_active_session.call_count == 1

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            self._restorer(max_attempts=0)


class TestRestoreWithBroker:
    """Restore against a real broker and local store."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store = LocalDirectoryCredentialStore(base_dir=self.temp_dir)
        self.broker = SessionBroker(store=self.store, refresher=Mock(spec=TokenRefresher))
        self.cache = ClientSessionCache(MemoryClientStorage())

    def teardown_method(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_sign_out_then_restore_does_no_store_lookups(self):
        self.store.save_credential(_credential())
        self.cache.remember(self.store.get("u1"))
        self.broker.end_session("u1", self.cache)
        spy = Mock(wraps=self.store)
        self.broker._store = spy

        result = SessionRestorer(self.broker, self.cache).restore()

        assert result.state is RestoreState.SIGNED_OUT
        spy.get.assert_not_called()
        spy.get_by_email.assert_not_called()

    def test_restore_from_email_only(self):
        self.store.save_credential(_credential())
        self.cache.storage.set("userEmail", "ada@example.com")

        result = SessionRestorer(self.broker, self.cache).restore()

        assert result.authenticated
        assert self.cache.last_user_id == "u1"
