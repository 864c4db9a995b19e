# tests/models/test_session_state.py

import pytest
from datetime import datetime, timedelta, timezone

from medley.core.exceptions import SessionError
from medley.core.orchestrator import ConsultOrchestrator
from medley.models.session_state import SessionStore

from tests.fakes import FakeBackend


@pytest.fixture
def store(base_schema):
    return SessionStore(lambda: ConsultOrchestrator(base_schema, FakeBackend()))


@pytest.mark.unit
class TestSessionStore:

    def test_create_and_get(self, store):
        session = store.create_session()

        assert store.get(session.session_id) is session
        assert len(store) == 1
        assert session.created_at is not None

    def test_sessions_are_independent(self, store):
        first = store.create_session()
        second = store.create_session()

        assert first.session_id != second.session_id
        assert first.orchestrator is not second.orchestrator

    def test_unknown_session(self, store):
        with pytest.raises(SessionError) as exc_info:
            store.get("missing")

        assert exc_info.value.details["session_id"] == "missing"

    def test_remove(self, store):
        session = store.create_session()

        assert store.remove(session.session_id)
        assert not store.remove(session.session_id)
        assert len(store) == 0


def expire(session):
    session.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)


@pytest.mark.unit
class TestSessionExpiry:

    def test_new_session_expires_after_ttl(self, base_schema):
        store = SessionStore(lambda: ConsultOrchestrator(base_schema, FakeBackend()), ttl_minutes=5)

        session = store.create_session()

        assert session.expires_at - session.created_at == timedelta(minutes=5)
        assert not session.is_expired()

    def test_expired_session_is_evicted_on_get(self, store):
        session = store.create_session()
        expire(session)

        with pytest.raises(SessionError) as exc_info:
            store.get(session.session_id)

        assert exc_info.value.message == "Session expired"
        assert len(store) == 0

    def test_expired_sessions_dropped_on_create(self, store):
        stale = store.create_session()
        expire(stale)

        fresh = store.create_session()

        assert stale.session_id not in store.sessions
        assert store.get(fresh.session_id) is fresh
        assert len(store) == 1

    def test_get_refreshes_expiry(self, store):
        session = store.create_session()
        before = session.expires_at

        store.get(session.session_id)

        assert session.expires_at >= before
        assert session.last_activity >= session.created_at
