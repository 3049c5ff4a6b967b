"""
Unit tests for the in-memory session registry.
"""

from regforms.core.form_state import FormSession
from regforms.core.session import Session, SessionStore


class TestSession:
    """Tests for session timestamps."""

    def test_expiry(self, rsvp_definition):
        session = Session(FormSession(rsvp_definition))
        assert not session.is_expired(60)
        session.last_accessed_at -= 120
        assert session.is_expired(60)
        session.touch()
        assert not session.is_expired(60)


class TestSessionStore:
    """Tests for creating, fetching and expiring sessions."""

    def test_create_and_get(self, rsvp_definition):
        store = SessionStore()
        session_id, session = store.create_session(rsvp_definition)
        assert store.get_session(session_id) is session
        assert session.form.definition is rsvp_definition
        assert store.count() == 1

    def test_custom_id_and_draft(self, rsvp_definition):
        store = SessionStore()
        session_id, session = store.create_session(rsvp_definition, draft={"attending": True}, session_id="abc")
        assert session_id == "abc"
        assert session.form.is_visible("guestCount")

    def test_sessions_are_independent(self, rsvp_definition):
        store = SessionStore()
        _, first = store.create_session(rsvp_definition)
        _, second = store.create_session(rsvp_definition)
        first.form.set_value("attending", True)
        assert second.form.values == {}
        assert not second.form.is_visible("guestCount")

    def test_clear_hidden_policy_passed_on(self, rsvp_definition):
        store = SessionStore(clear_hidden_values=False)
        _, session = store.create_session(rsvp_definition)
        assert session.form.clear_hidden_values is False

    def test_unknown_session(self):
        assert SessionStore().get_session("missing") is None

    def test_expired_session_removed(self, rsvp_definition):
        store = SessionStore(timeout_seconds=60)
        session_id, session = store.create_session(rsvp_definition)
        session.last_accessed_at -= 120
        assert store.get_session(session_id) is None
        assert store.count() == 0

    def test_delete(self, rsvp_definition):
        store = SessionStore()
        session_id, _ = store.create_session(rsvp_definition)
        assert store.delete_session(session_id) is True
        assert store.delete_session(session_id) is False

    def test_cleanup_expired(self, rsvp_definition):
        store = SessionStore(timeout_seconds=60)
        old_id, old = store.create_session(rsvp_definition)
        new_id, _ = store.create_session(rsvp_definition)
        old.last_accessed_at -= 120
        assert store.cleanup_expired() == 1
        assert store.list_session_ids() == [new_id]
