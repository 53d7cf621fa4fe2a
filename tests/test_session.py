"""Tests for session identity persistence."""

import uuid

import pytest

from app.services.session import (
    FileSessionStore,
    MemorySessionStore,
    SessionIdentityProvider,
    SessionUnavailableError,
    is_valid_session_id,
)

from .conftest import SESSION_1


class TestSessionIdentityProvider:
    def test_generates_and_persists_once(self):
        store = MemorySessionStore()
        provider = SessionIdentityProvider(store)

        first = provider.get_session_id()
        assert is_valid_session_id(first)
        assert store.load() == first
        assert provider.get_session_id() == first

    def test_reuses_stored_identifier(self):
        provider = SessionIdentityProvider(MemorySessionStore(SESSION_1))
        assert provider.get_session_id() == SESSION_1

    def test_replaces_malformed_identifier(self):
        store = MemorySessionStore("not-a-uuid")
        session_id = SessionIdentityProvider(store).get_session_id()
        assert session_id != "not-a-uuid"
        assert store.load() == session_id

    def test_file_store_survives_new_provider(self, tmp_path):
        path = tmp_path / "profile" / "session"
        first = SessionIdentityProvider(FileSessionStore(path)).get_session_id()
        second = SessionIdentityProvider(FileSessionStore(path)).get_session_id()

        assert first == second
        assert path.read_text(encoding="utf-8") == first

    def test_unreadable_slot_is_fatal(self, tmp_path):
        # A directory where the file should be cannot be read as text
        path = tmp_path / "session"
        path.mkdir()

        with pytest.raises(SessionUnavailableError):
            SessionIdentityProvider(FileSessionStore(path)).get_session_id()


class TestFileSessionStore:
    def test_missing_file_loads_none(self, tmp_path):
        assert FileSessionStore(tmp_path / "absent").load() is None

    def test_clear(self, tmp_path):
        store = FileSessionStore(tmp_path / "session")
        store.save(SESSION_1)
        store.clear()
        assert store.load() is None


@pytest.mark.parametrize(
    "value,expected",
    [(SESSION_1, True), (str(uuid.uuid4()), True), ("", False), (None, False), ("abc", False)],
)
def test_is_valid_session_id(value, expected):
    assert is_valid_session_id(value) is expected
