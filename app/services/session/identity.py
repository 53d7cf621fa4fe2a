"""Session identity: a stable opaque identifier per browser or client install.

Every room mutation is attributed to a session identifier, so a storage
failure here is fatal to all room operations.
"""

import logging
import uuid
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

SESSION_KEY = "game_session_id"


class SessionUnavailableError(RuntimeError):
    """The local session slot cannot be read or written."""


class SessionStore(Protocol):
    """A single local key-value slot holding one identifier string."""

    def load(self) -> str | None: ...

    def save(self, session_id: str) -> None: ...

    def clear(self) -> None: ...


class MemorySessionStore:
    """Session slot that lives as long as the process."""

    def __init__(self, initial: str | None = None):
        self._value = initial

    def load(self) -> str | None:
        return self._value

    def save(self, session_id: str) -> None:
        self._value = session_id

    def clear(self) -> None:
        self._value = None


class FileSessionStore:
    """Session slot persisted to a local file (one identifier per profile)."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    def load(self) -> str | None:
        try:
            value = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise SessionUnavailableError(f"Cannot read session file {self._path}: {e}") from e
        return value or None

    def save(self, session_id: str) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(session_id, encoding="utf-8")
        except OSError as e:
            raise SessionUnavailableError(f"Cannot write session file {self._path}: {e}") from e

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise SessionUnavailableError(f"Cannot clear session file {self._path}: {e}") from e


def new_session_id() -> str:
    return str(uuid.uuid4())


def is_valid_session_id(value: str | None) -> bool:
    """Session identifiers are UUID strings."""
    if not value:
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


class SessionIdentityProvider:
    """Produces and persists the current session's identifier."""

    def __init__(self, store: SessionStore):
        self._store = store

    def get_session_id(self) -> str:
        """Return the persisted identifier, creating it on first call.

        Raises:
            SessionUnavailableError: If the slot cannot be read or written.
        """
        stored = self._store.load()
        if is_valid_session_id(stored):
            return stored

        if stored:
            logger.warning("Discarding malformed session identifier")
        session_id = new_session_id()
        self._store.save(session_id)
        logger.info("Generated new session identifier %s", session_id)
        return session_id
