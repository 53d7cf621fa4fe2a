from .identity import (
    SESSION_KEY,
    FileSessionStore,
    MemorySessionStore,
    SessionIdentityProvider,
    SessionStore,
    SessionUnavailableError,
    is_valid_session_id,
    new_session_id,
)

__all__ = [
    "SESSION_KEY",
    "FileSessionStore",
    "MemorySessionStore",
    "SessionIdentityProvider",
    "SessionStore",
    "SessionUnavailableError",
    "is_valid_session_id",
    "new_session_id",
]
