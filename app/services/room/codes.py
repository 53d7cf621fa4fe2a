"""Human-shareable room codes."""

import secrets

# Excludes I, O, 0 and 1, which are easily confused when read aloud or typed
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6


def generate_room_code() -> str:
    """Draw a code uniformly from the 32^6 code space."""
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def normalize_room_code(code: str) -> str | None:
    """Upper-case a user-supplied code, or None if it cannot be a room code."""
    normalized = code.strip().upper()
    if len(normalized) != ROOM_CODE_LENGTH or not normalized.isalnum():
        return None
    return normalized
