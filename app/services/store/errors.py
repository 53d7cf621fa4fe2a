"""Exceptions raised by room store adapters."""


class StoreError(Exception):
    """A store operation was rejected or could not be completed."""


class UniqueViolationError(StoreError):
    """An insert collided with a unique constraint (e.g. a room code)."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Unique constraint violated on '{field}'")
