from .base import PLAYERS_TABLE, ROOMS_TABLE, ChangeEvent, ChangeListener, RoomStore, Row
from .errors import StoreError, UniqueViolationError
from .memory import InMemoryStore

__all__ = [
    "PLAYERS_TABLE",
    "ROOMS_TABLE",
    "ChangeEvent",
    "ChangeListener",
    "InMemoryStore",
    "RoomStore",
    "Row",
    "StoreError",
    "UniqueViolationError",
]
