"""Persisted-state store contract for rooms and players.

Two collections are exposed:
- game_rooms: keyed by generated id, unique on code
- players: keyed by generated id, expected unique on (room_id, session_id)

Backends reject a duplicate (room_id, session_id) with UniqueViolationError.
The room service also serializes joins per room within one process.

Every write publishes a ChangeEvent to subscribed listeners.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)

ROOMS_TABLE = "game_rooms"
PLAYERS_TABLE = "players"

Row = dict[str, Any]


@dataclass
class ChangeEvent:
    """A single row change notification."""

    table: str
    event_type: Literal["INSERT", "UPDATE", "DELETE"]
    record: Row | None = None
    old_record: Row | None = None

    @property
    def room_id(self) -> str | None:
        """Room this change belongs to, regardless of collection."""
        row = self.record or self.old_record or {}
        if self.table == ROOMS_TABLE:
            return row.get("id")
        return row.get("room_id")


ChangeListener = Callable[[ChangeEvent], Awaitable[None]]


class RoomStore(ABC):
    """Abstract store with a local change feed."""

    def __init__(self) -> None:
        self._listeners: list[tuple[str | None, ChangeListener]] = []

    def subscribe(
        self, listener: ChangeListener, table: str | None = None
    ) -> Callable[[], None]:
        """Register a change listener, optionally filtered by table.

        Returns:
            A callable that removes the subscription.
        """
        entry = (table, listener)
        self._listeners.append(entry)
        logger.debug("Store listener subscribed (table=%s)", table or "*")

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    async def _publish(self, event: ChangeEvent) -> None:
        """Deliver a change event to every matching listener.

        A failing listener is logged and does not block the others.
        """
        for table, listener in list(self._listeners):
            if table is not None and table != event.table:
                continue
            try:
                await listener(event)
            except Exception as e:
                logger.error(
                    "Store listener failed for %s %s: %s", event.table, event.event_type, e
                )

    async def start(self) -> None:
        """Begin delivering change notifications. Default: this process's own writes only."""

    async def close(self) -> None:
        """Release store resources."""
        self._listeners.clear()

    # --- rooms ---

    @abstractmethod
    async def insert_room(self, values: Row) -> Row:
        """Insert a room; raises UniqueViolationError on a duplicate code."""

    @abstractmethod
    async def get_room(self, room_id: str) -> Row | None: ...

    @abstractmethod
    async def get_room_by_code(self, code: str) -> Row | None: ...

    @abstractmethod
    async def update_room(
        self, room_id: str, values: Row, expected_version: int | None = None
    ) -> Row | None:
        """Update a room.

        When expected_version is given, the update only applies if the stored
        state_version equals it. Returns the updated row, or None if no row
        matched.
        """

    @abstractmethod
    async def delete_room(self, room_id: str) -> None: ...

    # --- players ---

    @abstractmethod
    async def insert_player(self, values: Row) -> Row: ...

    @abstractmethod
    async def get_player(self, player_id: str) -> Row | None: ...

    @abstractmethod
    async def find_player(self, room_id: str, session_id: str) -> Row | None: ...

    @abstractmethod
    async def list_players(self, room_id: str) -> list[Row]:
        """Players of a room ordered by joined_at ascending."""

    @abstractmethod
    async def count_players(self, room_id: str) -> int: ...

    @abstractmethod
    async def update_player(self, player_id: str, values: Row) -> Row | None: ...

    @abstractmethod
    async def delete_player(self, player_id: str) -> Row | None:
        """Delete a player, returning the removed row if it existed."""
