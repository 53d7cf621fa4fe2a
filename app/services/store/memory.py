"""In-process room store, used for local development and tests."""

import asyncio
import copy
import logging
import uuid

from .base import PLAYERS_TABLE, ROOMS_TABLE, ChangeEvent, RoomStore, Row
from .errors import StoreError, UniqueViolationError

logger = logging.getLogger(__name__)


class InMemoryStore(RoomStore):
    """Dict-backed store.

    Mutations are serialized with an asyncio.Lock. Rows are deep-copied on the
    way in and out so callers never share references with stored state.
    """

    def __init__(self) -> None:
        super().__init__()
        self._rooms: dict[str, Row] = {}
        self._players: dict[str, Row] = {}
        self._lock = asyncio.Lock()

    # --- rooms ---

    async def insert_room(self, values: Row) -> Row:
        async with self._lock:
            code = values["code"]
            if any(room["code"] == code for room in self._rooms.values()):
                raise UniqueViolationError("code")
            row = copy.deepcopy(values)
            row.setdefault("id", str(uuid.uuid4()))
            self._rooms[row["id"]] = row
            result = copy.deepcopy(row)

        logger.debug("Inserted room %s (code=%s)", result["id"], code)
        await self._publish(ChangeEvent(ROOMS_TABLE, "INSERT", record=copy.deepcopy(result)))
        return result

    async def get_room(self, room_id: str) -> Row | None:
        row = self._rooms.get(room_id)
        return copy.deepcopy(row) if row else None

    async def get_room_by_code(self, code: str) -> Row | None:
        for row in self._rooms.values():
            if row["code"] == code:
                return copy.deepcopy(row)
        return None

    async def update_room(
        self, room_id: str, values: Row, expected_version: int | None = None
    ) -> Row | None:
        async with self._lock:
            row = self._rooms.get(room_id)
            if row is None:
                return None
            if expected_version is not None and row.get("state_version") != expected_version:
                logger.debug(
                    "Conditional update rejected for room %s: stored=%s expected=%s",
                    room_id,
                    row.get("state_version"),
                    expected_version,
                )
                return None
            old = copy.deepcopy(row)
            row.update(copy.deepcopy(values))
            result = copy.deepcopy(row)

        await self._publish(
            ChangeEvent(ROOMS_TABLE, "UPDATE", record=copy.deepcopy(result), old_record=old)
        )
        return result

    async def delete_room(self, room_id: str) -> None:
        async with self._lock:
            old = self._rooms.pop(room_id, None)
            stale = [pid for pid, p in self._players.items() if p["room_id"] == room_id]
            for pid in stale:
                del self._players[pid]

        if old is not None:
            await self._publish(ChangeEvent(ROOMS_TABLE, "DELETE", old_record=old))

    # --- players ---

    async def insert_player(self, values: Row) -> Row:
        async with self._lock:
            if values["room_id"] not in self._rooms:
                raise StoreError(f"Room {values['room_id']} does not exist")
            if any(
                p["room_id"] == values["room_id"] and p["session_id"] == values["session_id"]
                for p in self._players.values()
            ):
                raise UniqueViolationError("session_id")
            row = copy.deepcopy(values)
            row.setdefault("id", str(uuid.uuid4()))
            self._players[row["id"]] = row
            result = copy.deepcopy(row)

        await self._publish(ChangeEvent(PLAYERS_TABLE, "INSERT", record=copy.deepcopy(result)))
        return result

    async def get_player(self, player_id: str) -> Row | None:
        row = self._players.get(player_id)
        return copy.deepcopy(row) if row else None

    async def find_player(self, room_id: str, session_id: str) -> Row | None:
        for row in self._players.values():
            if row["room_id"] == room_id and row["session_id"] == session_id:
                return copy.deepcopy(row)
        return None

    async def list_players(self, room_id: str) -> list[Row]:
        rows = [copy.deepcopy(p) for p in self._players.values() if p["room_id"] == room_id]
        rows.sort(key=lambda p: (p["joined_at"], p["id"]))
        return rows

    async def count_players(self, room_id: str) -> int:
        return sum(1 for p in self._players.values() if p["room_id"] == room_id)

    async def update_player(self, player_id: str, values: Row) -> Row | None:
        async with self._lock:
            row = self._players.get(player_id)
            if row is None:
                return None
            old = copy.deepcopy(row)
            row.update(copy.deepcopy(values))
            result = copy.deepcopy(row)

        await self._publish(
            ChangeEvent(PLAYERS_TABLE, "UPDATE", record=copy.deepcopy(result), old_record=old)
        )
        return result

    async def delete_player(self, player_id: str) -> Row | None:
        async with self._lock:
            old = self._players.pop(player_id, None)

        if old is not None:
            await self._publish(ChangeEvent(PLAYERS_TABLE, "DELETE", old_record=copy.deepcopy(old)))
        return old
