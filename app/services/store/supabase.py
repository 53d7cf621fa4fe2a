"""Supabase-backed room store."""

import asyncio
import logging
from typing import Any

from postgrest.exceptions import APIError
from supabase import AsyncClient

from app.dependencies.supabase import get_async_supabase

from .base import PLAYERS_TABLE, ROOMS_TABLE, ChangeEvent, RoomStore, Row
from .errors import StoreError, UniqueViolationError

logger = logging.getLogger(__name__)

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"

REALTIME_CHANNEL = "room-store-changes"


def _translate(e: APIError, operation: str, field: str = "code") -> StoreError:
    """Map a PostgREST error onto the store error taxonomy."""
    if e.code == UNIQUE_VIOLATION:
        logger.info("Unique violation during %s: %s", operation, e.message)
        return UniqueViolationError(field, e.message)
    logger.warning("Supabase %s failed: code=%s message=%s", operation, e.code, e.message)
    return StoreError(f"{operation} failed: {e.message}")


def change_event_from_realtime(payload: dict[str, Any]) -> ChangeEvent | None:
    """Build a ChangeEvent from a postgres_changes payload.

    Accepts both the wire shape ({"data": {"type", "table", "record",
    "old_record"}}) and the flattened one ({"eventType", "table", "new", "old"}).
    Returns None for tables or event types the store does not own.
    """
    data = payload.get("data", payload)
    table = data.get("table")
    event_type = data.get("type") or data.get("eventType")
    if table not in (ROOMS_TABLE, PLAYERS_TABLE) or event_type not in ("INSERT", "UPDATE", "DELETE"):
        return None
    record = data.get("record") or data.get("new") or None
    old_record = data.get("old_record") or data.get("old") or None
    return ChangeEvent(table, event_type, record=record, old_record=old_record)


class SupabaseStore(RoomStore):
    """Room store over the Supabase PostgREST API.

    With realtime enabled, change notifications come from the database's
    postgres_changes feed, so writes by other server processes reach this
    process's sockets too. Player DELETE events carry room_id only when the
    players table has REPLICA IDENTITY FULL. Without realtime, only this
    process's own writes are published.
    """

    def __init__(self, client: AsyncClient | None = None, realtime: bool = True):
        super().__init__()
        self._client = client or get_async_supabase()
        self._realtime = realtime
        self._channel = None
        self._pending: set[asyncio.Task] = set()

    async def start(self) -> None:
        if not self._realtime or self._channel is not None:
            return
        channel = self._client.channel(REALTIME_CHANNEL)
        for table in (ROOMS_TABLE, PLAYERS_TABLE):
            channel = channel.on_postgres_changes(
                event="*", schema="public", table=table, callback=self._on_realtime
            )
        await channel.subscribe()
        self._channel = channel
        logger.info("Subscribed to realtime changes on %s and %s", ROOMS_TABLE, PLAYERS_TABLE)

    async def close(self) -> None:
        if self._channel is not None:
            try:
                await self._client.remove_channel(self._channel)
            except Exception as e:
                logger.warning("Error removing realtime channel: %s", e)
            self._channel = None
        for task in list(self._pending):
            task.cancel()
        await super().close()

    def _on_realtime(self, payload: dict[str, Any]) -> None:
        event = change_event_from_realtime(payload)
        if event is None:
            logger.debug("Ignoring realtime payload: %s", payload)
            return
        task = asyncio.get_running_loop().create_task(self._publish(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _emit(self, event: ChangeEvent) -> None:
        # The realtime feed echoes our own writes; publishing them here too would double-deliver
        if self._channel is None:
            await self._publish(event)

    # --- rooms ---

    async def insert_room(self, values: Row) -> Row:
        try:
            response = await self._client.table(ROOMS_TABLE).insert(values).execute()
        except APIError as e:
            raise _translate(e, "insert_room") from e
        if not response.data:
            raise StoreError("insert_room returned no data")
        row = response.data[0]
        await self._emit(ChangeEvent(ROOMS_TABLE, "INSERT", record=row))
        return row

    async def get_room(self, room_id: str) -> Row | None:
        try:
            response = (
                await self._client.table(ROOMS_TABLE)
                .select("*")
                .eq("id", room_id)
                .limit(1)
                .execute()
            )
        except APIError as e:
            raise _translate(e, "get_room") from e
        return response.data[0] if response.data else None

    async def get_room_by_code(self, code: str) -> Row | None:
        try:
            response = (
                await self._client.table(ROOMS_TABLE)
                .select("*")
                .eq("code", code)
                .limit(1)
                .execute()
            )
        except APIError as e:
            raise _translate(e, "get_room_by_code") from e
        return response.data[0] if response.data else None

    async def update_room(
        self, room_id: str, values: Row, expected_version: int | None = None
    ) -> Row | None:
        query = self._client.table(ROOMS_TABLE).update(values).eq("id", room_id)
        if expected_version is not None:
            # Only update if nobody else wrote since we read (optimistic lock)
            query = query.eq("state_version", expected_version)
        try:
            response = await query.execute()
        except APIError as e:
            raise _translate(e, "update_room") from e

        if not response.data:
            logger.debug(
                "update_room matched no rows: room=%s expected_version=%s",
                room_id,
                expected_version,
            )
            return None
        row = response.data[0]
        await self._emit(ChangeEvent(ROOMS_TABLE, "UPDATE", record=row))
        return row

    async def delete_room(self, room_id: str) -> None:
        try:
            response = await self._client.table(ROOMS_TABLE).delete().eq("id", room_id).execute()
        except APIError as e:
            raise _translate(e, "delete_room") from e
        if response.data:
            await self._emit(ChangeEvent(ROOMS_TABLE, "DELETE", old_record=response.data[0]))

    # --- players ---

    async def insert_player(self, values: Row) -> Row:
        try:
            response = await self._client.table(PLAYERS_TABLE).insert(values).execute()
        except APIError as e:
            raise _translate(e, "insert_player", field="session_id") from e
        if not response.data:
            raise StoreError("insert_player returned no data")
        row = response.data[0]
        await self._emit(ChangeEvent(PLAYERS_TABLE, "INSERT", record=row))
        return row

    async def get_player(self, player_id: str) -> Row | None:
        try:
            response = (
                await self._client.table(PLAYERS_TABLE)
                .select("*")
                .eq("id", player_id)
                .limit(1)
                .execute()
            )
        except APIError as e:
            raise _translate(e, "get_player") from e
        return response.data[0] if response.data else None

    async def find_player(self, room_id: str, session_id: str) -> Row | None:
        try:
            response = (
                await self._client.table(PLAYERS_TABLE)
                .select("*")
                .eq("room_id", room_id)
                .eq("session_id", session_id)
                .limit(1)
                .execute()
            )
        except APIError as e:
            raise _translate(e, "find_player") from e
        return response.data[0] if response.data else None

    async def list_players(self, room_id: str) -> list[Row]:
        try:
            response = (
                await self._client.table(PLAYERS_TABLE)
                .select("*")
                .eq("room_id", room_id)
                .order("joined_at")
                .execute()
            )
        except APIError as e:
            raise _translate(e, "list_players") from e
        return list(response.data or [])

    async def count_players(self, room_id: str) -> int:
        try:
            response = (
                await self._client.table(PLAYERS_TABLE)
                .select("id", count="exact")
                .eq("room_id", room_id)
                .execute()
            )
        except APIError as e:
            raise _translate(e, "count_players") from e
        return response.count or 0

    async def update_player(self, player_id: str, values: Row) -> Row | None:
        try:
            response = (
                await self._client.table(PLAYERS_TABLE)
                .update(values)
                .eq("id", player_id)
                .execute()
            )
        except APIError as e:
            raise _translate(e, "update_player") from e
        if not response.data:
            return None
        row = response.data[0]
        await self._emit(ChangeEvent(PLAYERS_TABLE, "UPDATE", record=row))
        return row

    async def delete_player(self, player_id: str) -> Row | None:
        try:
            response = (
                await self._client.table(PLAYERS_TABLE).delete().eq("id", player_id).execute()
            )
        except APIError as e:
            raise _translate(e, "delete_player") from e
        if not response.data:
            return None
        row = response.data[0]
        await self._emit(ChangeEvent(PLAYERS_TABLE, "DELETE", old_record=row))
        return row
