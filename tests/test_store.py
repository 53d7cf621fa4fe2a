"""Tests for the in-memory room store and its change feed."""

import pytest

from app.services.store import (
    PLAYERS_TABLE,
    ROOMS_TABLE,
    ChangeEvent,
    InMemoryStore,
    StoreError,
    UniqueViolationError,
)


def room_values(code: str = "ABCDEF") -> dict:
    return {"code": code, "game_type": "hangman", "status": "waiting", "state_version": 0}


class TestRooms:
    async def test_duplicate_code_is_a_unique_violation(self, store: InMemoryStore):
        await store.insert_room(room_values())
        with pytest.raises(UniqueViolationError) as exc_info:
            await store.insert_room(room_values())
        assert exc_info.value.field == "code"

    async def test_conditional_update(self, store: InMemoryStore):
        room = await store.insert_room(room_values())

        assert await store.update_room(room["id"], {"state_version": 1}, expected_version=1) is None
        updated = await store.update_room(room["id"], {"state_version": 1}, expected_version=0)
        assert updated["state_version"] == 1

    async def test_rows_are_copies(self, store: InMemoryStore):
        room = await store.insert_room(room_values())
        room["status"] = "playing"
        assert (await store.get_room(room["id"]))["status"] == "waiting"

    async def test_delete_room_removes_players(self, store: InMemoryStore):
        room = await store.insert_room(room_values())
        await store.insert_player({"room_id": room["id"], "session_id": "s", "joined_at": 1})
        await store.delete_room(room["id"])
        assert await store.count_players(room["id"]) == 0


class TestPlayers:
    async def test_player_needs_existing_room(self, store: InMemoryStore):
        with pytest.raises(StoreError):
            await store.insert_player({"room_id": "missing", "session_id": "s", "joined_at": 1})

    async def test_duplicate_session_in_room_is_a_unique_violation(self, store: InMemoryStore):
        room = await store.insert_room(room_values())
        await store.insert_player({"room_id": room["id"], "session_id": "s", "joined_at": 1})
        with pytest.raises(UniqueViolationError) as exc_info:
            await store.insert_player({"room_id": room["id"], "session_id": "s", "joined_at": 2})
        assert exc_info.value.field == "session_id"
        assert await store.count_players(room["id"]) == 1

    async def test_list_players_orders_by_join_time(self, store: InMemoryStore):
        room = await store.insert_room(room_values())
        await store.insert_player({"room_id": room["id"], "session_id": "late", "joined_at": 20})
        await store.insert_player({"room_id": room["id"], "session_id": "early", "joined_at": 10})

        players = await store.list_players(room["id"])
        assert [p["session_id"] for p in players] == ["early", "late"]


class TestChangeFeed:
    async def test_events_carry_room_id(self, store: InMemoryStore):
        events: list[ChangeEvent] = []

        async def listener(event: ChangeEvent) -> None:
            events.append(event)

        store.subscribe(listener)
        room = await store.insert_room(room_values())
        player = await store.insert_player(
            {"room_id": room["id"], "session_id": "s", "joined_at": 1}
        )
        await store.delete_player(player["id"])

        assert [(e.table, e.event_type) for e in events] == [
            (ROOMS_TABLE, "INSERT"),
            (PLAYERS_TABLE, "INSERT"),
            (PLAYERS_TABLE, "DELETE"),
        ]
        assert {e.room_id for e in events} == {room["id"]}

    async def test_table_filter_and_unsubscribe(self, store: InMemoryStore):
        seen: list[str] = []

        async def listener(event: ChangeEvent) -> None:
            seen.append(event.table)

        unsubscribe = store.subscribe(listener, table=PLAYERS_TABLE)
        room = await store.insert_room(room_values())
        await store.insert_player({"room_id": room["id"], "session_id": "s", "joined_at": 1})
        unsubscribe()
        await store.insert_player({"room_id": room["id"], "session_id": "t", "joined_at": 2})

        assert seen == [PLAYERS_TABLE]

    async def test_failing_listener_does_not_block_others(self, store: InMemoryStore):
        delivered = []

        async def broken(event: ChangeEvent) -> None:
            raise RuntimeError("boom")

        async def working(event: ChangeEvent) -> None:
            delivered.append(event.event_type)

        store.subscribe(broken)
        store.subscribe(working)
        await store.insert_room(room_values())

        assert delivered == ["INSERT"]
