"""Tests for the Supabase store's realtime change feed, using a fake client."""

import asyncio
from types import SimpleNamespace

import pytest

from app.services.store import PLAYERS_TABLE, ROOMS_TABLE, ChangeEvent
from app.services.store.supabase import SupabaseStore, change_event_from_realtime


class FakeChannel:
    def __init__(self, topic: str):
        self.topic = topic
        self.callbacks: dict[str, object] = {}
        self.subscribed = False

    def on_postgres_changes(self, event, callback, table="*", schema="public", filter=None):
        self.callbacks[table] = callback
        return self

    async def subscribe(self, callback=None):
        self.subscribed = True
        return self

    def emit(self, table: str, payload: dict) -> None:
        self.callbacks[table](payload)


class FakeInsert:
    def __init__(self, values: dict):
        self.values = values

    async def execute(self):
        return SimpleNamespace(data=[{"id": "row-1", **self.values}])


class FakeTable:
    def insert(self, values: dict) -> FakeInsert:
        return FakeInsert(values)


class FakeClient:
    def __init__(self):
        self.channels: list[FakeChannel] = []
        self.removed: list[FakeChannel] = []

    def channel(self, topic: str) -> FakeChannel:
        channel = FakeChannel(topic)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        self.removed.append(channel)

    def table(self, name: str) -> FakeTable:
        return FakeTable()


def player_payload(event_type: str, record: dict | None, old_record: dict | None) -> dict:
    return {
        "data": {
            "schema": "public",
            "table": PLAYERS_TABLE,
            "type": event_type,
            "record": record,
            "old_record": old_record,
        },
        "ids": [1],
    }


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


async def collect(store: SupabaseStore) -> list[ChangeEvent]:
    events: list[ChangeEvent] = []

    async def listener(event: ChangeEvent) -> None:
        events.append(event)

    store.subscribe(listener)
    return events


class TestRealtimePayloads:
    def test_wire_shape(self):
        event = change_event_from_realtime(
            player_payload("DELETE", None, {"id": "p1", "room_id": "r1"})
        )
        assert event.table == PLAYERS_TABLE
        assert event.event_type == "DELETE"
        assert event.room_id == "r1"

    def test_flattened_shape(self):
        event = change_event_from_realtime(
            {"table": ROOMS_TABLE, "eventType": "UPDATE", "new": {"id": "r1"}, "old": {}}
        )
        assert event.event_type == "UPDATE"
        assert event.room_id == "r1"

    def test_unknown_table_is_ignored(self):
        assert change_event_from_realtime({"data": {"table": "profiles", "type": "INSERT"}}) is None


class TestRealtimeFeed:
    async def test_start_subscribes_both_tables(self, client: FakeClient):
        store = SupabaseStore(client=client)
        await store.start()

        [channel] = client.channels
        assert channel.subscribed
        assert set(channel.callbacks) == {ROOMS_TABLE, PLAYERS_TABLE}

    async def test_changes_from_other_processes_are_published(self, client: FakeClient):
        store = SupabaseStore(client=client)
        await store.start()
        events = await collect(store)

        client.channels[0].emit(
            PLAYERS_TABLE,
            player_payload("INSERT", {"id": "p9", "room_id": "r1", "session_id": "s"}, None),
        )
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert len(events) == 1
        assert events[0].table == PLAYERS_TABLE
        assert events[0].event_type == "INSERT"
        assert events[0].room_id == "r1"

    async def test_local_writes_are_not_published_twice(self, client: FakeClient):
        store = SupabaseStore(client=client)
        await store.start()
        events = await collect(store)

        await store.insert_room({"code": "ABCDEF"})

        assert events == []

    async def test_local_writes_published_without_realtime(self, client: FakeClient):
        store = SupabaseStore(client=client, realtime=False)
        await store.start()
        events = await collect(store)

        await store.insert_room({"code": "ABCDEF"})

        assert client.channels == []
        assert [(e.table, e.event_type) for e in events] == [(ROOMS_TABLE, "INSERT")]

    async def test_close_removes_channel(self, client: FakeClient):
        store = SupabaseStore(client=client)
        await store.start()
        await store.close()

        assert client.removed == client.channels
