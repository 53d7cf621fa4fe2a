"""Room synchronization: turns store change notifications into room broadcasts.

Every change to a room or one of its players causes the room snapshot to be
re-read and pushed to that room's sockets on this server. Each socket gets
the snapshot derived for its own session. Delivery is best-effort and
last-message-wins.
"""

import logging
from collections.abc import Callable

from app.schemas.ws import MessageType, RoomClosedPayload, WSServerMessage
from app.services.room.service import RoomService
from app.services.store import ChangeEvent, RoomStore

from .handlers.base import snapshot_to_pydantic
from .manager import Connection, ConnectionManager

logger = logging.getLogger(__name__)


class RoomSyncChannel:
    def __init__(self, store: RoomStore, manager: ConnectionManager, room_service: RoomService):
        self._store = store
        self._manager = manager
        self._room_service = room_service
        self._unsubscribe: Callable[[], None] | None = None

    def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._store.subscribe(self.on_change)
        logger.info("Room sync channel subscribed to store changes")

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.info("Room sync channel stopped")

    async def on_change(self, event: ChangeEvent) -> None:
        room_id = event.room_id
        # Changes for rooms with no sockets here are dropped before any read
        if room_id is None or not self._manager.has_room_connections(room_id):
            return
        logger.debug("Syncing room %s after %s on %s", room_id, event.event_type, event.table)
        await self.broadcast_room(room_id)

    async def broadcast_room(self, room_id: str) -> int:
        """Push the current snapshot of a room to all of its sockets.

        Sends ROOM_CLOSED instead when the room is gone or has nobody left.
        """
        snapshot = await self._room_service.get_room_snapshot(room_id)
        if snapshot is None or snapshot.roster.size == 0:
            return await self.close_room(room_id)

        def build(connection: Connection) -> WSServerMessage:
            view = snapshot_to_pydantic(snapshot.for_session(connection.session_id))
            return WSServerMessage(
                type=MessageType.ROOM_UPDATED,
                payload=view.model_dump(mode="json"),
            )

        return await self._manager.send_to_room_each(room_id, build)

    async def close_room(self, room_id: str) -> int:
        message = WSServerMessage(
            type=MessageType.ROOM_CLOSED,
            payload=RoomClosedPayload(room_id=room_id).model_dump(),
        )
        connections = self._manager.get_room_connections(room_id)
        sent = await self._manager.send_to_room(room_id, message)
        for connection in connections:
            await self._manager.unsubscribe_from_room(connection.connection_id)
        logger.info("Room %s closed; notified %d connections", room_id, sent)
        return sent
