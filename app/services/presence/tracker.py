"""Redis-backed presence expiry.

Every ping from a player's WebSocket refreshes a key with a TTL. A player whose
key has expired is treated as silently departed and removed from the room.

Redis keys:
    - presence:{room_id}:{session_id} (String, TTL) - alive marker
    - room:{room_id}:seen (Set) - sessions that have registered presence at least once
    - presence:rooms (Set) - rooms with tracked sessions
"""

import asyncio
import logging

from upstash_redis.asyncio import Redis

from app.config import get_settings
from app.services.room.service import RoomErrorCode, RoomService

logger = logging.getLogger(__name__)

ROOMS_KEY = "presence:rooms"


class PresenceTracker:
    """Tracks which players are still connected, across server processes."""

    def __init__(self, redis_client: Redis, ttl_seconds: int | None = None):
        settings = get_settings()
        self._redis = redis_client
        self._ttl = ttl_seconds or settings.PRESENCE_TTL_SECONDS
        self._sweep_interval = settings.PRESENCE_SWEEP_INTERVAL
        self._sweep_task: asyncio.Task | None = None

    def _alive_key(self, room_id: str, session_id: str) -> str:
        return f"presence:{room_id}:{session_id}"

    def _seen_key(self, room_id: str) -> str:
        return f"room:{room_id}:seen"

    async def touch(self, room_id: str, session_id: str) -> None:
        """Refresh a session's presence in a room."""
        await self._redis.set(self._alive_key(room_id, session_id), "1", ex=self._ttl)
        await self._redis.sadd(self._seen_key(room_id), session_id)
        await self._redis.sadd(ROOMS_KEY, room_id)

    async def forget(self, room_id: str, session_id: str) -> None:
        """Stop tracking a session, e.g. after an explicit leave."""
        await self._redis.delete(self._alive_key(room_id, session_id))
        await self._redis.srem(self._seen_key(room_id), session_id)

    async def is_present(self, room_id: str, session_id: str) -> bool:
        return bool(await self._redis.exists(self._alive_key(room_id, session_id)))

    async def sweep(self, room_service: RoomService) -> int:
        """Evict every tracked player whose presence has expired.

        Sessions that never registered presence are left alone, so a player
        who joined over REST and has not opened a socket yet is not evicted.

        Returns:
            Number of players evicted.
        """
        evicted = 0
        for room_id in await self._redis.smembers(ROOMS_KEY):
            seen_key = self._seen_key(room_id)
            sessions = await self._redis.smembers(seen_key)
            if not sessions:
                await self._redis.srem(ROOMS_KEY, room_id)
                continue

            for session_id in sessions:
                if await self.is_present(room_id, session_id):
                    continue
                result = await room_service.leave_room_by_session(session_id, room_id)
                if result.success:
                    await self._redis.srem(seen_key, session_id)
                    evicted += 1
                    logger.info("Evicted departed session %s from room %s", session_id, room_id)
                    if result.room_empty:
                        await self._redis.delete(seen_key)
                        await self._redis.srem(ROOMS_KEY, room_id)
                        break
                elif result.error_code == RoomErrorCode.NOT_IN_ROOM:
                    await self._redis.srem(seen_key, session_id)
                    logger.debug(
                        "Presence expired for session %s no longer in room %s", session_id, room_id
                    )
                else:
                    # Stays in the seen set so the next sweep retries
                    logger.warning(
                        "Could not evict session %s from room %s: %s",
                        session_id,
                        room_id,
                        result.error_code,
                    )
        if evicted:
            logger.info("Presence sweep evicted %d players", evicted)
        return evicted

    async def start_sweep_task(self, room_service: RoomService) -> None:
        """Start the periodic presence sweep."""
        if self._sweep_task is not None:
            logger.warning("Presence sweep already running")
            return

        async def sweep_loop():
            logger.info("Starting presence sweep with interval %ds", self._sweep_interval)
            while True:
                try:
                    await asyncio.sleep(self._sweep_interval)
                    await self.sweep(room_service)
                except asyncio.CancelledError:
                    logger.info("Presence sweep cancelled")
                    break
                except Exception as e:
                    logger.error("Error in presence sweep: %s", e)

        self._sweep_task = asyncio.create_task(sweep_loop())

    async def stop_sweep_task(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
            logger.info("Presence sweep stopped")


# Global tracker instance (set in lifespan when Redis is configured)
_presence_tracker: PresenceTracker | None = None


def get_presence_tracker() -> PresenceTracker | None:
    """Get the global PresenceTracker, or None when presence is disabled."""
    return _presence_tracker


def set_presence_tracker(tracker: PresenceTracker | None) -> None:
    global _presence_tracker
    _presence_tracker = tracker
