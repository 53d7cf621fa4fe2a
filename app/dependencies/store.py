import logging

from app.config import get_settings
from app.services.store import InMemoryStore, RoomStore

logger = logging.getLogger(__name__)

_room_store: RoomStore | None = None


async def init_room_store() -> RoomStore:
    """Create the global room store for the configured backend.

    Must be called during app startup (lifespan). The supabase backend
    requires init_async_supabase() to have run first.
    """
    global _room_store
    settings = get_settings()
    if settings.STORE_BACKEND == "supabase":
        from app.services.store.supabase import SupabaseStore

        _room_store = SupabaseStore(realtime=settings.SUPABASE_REALTIME)
    else:
        _room_store = InMemoryStore()
    await _room_store.start()
    logger.info("Room store initialized (backend=%s)", settings.STORE_BACKEND)
    return _room_store


def get_room_store() -> RoomStore:
    """Get the global room store.

    Falls back to an in-memory store when running with the memory backend
    and the lifespan has not run (e.g. scripts and tests).

    Raises:
        RuntimeError: If the supabase store was not initialized.
    """
    global _room_store
    if _room_store is None:
        if get_settings().STORE_BACKEND != "memory":
            raise RuntimeError("Room store not initialized. Call init_room_store first.")
        _room_store = InMemoryStore()
        logger.debug("Created in-memory room store on first use")
    return _room_store


def set_room_store(store: RoomStore | None) -> None:
    """Replace the global room store."""
    global _room_store
    _room_store = store


async def close_room_store() -> None:
    global _room_store
    if _room_store is not None:
        await _room_store.close()
        _room_store = None
        logger.info("Room store closed")
