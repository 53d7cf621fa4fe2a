import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.dependencies.redis import close_redis_client, init_redis_client
from app.dependencies.store import close_room_store, init_room_store
from app.dependencies.supabase import close_async_supabase, init_async_supabase
from app.routers import rooms, ws
from app.services.presence import PresenceTracker, set_presence_tracker
from app.services.room.service import RoomService, set_room_service
from app.services.websocket.manager import get_connection_manager
from app.services.websocket.sync import RoomSyncChannel

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Game Rooms API")
    logger.debug("Debug mode: %s", settings.DEBUG)

    if settings.STORE_BACKEND == "supabase":
        await init_async_supabase()
        logger.info("Async Supabase client initialized")

    store = await init_room_store()
    room_service = RoomService(store=store)
    set_room_service(room_service)

    # Initialize WebSocket connection manager and start cleanup task
    connection_manager = get_connection_manager()
    await connection_manager.start_cleanup_task()
    sync_channel = RoomSyncChannel(store, connection_manager, room_service)
    sync_channel.start()
    logger.info("WebSocket connection manager and room sync initialized")

    presence_tracker = None
    if settings.presence_enabled:
        presence_tracker = PresenceTracker(await init_redis_client())
        set_presence_tracker(presence_tracker)
        await presence_tracker.start_sweep_task(room_service)
        logger.info("Presence tracking enabled")
    else:
        logger.info("Presence tracking disabled (Upstash Redis not configured)")

    yield

    # Shutdown: stop background tasks, close all connections, close clients
    logger.info("Shutting down Game Rooms API")
    if presence_tracker is not None:
        await presence_tracker.stop_sweep_task()
        set_presence_tracker(None)
        await close_redis_client()
    sync_channel.stop()
    await connection_manager.stop_cleanup_task()
    await connection_manager.close_all_connections()
    set_room_service(None)
    await close_room_store()
    await close_async_supabase()
    logger.info("WebSocket, store, and Redis cleanup complete")


app = FastAPI(
    title="Game Rooms API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.debug("CORS configured with origins: %s", settings.CORS_ORIGINS)

app.include_router(rooms.router, prefix="/api/v1")
app.include_router(ws.router, prefix="/api/v1")
logger.debug("Routers registered: /api/v1/rooms, /api/v1/ws")


@app.get("/")
def root():
    return {"message": "Game Rooms API"}


@app.get("/health")
def health():
    return {"status": "healthy"}
