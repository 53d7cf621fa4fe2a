"""Real-time room delivery: socket bookkeeping, message handlers, store sync."""

from app.services.websocket.handlers import HandlerContext, HandlerResult, dispatch, handler
from app.services.websocket.manager import (
    Connection,
    ConnectionManager,
    get_connection_manager,
)
from app.services.websocket.sync import RoomSyncChannel

__all__ = [
    "Connection",
    "ConnectionManager",
    "HandlerContext",
    "HandlerResult",
    "RoomSyncChannel",
    "dispatch",
    "get_connection_manager",
    "handler",
]
