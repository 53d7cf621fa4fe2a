import json
import logging
import time
from collections import defaultdict

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from app.schemas.ws import (
    ErrorPayload,
    MessageType,
    WSClientMessage,
    WSCloseCode,
    WSServerMessage,
)
from app.services.presence import get_presence_tracker
from app.services.room.codes import normalize_room_code
from app.services.room.service import get_room_service
from app.services.session import is_valid_session_id
from app.services.websocket.handlers import HandlerContext, dispatch
from app.services.websocket.handlers.base import snapshot_to_pydantic
from app.services.websocket.manager import get_connection_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

# Rate limiting configuration
MAX_MESSAGE_SIZE = 64 * 1024  # 64 KB
MAX_MESSAGES_PER_SECOND = 10
RATE_LIMIT_WINDOW = 1.0  # seconds


class RateLimiter:
    """Simple token bucket rate limiter per connection."""

    def __init__(
        self, max_tokens: int = MAX_MESSAGES_PER_SECOND, window: float = RATE_LIMIT_WINDOW
    ):
        self.max_tokens = max_tokens
        self.window = window
        self._tokens: dict[str, list[float]] = defaultdict(list)

    def is_allowed(self, connection_id: str) -> bool:
        """Check if a message is allowed under rate limiting."""
        now = time.time()
        cutoff = now - self.window

        # Remove expired timestamps
        self._tokens[connection_id] = [t for t in self._tokens[connection_id] if t > cutoff]

        # Check if under limit
        if len(self._tokens[connection_id]) >= self.max_tokens:
            return False

        # Record this message
        self._tokens[connection_id].append(now)
        return True

    def remove(self, connection_id: str) -> None:
        """Remove rate limit tracking for a connection."""
        self._tokens.pop(connection_id, None)


# Global rate limiter instance
_rate_limiter = RateLimiter()


def _error_message(error_code: str, message: str) -> WSServerMessage:
    return WSServerMessage(
        type=MessageType.ERROR,
        payload=ErrorPayload(error_code=error_code, message=message).model_dump(),
    )


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    session_id: str = Query(..., description="Client session identifier"),
    room_code: str = Query(..., min_length=6, max_length=6, description="Room code to connect to"),
):
    """WebSocket endpoint for real-time room connections.

    Clients connect with: ws://host/api/v1/ws?session_id=<uuid>&room_code=ABC123

    The session must already hold a player in the room (join over REST first).
    On successful connection, server sends a 'connected' message with the
    room snapshot as seen by that session.
    """
    if not is_valid_session_id(session_id):
        logger.warning("WS connection rejected: invalid session id")
        await websocket.close(code=WSCloseCode.INVALID_SESSION)
        return

    code = normalize_room_code(room_code)
    room_service = get_room_service()
    lookup = await room_service.get_room(code or "", session_id)
    if not lookup.success or lookup.room_snapshot is None:
        logger.warning("WS connection rejected: room %s not found (%s)", room_code, lookup.error_code)
        await websocket.close(code=WSCloseCode.ROOM_NOT_FOUND)
        return

    room_snapshot_data = lookup.room_snapshot
    room_id = room_snapshot_data.room_id
    if room_snapshot_data.roster.current_player is None:
        logger.warning("WS connection rejected: session %s is not in room %s", session_id, room_id)
        await websocket.close(code=WSCloseCode.NOT_IN_ROOM)
        return

    await websocket.accept()
    logger.info("WS connection accepted for session %s in room %s", session_id, room_snapshot_data.code)

    # Register with connection manager (sends "connected" message to the session)
    manager = get_connection_manager()
    connection = await manager.connect(
        websocket, session_id, room_id, snapshot_to_pydantic(room_snapshot_data)
    )

    tracker = get_presence_tracker()
    if tracker is not None:
        try:
            await tracker.touch(room_id, session_id)
        except Exception as e:
            logger.error("Failed to register presence for session %s: %s", session_id, e)

    try:
        while True:
            # Check if connection is still open
            if websocket.client_state != WebSocketState.CONNECTED:
                logger.debug("WebSocket no longer connected, exiting loop")
                break

            # Receive raw message with size limit check
            try:
                message_data = await websocket.receive()
            except Exception as e:
                logger.debug("Error receiving message: %s", e)
                break

            # Handle disconnect message
            if message_data.get("type") == "websocket.disconnect":
                break

            # Get raw bytes/text for size check
            raw_text = message_data.get("text")
            raw_bytes = message_data.get("bytes")

            if raw_text:
                message_size = len(raw_text.encode("utf-8"))
            elif raw_bytes:
                message_size = len(raw_bytes)
            else:
                continue

            # Check message size limit
            if message_size > MAX_MESSAGE_SIZE:
                logger.warning(
                    "Message too large from connection %s: %d bytes (max %d)",
                    connection.connection_id,
                    message_size,
                    MAX_MESSAGE_SIZE,
                )
                await manager.send_to_connection(
                    connection.connection_id,
                    _error_message(
                        "MESSAGE_TOO_LARGE",
                        f"Message exceeds maximum size of {MAX_MESSAGE_SIZE} bytes",
                    ),
                )
                continue

            # Check rate limit
            if not _rate_limiter.is_allowed(connection.connection_id):
                logger.warning(
                    "Rate limit exceeded for connection %s",
                    connection.connection_id,
                )
                await manager.send_to_connection(
                    connection.connection_id,
                    _error_message("RATE_LIMITED", "Too many messages, please slow down"),
                )
                continue

            # Parse JSON from raw text
            if not raw_text:
                continue

            try:
                data = json.loads(raw_text)
            except json.JSONDecodeError:
                logger.warning(
                    "Invalid JSON from connection %s",
                    connection.connection_id,
                )
                await manager.send_to_connection(
                    connection.connection_id,
                    _error_message("INVALID_JSON", "Invalid JSON format"),
                )
                continue

            # Parse and validate message
            try:
                message = WSClientMessage.model_validate(data)
            except ValidationError as e:
                logger.warning(
                    "Invalid message from connection %s: %s",
                    connection.connection_id,
                    e,
                )
                await manager.send_to_connection(
                    connection.connection_id,
                    _error_message("INVALID_MESSAGE", "Invalid message format"),
                )
                continue

            # Dispatch message to handler
            ctx = HandlerContext(
                connection_id=connection.connection_id,
                session_id=session_id,
                message=message,
                manager=manager,
            )

            result = await dispatch(ctx)

            if result is None:
                logger.debug(
                    "Unhandled message type %s from connection %s",
                    message.type,
                    connection.connection_id,
                )
                continue

            # Send response to requester
            if result.response:
                await manager.send_to_connection(
                    connection.connection_id,
                    result.response,
                )

            # Broadcast to room if needed
            if result.broadcast and result.room_id:
                await manager.send_to_room(
                    result.room_id,
                    result.broadcast,
                    exclude_connection=connection.connection_id,
                )

    except WebSocketDisconnect as e:
        logger.info(
            "WS disconnected: connection %s, code %s",
            connection.connection_id,
            e.code,
        )
    except Exception as e:
        logger.error(
            "WS error for connection %s: %s",
            connection.connection_id,
            e,
        )
    finally:
        # Clean up rate limiter for this connection
        _rate_limiter.remove(connection.connection_id)

        # The player stays in the room; presence expiry evicts them if they never return
        await manager.disconnect(connection.connection_id)
