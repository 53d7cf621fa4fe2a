"""Handler for LEAVE_ROOM messages."""

import logging

from app.schemas.ws import MessageType, RoomClosedPayload, WSServerMessage
from app.services.presence import get_presence_tracker
from app.services.room.service import get_room_service

from . import handler
from .base import HandlerContext, HandlerResult, error_response, require_room

logger = logging.getLogger(__name__)


@handler(MessageType.LEAVE_ROOM)
async def handle_leave_room(ctx: HandlerContext) -> HandlerResult:
    """Handle LEAVE_ROOM message.

    Removes the session's player from the room. Remaining players receive the
    updated roster (and any host promotion) through the sync channel; when
    nobody is left the leaver gets ROOM_CLOSED.
    """
    room_id, room_error = require_room(ctx, MessageType.ERROR)
    if room_error:
        return room_error

    result = await get_room_service().leave_room_by_session(ctx.session_id, room_id)
    if not result.success:
        return error_response(
            error_code=result.error_code or "INTERNAL_ERROR",
            message=result.error_message or "Failed to leave room",
            error_type=MessageType.ERROR,
            request_id=ctx.message.request_id,
        )

    # Stop receiving this room's updates
    await ctx.manager.unsubscribe_from_room(ctx.connection_id)

    tracker = get_presence_tracker()
    if tracker is not None:
        try:
            await tracker.forget(room_id, ctx.session_id)
        except Exception as e:
            logger.error("Failed to clear presence for session %s: %s", ctx.session_id, e)

    logger.info("Session %s left room %s (room_empty=%s)", ctx.session_id, room_id, result.room_empty)

    return HandlerResult(
        success=True,
        response=WSServerMessage(
            type=MessageType.ROOM_CLOSED,
            request_id=ctx.message.request_id,
            payload=RoomClosedPayload(
                reason="room_empty" if result.room_empty else "left",
                room_id=room_id,
            ).model_dump(),
        ),
    )
