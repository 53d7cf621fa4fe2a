"""Handler for PING messages."""

import logging

from app.schemas.ws import MessageType, PongPayload, WSServerMessage
from app.services.presence import get_presence_tracker

from . import handler
from .base import HandlerContext, HandlerResult

logger = logging.getLogger(__name__)


@handler(MessageType.PING)
async def handle_ping(ctx: HandlerContext) -> HandlerResult:
    """Handle PING message by updating heartbeat and responding with PONG.

    Also refreshes the session's presence so it is not swept as departed.
    """
    await ctx.manager.heartbeat(ctx.connection_id)

    connection = ctx.manager.get_connection(ctx.connection_id)
    tracker = get_presence_tracker()
    if tracker is not None and connection is not None and connection.room_id:
        try:
            await tracker.touch(connection.room_id, ctx.session_id)
        except Exception as e:
            logger.error("Failed to refresh presence for session %s: %s", ctx.session_id, e)

    logger.debug("Ping/pong for connection %s", ctx.connection_id)

    return HandlerResult(
        success=True,
        response=WSServerMessage(
            type=MessageType.PONG,
            request_id=ctx.message.request_id,
            payload=PongPayload().model_dump(mode="json"),
        ),
    )
