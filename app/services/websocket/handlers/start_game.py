"""Handler for START_GAME messages."""

import logging

from app.schemas.ws import GameStatePayload, MessageType, WSServerMessage
from app.services.room.service import get_room_service

from . import handler
from .base import HandlerContext, HandlerResult, error_response, require_room

logger = logging.getLogger(__name__)


@handler(MessageType.START_GAME)
async def handle_start_game(ctx: HandlerContext) -> HandlerResult:
    """Handle START_GAME message from the host to begin the game.

    Host and room-status checks happen in the room service. On success the
    initial public game state goes to the host and every other socket in the room.
    """
    room_id, room_error = require_room(ctx, MessageType.GAME_ERROR)
    if room_error:
        return room_error

    result = await get_room_service().start_game(ctx.session_id, room_id)
    if not result.success or result.room_snapshot is None:
        return error_response(
            error_code=result.error_code or "GAME_START_FAILED",
            message=result.error_message or "Failed to start game",
            error_type=MessageType.GAME_ERROR,
            request_id=ctx.message.request_id,
        )

    payload = GameStatePayload(
        state=result.room_snapshot.public_game_state() or {},
        state_version=result.room_snapshot.room.state_version,
    ).model_dump()

    logger.info(
        "Game started for room %s by session %s: %d players",
        room_id,
        ctx.session_id,
        result.room_snapshot.roster.size,
    )

    return HandlerResult(
        success=True,
        response=WSServerMessage(
            type=MessageType.GAME_STATE,
            request_id=ctx.message.request_id,
            payload=payload,
        ),
        broadcast=WSServerMessage(type=MessageType.GAME_STATE, payload=payload),
        room_id=room_id,
    )
