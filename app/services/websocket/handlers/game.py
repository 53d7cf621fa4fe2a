"""Handler for GAME_ACTION messages."""

import logging

from app.schemas.ws import (
    GameActionPayload,
    GameErrorPayload,
    GameEventsPayload,
    MessageType,
    WSServerMessage,
)
from app.services.game.engine import build_action_from_payload
from app.services.room.service import get_room_service

from . import handler
from .base import (
    HandlerContext,
    HandlerResult,
    error_response,
    require_room,
    validate_payload,
)

logger = logging.getLogger(__name__)


@handler(MessageType.GAME_ACTION)
async def handle_game_action(ctx: HandlerContext) -> HandlerResult:
    """Handle GAME_ACTION message by processing the action through the game engine.

    Flow:
    1. Resolve the connection's room
    2. Validate payload
    3. Build a typed action from the payload
    4. Apply it through the room service (engine + conditional write)
    5. Return events to the requester and broadcast them to the room

    The updated room snapshot reaches every socket through the sync channel.

    Returns:
        HandlerResult with events for requester and broadcast for room.
    """
    room_id, room_error = require_room(ctx, MessageType.GAME_ERROR)
    if room_error:
        return room_error

    payload, validation_error = validate_payload(
        ctx.message.payload,
        GameActionPayload,
        ctx.message.request_id,
        MessageType.GAME_ERROR,
    )
    if validation_error:
        return validation_error

    try:
        action = build_action_from_payload(payload.model_dump(exclude_none=True))
    except ValueError as e:
        # pydantic.ValidationError is a ValueError too
        return error_response(
            error_code="INVALID_ACTION",
            message=str(e),
            error_type=MessageType.GAME_ERROR,
            request_id=ctx.message.request_id,
        )

    result = await get_room_service().apply_game_action(ctx.session_id, room_id, action)

    if not result.success:
        logger.info(
            "Game action failed for session %s in room %s: %s - %s",
            ctx.session_id,
            room_id,
            result.error_code,
            result.error_message,
        )
        return HandlerResult(
            success=False,
            response=WSServerMessage(
                type=MessageType.GAME_ERROR,
                request_id=ctx.message.request_id,
                payload=GameErrorPayload(
                    error_code=str(result.error_code or "PROCESSING_ERROR"),
                    message=result.error_message or "Failed to process action",
                ).model_dump(),
            ),
        )

    serialized_events = [event.model_dump(mode="json") for event in result.events]

    logger.info(
        "Game action processed for session %s in room %s: %d events",
        ctx.session_id,
        room_id,
        len(result.events),
    )

    return HandlerResult(
        success=True,
        response=WSServerMessage(
            type=MessageType.GAME_EVENTS,
            request_id=ctx.message.request_id,
            payload=GameEventsPayload(events=serialized_events).model_dump(),
        ),
        broadcast=WSServerMessage(
            type=MessageType.GAME_EVENTS,
            payload=GameEventsPayload(events=serialized_events).model_dump(),
        ),
        room_id=room_id,
    )
