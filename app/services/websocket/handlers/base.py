"""Base types and helpers for WebSocket message handlers."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, ValidationError

from app.config import get_settings
from app.schemas.ws import (
    ErrorPayload,
    MessageType,
    PlayerSnapshot,
    RoomSnapshot,
    WSClientMessage,
    WSServerMessage,
)
from app.services.room.service import RoomSnapshotData

if TYPE_CHECKING:
    from app.services.websocket.manager import ConnectionManager

T = TypeVar("T", bound=BaseModel)


@dataclass
class HandlerContext:
    """Context passed to each message handler."""

    connection_id: str
    session_id: str
    message: WSClientMessage
    manager: "ConnectionManager"


@dataclass
class HandlerResult:
    """Result returned by message handlers."""

    success: bool
    response: WSServerMessage | None = None
    broadcast: WSServerMessage | None = None
    room_id: str | None = None


def validate_payload(
    payload: dict | None,
    schema: type[T],
    request_id: str | None,
    error_type: MessageType,
) -> tuple[T | None, HandlerResult | None]:
    """Validate payload against a Pydantic schema.

    Args:
        payload: The raw payload dict to validate.
        schema: The Pydantic model class to validate against.
        request_id: The request_id for error responses.
        error_type: The MessageType to use for error responses.

    Returns:
        Tuple of (validated_payload, error_result). One will be None.
    """
    try:
        validated = schema.model_validate(payload or {})
        return validated, None
    except ValidationError as e:
        return None, HandlerResult(
            success=False,
            response=WSServerMessage(
                type=error_type,
                request_id=request_id,
                payload=ErrorPayload(
                    error_code="VALIDATION_ERROR",
                    message=str(e),
                ).model_dump(),
            ),
        )


def error_response(
    error_code: str,
    message: str,
    error_type: MessageType,
    request_id: str | None = None,
) -> HandlerResult:
    """Build an error HandlerResult."""
    return HandlerResult(
        success=False,
        response=WSServerMessage(
            type=error_type,
            request_id=request_id,
            payload=ErrorPayload(
                error_code=str(error_code),
                message=message,
            ).model_dump(),
        ),
    )


def require_room(ctx: HandlerContext, error_type: MessageType) -> tuple[str | None, HandlerResult | None]:
    """Resolve the room the connection is subscribed to.

    Returns:
        Tuple of (room_id, error_result). One will be None.
    """
    connection = ctx.manager.get_connection(ctx.connection_id)
    if connection is None or connection.room_id is None:
        return None, error_response(
            error_code="NOT_IN_ROOM",
            message="You are not in a room",
            error_type=error_type,
            request_id=ctx.message.request_id,
        )
    return connection.room_id, None


def snapshot_to_pydantic(snapshot: RoomSnapshotData) -> RoomSnapshot:
    """Convert a dataclass RoomSnapshotData to a Pydantic RoomSnapshot."""
    room = snapshot.room
    roster = snapshot.roster
    current = roster.current_player
    return RoomSnapshot(
        room_id=room.room_id,
        code=room.code,
        game_type=room.game_type,
        status=room.status,
        max_players=room.max_players,
        share_url=get_settings().room_url(room.code),
        players=[
            PlayerSnapshot(
                player_id=p.player_id,
                name=p.name,
                is_host=p.is_host,
                joined_at=p.joined_at,
            )
            for p in roster.players
        ],
        state_version=room.state_version,
        game_state=snapshot.public_game_state(),
        current_player_id=current.player_id if current else None,
        is_host=roster.is_host,
    )
