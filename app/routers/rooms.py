"""REST endpoints for room management."""

import logging

from fastapi import APIRouter, HTTPException, status

from app.dependencies.session import SessionId
from app.schemas.room import (
    CreateRoomRequest,
    CreateRoomResponse,
    GameActionResponse,
    JoinRoomRequest,
    JoinRoomResponse,
    LeaveRoomResponse,
)
from app.schemas.ws import GameActionPayload, RoomSnapshot
from app.services.game.engine import build_action_from_payload
from app.services.presence import get_presence_tracker
from app.services.room.service import (
    RoomErrorCode,
    RoomSnapshotData,
    get_room_service,
)
from app.services.websocket.handlers.base import snapshot_to_pydantic

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rooms", tags=["rooms"])

ERROR_STATUS_MAP = {
    RoomErrorCode.ROOM_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RoomErrorCode.ROOM_FULL: status.HTTP_409_CONFLICT,
    RoomErrorCode.GAME_ALREADY_STARTED: status.HTTP_409_CONFLICT,
    RoomErrorCode.GAME_NOT_STARTED: status.HTTP_409_CONFLICT,
    RoomErrorCode.STATE_CONFLICT: status.HTTP_409_CONFLICT,
    RoomErrorCode.NOT_HOST: status.HTTP_403_FORBIDDEN,
    RoomErrorCode.NOT_IN_ROOM: status.HTTP_403_FORBIDDEN,
    RoomErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    RoomErrorCode.PERSISTENCE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    "NOT_YOUR_TURN": status.HTTP_409_CONFLICT,
}


def _raise_for(error_code: str | None, message: str | None, default: str) -> None:
    """Raise the HTTPException for a failed service result.

    Engine rule violations not listed in ERROR_STATUS_MAP are 400s.
    """
    http_status = ERROR_STATUS_MAP.get(error_code, status.HTTP_400_BAD_REQUEST)
    raise HTTPException(
        status_code=http_status,
        detail={"error_code": str(error_code or "UNKNOWN"), "message": message or default},
    )


async def _resolve_room(code: str, session_id: str) -> RoomSnapshotData:
    result = await get_room_service().get_room(code, session_id)
    if not result.success or result.room_snapshot is None:
        _raise_for(result.error_code, result.error_message, "Room not found")
    return result.room_snapshot


@router.post("", response_model=CreateRoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(session_id: SessionId, request: CreateRoomRequest):
    """Create a new room with the caller as host.

    Args:
        session_id: The caller's session (cookie, header, or newly issued).
        request: Game type, host name, and optional capacity.

    Returns:
        CreateRoomResponse with the room code and shareable link.

    Raises:
        HTTPException 400: If the name or capacity is invalid.
        HTTPException 500: If room creation fails.
    """
    logger.info("POST /rooms - session: %s, game: %s", session_id, request.game_type.value)

    result = await get_room_service().create_room(
        session_id=session_id,
        game_type=request.game_type.value,
        player_name=request.player_name,
        max_players=request.max_players,
    )
    if not result.success:
        logger.error(
            "Room creation failed for session %s: %s - %s",
            session_id,
            result.error_code,
            result.error_message,
        )
        _raise_for(result.error_code, result.error_message, "Failed to create room")

    return CreateRoomResponse(
        room_id=result.room_id,
        code=result.code,
        player_id=result.player_id,
        share_url=result.share_url,
    )


@router.post("/join", response_model=JoinRoomResponse, status_code=status.HTTP_200_OK)
async def join_room(session_id: SessionId, request: JoinRoomRequest):
    """Join an existing room by code.

    Joining a room the session is already in returns the existing membership.

    Raises:
        HTTPException 400: If the code or name is invalid.
        HTTPException 404: If room code not found.
        HTTPException 409: If the room is full.
        HTTPException 500: If join operation fails.
    """
    logger.info("POST /rooms/join - session: %s, code: %s", session_id, request.code)

    result = await get_room_service().join_room(
        session_id=session_id, room_code=request.code, player_name=request.player_name
    )
    if not result.success or result.room_snapshot is None:
        logger.warning(
            "Join room failed for session %s, code %s: %s - %s",
            session_id,
            request.code,
            result.error_code,
            result.error_message,
        )
        _raise_for(result.error_code, result.error_message, "Failed to join room")

    return JoinRoomResponse(
        player_id=result.player_id,
        already_joined=result.already_joined,
        room=snapshot_to_pydantic(result.room_snapshot),
    )


@router.get("/{code}", response_model=RoomSnapshot)
async def get_room(session_id: SessionId, code: str):
    """Fetch a room snapshot as seen by the caller."""
    return snapshot_to_pydantic(await _resolve_room(code, session_id))


@router.post("/{code}/start", response_model=RoomSnapshot)
async def start_game(session_id: SessionId, code: str):
    """Start the game. Host only."""
    room = await _resolve_room(code, session_id)
    result = await get_room_service().start_game(session_id, room.room_id)
    if not result.success or result.room_snapshot is None:
        _raise_for(result.error_code, result.error_message, "Failed to start game")
    return snapshot_to_pydantic(result.room_snapshot)


@router.post("/{code}/leave", response_model=LeaveRoomResponse)
async def leave_room(session_id: SessionId, code: str):
    """Leave a room. The earliest-joined remaining player inherits host."""
    room = await _resolve_room(code, session_id)
    result = await get_room_service().leave_room_by_session(session_id, room.room_id)
    if not result.success:
        _raise_for(result.error_code, result.error_message, "Failed to leave room")

    tracker = get_presence_tracker()
    if tracker is not None:
        try:
            await tracker.forget(room.room_id, session_id)
        except Exception as e:
            logger.error("Failed to clear presence for session %s: %s", session_id, e)

    return LeaveRoomResponse(
        room_empty=result.room_empty,
        room=snapshot_to_pydantic(result.room_snapshot) if result.room_snapshot else None,
    )


@router.post("/{code}/actions", response_model=GameActionResponse)
async def apply_action(session_id: SessionId, code: str, request: GameActionPayload):
    """Apply a game action on behalf of the caller."""
    room = await _resolve_room(code, session_id)
    try:
        action = build_action_from_payload(request.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error_code": "INVALID_ACTION", "message": str(e)},
        ) from e

    result = await get_room_service().apply_game_action(session_id, room.room_id, action)
    if not result.success or result.room_snapshot is None:
        _raise_for(result.error_code, result.error_message, "Failed to apply action")

    return GameActionResponse(
        room=snapshot_to_pydantic(result.room_snapshot),
        events=[event.model_dump(mode="json") for event in result.events],
    )
