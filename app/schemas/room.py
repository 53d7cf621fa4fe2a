"""Pydantic schemas for room operations."""

from pydantic import BaseModel, Field

from app.schemas.game_engine import GameType
from app.schemas.ws import RoomSnapshot


class CreateRoomRequest(BaseModel):
    """Request body for creating a room."""

    game_type: GameType = Field(..., description="Game played in the room")
    player_name: str = Field(..., description="Host display name (1-20 characters)")
    max_players: int | None = Field(
        None,
        ge=1,
        le=10,
        description="Capacity override; defaults per game type",
    )


class CreateRoomResponse(BaseModel):
    """Response from room creation."""

    room_id: str = Field(..., description="UUID of the room")
    code: str = Field(
        ...,
        min_length=6,
        max_length=6,
        description="6-character room code",
    )
    player_id: str = Field(..., description="The host's player ID")
    share_url: str = Field(..., description="Link that opens the room")


class JoinRoomRequest(BaseModel):
    """Request body for joining a room."""

    code: str = Field(
        ...,
        description="6-character room code, case-insensitive",
    )
    player_name: str = Field(..., description="Display name (1-20 characters)")


class JoinRoomResponse(BaseModel):
    """Response from joining a room."""

    player_id: str = Field(..., description="The caller's player ID")
    already_joined: bool = Field(
        ...,
        description="True if the session was already in the room",
    )
    room: RoomSnapshot = Field(..., description="Room as seen by the caller")


class GameActionResponse(BaseModel):
    """Response from applying a game action."""

    room: RoomSnapshot
    events: list[dict] = Field(default_factory=list)


class LeaveRoomResponse(BaseModel):
    room_empty: bool
    room: RoomSnapshot | None = None
