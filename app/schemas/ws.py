from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageType(str, Enum):
    """WebSocket message types."""

    # Core
    PING = "ping"
    PONG = "pong"
    CONNECTED = "connected"
    ERROR = "error"
    ROOM_UPDATED = "room_updated"
    LEAVE_ROOM = "leave_room"
    ROOM_CLOSED = "room_closed"

    # Game
    START_GAME = "start_game"
    GAME_ACTION = "game_action"
    GAME_EVENTS = "game_events"
    GAME_STATE = "game_state"
    GAME_ERROR = "game_error"


class WSCloseCode:
    """WebSocket close codes (RFC 6455 + custom)."""

    # Standard RFC 6455 codes
    NORMAL = 1000
    GOING_AWAY = 1001
    POLICY_VIOLATION = 1008
    MESSAGE_TOO_BIG = 1009
    INTERNAL_ERROR = 1011

    # Custom application codes (4000-4999)
    INVALID_SESSION = 4001
    ROOM_NOT_FOUND = 4003
    NOT_IN_ROOM = 4004


class WSClientMessage(BaseModel):
    """Message sent from client to server."""

    type: MessageType
    request_id: str | None = None
    payload: dict[str, Any] | None = None


class WSServerMessage(BaseModel):
    """Message sent from server to client."""

    type: MessageType
    request_id: str | None = None
    payload: dict[str, Any] | None = None


# --- Payload schemas ---


class PlayerSnapshot(BaseModel):
    """A single roster entry."""

    player_id: str
    name: str
    is_host: bool = False
    joined_at: int


class RoomSnapshot(BaseModel):
    """Authoritative room snapshot, as seen by one session.

    Used as payload for CONNECTED and ROOM_UPDATED messages and REST responses.
    Clients replace their copy wholesale on every message.
    """

    room_id: str
    code: str
    game_type: str
    status: str
    max_players: int
    share_url: str
    players: list[PlayerSnapshot]
    state_version: int = 0
    game_state: dict[str, Any] | None = None
    current_player_id: str | None = None
    is_host: bool = False


class ConnectedPayload(BaseModel):
    """Payload for the 'connected' message."""

    connection_id: str
    session_id: str
    server_id: str
    room: RoomSnapshot


class PongPayload(BaseModel):
    """Payload for the 'pong' message."""

    server_time: datetime = Field(default_factory=lambda: datetime.now())


class ErrorPayload(BaseModel):
    """Payload for error messages (ERROR)."""

    error_code: str
    message: str


class RoomClosedPayload(BaseModel):
    """Payload sent when the last player leaves the room."""

    reason: str = "room_empty"
    room_id: str


# --- Game payload schemas ---


class GameActionPayload(BaseModel):
    """Payload for GAME_ACTION messages from client.

    Contains the action type and action-specific data.
    """

    model_config = ConfigDict(extra="allow")

    action_type: str = Field(
        ...,
        description="Action type: 'deal', 'hit', 'stand', 'new_hand', "
        "'select_word', 'guess', 'play_again'",
    )
    letter: str | None = Field(None, description="Letter for guess action")
    source: str | None = Field(None, description="'random' or 'custom' for select_word")
    word: str | None = Field(None, description="Custom word for select_word")


class GameEventsPayload(BaseModel):
    """Payload for GAME_EVENTS messages to clients.

    Contains a list of events that occurred during action processing.
    Events are broadcast to all room members for animation/UI updates.
    """

    events: list[dict[str, Any]] = Field(
        ..., description="List of game events (serialized)"
    )


class GameStatePayload(BaseModel):
    """Payload for GAME_STATE messages to clients.

    Contains the public game state for reconciliation or initial sync.
    """

    state: dict[str, Any] = Field(..., description="Public game state (serialized)")
    state_version: int = 0


class GameErrorPayload(BaseModel):
    """Payload for GAME_ERROR messages to clients."""

    error_code: str
    message: str
