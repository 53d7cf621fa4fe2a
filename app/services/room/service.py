"""Room service for managing game rooms."""

import asyncio
import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ValidationError

from app.config import Settings, get_settings
from app.dependencies.store import get_room_store
from app.schemas.game_engine import DEFAULT_MAX_PLAYERS, GameDocument, GameType, parse_game_document
from app.services.game.engine import AnyGameEvent, ProcessResult, get_engine, initialize_game, process_action
from app.services.store import RoomStore, StoreError, UniqueViolationError

from .codes import generate_room_code, normalize_room_code
from .roster import PlayerData, Roster

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 20
MIN_MAX_PLAYERS = 1
MAX_MAX_PLAYERS = 10


class RoomErrorCode(StrEnum):
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    ROOM_FULL = "ROOM_FULL"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_HOST = "NOT_HOST"
    NOT_IN_ROOM = "NOT_IN_ROOM"
    GAME_ALREADY_STARTED = "GAME_ALREADY_STARTED"
    GAME_NOT_STARTED = "GAME_NOT_STARTED"
    STATE_CONFLICT = "STATE_CONFLICT"


@dataclass
class RoomData:
    """A room record as stored."""

    room_id: str
    code: str
    game_type: str
    status: str
    host_id: str
    max_players: int
    game_state: dict[str, Any] = field(default_factory=dict)
    state_version: int = 0
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "RoomData":
        return cls(
            room_id=str(row["id"]),
            code=str(row["code"]),
            game_type=str(row["game_type"]),
            status=str(row.get("status", "waiting")),
            host_id=str(row.get("host_id", "")),
            max_players=int(row.get("max_players", 0)),
            game_state=dict(row.get("game_state") or {}),
            state_version=int(row.get("state_version", 0)),
            created_at=row.get("created_at"),
        )

    @property
    def is_playing(self) -> bool:
        return self.status == "playing"

    def document(self) -> GameDocument | None:
        """The typed game document, or None before the game starts."""
        if not self.game_state:
            return None
        return parse_game_document(self.game_state)


@dataclass
class RoomSnapshotData:
    """Complete room snapshot data: the room plus its ordered roster."""

    room: RoomData
    roster: Roster

    @property
    def room_id(self) -> str:
        return self.room.room_id

    @property
    def code(self) -> str:
        return self.room.code

    def for_session(self, session_id: str | None) -> "RoomSnapshotData":
        return RoomSnapshotData(room=self.room, roster=self.roster.for_session(session_id))

    def public_game_state(self) -> dict[str, Any] | None:
        """Game document with hidden information removed, for broadcasting."""
        try:
            document = self.room.document()
        except ValidationError as e:
            logger.error("Stored game state for room %s is unreadable: %s", self.room.room_id, e)
            return None
        if document is None:
            return None
        return get_engine(document.game_type).public_view(document)


@dataclass
class CreateRoomResult:
    """Result of create_room operation."""

    success: bool
    room_id: str | None = None
    code: str | None = None
    player_id: str | None = None
    share_url: str | None = None
    error_code: str | None = None
    error_message: str | None = None


@dataclass
class JoinRoomResult:
    """Result of join_room operation."""

    success: bool
    room_snapshot: RoomSnapshotData | None = None
    player_id: str | None = None
    already_joined: bool = False
    error_code: str | None = None
    error_message: str | None = None


@dataclass
class RoomActionResult:
    """Result of start_game, update_game_state, apply_game_action and leave_room."""

    success: bool
    room_snapshot: RoomSnapshotData | None = None
    events: list[AnyGameEvent] = field(default_factory=list)
    room_empty: bool = False
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def failure(cls, code: str, message: str) -> "RoomActionResult":
        return cls(success=False, error_code=code, error_message=message)


def validate_player_name(name: str | None) -> str | None:
    """Trimmed display name, or None if it is empty or too long."""
    if name is None:
        return None
    trimmed = name.strip()
    if not trimmed or len(trimmed) > MAX_NAME_LENGTH:
        return None
    return trimmed


def _now_ms() -> int:
    return int(time.time() * 1000)


class RoomService:
    """Service for managing game rooms.

    Owns every write to the rooms and players collections. Game-state writes
    are conditional on the room's state_version, so concurrent writers cannot
    silently overwrite each other.
    """

    def __init__(
        self,
        store: RoomStore | None = None,
        settings: Settings | None = None,
        code_generator: Callable[[], str] = generate_room_code,
    ):
        self._store = store or get_room_store()
        self._settings = settings or get_settings()
        self._generate_code = code_generator
        # Serializes the capacity check and insert of concurrent joins to one room
        self._join_locks: dict[str, asyncio.Lock] = {}

    @property
    def store(self) -> RoomStore:
        return self._store

    async def create_room(
        self,
        session_id: str,
        game_type: str,
        player_name: str,
        max_players: int | None = None,
    ) -> CreateRoomResult:
        """Create a new game room with the caller as host.

        Retries with a fresh code when the generated one collides with an
        existing room.

        Args:
            session_id: The creating session; becomes host_id.
            game_type: One of blackjack, hangman, poker, uno.
            player_name: Display name of the host (1-20 chars after trim).
            max_players: Optional capacity override (1-10).

        Returns:
            CreateRoomResult with room details on success, or error info on failure.
        """
        name = validate_player_name(player_name)
        if name is None:
            return CreateRoomResult(
                success=False,
                error_code=RoomErrorCode.VALIDATION_ERROR,
                error_message=f"Name must be 1-{MAX_NAME_LENGTH} characters",
            )
        try:
            game = GameType(game_type)
        except ValueError:
            return CreateRoomResult(
                success=False,
                error_code=RoomErrorCode.VALIDATION_ERROR,
                error_message=f"Unknown game type: {game_type}",
            )
        if max_players is None:
            max_players = DEFAULT_MAX_PLAYERS[game]
        elif not MIN_MAX_PLAYERS <= max_players <= MAX_MAX_PLAYERS:
            return CreateRoomResult(
                success=False,
                error_code=RoomErrorCode.VALIDATION_ERROR,
                error_message=f"max_players must be between {MIN_MAX_PLAYERS} and {MAX_MAX_PLAYERS}",
            )

        try:
            room_row = None
            for attempt in range(1, self._settings.ROOM_CODE_MAX_ATTEMPTS + 1):
                code = self._generate_code()
                try:
                    room_row = await self._store.insert_room(
                        {
                            "code": code,
                            "game_type": game.value,
                            "status": "waiting",
                            "host_id": session_id,
                            "max_players": max_players,
                            "game_state": {},
                            "state_version": 0,
                            "created_at": datetime.now(UTC).isoformat(),
                        }
                    )
                    break
                except UniqueViolationError:
                    logger.info("Room code collision on attempt %d, retrying", attempt)

            if room_row is None:
                logger.error(
                    "Could not allocate a room code after %d attempts",
                    self._settings.ROOM_CODE_MAX_ATTEMPTS,
                )
                return CreateRoomResult(
                    success=False,
                    error_code=RoomErrorCode.PERSISTENCE_FAILURE,
                    error_message="Could not allocate a room code",
                )

            room = RoomData.from_row(room_row)
            try:
                player_row = await self._store.insert_player(
                    {
                        "room_id": room.room_id,
                        "session_id": session_id,
                        "name": name,
                        "is_host": True,
                        "joined_at": _now_ms(),
                    }
                )
            except StoreError:
                # Roll back so no room is left without a host
                await self._store.delete_room(room.room_id)
                raise

            logger.info(
                "Room created: room_id=%s, code=%s, game=%s, session=%s",
                room.room_id,
                room.code,
                room.game_type,
                session_id,
            )
            return CreateRoomResult(
                success=True,
                room_id=room.room_id,
                code=room.code,
                player_id=str(player_row["id"]),
                share_url=self._settings.room_url(room.code),
            )

        except StoreError as e:
            logger.exception("Error creating room for session %s: %s", session_id, e)
            return CreateRoomResult(
                success=False,
                error_code=RoomErrorCode.PERSISTENCE_FAILURE,
                error_message="Failed to create room",
            )

    async def join_room(self, session_id: str, room_code: str, player_name: str) -> JoinRoomResult:
        """Join a room by code.

        Joining twice from the same session is a no-op that returns the
        existing membership.

        Args:
            session_id: The joining session.
            room_code: The 6-character room code, any case.
            player_name: Display name (1-20 chars after trim).

        Returns:
            JoinRoomResult with room snapshot on success, or error info on failure.
        """
        code = normalize_room_code(room_code or "")
        if code is None:
            return JoinRoomResult(
                success=False,
                error_code=RoomErrorCode.VALIDATION_ERROR,
                error_message="Room code must be 6 letters or digits",
            )
        name = validate_player_name(player_name)
        if name is None:
            return JoinRoomResult(
                success=False,
                error_code=RoomErrorCode.VALIDATION_ERROR,
                error_message=f"Name must be 1-{MAX_NAME_LENGTH} characters",
            )

        try:
            room_row = await self._store.get_room_by_code(code)
            if room_row is None:
                return JoinRoomResult(
                    success=False,
                    error_code=RoomErrorCode.ROOM_NOT_FOUND,
                    error_message="Room not found",
                )
            room = RoomData.from_row(room_row)

            lock = self._join_locks.setdefault(room.room_id, asyncio.Lock())
            async with lock:
                existing = await self._store.find_player(room.room_id, session_id)
                if existing is not None:
                    return await self._rejoined(room.room_id, session_id, existing)

                players = await self._store.list_players(room.room_id)
                if len(players) >= room.max_players:
                    return JoinRoomResult(
                        success=False,
                        error_code=RoomErrorCode.ROOM_FULL,
                        error_message="Room is full",
                    )

                # joined_at must stay strictly increasing within a room
                last_joined = max((int(p.get("joined_at", 0)) for p in players), default=0)
                try:
                    player_row = await self._store.insert_player(
                        {
                            "room_id": room.room_id,
                            "session_id": session_id,
                            "name": name,
                            "is_host": False,
                            "joined_at": max(_now_ms(), last_joined + 1),
                        }
                    )
                except UniqueViolationError:
                    # Another process inserted this session first
                    existing = await self._store.find_player(room.room_id, session_id)
                    if existing is None:
                        raise
                    return await self._rejoined(room.room_id, session_id, existing)

            player_id = str(player_row["id"])
            logger.info("Session %s joined room %s as %s", session_id, room.room_id, player_id)

            if room.is_playing:
                result = await self._mutate_game_state(
                    room.room_id,
                    lambda doc: ProcessResult.ok(get_engine(doc.game_type).add_player(doc, player_id)),
                )
                if not result.success:
                    logger.warning(
                        "Could not add player %s to game in room %s: %s",
                        player_id,
                        room.room_id,
                        result.error_code,
                    )

            return JoinRoomResult(
                success=True,
                room_snapshot=await self.get_room_snapshot(room.room_id, session_id),
                player_id=player_id,
            )

        except StoreError as e:
            logger.exception("Error joining room with code %s for session %s: %s", code, session_id, e)
            return JoinRoomResult(
                success=False,
                error_code=RoomErrorCode.PERSISTENCE_FAILURE,
                error_message="Failed to join room",
            )

    async def _rejoined(self, room_id: str, session_id: str, row: dict[str, Any]) -> JoinRoomResult:
        logger.info("Session %s rejoined room %s", session_id, room_id)
        return JoinRoomResult(
            success=True,
            room_snapshot=await self.get_room_snapshot(room_id, session_id),
            player_id=str(row["id"]),
            already_joined=True,
        )

    async def get_room_snapshot(
        self, room_id: str, session_id: str | None = None
    ) -> RoomSnapshotData | None:
        """Get a complete room snapshot, or None if the room doesn't exist."""
        room_row = await self._store.get_room(room_id)
        if room_row is None:
            return None
        players = await self._store.list_players(room_id)
        return RoomSnapshotData(
            room=RoomData.from_row(room_row),
            roster=Roster.from_rows(players, session_id),
        )

    async def get_room(self, room_code: str, session_id: str | None = None) -> RoomActionResult:
        """Look up a room by code."""
        code = normalize_room_code(room_code or "")
        if code is None:
            return RoomActionResult.failure(RoomErrorCode.VALIDATION_ERROR, "Invalid room code")
        try:
            room_row = await self._store.get_room_by_code(code)
            if room_row is None:
                return RoomActionResult.failure(RoomErrorCode.ROOM_NOT_FOUND, "Room not found")
            snapshot = await self.get_room_snapshot(str(room_row["id"]), session_id)
        except StoreError as e:
            logger.exception("Error fetching room %s: %s", code, e)
            return RoomActionResult.failure(RoomErrorCode.PERSISTENCE_FAILURE, "Failed to load room")
        if snapshot is None:
            return RoomActionResult.failure(RoomErrorCode.ROOM_NOT_FOUND, "Room not found")
        return RoomActionResult(success=True, room_snapshot=snapshot)

    async def find_player(self, room_id: str, session_id: str) -> PlayerData | None:
        row = await self._store.find_player(room_id, session_id)
        return PlayerData.from_row(row) if row else None

    async def start_game(
        self, session_id: str, room_id: str, rng: random.Random | None = None
    ) -> RoomActionResult:
        """Move a waiting room into play. Host only.

        Writes status=playing and the initial document in one conditional update.
        """
        try:
            room_row = await self._store.get_room(room_id)
            if room_row is None:
                return RoomActionResult.failure(RoomErrorCode.ROOM_NOT_FOUND, "Room not found")
            room = RoomData.from_row(room_row)

            player = await self.find_player(room_id, session_id)
            if player is None:
                return RoomActionResult.failure(RoomErrorCode.NOT_IN_ROOM, "Not a member of this room")
            if not player.is_host:
                return RoomActionResult.failure(RoomErrorCode.NOT_HOST, "Only the host can start the game")
            if room.is_playing:
                return RoomActionResult.failure(
                    RoomErrorCode.GAME_ALREADY_STARTED, "Game has already started"
                )

            roster = Roster.from_rows(await self._store.list_players(room_id))
            started = initialize_game(room.game_type, roster.player_ids(), rng)
            next_version = room.state_version + 1
            document = started.state.model_copy(update={"version": next_version})

            updated = await self._store.update_room(
                room_id,
                {
                    "status": "playing",
                    "game_state": document.model_dump(mode="json"),
                    "state_version": next_version,
                },
                expected_version=room.state_version,
            )
            if updated is None:
                return RoomActionResult.failure(
                    RoomErrorCode.STATE_CONFLICT, "Room changed while starting; try again"
                )

            logger.info(
                "Game started: room=%s, game=%s, players=%d",
                room_id,
                room.game_type,
                roster.size,
            )
            return RoomActionResult(
                success=True,
                room_snapshot=await self.get_room_snapshot(room_id, session_id),
                events=started.events,
            )

        except StoreError as e:
            logger.exception("Error starting game in room %s: %s", room_id, e)
            return RoomActionResult.failure(RoomErrorCode.PERSISTENCE_FAILURE, "Failed to start game")

    async def update_game_state(
        self, room_id: str, new_document: GameDocument | dict[str, Any], expected_version: int
    ) -> RoomActionResult:
        """Replace the game document wholesale if nobody else wrote first.

        Succeeds only when the stored state_version equals expected_version,
        and then stores expected_version + 1.
        """
        try:
            document = (
                new_document
                if isinstance(new_document, BaseModel)
                else parse_game_document(new_document)
            )
        except ValidationError as e:
            logger.warning("Rejected invalid game document for room %s: %s", room_id, e)
            return RoomActionResult.failure(RoomErrorCode.VALIDATION_ERROR, "Invalid game document")

        next_version = expected_version + 1
        document = document.model_copy(update={"version": next_version})
        try:
            room_row = await self._store.get_room(room_id)
            if room_row is None:
                return RoomActionResult.failure(RoomErrorCode.ROOM_NOT_FOUND, "Room not found")
            room_game = RoomData.from_row(room_row).game_type
            if document.game_type != room_game:
                logger.warning(
                    "Rejected %s document for %s room %s", document.game_type, room_game, room_id
                )
                return RoomActionResult.failure(
                    RoomErrorCode.VALIDATION_ERROR,
                    f"Game document is for {document.game_type}, room plays {room_game}",
                )

            updated = await self._store.update_room(
                room_id,
                {"game_state": document.model_dump(mode="json"), "state_version": next_version},
                expected_version=expected_version,
            )
            if updated is None:
                if await self._store.get_room(room_id) is None:
                    return RoomActionResult.failure(RoomErrorCode.ROOM_NOT_FOUND, "Room not found")
                logger.info(
                    "Game state conflict in room %s at version %d", room_id, expected_version
                )
                return RoomActionResult.failure(
                    RoomErrorCode.STATE_CONFLICT, "Game state was changed by another player"
                )
            return RoomActionResult(
                success=True,
                room_snapshot=RoomSnapshotData(
                    room=RoomData.from_row(updated),
                    roster=Roster.from_rows(await self._store.list_players(room_id)),
                ),
            )
        except StoreError as e:
            logger.exception("Error writing game state for room %s: %s", room_id, e)
            return RoomActionResult.failure(
                RoomErrorCode.PERSISTENCE_FAILURE, "Failed to save game state"
            )

    async def _mutate_game_state(
        self, room_id: str, mutate: Callable[[GameDocument], ProcessResult]
    ) -> RoomActionResult:
        """Read-apply-write loop, re-reading after each version conflict."""
        for attempt in range(1, self._settings.GAME_STATE_MAX_RETRIES + 1):
            room_row = await self._store.get_room(room_id)
            if room_row is None:
                return RoomActionResult.failure(RoomErrorCode.ROOM_NOT_FOUND, "Room not found")
            room = RoomData.from_row(room_row)
            try:
                document = room.document()
            except ValidationError as e:
                logger.error("Stored game state for room %s is unreadable: %s", room_id, e)
                return RoomActionResult.failure(
                    RoomErrorCode.PERSISTENCE_FAILURE, "Stored game state is unreadable"
                )
            if not room.is_playing or document is None:
                return RoomActionResult.failure(RoomErrorCode.GAME_NOT_STARTED, "Game has not started")

            processed = mutate(document)
            if not processed.success or processed.state is None:
                return RoomActionResult.failure(
                    processed.error_code or "INVALID_ACTION",
                    processed.error_message or "Action rejected",
                )

            written = await self.update_game_state(room_id, processed.state, room.state_version)
            if written.error_code != RoomErrorCode.STATE_CONFLICT:
                written.events = processed.events
                return written
            logger.info(
                "Retrying game state write for room %s (attempt %d/%d)",
                room_id,
                attempt,
                self._settings.GAME_STATE_MAX_RETRIES,
            )

        logger.warning("Giving up on game state write for room %s after conflicts", room_id)
        return RoomActionResult.failure(
            RoomErrorCode.STATE_CONFLICT, "Game state kept changing; try again"
        )

    async def apply_game_action(
        self,
        session_id: str,
        room_id: str,
        action: BaseModel,
        rng: random.Random | None = None,
    ) -> RoomActionResult:
        """Apply a player's action to the room's game and persist the result."""
        try:
            player = await self.find_player(room_id, session_id)
            if player is None:
                if await self._store.get_room(room_id) is None:
                    return RoomActionResult.failure(RoomErrorCode.ROOM_NOT_FOUND, "Room not found")
                return RoomActionResult.failure(RoomErrorCode.NOT_IN_ROOM, "Not a member of this room")

            result = await self._mutate_game_state(
                room_id,
                lambda doc: process_action(
                    doc, action, player.player_id, is_host=player.is_host, rng=rng
                ),
            )
            if result.success and result.room_snapshot is not None:
                result.room_snapshot = result.room_snapshot.for_session(session_id)
            return result

        except StoreError as e:
            logger.exception("Error applying action in room %s: %s", room_id, e)
            return RoomActionResult.failure(
                RoomErrorCode.PERSISTENCE_FAILURE, "Failed to apply action"
            )

    async def leave_room(self, player_id: str) -> RoomActionResult:
        """Remove a player from their room.

        If the host leaves while others remain, the earliest-joined remaining
        player becomes host. When the room is in play the player is also
        removed from the game document.
        """
        try:
            removed = await self._store.delete_player(player_id)
            if removed is None:
                return RoomActionResult.failure(RoomErrorCode.NOT_IN_ROOM, "Player not found")
            leaver = PlayerData.from_row(removed)
            room_id = leaver.room_id

            roster = Roster.from_rows(await self._store.list_players(room_id))
            if roster.size == 0:
                logger.info("Last player left room %s", room_id)
                return RoomActionResult(success=True, room_empty=True)

            if leaver.is_host and roster.host is None:
                successor = roster.next_host_candidate()
                await self._store.update_player(successor.player_id, {"is_host": True})
                await self._store.update_room(room_id, {"host_id": successor.session_id})
                logger.info(
                    "Host %s left room %s; promoted %s", player_id, room_id, successor.player_id
                )

            room_row = await self._store.get_room(room_id)
            if room_row is not None and RoomData.from_row(room_row).is_playing:
                result = await self._mutate_game_state(
                    room_id,
                    lambda doc: ProcessResult.ok(
                        get_engine(doc.game_type).remove_player(doc, player_id)
                    ),
                )
                if not result.success:
                    logger.warning(
                        "Could not remove player %s from game in room %s: %s",
                        player_id,
                        room_id,
                        result.error_code,
                    )

            logger.info("Player %s left room %s", player_id, room_id)
            return RoomActionResult(
                success=True,
                room_snapshot=await self.get_room_snapshot(room_id),
            )

        except StoreError as e:
            logger.exception("Error removing player %s: %s", player_id, e)
            return RoomActionResult.failure(RoomErrorCode.PERSISTENCE_FAILURE, "Failed to leave room")

    async def leave_room_by_session(self, session_id: str, room_id: str) -> RoomActionResult:
        """leave_room for the player a session holds in a room."""
        try:
            player = await self.find_player(room_id, session_id)
        except StoreError as e:
            logger.exception("Error resolving player for session %s: %s", session_id, e)
            return RoomActionResult.failure(RoomErrorCode.PERSISTENCE_FAILURE, "Failed to leave room")
        if player is None:
            return RoomActionResult.failure(RoomErrorCode.NOT_IN_ROOM, "Not a member of this room")
        return await self.leave_room(player.player_id)


# Singleton instance
_room_service: RoomService | None = None


def get_room_service() -> RoomService:
    """Get the singleton RoomService instance."""
    global _room_service
    if _room_service is None:
        _room_service = RoomService()
    return _room_service


def set_room_service(service: RoomService | None) -> None:
    """Replace the singleton, e.g. after the store is re-initialized."""
    global _room_service
    _room_service = service
