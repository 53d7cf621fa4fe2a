"""Roster derivation: the ordered set of players currently in a room."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class PlayerData:
    """A single room membership."""

    player_id: str
    room_id: str
    session_id: str
    name: str
    is_host: bool = False
    joined_at: int = 0  # ms since epoch; defines turn and display order

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PlayerData":
        return cls(
            player_id=str(row["id"]),
            room_id=str(row["room_id"]),
            session_id=str(row["session_id"]),
            name=str(row.get("name", "")),
            is_host=bool(row.get("is_host", False)),
            joined_at=int(row.get("joined_at", 0)),
        )


@dataclass
class Roster:
    """Players ordered by joined_at, viewed from one session.

    Re-derived from scratch on every change, so current_player and is_host are
    always consistent with the players list they came from.
    """

    players: list[PlayerData] = field(default_factory=list)
    session_id: str | None = None

    @classmethod
    def from_rows(cls, rows: list[dict[str, Any]], session_id: str | None = None) -> "Roster":
        players = [PlayerData.from_row(row) for row in rows]
        players.sort(key=lambda p: (p.joined_at, p.player_id))
        return cls(players=players, session_id=session_id)

    def for_session(self, session_id: str | None) -> "Roster":
        """The same roster as seen by another session."""
        return Roster(players=list(self.players), session_id=session_id)

    @property
    def size(self) -> int:
        return len(self.players)

    @property
    def current_player(self) -> PlayerData | None:
        if self.session_id is None:
            return None
        return next((p for p in self.players if p.session_id == self.session_id), None)

    @property
    def is_host(self) -> bool:
        current = self.current_player
        return current is not None and current.is_host

    @property
    def host(self) -> PlayerData | None:
        return next((p for p in self.players if p.is_host), None)

    def player_ids(self) -> list[str]:
        """Player IDs in turn order."""
        return [p.player_id for p in self.players]

    def next_host_candidate(self) -> PlayerData | None:
        """Earliest-joined player, who inherits host when the host leaves."""
        return self.players[0] if self.players else None
