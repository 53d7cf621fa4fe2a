"""The contract every concrete game engine implements.

Engines are pure: they never mutate the document they are given, and all
randomness comes from an injectable random.Random so tests can pin it.
"""

import random
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from app.schemas.game_engine import GameDocument, GameType

from .validation import ProcessResult


class GameEngine(ABC):
    """Per-game-type state machine: (document, action) -> document'."""

    game_type: GameType
    # Action classes this engine accepts
    action_types: tuple[type[BaseModel], ...] = ()

    @abstractmethod
    def init(self, player_ids: list[str], rng: random.Random | None = None) -> GameDocument:
        """Build the initial document for a room entering play."""

    @abstractmethod
    def apply_action(
        self,
        document: GameDocument,
        action: BaseModel,
        actor_id: str,
        *,
        is_host: bool = False,
        rng: random.Random | None = None,
    ) -> ProcessResult:
        """Validate and apply an action, returning the next document."""

    @abstractmethod
    def is_terminal(self, document: GameDocument) -> bool: ...

    def accepts(self, action: BaseModel) -> bool:
        return isinstance(action, self.action_types)

    def add_player(self, document: GameDocument, player_id: str) -> GameDocument:
        """Account for a player joining mid-game. Default: no change."""
        return document

    def remove_player(self, document: GameDocument, player_id: str) -> GameDocument:
        """Account for a player leaving mid-game. Default: no change."""
        return document

    def public_view(self, document: GameDocument) -> dict[str, Any]:
        """Serialized document as shown to participants (hidden info masked)."""
        return document.model_dump(mode="json")
