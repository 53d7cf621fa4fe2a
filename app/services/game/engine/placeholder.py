"""Poker and UNO: rooms can be started, but no rules exist yet."""

import random

from pydantic import BaseModel

from app.schemas.game_engine import GameDocument, GameType, PlaceholderState

from .base import GameEngine
from .validation import ProcessResult


class PlaceholderEngine(GameEngine):
    def __init__(self, game_type: GameType):
        self.game_type = game_type

    def init(self, player_ids: list[str], rng: random.Random | None = None) -> PlaceholderState:
        return PlaceholderState(game_type=self.game_type.value)

    def apply_action(
        self,
        document: GameDocument,
        action: BaseModel,
        actor_id: str,
        *,
        is_host: bool = False,
        rng: random.Random | None = None,
    ) -> ProcessResult:
        return ProcessResult.failure(
            "GAME_NOT_IMPLEMENTED", f"{self.game_type.value} has no playable rules yet"
        )

    def is_terminal(self, document: GameDocument) -> bool:
        return False
