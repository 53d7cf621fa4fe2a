"""Game event types - emitted during state transitions for WebSocket broadcasts.

Events describe what happened during a game action, enabling:
- Efficient WebSocket updates (only send what changed)
- Frontend animations (deal, reveal, hangman figure)
- Action replay / audit logging
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field

from app.schemas.game_engine import BlackjackOutcome, HangmanPhase


class GameEvent(BaseModel):
    """Base class for all game events."""

    event_type: str
    seq: int = 0  # Sequence number assigned during processing


class GameInitialized(GameEvent):
    """A room transitioned to playing and its document was created."""

    event_type: Literal["game_initialized"] = "game_initialized"
    game_type: str
    player_ids: list[str] = Field(..., description="Player IDs in joined_at order")


# --- Blackjack ---


class CardsDealt(GameEvent):
    """Two cards each went to the player and the dealer."""

    event_type: Literal["cards_dealt"] = "cards_dealt"
    player_id: str
    player_total: int
    natural: bool


class CardDrawn(GameEvent):
    """The player hit and drew one card."""

    event_type: Literal["card_drawn"] = "card_drawn"
    player_id: str
    player_total: int


class DealerPlayed(GameEvent):
    """The dealer drew to 17 or more."""

    event_type: Literal["dealer_played"] = "dealer_played"
    player_id: str
    cards_drawn: int
    dealer_total: int


class HandFinished(GameEvent):
    """A table reached its outcome."""

    event_type: Literal["hand_finished"] = "hand_finished"
    player_id: str
    outcome: BlackjackOutcome
    reason: str
    player_total: int
    dealer_total: int


class TableReset(GameEvent):
    """A finished table went back to betting."""

    event_type: Literal["table_reset"] = "table_reset"
    player_id: str


# --- Hangman ---


class WordSelected(GameEvent):
    """A round began. The word itself is not broadcast."""

    event_type: Literal["word_selected"] = "word_selected"
    source: Literal["random", "custom"]
    word_length: int
    guesser_id: str | None = None


class LetterGuessed(GameEvent):
    """A letter was guessed."""

    event_type: Literal["letter_guessed"] = "letter_guessed"
    player_id: str
    letter: str
    correct: bool
    wrong_guesses: int
    next_guesser_id: str | None = None


class RoundEnded(GameEvent):
    """The word was completed or the figure was completed."""

    event_type: Literal["round_ended"] = "round_ended"
    phase: HangmanPhase
    word: str
    wrong_guesses: int


class RoundReset(GameEvent):
    """The room returned to word selection."""

    event_type: Literal["round_reset"] = "round_reset"


# Union of all event types for type checking
AnyGameEvent = Annotated[
    GameInitialized
    | CardsDealt
    | CardDrawn
    | DealerPlayed
    | HandFinished
    | TableReset
    | WordSelected
    | LetterGuessed
    | RoundEnded
    | RoundReset,
    Field(discriminator="event_type"),
]
